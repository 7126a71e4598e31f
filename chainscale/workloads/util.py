from __future__ import annotations

import asyncio
from typing import Callable

from chainscale.logging import Logger
from chainscale.nodes.models import Block, Op, SignedTransaction
from chainscale.scenario.block_feed import BlockFeed, BlockRecord, BlockSubscription
from chainscale.scenario.context import RunContext
from chainscale.scenario.logging_models import WorkloadDebug

OpMatcher = Callable[[Op], "str | None"]


async def submit_transaction_via_cluster(
    ctx: RunContext,
    transaction: SignedTransaction,
    workload: str = "cluster",
) -> None:
    """
    Submit to nodes in random order until one accepts. Raises
    NoReachableNodeError when every node refused or was unreachable.
    """
    await Logger().log(
        WorkloadDebug(
            message=f"Submitting transaction {transaction.hash[:16]} via cluster",
            workload=workload,
        )
    )

    await ctx.node_clients.try_all_clients(
        lambda client: client.submit_transaction(transaction),
        operation_name=f"submit_transaction({transaction.hash[:16]})",
    )


def find_channel_op(block: Block, matcher: OpMatcher) -> str | None:
    for transaction in block.transactions:
        for op in transaction.ops:
            msg_id = matcher(op)
            if msg_id is not None:
                return msg_id

    return None


async def wait_for_channel_op(
    subscription: BlockSubscription,
    matcher: OpMatcher,
) -> str:
    """
    Wait until a block carrying an op accepted by ``matcher`` arrives and
    return that op's message id. Raises BlockFeedClosedError if the feed
    closes first.
    """
    while True:
        record = await subscription.recv()
        msg_id = find_channel_op(record.block, matcher)
        if msg_id is not None:
            return msg_id


async def cancel_and_wait(task: asyncio.Task | None) -> None:
    if task is None or task.done():
        return

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


class BlockCapture:
    """
    Background consumer of block feed records, for expectations that
    observe the whole run window. ``stop`` drains whatever is still queued
    so no record delivered before the stop is lost.
    """

    def __init__(self, handler: Callable[[BlockRecord], None]) -> None:
        self._handler = handler
        self._feed: BlockFeed | None = None
        self._subscription: BlockSubscription | None = None
        self._task: asyncio.Task | None = None

    @property
    def started(self) -> bool:
        return self._subscription is not None

    def start(self, feed: BlockFeed) -> None:
        if self._subscription is not None:
            return

        self._feed = feed
        self._subscription = feed.subscribe()
        self._task = asyncio.create_task(self._consume(self._subscription))

    async def _consume(self, subscription: BlockSubscription) -> None:
        async for record in subscription:
            self._handler(record)

    async def stop(self) -> None:
        await cancel_and_wait(self._task)
        self._task = None

        if self._subscription is None:
            return

        while (record := self._subscription.try_recv()) is not None:
            self._handler(record)

        if self._feed is not None:
            self._feed.unsubscribe(self._subscription)


async def run_until_stopped(stop: asyncio.Event, awaitable):
    """
    Await ``awaitable`` unless ``stop`` fires first, in which case the
    pending work is cancelled and None is returned.
    """
    work = asyncio.ensure_future(awaitable)
    stopper = asyncio.create_task(stop.wait())

    try:
        await asyncio.wait({work, stopper}, return_when=asyncio.FIRST_COMPLETED)

    finally:
        await cancel_and_wait(stopper)
        if not work.done():
            await cancel_and_wait(work)

    if work.cancelled():
        return None

    return work.result()
