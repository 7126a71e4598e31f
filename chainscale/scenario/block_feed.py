"""
Follow one node's canonical chain and broadcast newly observed blocks.

The scanner polls the tip, walks parents until it reaches a header it
has already published, and hands the new blocks to the feed oldest
first. Every subscriber owns a bounded queue; a subscriber that falls
behind loses its oldest records instead of stalling the feed.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from chainscale.logging import Logger
from chainscale.nodes.api_client import ApiClient
from chainscale.nodes.models import Block
from chainscale.reliability import RetryConfig, RetryExecutor
from chainscale.topology.constants import DEFAULT_HTTP_POLL_INTERVAL

from .cleanup import CleanupGuard
from .errors import BlockFeedClosedError
from .logging_models import BlockFeedDebug, BlockFeedError

DEFAULT_SUBSCRIPTION_CAPACITY = 1024


@dataclass(frozen=True, slots=True)
class BlockRecord:
    header_id: str
    block: Block
    observed_at: float

    @property
    def parent(self) -> str:
        return self.block.header.parent

    @property
    def slot(self) -> int:
        return self.block.header.slot


@dataclass(slots=True)
class BlockStats:
    blocks: int = 0
    total_transactions: int = 0

    def record(self, block: Block) -> None:
        self.blocks += 1
        self.total_transactions += len(block.transactions)


class BlockSubscription:
    def __init__(self, capacity: int = DEFAULT_SUBSCRIPTION_CAPACITY) -> None:
        self._queue: asyncio.Queue[BlockRecord | None] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, item: BlockRecord | None) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1

        self._queue.put_nowait(item)

    def publish(self, record: BlockRecord) -> None:
        if not self._closed:
            self._push(record)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._push(None)

    async def recv(self) -> BlockRecord:
        record = await self._queue.get()
        if record is None:
            # Keep the sentinel so later receivers also observe the close.
            self._queue.put_nowait(None)
            raise BlockFeedClosedError("block feed closed")

        return record

    def try_recv(self) -> BlockRecord | None:
        if self._queue.empty():
            return None

        record = self._queue.get_nowait()
        if record is None:
            self._queue.put_nowait(None)

        return record

    def __aiter__(self):
        return self

    async def __anext__(self) -> BlockRecord:
        try:
            return await self.recv()

        except BlockFeedClosedError:
            raise StopAsyncIteration


class BlockFeed:
    """Read-only fan-out of observed blocks."""

    def __init__(self) -> None:
        self._subscribers: list[BlockSubscription] = []
        self._stats = BlockStats()
        self._closed = False

    @property
    def stats(self) -> BlockStats:
        return self._stats

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, capacity: int = DEFAULT_SUBSCRIPTION_CAPACITY) -> BlockSubscription:
        subscription = BlockSubscription(capacity)
        if self._closed:
            subscription.close()

        else:
            self._subscribers.append(subscription)

        return subscription

    def unsubscribe(self, subscription: BlockSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

        subscription.close()

    def ingest(self, record: BlockRecord) -> None:
        if self._closed:
            return

        self._stats.record(record.block)
        for subscription in self._subscribers:
            subscription.publish(record)

    def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        for subscription in self._subscribers:
            subscription.close()

        self._subscribers.clear()


class BlockScanner:
    def __init__(self, client: ApiClient, feed: BlockFeed) -> None:
        self._client = client
        self._feed = feed
        self._seen: set[str] = set()

    async def catch_up(self) -> int:
        info = await self._client.consensus_info()

        header_id = info.tip
        remaining = info.height
        pending: list[tuple[str, Block]] = []

        while remaining > 0 and header_id not in self._seen:
            block = await self._client.storage_block(header_id)
            if block is None:
                # Tip not persisted yet; retry the whole walk next cycle.
                return 0

            pending.append((header_id, block))
            header_id = block.header.parent
            remaining -= 1

        observed_at = time.monotonic()
        for header_id, block in reversed(pending):
            self._seen.add(header_id)
            self._feed.ingest(
                BlockRecord(
                    header_id=header_id,
                    block=block,
                    observed_at=observed_at,
                )
            )

        return len(pending)


class BlockFeedTask(CleanupGuard):
    def __init__(
        self,
        feed: BlockFeed,
        scanner: BlockScanner,
        poll_interval: float = DEFAULT_HTTP_POLL_INTERVAL,
    ) -> None:
        self.feed = feed
        self._scanner = scanner
        self._poll_interval = poll_interval
        self._task: asyncio.Task | None = None
        self._logger = Logger()

    def __repr__(self) -> str:
        return "BlockFeedTask"

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)

            try:
                processed = await self._scanner.catch_up()
                if processed > 0:
                    await self._logger.log(
                        BlockFeedDebug(
                            message=f"Block feed ingested {processed} block(s)",
                            processed=processed,
                        )
                    )

            except Exception as err:
                await self._logger.log(
                    BlockFeedError(
                        message=f"Block feed catch-up failed: {err}",
                        error=str(err),
                    )
                )

    async def cleanup(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)

        self._task = None
        self.feed.close()


def _retry_any(exc: Exception) -> bool:
    return True


async def spawn_block_feed(
    client: ApiClient,
    poll_interval: float = DEFAULT_HTTP_POLL_INTERVAL,
    retries: int = 5,
    retry_delay: float = 1.0,
) -> BlockFeedTask:
    """
    Catch up once (retrying up to ``retries`` times) and start the
    background poller. The returned task must be cleaned up by the caller.
    """
    feed = BlockFeed()
    scanner = BlockScanner(client, feed)

    executor = RetryExecutor(RetryConfig.fixed(retries, retry_delay, is_retryable=_retry_any))
    await executor.execute(scanner.catch_up, operation_name="block_feed_catch_up")

    task = BlockFeedTask(feed, scanner, poll_interval=poll_interval)
    task.start()

    return task
