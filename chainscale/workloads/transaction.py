"""
Wallet transaction generator.

Every block interval the workload submits up to ``rate`` transactions,
cycling through the first ``users`` wallets and spreading submissions
over validators (executors when no validator exists). A wallet with a
transaction still waiting for inclusion is skipped until the block feed
shows it.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from itertools import cycle

from chainscale.logging import Logger
from chainscale.nodes.api_client import ApiClient
from chainscale.nodes.errors import ApiClientError, NoReachableNodeError
from chainscale.scenario.block_feed import BlockRecord, BlockSubscription
from chainscale.scenario.context import RunContext
from chainscale.scenario.errors import WorkloadAbortError, WorkloadSetupError
from chainscale.scenario.expectation import Expectation, ExpectationVerdict
from chainscale.scenario.logging_models import (
    WorkloadDebug,
    WorkloadInfo,
    WorkloadWarning,
)
from chainscale.scenario.workload import Workload, sleep_or_stop
from chainscale.topology.wallet import WalletAccount

from .tx import build_transfer
from .util import BlockCapture, cancel_and_wait

MIN_INCLUSION_RATIO = 0.5


@dataclass(slots=True)
class TransactionStats:
    submitted: set[str] = field(default_factory=set)
    rejected: int = 0
    confirmed: int = 0


class TransactionWorkload(Workload):
    name = "tx_workload"

    def __init__(self, rate: int = 1, users: int | None = None) -> None:
        super().__init__()
        self.rate = rate
        self.users = users
        self.stats = TransactionStats()
        self._accounts: tuple[WalletAccount, ...] = ()
        self._pending: dict[str, str] = {}
        self._busy: set[str] = set()
        self._cursor = 0
        self._logger = Logger()

    def expectations(self) -> list[Expectation]:
        return [TxInclusionExpectation(self.stats)]

    async def init(self, ctx: RunContext) -> None:
        self._accounts = ctx.wallets.take(self.users)
        if len(self._accounts) == 0:
            raise WorkloadSetupError(self.name, "transaction workload requires seeded wallets")

        if len(ctx.node_clients.all_clients()) == 0:
            raise WorkloadSetupError(self.name, "transaction workload requires at least one node")

        await self._logger.log(
            WorkloadInfo(
                message=f"Prepared {len(self._accounts)} account(s) at {self.rate} tx per block",
                workload=self.name,
            )
        )

    async def start(self, ctx: RunContext, stop: asyncio.Event) -> None:
        targets = ctx.node_clients.validator_clients() or ctx.node_clients.executor_clients()
        clients = cycle(targets)
        interval = ctx.run_metrics.block_interval_hint

        subscription = ctx.block_feed.subscribe()
        confirmations = asyncio.create_task(self._track_confirmations(subscription))

        try:
            while not stop.is_set():
                await self._submit_tick(ctx, clients)

                if await sleep_or_stop(stop, interval):
                    break

        finally:
            await cancel_and_wait(confirmations)
            ctx.block_feed.unsubscribe(subscription)

        await self._logger.log(
            WorkloadInfo(
                message=f"Submitted {len(self.stats.submitted)} transaction(s), {self.stats.rejected} rejected",
                workload=self.name,
            )
        )

    def _next_account(self) -> WalletAccount | None:
        for _ in range(len(self._accounts)):
            account = self._accounts[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._accounts)
            if account.label not in self._busy:
                return account

        return None

    async def _submit_tick(self, ctx: RunContext, clients) -> None:
        for _ in range(self.rate):
            account = self._next_account()
            if account is None:
                await self._logger.log(
                    WorkloadDebug(
                        message="Every account has a pending transaction, skipping tick",
                        workload=self.name,
                    )
                )
                return

            nonce = await ctx.wallets.reserve_nonce(account)
            transaction = build_transfer(account, nonce)

            self._pending[transaction.hash] = account.label
            self._busy.add(account.label)
            self.stats.submitted.add(transaction.hash)

            if not await self._submit(ctx, next(clients), transaction):
                self._pending.pop(transaction.hash, None)
                self._busy.discard(account.label)
                self.stats.submitted.discard(transaction.hash)
                self.stats.rejected += 1

    async def _submit(self, ctx: RunContext, client: ApiClient, transaction) -> bool:
        try:
            await client.submit_transaction(transaction)
            return True

        except ApiClientError as err:
            if not err.retryable:
                await self._logger.log(
                    WorkloadWarning(
                        message=f"Transaction {transaction.hash[:16]} rejected: {err}",
                        workload=self.name,
                    )
                )
                return False

        try:
            await ctx.node_clients.try_all_clients(
                lambda fallback: fallback.submit_transaction(transaction),
                operation_name="submit_transaction",
            )
            return True

        except NoReachableNodeError as err:
            if all(
                isinstance(error, ApiClientError) and error.retryable
                for error in err.errors
            ):
                raise WorkloadAbortError(self.name, str(err)) from err

            await self._logger.log(
                WorkloadWarning(
                    message=f"Transaction {transaction.hash[:16]} rejected by every node: {err}",
                    workload=self.name,
                )
            )
            return False

    async def _track_confirmations(self, subscription: BlockSubscription) -> None:
        async for record in subscription:
            for transaction in record.block.transactions:
                label = self._pending.pop(transaction.hash, None)
                if label is not None:
                    self._busy.discard(label)
                    self.stats.confirmed += 1


class TxInclusionExpectation(Expectation):
    """
    Passes when at least half of the submitted transactions were observed
    in blocks by the end of the run.
    """

    name = "tx_inclusion_expectation"

    def __init__(self, stats: TransactionStats, min_ratio: float = MIN_INCLUSION_RATIO) -> None:
        self._stats = stats
        self._min_ratio = min_ratio
        self._included: set[str] = set()
        self._capture = BlockCapture(self._observe)

    def _observe(self, record: BlockRecord) -> None:
        for transaction in record.block.transactions:
            self._included.add(transaction.hash)

    async def start_capture(self, ctx: RunContext) -> None:
        self._capture.start(ctx.block_feed)

    async def stop_capture(self) -> None:
        await self._capture.stop()

    async def evaluate(self, ctx: RunContext) -> ExpectationVerdict:
        if not self._capture.started:
            return ExpectationVerdict.failure(self.name, "inclusion capture was never started")

        submitted = len(self._stats.submitted)
        observed = len(self._stats.submitted & self._included)
        required = math.ceil(submitted * self._min_ratio)

        diagnostics = {
            "submitted": submitted,
            "observed": observed,
            "required": required,
            "rejected": self._stats.rejected,
        }

        if submitted == 0:
            return ExpectationVerdict.failure(
                self.name,
                "no transactions were submitted",
                **diagnostics,
            )

        if observed < required:
            return ExpectationVerdict.failure(
                self.name,
                f"observed {observed} included transaction(s), below required {required}",
                **diagnostics,
            )

        return ExpectationVerdict.success(
            self.name,
            f"observed {observed} of {submitted} submitted transaction(s)",
            **diagnostics,
        )
