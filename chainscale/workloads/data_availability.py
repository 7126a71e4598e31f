"""
Data-availability channel workload.

Plans a fixed set of deterministic channels (the channel rate plus a
headroom share). Each channel is inscribed through the cluster, then
receives blobs published through a random executor; every blob waits
for its inclusion before the next one is chained onto it.
"""

from __future__ import annotations

import asyncio
import math
import random

from chainscale.logging import Logger
from chainscale.nodes.errors import ApiClientError, NoReachableNodeError, is_retryable
from chainscale.nodes.models import ChannelBlob, ChannelInscribe, Op
from chainscale.reliability import RetryConfig, RetryExecutor
from chainscale.scenario.block_feed import BlockRecord
from chainscale.scenario.context import RunContext, RunMetrics
from chainscale.scenario.errors import WorkloadAbortError, WorkloadSetupError
from chainscale.scenario.expectation import Expectation, ExpectationVerdict
from chainscale.scenario.logging_models import (
    WorkloadDebug,
    WorkloadInfo,
    WorkloadWarning,
)
from chainscale.scenario.workload import Workload

from .tx import TEST_SIGNER, build_inscription, deterministic_channel_id
from .util import (
    BlockCapture,
    cancel_and_wait,
    run_until_stopped,
    submit_transaction_via_cluster,
    wait_for_channel_op,
)

DEFAULT_HEADROOM_PERCENT = 20
MIN_BLOB_CHUNKS = 1
MAX_BLOB_CHUNKS = 8
BLOB_CHUNK_SIZE = 31
PUBLISH_RETRIES = 5
PUBLISH_RETRY_DELAY = 2.0
MIN_INCLUSION_RATIO = 0.8


def planned_channel_count(channel_rate: int, headroom_percent: int) -> int:
    extra = math.ceil(channel_rate * headroom_percent / 100)
    return max(channel_rate + extra, 1)


def planned_channel_ids(total: int) -> list[str]:
    return [deterministic_channel_id(index) for index in range(total)]


def planned_blob_count(blob_rate: int, run_metrics: RunMetrics) -> int:
    return blob_rate * max(run_metrics.expected_consensus_blocks, 1)


def per_channel_blob_target(total_blobs: int, channel_count: int) -> int:
    if channel_count <= 0:
        return max(total_blobs, 1)

    return max(math.ceil(total_blobs / channel_count), 1)


def random_blob_payload(rng: random.Random) -> bytes:
    chunks = rng.randint(MIN_BLOB_CHUNKS, MAX_BLOB_CHUNKS)
    return rng.randbytes(BLOB_CHUNK_SIZE * chunks)


def _short(channel_id: str) -> str:
    return channel_id[-16:]


class DataAvailabilityWorkload(Workload):
    name = "channel_workload"

    def __init__(
        self,
        channel_rate: int = 1,
        blob_rate: int = 1,
        headroom_percent: int = DEFAULT_HEADROOM_PERCENT,
        publish_retries: int = PUBLISH_RETRIES,
        publish_retry_delay: float = PUBLISH_RETRY_DELAY,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__()
        self.channel_rate = channel_rate
        self.blob_rate = blob_rate
        self.headroom_percent = headroom_percent
        self.channel_ids = planned_channel_ids(
            planned_channel_count(channel_rate, headroom_percent)
        )
        self.published: dict[str, int] = {channel_id: 0 for channel_id in self.channel_ids}
        self.failed_channels: dict[str, str] = {}

        self._rng = rng or random.Random()
        self._publisher = RetryExecutor(
            RetryConfig.fixed(
                publish_retries,
                publish_retry_delay,
                is_retryable=lambda err: isinstance(err, ApiClientError),
            )
        )
        self._logger = Logger()

    def expectations(self) -> list[Expectation]:
        return [DaInclusionExpectation(self.channel_ids)]

    async def init(self, ctx: RunContext) -> None:
        if len(ctx.node_clients.executor_clients()) == 0:
            raise WorkloadSetupError(self.name, "DA workload requires at least one executor")

    async def start(self, ctx: RunContext, stop: asyncio.Event) -> None:
        expected_blobs = planned_blob_count(self.blob_rate, ctx.run_metrics)
        per_channel_target = per_channel_blob_target(expected_blobs, len(self.channel_ids))

        await self._logger.log(
            WorkloadInfo(
                message=f"Planned {len(self.channel_ids)} channel(s), {expected_blobs} blob(s), {per_channel_target} per channel",
                workload=self.name,
            )
        )

        channels = [
            asyncio.ensure_future(self._run_channel(ctx, stop, channel_id, per_channel_target))
            for channel_id in self.channel_ids
        ]

        try:
            await asyncio.gather(*channels)

        finally:
            for channel in channels:
                await cancel_and_wait(channel)

    async def _run_channel(
        self,
        ctx: RunContext,
        stop: asyncio.Event,
        channel_id: str,
        target_blobs: int,
    ) -> None:
        subscription = ctx.block_feed.subscribe()

        try:
            await submit_transaction_via_cluster(ctx, build_inscription(channel_id), workload=self.name)

            parent = await run_until_stopped(
                stop,
                wait_for_channel_op(subscription, _inscription_matcher(channel_id)),
            )

            while parent is not None and self.published[channel_id] < target_blobs:
                if stop.is_set():
                    return

                blob_id = await run_until_stopped(stop, self._publish_blob(ctx, channel_id, parent))
                if blob_id is None:
                    return

                self.published[channel_id] += 1

                await self._logger.log(
                    WorkloadDebug(
                        message=f"Published blob {blob_id[:16]} on channel {_short(channel_id)}",
                        workload=self.name,
                    )
                )

                parent = await run_until_stopped(
                    stop,
                    wait_for_channel_op(subscription, _blob_matcher(channel_id, blob_id)),
                )

        except NoReachableNodeError as err:
            if all(is_retryable(error) for error in err.errors):
                raise WorkloadAbortError(self.name, str(err)) from err

            self.failed_channels[channel_id] = str(err)
            await self._logger.log(
                WorkloadWarning(
                    message=f"Channel {_short(channel_id)} inscription rejected: {err}",
                    workload=self.name,
                )
            )

        except Exception as err:
            self.failed_channels[channel_id] = str(err)
            await self._logger.log(
                WorkloadWarning(
                    message=f"Channel {_short(channel_id)} flow stopped: {err}",
                    workload=self.name,
                )
            )

        finally:
            ctx.block_feed.unsubscribe(subscription)

    async def _publish_blob(self, ctx: RunContext, channel_id: str, parent: str) -> str:
        executors = list(ctx.node_clients.executor_clients())
        data = random_blob_payload(self._rng)

        async def publish_once() -> str:
            self._rng.shuffle(executors)

            last_error: ApiClientError | None = None
            for executor in executors:
                try:
                    return await executor.publish_blob(channel_id, parent, TEST_SIGNER, data)

                except ApiClientError as err:
                    last_error = err

            if last_error is None:
                raise ApiClientError("executors", "/da/disperse-data", "no executor available")

            raise last_error

        return await self._publisher.execute(publish_once, operation_name="publish_blob")


def _inscription_matcher(channel_id: str):
    def match(op: Op) -> str | None:
        if isinstance(op, ChannelInscribe) and op.channel_id == channel_id:
            return op.id

        return None

    return match


def _blob_matcher(channel_id: str, blob_id: str):
    def match(op: Op) -> str | None:
        if isinstance(op, ChannelBlob) and op.channel == channel_id and op.blob == blob_id:
            return op.id

        return None

    return match


class DaInclusionExpectation(Expectation):
    """
    Passes when at least 80% of the planned channels were both inscribed
    and received a blob during the run.
    """

    name = "da_workload_inclusions"

    def __init__(self, planned_channels: list[str], min_ratio: float = MIN_INCLUSION_RATIO) -> None:
        self._planned = set(planned_channels)
        self._min_ratio = min_ratio
        self._inscriptions: set[str] = set()
        self._blobs: set[str] = set()
        self._capture = BlockCapture(self._observe)

    def _observe(self, record: BlockRecord) -> None:
        for transaction in record.block.transactions:
            for op in transaction.ops:
                if isinstance(op, ChannelInscribe) and op.channel_id in self._planned:
                    self._inscriptions.add(op.channel_id)

                elif isinstance(op, ChannelBlob) and op.channel in self._planned:
                    self._blobs.add(op.channel)

    async def start_capture(self, ctx: RunContext) -> None:
        self._capture.start(ctx.block_feed)

    async def stop_capture(self) -> None:
        await self._capture.stop()

    async def evaluate(self, ctx: RunContext) -> ExpectationVerdict:
        if not self._capture.started:
            return ExpectationVerdict.failure(self.name, "DA inclusion capture was never started")

        planned = len(self._planned)
        required = math.ceil(planned * self._min_ratio)
        missing_inscriptions = sorted(self._planned - self._inscriptions)
        missing_blobs = sorted(self._planned - self._blobs)

        diagnostics = {
            "planned": planned,
            "required": required,
            "inscriptions": planned - len(missing_inscriptions),
            "blobs": planned - len(missing_blobs),
            "missing_inscriptions": missing_inscriptions,
            "missing_blobs": missing_blobs,
        }

        if planned - len(missing_inscriptions) < required:
            return ExpectationVerdict.failure(
                self.name,
                f"missing inscriptions for {len(missing_inscriptions)} of {planned} channel(s)",
                **diagnostics,
            )

        if planned - len(missing_blobs) < required:
            return ExpectationVerdict.failure(
                self.name,
                f"missing blobs for {len(missing_blobs)} of {planned} channel(s)",
                **diagnostics,
            )

        return ExpectationVerdict.success(
            self.name,
            f"{diagnostics['inscriptions']} inscription(s) and {diagnostics['blobs']} blob channel(s) of {planned} planned",
            **diagnostics,
        )
