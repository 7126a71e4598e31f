"""
Consensus liveness.

A sampler polls every node's consensus height for the whole run window.
The network height (highest answer per poll) feeds a LivenessTracker,
which counts produced blocks and records every window in which the
height did not advance for longer than the stall threshold, including
at the very start and end of the window.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable

from chainscale.logging import Logger
from chainscale.scenario.context import RunContext
from chainscale.scenario.expectation import Expectation, ExpectationVerdict
from chainscale.scenario.logging_models import ExpectationWarning
from chainscale.topology.node import NodeId

DEFAULT_TOLERANCE = 0.2
DEFAULT_STALL_MULTIPLIER = 4.0
LAG_ALLOWANCE = 2
MAX_LAG_ALLOWANCE = 5


@dataclass(frozen=True, slots=True)
class StallWindow:
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


class LivenessTracker:
    """
    Pure accumulator of (timestamp, height) observations. Timestamps are
    seconds on any monotonic clock shared with ``start`` and ``finish``.
    """

    def __init__(self, start: float, stall_threshold: float) -> None:
        self.start = start
        self.stall_threshold = stall_threshold
        self.samples = 0
        self.stalls: list[StallWindow] = []

        self._first_height: int | None = None
        self._last_height: int | None = None
        self._last_progress = start
        self._finished_at: float | None = None

    @property
    def observed_blocks(self) -> int:
        if self._first_height is None or self._last_height is None:
            return 0

        return self._last_height - self._first_height

    @property
    def last_height(self) -> int | None:
        return self._last_height

    def observe(self, timestamp: float, height: int) -> None:
        self.samples += 1

        if self._first_height is None:
            self._first_height = height
            self._last_height = height
            return

        if height <= self._last_height:
            return

        if timestamp - self._last_progress > self.stall_threshold:
            self.stalls.append(StallWindow(self._last_progress, timestamp))

        self._last_progress = timestamp
        self._last_height = height

    def finish(self, end: float) -> list[StallWindow]:
        if self._finished_at is None:
            self._finished_at = end
            if end - self._last_progress > self.stall_threshold:
                self.stalls.append(StallWindow(self._last_progress, end))

        return self.stalls


@dataclass(slots=True)
class NodeHeights:
    heights: dict[NodeId, int] = field(default_factory=dict)
    errors: dict[NodeId, str] = field(default_factory=dict)
    failures: int = 0


def effective_lag_allowance(expected_blocks: float, lag_allowance: int) -> int:
    return max(lag_allowance, min(int(expected_blocks) // 10, MAX_LAG_ALLOWANCE))


class ConsensusLiveness(Expectation):
    name = "consensus_liveness"

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        stall_multiplier: float = DEFAULT_STALL_MULTIPLIER,
        poll_interval: float | None = None,
        lag_allowance: int = LAG_ALLOWANCE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.tolerance = tolerance
        self.stall_multiplier = stall_multiplier
        self.poll_interval = poll_interval
        self.lag_allowance = lag_allowance

        self._clock = clock
        self._tracker: LivenessTracker | None = None
        self._nodes = NodeHeights()
        self._sampler: asyncio.Task | None = None
        self._ended_at: float | None = None
        self._logger = Logger()

    @property
    def tracker(self) -> LivenessTracker | None:
        return self._tracker

    async def start_capture(self, ctx: RunContext) -> None:
        if self._tracker is not None:
            return

        slot_duration = ctx.run_metrics.slot_duration
        interval = self.poll_interval or slot_duration / 2

        self._tracker = LivenessTracker(
            start=self._clock(),
            stall_threshold=self.stall_multiplier * slot_duration,
        )
        self._sampler = asyncio.create_task(self._sample_forever(ctx, interval))

    async def stop_capture(self) -> None:
        if self._sampler is not None and not self._sampler.done():
            self._sampler.cancel()
            await asyncio.gather(self._sampler, return_exceptions=True)

        self._sampler = None
        if self._ended_at is None and self._tracker is not None:
            self._ended_at = self._clock()

    async def _sample_forever(self, ctx: RunContext, interval: float) -> None:
        while True:
            await self.sample(ctx)
            await asyncio.sleep(interval)

    async def sample(self, ctx: RunContext) -> None:
        nodes = list(ctx.node_clients.items())
        results = await asyncio.gather(
            *[client.consensus_info() for _, client in nodes],
            return_exceptions=True,
        )

        timestamp = self._clock()
        network_height: int | None = None

        for (node, _), result in zip(nodes, results):
            if isinstance(result, BaseException):
                self._nodes.failures += 1
                self._nodes.errors[node] = str(result)
                continue

            self._nodes.heights[node] = result.height
            self._nodes.errors.pop(node, None)
            if network_height is None or result.height > network_height:
                network_height = result.height

        if network_height is not None and self._tracker is not None:
            self._tracker.observe(timestamp, network_height)

    def record(self, node: NodeId, timestamp: float, height: int) -> None:
        """Feed one observation without polling, e.g. from a block feed."""
        self._nodes.heights[node] = max(height, self._nodes.heights.get(node, height))
        if self._tracker is not None:
            self._tracker.observe(timestamp, height)

    async def evaluate(self, ctx: RunContext) -> ExpectationVerdict:
        tracker = self._tracker
        if tracker is None:
            return ExpectationVerdict.failure(self.name, "liveness capture was never started")

        end = self._ended_at if self._ended_at is not None else self._clock()
        metrics = ctx.run_metrics
        window = end - tracker.start
        expected = window / metrics.slot_duration * metrics.active_slot_coeff

        verdict = self.judge(tracker, end, expected)
        if not verdict.passed:
            await self._logger.log(
                ExpectationWarning(
                    message=verdict.message,
                    expectation=self.name,
                )
            )

        return verdict

    def judge(self, tracker: LivenessTracker, end: float, expected: float) -> ExpectationVerdict:
        stalls = tracker.finish(end)
        observed = tracker.observed_blocks
        low = expected * (1 - self.tolerance)
        high = expected * (1 + self.tolerance)

        issues: list[str] = []
        if tracker.samples == 0:
            issues.append("no successful height samples")

        elif not low <= observed <= high:
            issues.append(
                f"observed {observed} block(s), expected {expected:.1f} within [{low:.1f}, {high:.1f}]"
            )

        for stall in stalls:
            issues.append(
                f"stalled for {stall.duration:.1f}s ({stall.start - tracker.start:.1f}s to {stall.end - tracker.start:.1f}s)"
            )

        allowance = effective_lag_allowance(expected, self.lag_allowance)
        heights = self._nodes.heights
        if heights:
            highest = max(heights.values())
            for node, height in sorted(heights.items(), key=lambda item: item[0].label):
                if height + allowance < highest:
                    issues.append(f"{node} height {height} lags highest {highest} by more than {allowance}")

        for node, error in self._nodes.errors.items():
            if node not in heights:
                issues.append(f"{node} never answered: {error}")

        diagnostics = {
            "observed": observed,
            "expected": round(expected, 2),
            "band": [round(low, 2), round(high, 2)],
            "stall_threshold": tracker.stall_threshold,
            "stalls": [
                {
                    "start": round(stall.start - tracker.start, 3),
                    "end": round(stall.end - tracker.start, 3),
                    "duration": round(stall.duration, 3),
                }
                for stall in stalls
            ],
            "heights": {node.label: height for node, height in heights.items()},
            "lag_allowance": allowance,
            "samples": tracker.samples,
            "sampling_errors": self._nodes.failures,
        }

        if issues:
            return ExpectationVerdict.failure(self.name, "; ".join(issues), **diagnostics)

        return ExpectationVerdict.success(
            self.name,
            f"observed {observed} block(s), expected {expected:.1f}, no stalls",
            **diagnostics,
        )
