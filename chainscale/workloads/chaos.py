"""
Random node restarts during a run.

Between restarts the workload sleeps a uniform delay within the
configured bounds. It then restarts one target whose cooldown has
elapsed, favouring nodes restarted longest ago. A node is never
restarted again before its cooldown ends.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Callable

from chainscale.logging import Logger
from chainscale.scenario.capabilities import Capability
from chainscale.scenario.context import RunContext
from chainscale.scenario.errors import WorkloadSetupError
from chainscale.scenario.logging_models import WorkloadInfo, WorkloadWarning
from chainscale.scenario.node_control import NodeControlHandle
from chainscale.scenario.workload import Workload, sleep_or_stop
from chainscale.topology.node import NodeId, NodeRole


@dataclass(frozen=True, slots=True)
class RestartRecord:
    node: NodeId
    started_at: float
    completed_at: float
    error: str | None = None


class RandomRestartWorkload(Workload):
    name = "chaos_restart"
    requires = (Capability.NODE_CONTROL,)

    def __init__(
        self,
        min_delay: float = 10.0,
        max_delay: float = 30.0,
        target_cooldown: float = 60.0,
        include_validators: bool = True,
        include_executors: bool = True,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.target_cooldown = target_cooldown
        self.include_validators = include_validators
        self.include_executors = include_executors
        self.history: list[RestartRecord] = []

        self._rng = rng or random.Random()
        self._clock = clock
        self._targets: list[NodeId] = []
        self._last_restart: dict[NodeId, float] = {}
        self._logger = Logger()

    @property
    def targets(self) -> list[NodeId]:
        return list(self._targets)

    def select_targets(self, nodes: list[NodeId]) -> list[NodeId]:
        validators = [node for node in nodes if node.role == NodeRole.VALIDATOR]
        executors = [node for node in nodes if node.role == NodeRole.EXECUTOR]

        targets: list[NodeId] = []
        # Restarting the only validator would halt consensus.
        if self.include_validators and len(validators) > 1:
            targets.extend(validators)

        if self.include_executors:
            targets.extend(executors)

        return targets

    async def init(self, ctx: RunContext) -> None:
        if ctx.node_control is None:
            raise WorkloadSetupError(self.name, "chaos restart workload requires node control")

        self._targets = self.select_targets(ctx.topology.node_ids)
        if len(self._targets) == 0:
            raise WorkloadSetupError(self.name, "chaos restart workload has no eligible targets")

        if self.include_validators and len(ctx.topology.validators) == 1:
            await self._logger.log(
                WorkloadInfo(
                    message="Skipping validators: only one validator configured",
                    workload=self.name,
                )
            )

        # Every target starts out eligible.
        start = self._clock() - self.target_cooldown
        self._last_restart = {node: start for node in self._targets}

    def random_delay(self) -> float:
        if self.max_delay <= self.min_delay:
            return self.min_delay

        return self._rng.uniform(self.min_delay, self.max_delay)

    def eligible(self, now: float) -> list[NodeId]:
        return [
            node
            for node in self._targets
            if now - self._last_restart[node] >= self.target_cooldown
        ]

    def next_eligible_at(self) -> float:
        return min(self._last_restart.values()) + self.target_cooldown

    def choose(self, now: float) -> NodeId | None:
        candidates = self.eligible(now)
        if len(candidates) == 0:
            return None

        weights = [now - self._last_restart[node] for node in candidates]
        return self._rng.choices(candidates, weights=weights, k=1)[0]

    def record_restart(self, node: NodeId, started_at: float, error: str | None = None) -> None:
        completed_at = self._clock()
        self._last_restart[node] = completed_at
        self.history.append(
            RestartRecord(
                node=node,
                started_at=started_at,
                completed_at=completed_at,
                error=error,
            )
        )

    async def start(self, ctx: RunContext, stop: asyncio.Event) -> None:
        control = ctx.node_control
        if control is None:
            raise WorkloadSetupError(self.name, "chaos restart workload requires node control")

        await self._logger.log(
            WorkloadInfo(
                message=f"Starting chaos restarts over {len(self._targets)} target(s)",
                workload=self.name,
            )
        )

        while not stop.is_set():
            if await sleep_or_stop(stop, self.random_delay()):
                return

            target = self.choose(self._clock())
            while target is None:
                if await sleep_or_stop(stop, self.next_eligible_at() - self._clock()):
                    return

                target = self.choose(self._clock())

            # A restart already issued always runs to completion, even when
            # the workload is cancelled while it is in flight.
            restart = asyncio.ensure_future(self._restart(control, target))
            try:
                await asyncio.shield(restart)

            except asyncio.CancelledError:
                await restart
                raise

    async def _restart(self, control: NodeControlHandle, node: NodeId) -> None:
        started_at = self._clock()
        await self._logger.log(
            WorkloadInfo(
                message=f"Restarting {node}",
                workload=self.name,
            )
        )

        try:
            await control.restart(node)

        except Exception as err:
            self.record_restart(node, started_at, error=str(err))
            await self._logger.log(
                WorkloadWarning(
                    message=f"Restart of {node} failed: {err}",
                    workload=self.name,
                )
            )
            return

        self.record_restart(node, started_at)
