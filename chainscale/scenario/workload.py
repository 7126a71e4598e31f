from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from .capabilities import Capability

if TYPE_CHECKING:
    from .context import RunContext
    from .expectation import Expectation


class WorkloadState(Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"


class Workload(ABC):
    """
    Traffic or disruption generator active during the run.

    ``start`` runs until it finishes its plan or ``stop`` is set. Workloads
    must check ``stop`` at every iteration boundary; the Runner cancels
    them once the grace period elapses.
    """

    name: str = "workload"
    requires: tuple[Capability, ...] = ()

    def __init__(self) -> None:
        self._state = WorkloadState.IDLE

    @property
    def state(self) -> WorkloadState:
        return self._state

    def expectations(self) -> list[Expectation]:
        return []

    async def init(self, ctx: RunContext) -> None:
        return None

    @abstractmethod
    async def start(self, ctx: RunContext, stop: asyncio.Event) -> None:
        ...

    async def execute(self, ctx: RunContext, stop: asyncio.Event) -> None:
        self._state = WorkloadState.RUNNING
        try:
            await self.start(ctx, stop)

        finally:
            self._state = WorkloadState.STOPPED

    def signal_stop(self) -> None:
        if self._state == WorkloadState.RUNNING:
            self._state = WorkloadState.STOPPING


async def sleep_or_stop(stop: asyncio.Event, delay: float) -> bool:
    """
    Sleep for ``delay`` seconds or until ``stop`` is set. Returns True if
    the stop signal fired.
    """
    if delay <= 0:
        return stop.is_set()

    try:
        await asyncio.wait_for(stop.wait(), timeout=delay)
        return True

    except asyncio.TimeoutError:
        return False
