from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from chainscale.logging import Logger

from .errors import CleanupError
from .logging_models import CleanupWarning


class CleanupGuard(ABC):
    @abstractmethod
    async def cleanup(self) -> None:
        ...


class CallbackCleanup(CleanupGuard):
    def __init__(self, name: str, callback: Callable[[], Awaitable[None]]) -> None:
        self.name = name
        self._callback = callback

    def __repr__(self) -> str:
        return f"CallbackCleanup({self.name})"

    async def cleanup(self) -> None:
        await self._callback()


class CleanupStack(CleanupGuard):
    """
    Ordered set of cleanup steps, released last-in first-out.

    Every step runs even if an earlier one fails; failures are collected
    into a single CleanupError. Releasing twice is a no-op.
    """

    def __init__(self) -> None:
        self._guards: list[CleanupGuard] = []
        self._released = False
        self._lock = asyncio.Lock()
        self._logger = Logger()

    def __len__(self) -> int:
        return len(self._guards)

    @property
    def released(self) -> bool:
        return self._released

    def push(self, guard: CleanupGuard) -> CleanupGuard:
        self._guards.append(guard)
        return guard

    def callback(self, name: str, callback: Callable[[], Awaitable[None]]) -> CleanupGuard:
        return self.push(CallbackCleanup(name, callback))

    async def cleanup(self) -> None:
        async with self._lock:
            if self._released:
                return

            self._released = True

            errors: list[BaseException] = []
            while self._guards:
                guard = self._guards.pop()
                try:
                    await guard.cleanup()

                except Exception as err:
                    errors.append(err)
                    await self._logger.log(
                        CleanupWarning(
                            message=f"Cleanup step failed: {err}",
                            step=repr(guard),
                        )
                    )

            if errors:
                raise CleanupError(errors)
