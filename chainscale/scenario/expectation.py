from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .context import RunContext


@dataclass(slots=True)
class ExpectationVerdict:
    name: str
    passed: bool
    message: str
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, name: str, message: str, **diagnostics: Any) -> ExpectationVerdict:
        return cls(name=name, passed=True, message=message, diagnostics=diagnostics)

    @classmethod
    def failure(cls, name: str, message: str, **diagnostics: Any) -> ExpectationVerdict:
        return cls(name=name, passed=False, message=message, diagnostics=diagnostics)


class Expectation(ABC):
    """
    Success criterion evaluated once after the run.

    Expectations that need to observe the whole run window start their
    samplers in ``start_capture`` and stop them in ``stop_capture``; the
    Runner calls ``evaluate`` exactly once, after every workload stopped.
    """

    name: str = "expectation"

    async def start_capture(self, ctx: RunContext) -> None:
        return None

    async def stop_capture(self) -> None:
        return None

    @abstractmethod
    async def evaluate(self, ctx: RunContext) -> ExpectationVerdict:
        ...
