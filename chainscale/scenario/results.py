from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from chainscale.errors import ChainscaleError

from .expectation import ExpectationVerdict
from .workload import WorkloadState


class RunResult(Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"


@dataclass(slots=True)
class WorkloadReport:
    name: str
    state: WorkloadState = WorkloadState.IDLE
    error: str | None = None
    forced_stop: bool = False


@dataclass(slots=True)
class RunOutcome:
    result: RunResult
    verdicts: list[ExpectationVerdict] = field(default_factory=list)
    workloads: list[WorkloadReport] = field(default_factory=list)
    duration_seconds: float = 0.0
    aborted: bool = False
    error: str | None = None
    cleanup_error: str | None = None

    @property
    def failed_verdicts(self) -> list[ExpectationVerdict]:
        return [verdict for verdict in self.verdicts if not verdict.passed]


class RunFailedError(ChainscaleError):
    def __init__(self, outcome: RunOutcome) -> None:
        self.outcome = outcome

        reasons: list[str] = []
        if outcome.error:
            reasons.append(outcome.error)

        reasons.extend(
            f"{verdict.name}: {verdict.message}" for verdict in outcome.failed_verdicts
        )

        super().__init__(f"run failed: {'; '.join(reasons) or 'unknown reason'}")


class RunHandle:
    def __init__(self, outcome: RunOutcome) -> None:
        self.outcome = outcome

    @property
    def passed(self) -> bool:
        return self.outcome.result == RunResult.PASSED

    @property
    def verdicts(self) -> list[ExpectationVerdict]:
        return self.outcome.verdicts

    def verdict(self, name: str) -> ExpectationVerdict | None:
        for verdict in self.outcome.verdicts:
            if verdict.name == name:
                return verdict

        return None

    def raise_for_failures(self) -> None:
        if not self.passed:
            raise RunFailedError(self.outcome)
