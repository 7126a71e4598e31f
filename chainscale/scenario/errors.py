from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from chainscale.errors import ChainscaleError

from .capabilities import Capability


class ViolationKind(Enum):
    TOPOLOGY = "topology"
    DURATION = "duration"
    WALLETS = "wallets"
    RATE = "rate"
    CAPABILITY = "capability"
    CHAOS = "chaos"
    WORKLOAD = "workload"


@dataclass(frozen=True, slots=True)
class Violation:
    kind: ViolationKind
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class ScenarioBuildError(ChainscaleError):
    """
    Raised by ``ScenarioBuilder.build()`` with every violated invariant,
    never just the first one found.
    """

    def __init__(self, violations: Iterable[Violation]) -> None:
        self.violations = list(violations)
        summary = "; ".join(str(violation) for violation in self.violations)
        super().__init__(
            f"scenario has {len(self.violations)} invalid setting(s): {summary}"
        )

    def has(self, kind: ViolationKind) -> bool:
        return any(violation.kind == kind for violation in self.violations)

    def of_kind(self, kind: ViolationKind) -> list[Violation]:
        return [violation for violation in self.violations if violation.kind == kind]


class CapabilityError(ChainscaleError):
    """
    Raised when a scenario needs a capability the backend cannot provide.
    Deployers raise it before provisioning anything.
    """

    def __init__(self, backend: str, missing: Iterable[Capability]) -> None:
        self.backend = backend
        self.missing = frozenset(missing)
        names = ", ".join(sorted(capability.value for capability in self.missing))
        super().__init__(
            f"{backend} deployer does not support required capabilities: {names}"
        )


@dataclass(frozen=True, slots=True)
class NodeFailure:
    node: str
    cause: str

    def __str__(self) -> str:
        return f"{self.node}: {self.cause}"


class ReadinessError(ChainscaleError):
    """Raised when one or more nodes fail to become ready in time."""

    def __init__(self, failures: Iterable[NodeFailure], timeout: float) -> None:
        self.failures = list(failures)
        self.timeout = timeout
        summary = "; ".join(str(failure) for failure in self.failures)
        super().__init__(
            f"{len(self.failures)} node(s) not ready after {timeout:.1f}s: {summary}"
        )


class DeploymentError(ChainscaleError):
    """
    Raised when provisioning fails. ``causes`` lists every root cause in
    the order observed; ``first_cause`` is the one that failed the deploy.
    """

    def __init__(
        self,
        backend: str,
        deployment_id: str,
        causes: Iterable[NodeFailure],
        teardown_error: BaseException | None = None,
    ) -> None:
        self.backend = backend
        self.deployment_id = deployment_id
        self.causes = list(causes)
        self.teardown_error = teardown_error

        first = str(self.causes[0]) if self.causes else "unknown failure"
        message = f"{backend} deployment {deployment_id} failed: {first}"
        if len(self.causes) > 1:
            message += f" (+{len(self.causes) - 1} more)"

        super().__init__(message)

    @property
    def first_cause(self) -> NodeFailure | None:
        return self.causes[0] if self.causes else None

    @property
    def failed_nodes(self) -> list[str]:
        return [cause.node for cause in self.causes]


class RunError(ChainscaleError):
    """Raised when a run cannot proceed; cleanup has already run."""

    pass


class WorkloadSetupError(ChainscaleError):
    """Raised by a workload whose setup failed. Aborts the run."""

    def __init__(self, workload: str, message: str) -> None:
        super().__init__(f"{workload}: {message}")
        self.workload = workload


class WorkloadAbortError(ChainscaleError):
    """Raised mid-run by a workload that cannot continue at all."""

    def __init__(self, workload: str, message: str) -> None:
        super().__init__(f"{workload}: {message}")
        self.workload = workload


class ExpectationError(ChainscaleError):
    """Raised by expectations that cannot produce a verdict."""

    pass


class CleanupError(ChainscaleError):
    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors = list(errors)
        summary = "; ".join(repr(err) for err in self.errors)
        super().__init__(f"{len(self.errors)} cleanup step(s) failed: {summary}")


class BlockFeedClosedError(ChainscaleError):
    pass
