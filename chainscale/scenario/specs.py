"""
Workload and expectation specifications.

A Scenario stores specs, not live objects: specs are frozen values that
can be validated at build time, compared for equality, and turned into a
fresh Workload or Expectation for every run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from chainscale.topology.config import TopologyConfig
from chainscale.topology.wallet import WalletConfig

from .capabilities import Capability
from .errors import Violation, ViolationKind

if TYPE_CHECKING:
    from .expectation import Expectation
    from .workload import Workload


class WorkloadKind(Enum):
    TRANSACTION = "transaction"
    DATA_AVAILABILITY = "data_availability"
    CHAOS_RESTART = "chaos_restart"
    CUSTOM = "custom"


class ExpectationKind(Enum):
    CONSENSUS_LIVENESS = "consensus_liveness"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class TransactionWorkloadSpec:
    rate: int = 1
    users: int | None = None

    @property
    def kind(self) -> WorkloadKind:
        return WorkloadKind.TRANSACTION

    @property
    def requires(self) -> tuple[Capability, ...]:
        return ()

    def validate(
        self,
        topology: TopologyConfig,
        wallets: WalletConfig,
        capabilities: frozenset[Capability],
    ) -> list[Violation]:
        violations: list[Violation] = []

        if self.rate <= 0:
            violations.append(
                Violation(
                    ViolationKind.RATE,
                    f"transaction rate must be positive, got {self.rate}",
                )
            )

        if wallets.users == 0:
            violations.append(
                Violation(
                    ViolationKind.WALLETS,
                    "transaction workload requires seeded wallets; call wallets(n) with n > 0",
                )
            )

        if self.users is not None and self.users <= 0:
            violations.append(
                Violation(
                    ViolationKind.WALLETS,
                    f"transaction users must be positive, got {self.users}",
                )
            )

        elif self.users is not None and self.users > wallets.users:
            violations.append(
                Violation(
                    ViolationKind.WALLETS,
                    f"transaction users ({self.users}) exceed seeded wallets ({wallets.users})",
                )
            )

        return violations

    def create(self) -> Workload:
        from chainscale.workloads.transaction import TransactionWorkload

        return TransactionWorkload(rate=self.rate, users=self.users)


@dataclass(frozen=True, slots=True)
class DataAvailabilityWorkloadSpec:
    channel_rate: int = 1
    blob_rate: int = 1
    headroom_percent: int = 20

    @property
    def kind(self) -> WorkloadKind:
        return WorkloadKind.DATA_AVAILABILITY

    @property
    def requires(self) -> tuple[Capability, ...]:
        return ()

    def validate(
        self,
        topology: TopologyConfig,
        wallets: WalletConfig,
        capabilities: frozenset[Capability],
    ) -> list[Violation]:
        violations: list[Violation] = []

        if self.channel_rate <= 0:
            violations.append(
                Violation(
                    ViolationKind.RATE,
                    f"DA channel rate must be positive, got {self.channel_rate}",
                )
            )

        if self.blob_rate <= 0:
            violations.append(
                Violation(
                    ViolationKind.RATE,
                    f"DA blob rate must be positive, got {self.blob_rate}",
                )
            )

        if self.headroom_percent < 0:
            violations.append(
                Violation(
                    ViolationKind.RATE,
                    f"DA headroom percent must be non-negative, got {self.headroom_percent}",
                )
            )

        if topology.executors == 0:
            violations.append(
                Violation(
                    ViolationKind.TOPOLOGY,
                    "DA workload requires at least one executor",
                )
            )

        return violations

    def create(self) -> Workload:
        from chainscale.workloads.data_availability import DataAvailabilityWorkload

        return DataAvailabilityWorkload(
            channel_rate=self.channel_rate,
            blob_rate=self.blob_rate,
            headroom_percent=self.headroom_percent,
        )


@dataclass(frozen=True, slots=True)
class ChaosRestartWorkloadSpec:
    min_delay: float = 10.0
    max_delay: float = 30.0
    target_cooldown: float = 60.0
    include_validators: bool = True
    include_executors: bool = True

    @property
    def kind(self) -> WorkloadKind:
        return WorkloadKind.CHAOS_RESTART

    @property
    def requires(self) -> tuple[Capability, ...]:
        return (Capability.NODE_CONTROL,)

    def validate(
        self,
        topology: TopologyConfig,
        wallets: WalletConfig,
        capabilities: frozenset[Capability],
    ) -> list[Violation]:
        violations: list[Violation] = []

        if Capability.NODE_CONTROL not in capabilities:
            violations.append(
                Violation(
                    ViolationKind.CAPABILITY,
                    "chaos restart workload requires node control; call enable_node_control()",
                )
            )

        if self.min_delay <= 0 or self.max_delay <= 0 or self.target_cooldown <= 0:
            violations.append(
                Violation(
                    ViolationKind.CHAOS,
                    "chaos restart delays and cooldown must be non-zero",
                )
            )

        if self.min_delay > self.max_delay:
            violations.append(
                Violation(
                    ViolationKind.CHAOS,
                    f"chaos restart min delay ({self.min_delay}s) exceeds max delay ({self.max_delay}s)",
                )
            )

        if self.target_cooldown < self.min_delay:
            violations.append(
                Violation(
                    ViolationKind.CHAOS,
                    f"chaos restart target cooldown ({self.target_cooldown}s) must be >= min delay ({self.min_delay}s)",
                )
            )

        if not (self.include_validators or self.include_executors):
            violations.append(
                Violation(
                    ViolationKind.CHAOS,
                    "chaos restart requires at least one node group",
                )
            )

        return violations

    def create(self) -> Workload:
        from chainscale.workloads.chaos import RandomRestartWorkload

        return RandomRestartWorkload(
            min_delay=self.min_delay,
            max_delay=self.max_delay,
            target_cooldown=self.target_cooldown,
            include_validators=self.include_validators,
            include_executors=self.include_executors,
        )


@dataclass(frozen=True, slots=True)
class CustomWorkloadSpec:
    name: str
    factory: Callable[[], Workload]
    requires: tuple[Capability, ...] = ()

    @property
    def kind(self) -> WorkloadKind:
        return WorkloadKind.CUSTOM

    def validate(
        self,
        topology: TopologyConfig,
        wallets: WalletConfig,
        capabilities: frozenset[Capability],
    ) -> list[Violation]:
        missing = set(self.requires) - capabilities
        return [
            Violation(
                ViolationKind.CAPABILITY,
                f"workload {self.name} requires {capability.value}",
            )
            for capability in sorted(missing, key=lambda capability: capability.value)
        ]

    def create(self) -> Workload:
        return self.factory()


WorkloadSpec = (
    TransactionWorkloadSpec
    | DataAvailabilityWorkloadSpec
    | ChaosRestartWorkloadSpec
    | CustomWorkloadSpec
)


@dataclass(frozen=True, slots=True)
class ConsensusLivenessSpec:
    tolerance: float = 0.2
    stall_multiplier: float = 4.0
    poll_interval: float | None = None
    lag_allowance: int = 2

    @property
    def kind(self) -> ExpectationKind:
        return ExpectationKind.CONSENSUS_LIVENESS

    @property
    def name(self) -> str:
        return "consensus_liveness"

    def create(self) -> Expectation:
        from chainscale.expectations.consensus_liveness import ConsensusLiveness

        return ConsensusLiveness(
            tolerance=self.tolerance,
            stall_multiplier=self.stall_multiplier,
            poll_interval=self.poll_interval,
            lag_allowance=self.lag_allowance,
        )


@dataclass(frozen=True, slots=True)
class CustomExpectationSpec:
    name: str
    factory: Callable[[], Expectation]

    @property
    def kind(self) -> ExpectationKind:
        return ExpectationKind.CUSTOM

    def create(self) -> Expectation:
        return self.factory()


ExpectationSpec = ConsensusLivenessSpec | CustomExpectationSpec
