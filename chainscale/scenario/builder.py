"""
Fluent scenario construction.

Every setter records intent only. All invariants are checked together in
``ScenarioBuilder.build()``, which either returns an immutable Scenario or
raises ScenarioBuildError listing every violation.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

from chainscale.env import Env
from chainscale.topology.config import TopologyBuilder, TopologyConfig
from chainscale.topology.wallet import WalletConfig

from .capabilities import Capability
from .errors import ScenarioBuildError, Violation, ViolationKind
from .scenario import Scenario
from .specs import (
    ChaosRestartWorkloadSpec,
    ConsensusLivenessSpec,
    CustomExpectationSpec,
    CustomWorkloadSpec,
    DataAvailabilityWorkloadSpec,
    ExpectationSpec,
    TransactionWorkloadSpec,
    WorkloadKind,
    WorkloadSpec,
)


DEFAULT_RUN_DURATION = 60.0


class TransactionFlowBuilder:
    def __init__(self, spec: TransactionWorkloadSpec | None = None) -> None:
        self._spec = spec or TransactionWorkloadSpec()

    def rate(self, rate: int) -> TransactionFlowBuilder:
        self._spec = replace(self._spec, rate=rate)
        return self

    def users(self, users: int) -> TransactionFlowBuilder:
        self._spec = replace(self._spec, users=users)
        return self

    def build(self) -> TransactionWorkloadSpec:
        return self._spec


class DataAvailabilityFlowBuilder:
    def __init__(self, spec: DataAvailabilityWorkloadSpec | None = None) -> None:
        self._spec = spec or DataAvailabilityWorkloadSpec()

    def channel_rate(self, rate: int) -> DataAvailabilityFlowBuilder:
        self._spec = replace(self._spec, channel_rate=rate)
        return self

    def blob_rate(self, rate: int) -> DataAvailabilityFlowBuilder:
        self._spec = replace(self._spec, blob_rate=rate)
        return self

    def headroom_percent(self, percent: int) -> DataAvailabilityFlowBuilder:
        self._spec = replace(self._spec, headroom_percent=percent)
        return self

    def build(self) -> DataAvailabilityWorkloadSpec:
        return self._spec


class ChaosRestartBuilder:
    def __init__(self, spec: ChaosRestartWorkloadSpec | None = None) -> None:
        self._spec = spec or ChaosRestartWorkloadSpec()

    def min_delay(self, seconds: float) -> ChaosRestartBuilder:
        self._spec = replace(self._spec, min_delay=seconds)
        return self

    def max_delay(self, seconds: float) -> ChaosRestartBuilder:
        self._spec = replace(self._spec, max_delay=seconds)
        return self

    def target_cooldown(self, seconds: float) -> ChaosRestartBuilder:
        self._spec = replace(self._spec, target_cooldown=seconds)
        return self

    def include_validators(self, enabled: bool = True) -> ChaosRestartBuilder:
        self._spec = replace(self._spec, include_validators=enabled)
        return self

    def include_executors(self, enabled: bool = True) -> ChaosRestartBuilder:
        self._spec = replace(self._spec, include_executors=enabled)
        return self

    def build(self) -> ChaosRestartWorkloadSpec:
        return self._spec


class ChaosBuilder:
    """Entry point for chaos workloads; pick a variant such as ``restart()``."""

    def __init__(self) -> None:
        self._selected: ChaosRestartBuilder | None = None

    def restart(self) -> ChaosRestartBuilder:
        self._selected = ChaosRestartBuilder()
        return self._selected

    def build(self) -> ChaosRestartWorkloadSpec | None:
        if self._selected is None:
            return None

        return self._selected.build()


class ScenarioBuilder:
    def __init__(self, topology: TopologyConfig | None = None) -> None:
        self._topology = TopologyBuilder(topology)
        self._wallets = WalletConfig()
        self._workloads: list[WorkloadSpec] = []
        self._expectations: list[ExpectationSpec] = []
        self._duration = DEFAULT_RUN_DURATION
        self._capabilities: set[Capability] = set()
        self._wallet_violation: Violation | None = None

    def topology_with(
        self,
        configure: Callable[[TopologyBuilder], TopologyBuilder],
    ) -> ScenarioBuilder:
        self._topology = configure(self._topology)
        return self

    def wallets(self, count: int) -> ScenarioBuilder:
        if count < 0:
            return self._reject_wallets(f"wallet count must be non-negative, got {count}")

        self._wallets = WalletConfig.with_users(count)
        self._wallet_violation = None
        return self

    def initialize_wallet(self, total_funds: int, users: int) -> ScenarioBuilder:
        try:
            self._wallets = WalletConfig.uniform(total_funds, users)

        except ValueError as err:
            return self._reject_wallets(str(err))

        self._wallet_violation = None
        return self

    def _reject_wallets(self, message: str) -> ScenarioBuilder:
        self._wallets = WalletConfig()
        self._wallet_violation = Violation(ViolationKind.WALLETS, message)
        return self

    def transactions_with(
        self,
        configure: Callable[[TransactionFlowBuilder], TransactionFlowBuilder],
    ) -> ScenarioBuilder:
        return self._attach(configure(TransactionFlowBuilder()).build())

    def da_with(
        self,
        configure: Callable[[DataAvailabilityFlowBuilder], DataAvailabilityFlowBuilder],
    ) -> ScenarioBuilder:
        return self._attach(configure(DataAvailabilityFlowBuilder()).build())

    def chaos_with(
        self,
        configure: Callable[[ChaosBuilder], ChaosBuilder | ChaosRestartBuilder],
    ) -> ScenarioBuilder:
        configured = configure(ChaosBuilder())
        spec = configured.build()
        if spec is not None:
            self._attach(spec)

        return self

    def with_workload(
        self,
        workload: WorkloadSpec | Callable[[], Any],
        name: str | None = None,
    ) -> ScenarioBuilder:
        if callable(workload) and not hasattr(workload, "kind"):
            workload = CustomWorkloadSpec(
                name=name or getattr(workload, "__name__", "custom_workload"),
                factory=workload,
            )

        return self._attach(workload)

    def enable_node_control(self) -> ScenarioBuilder:
        self._capabilities.add(Capability.NODE_CONTROL)
        return self

    def expect_consensus_liveness(self, **overrides: Any) -> ScenarioBuilder:
        self._expectations.append(ConsensusLivenessSpec(**overrides))
        return self

    def with_expectation(
        self,
        expectation: ExpectationSpec | Callable[[], Any],
        name: str | None = None,
    ) -> ScenarioBuilder:
        if callable(expectation) and not hasattr(expectation, "kind"):
            expectation = CustomExpectationSpec(
                name=name or getattr(expectation, "__name__", "custom_expectation"),
                factory=expectation,
            )

        self._expectations.append(expectation)
        return self

    def with_run_duration(self, seconds: float) -> ScenarioBuilder:
        self._duration = float(seconds)
        return self

    def _attach(self, spec: WorkloadSpec) -> ScenarioBuilder:
        # Built-in kinds are singletons: re-attaching replaces in place.
        if spec.kind != WorkloadKind.CUSTOM:
            for idx, existing in enumerate(self._workloads):
                if existing.kind == spec.kind:
                    self._workloads[idx] = spec
                    return self

        self._workloads.append(spec)
        return self

    def build(self) -> Scenario:
        topology = self._topology.build()
        capabilities = frozenset(self._capabilities)
        violations: list[Violation] = []

        if topology.validators < 0 or topology.executors < 0:
            violations.append(
                Violation(ViolationKind.TOPOLOGY, "node counts must be non-negative")
            )

        if topology.node_count <= 0:
            violations.append(
                Violation(
                    ViolationKind.TOPOLOGY,
                    "topology must include at least one validator or executor",
                )
            )

        if topology.slot_duration <= 0:
            violations.append(
                Violation(ViolationKind.TOPOLOGY, "slot duration must be positive")
            )

        if not 0 < topology.active_slot_coeff <= 1:
            violations.append(
                Violation(
                    ViolationKind.TOPOLOGY,
                    "active slot coefficient must be within (0, 1]",
                )
            )

        if self._wallet_violation is not None:
            violations.append(self._wallet_violation)

        minimum_duration = 2 * topology.slot_duration
        if self._duration < minimum_duration:
            violations.append(
                Violation(
                    ViolationKind.DURATION,
                    f"run duration {self._duration}s is shorter than 2 x slot duration ({minimum_duration}s)",
                )
            )

        for spec in self._workloads:
            violations.extend(
                spec.validate(topology, self._wallets, capabilities)
            )

        if violations:
            raise ScenarioBuildError(violations)

        return Scenario(
            topology=topology,
            wallets=self._wallets,
            duration=self._duration,
            workloads=tuple(self._workloads),
            expectations=tuple(self._expectations),
            capabilities=capabilities,
        )


def scenario_from_env(env: Env, builder: ScenarioBuilder | None = None) -> ScenarioBuilder:
    """
    Map resolved configuration onto a builder. Transaction and DA flows are
    attached only when their rates are positive; chaos restarts only when
    node control is enabled.
    """
    if builder is None:
        builder = ScenarioBuilder()

    builder = builder.topology_with(
        lambda topology: topology.network_star()
        .validators(env.CHAINSCALE_VALIDATORS)
        .executors(env.CHAINSCALE_EXECUTORS)
    ).with_run_duration(env.run_duration)

    builder.wallets(env.CHAINSCALE_WALLETS)

    if env.CHAINSCALE_TX_RATE > 0:
        builder.transactions_with(
            lambda flow: _apply_users(flow.rate(env.CHAINSCALE_TX_RATE), env.CHAINSCALE_TX_USERS)
        )

    if env.CHAINSCALE_EXECUTORS > 0 and env.CHAINSCALE_DA_CHANNEL_RATE > 0:
        builder.da_with(
            lambda flow: flow.channel_rate(env.CHAINSCALE_DA_CHANNEL_RATE)
            .blob_rate(env.CHAINSCALE_DA_BLOB_RATE)
            .headroom_percent(env.CHAINSCALE_DA_HEADROOM_PERCENT)
        )

    if env.CHAINSCALE_NODE_CONTROL:
        builder.enable_node_control().chaos_with(
            lambda chaos: chaos.restart()
            .min_delay(env.chaos_min_delay)
            .max_delay(env.chaos_max_delay)
            .target_cooldown(env.chaos_target_cooldown)
        )

    return builder.expect_consensus_liveness()


def _apply_users(flow: TransactionFlowBuilder, users: int | None) -> TransactionFlowBuilder:
    if users is None:
        return flow

    return flow.users(users)
