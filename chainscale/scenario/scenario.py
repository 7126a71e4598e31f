from __future__ import annotations

from dataclasses import dataclass, field

from chainscale.topology.config import TopologyConfig
from chainscale.topology.wallet import WalletConfig

from .capabilities import Capability
from .specs import ExpectationSpec, WorkloadSpec


@dataclass(frozen=True, slots=True)
class Scenario:
    """
    Immutable test plan produced by ``ScenarioBuilder.build()``.
    """

    topology: TopologyConfig
    wallets: WalletConfig
    duration: float
    workloads: tuple[WorkloadSpec, ...] = field(default_factory=tuple)
    expectations: tuple[ExpectationSpec, ...] = field(default_factory=tuple)
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    @property
    def slot_duration(self) -> float:
        return self.topology.slot_duration

    @property
    def active_slot_coeff(self) -> float:
        return self.topology.active_slot_coeff

    @property
    def requires_node_control(self) -> bool:
        return Capability.NODE_CONTROL in self.required_capabilities

    @property
    def required_capabilities(self) -> frozenset[Capability]:
        required = set(self.capabilities)
        for spec in self.workloads:
            required.update(spec.requires)

        return frozenset(required)
