from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from chainscale.nodes.node_clients import NodeClients
from chainscale.topology.generation import GeneratedTopology
from chainscale.topology.wallet import WalletRegistry

from .capabilities import Capability
from .node_control import NodeControlHandle

if TYPE_CHECKING:
    from .block_feed import BlockFeed
    from .scenario import Scenario


@dataclass(frozen=True, slots=True)
class RunMetrics:
    run_duration: float
    slot_duration: float
    active_slot_coeff: float

    @property
    def block_interval_hint(self) -> float:
        return self.slot_duration / self.active_slot_coeff

    @property
    def expected_consensus_blocks(self) -> int:
        return int(self.run_duration / self.slot_duration * self.active_slot_coeff)

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> RunMetrics:
        return cls(
            run_duration=scenario.duration,
            slot_duration=scenario.slot_duration,
            active_slot_coeff=scenario.active_slot_coeff,
        )


@dataclass(frozen=True, slots=True)
class Telemetry:
    prometheus_url: str | None = None

    @property
    def enabled(self) -> bool:
        return self.prometheus_url is not None


@dataclass(slots=True)
class RunContext:
    """
    Everything workloads and expectations may touch during a run. Built by
    a deployer once the cluster is ready; owned by the Runner.
    """

    topology: GeneratedTopology
    node_clients: NodeClients
    run_metrics: RunMetrics
    block_feed: BlockFeed
    wallets: WalletRegistry
    telemetry: Telemetry = Telemetry()
    node_control: NodeControlHandle | None = None
    deployment_id: str = "local"

    @property
    def run_duration(self) -> float:
        return self.run_metrics.run_duration

    def capabilities(self) -> frozenset[Capability]:
        provided: set[Capability] = set()
        if self.node_control is not None:
            provided.add(Capability.NODE_CONTROL)

        if self.telemetry.enabled:
            provided.add(Capability.TELEMETRY)

        return frozenset(provided)
