from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class NetworkLayout(Enum):
    STAR = "star"
    CHAIN = "chain"
    FULL = "full"


@dataclass(frozen=True, slots=True)
class ConsensusParams:
    slot_duration: float = 2.0
    active_slot_coeff: float = 0.9
    security_param: int = 10

    @property
    def expected_block_interval(self) -> float:
        return self.slot_duration / self.active_slot_coeff


@dataclass(frozen=True, slots=True)
class DaParams:
    dispersal_factor: int = 1
    subnetwork_size: int = 2
    num_subnets: int = 2
    min_dispersal_peers: int = 1
    min_replication_peers: int = 1
    balancer_interval: float = 1.0

    @classmethod
    def for_nodes(cls, da_nodes: int) -> DaParams:
        if da_nodes <= 1:
            return cls(
                dispersal_factor=1,
                subnetwork_size=1,
                num_subnets=1,
                min_dispersal_peers=0,
                min_replication_peers=0,
            )

        defaults = cls()
        dispersal = min(da_nodes, max(defaults.dispersal_factor, 2))
        subnetwork_size = max(defaults.subnetwork_size, dispersal)
        min_peers = max(dispersal - 1, 1)

        return cls(
            dispersal_factor=dispersal,
            subnetwork_size=subnetwork_size,
            num_subnets=subnetwork_size,
            min_dispersal_peers=min_peers,
            min_replication_peers=min_peers,
        )


@dataclass(frozen=True, slots=True)
class TopologyConfig:
    """
    Immutable description of the network under test: how many nodes of
    each role, how they peer, and the consensus/DA parameters they share.
    """

    validators: int = 0
    executors: int = 0
    layout: NetworkLayout = NetworkLayout.STAR
    consensus: ConsensusParams = field(default_factory=ConsensusParams)
    da: DaParams = field(default_factory=DaParams)

    @property
    def node_count(self) -> int:
        return self.validators + self.executors

    @property
    def slot_duration(self) -> float:
        return self.consensus.slot_duration

    @property
    def active_slot_coeff(self) -> float:
        return self.consensus.active_slot_coeff

    @classmethod
    def empty(cls) -> TopologyConfig:
        return cls()

    @classmethod
    def two_validators(cls) -> TopologyConfig:
        return cls.with_node_numbers(2, 0)

    @classmethod
    def validator_and_executor(cls) -> TopologyConfig:
        return cls(
            validators=1,
            executors=1,
            da=DaParams(
                dispersal_factor=2,
                subnetwork_size=2,
                num_subnets=2,
                min_dispersal_peers=1,
                min_replication_peers=1,
            ),
        )

    @classmethod
    def with_node_numbers(cls, validators: int, executors: int) -> TopologyConfig:
        return cls(
            validators=validators,
            executors=executors,
            da=DaParams.for_nodes(validators + executors),
        )


class TopologyBuilder:
    """
    Fluent builder for ``TopologyConfig``. Each setter returns the builder
    so it can be used from ``ScenarioBuilder.topology_with``.
    """

    def __init__(self, config: TopologyConfig | None = None) -> None:
        self._config = config or TopologyConfig.empty()
        self._da_override: DaParams | None = config.da if config else None

    def validators(self, count: int) -> TopologyBuilder:
        self._config = replace(self._config, validators=count)
        return self

    def executors(self, count: int) -> TopologyBuilder:
        self._config = replace(self._config, executors=count)
        return self

    def network_star(self) -> TopologyBuilder:
        return self.network_layout(NetworkLayout.STAR)

    def network_chain(self) -> TopologyBuilder:
        return self.network_layout(NetworkLayout.CHAIN)

    def network_full(self) -> TopologyBuilder:
        return self.network_layout(NetworkLayout.FULL)

    def network_layout(self, layout: NetworkLayout) -> TopologyBuilder:
        self._config = replace(self._config, layout=layout)
        return self

    def slot_duration(self, seconds: float) -> TopologyBuilder:
        self._config = replace(
            self._config,
            consensus=replace(self._config.consensus, slot_duration=seconds),
        )
        return self

    def active_slot_coeff(self, coeff: float) -> TopologyBuilder:
        self._config = replace(
            self._config,
            consensus=replace(self._config.consensus, active_slot_coeff=coeff),
        )
        return self

    def da_params(self, params: DaParams) -> TopologyBuilder:
        self._da_override = params
        return self

    def build(self) -> TopologyConfig:
        da = self._da_override or DaParams.for_nodes(self._config.node_count)
        return replace(self._config, da=da)
