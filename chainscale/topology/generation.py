"""
Per-node configuration generation.

Turns a ``TopologyConfig`` plus wallet genesis into concrete node
configurations: identities, ports, initial peers and the JSON document
each node binary or container is started with. Deployers only consume
this output; they never assemble node configs themselves.
"""

from __future__ import annotations

import socket
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence

import msgspec

from .config import NetworkLayout, TopologyConfig
from .constants import (
    DEFAULT_API_PORT,
    DEFAULT_DA_NETWORK_PORT,
    DEFAULT_NETWORK_PORT,
    DEFAULT_TESTING_HTTP_PORT,
)
from .node import NodeId, NodeRole
from .wallet import WalletConfig


@dataclass(frozen=True, slots=True)
class NodePorts:
    api: int = DEFAULT_API_PORT
    testing: int = DEFAULT_TESTING_HTTP_PORT
    network: int = DEFAULT_NETWORK_PORT
    da: int = DEFAULT_DA_NETWORK_PORT


@dataclass(frozen=True, slots=True)
class PeerAddress:
    node: NodeId
    host: str
    port: int

    @property
    def multiaddr(self) -> str:
        return f"/dns/{self.host}/udp/{self.port}/quic-v1"


@dataclass(frozen=True, slots=True)
class GeneratedNodeConfig:
    node: NodeId
    host: str
    ports: NodePorts
    initial_peers: tuple[PeerAddress, ...]
    topology: TopologyConfig
    wallets: WalletConfig

    @property
    def role(self) -> NodeRole:
        return self.node.role

    @property
    def index(self) -> int:
        return self.node.index

    @property
    def label(self) -> str:
        return self.node.label

    @property
    def api_port(self) -> int:
        return self.ports.api

    @property
    def testing_http_port(self) -> int:
        return self.ports.testing

    @property
    def network_port(self) -> int:
        return self.ports.network

    def to_config(self) -> dict[str, Any]:
        consensus = self.topology.consensus
        da = self.topology.da

        return {
            "node": {
                "id": self.label,
                "role": self.role.value,
            },
            "api": {
                "listen": f"0.0.0.0:{self.ports.api}",
            },
            "testing_api": {
                "listen": f"0.0.0.0:{self.ports.testing}",
            },
            "network": {
                "port": self.ports.network,
                "initial_peers": [peer.multiaddr for peer in self.initial_peers],
            },
            "consensus": {
                "slot_duration": consensus.slot_duration,
                "active_slot_coeff": consensus.active_slot_coeff,
                "security_param": consensus.security_param,
                "participants": self.topology.node_count,
            },
            "da": {
                "enabled": self.role == NodeRole.EXECUTOR or self.topology.executors > 0,
                "port": self.ports.da,
                "dispersal_factor": da.dispersal_factor,
                "subnetwork_size": da.subnetwork_size,
                "num_subnets": da.num_subnets,
                "min_dispersal_peers": da.min_dispersal_peers,
                "min_replication_peers": da.min_replication_peers,
                "balancer_interval": da.balancer_interval,
            },
            "wallet": {
                "accounts": [
                    {
                        "label": account.label,
                        "public_key": account.public_key,
                        "value": account.value,
                    }
                    for account in self.wallets.accounts
                ],
            },
        }

    def to_json(self) -> bytes:
        return msgspec.json.encode(self.to_config())


@dataclass(frozen=True, slots=True)
class GeneratedTopology:
    config: TopologyConfig
    wallets: WalletConfig
    validators: tuple[GeneratedNodeConfig, ...] = field(default_factory=tuple)
    executors: tuple[GeneratedNodeConfig, ...] = field(default_factory=tuple)

    def nodes(self) -> Iterator[GeneratedNodeConfig]:
        yield from self.validators
        yield from self.executors

    def get(self, node: NodeId) -> GeneratedNodeConfig:
        group = self.validators if node.role == NodeRole.VALIDATOR else self.executors
        return group[node.index]

    @property
    def node_ids(self) -> list[NodeId]:
        return [generated.node for generated in self.nodes()]

    @property
    def slot_duration(self) -> float:
        return self.config.slot_duration

    def expected_peer_counts(self) -> dict[NodeId, int]:
        nodes = list(self.nodes())
        positions = {generated.node: idx for idx, generated in enumerate(nodes)}

        return {
            nodes[idx].node: count
            for idx, count in enumerate(
                find_expected_peer_counts(
                    len(nodes),
                    [
                        {positions[peer.node] for peer in generated.initial_peers}
                        for generated in nodes
                    ],
                )
            )
        }


def find_expected_peer_counts(
    node_count: int,
    initial_peers: Sequence[set[int]],
) -> list[int]:
    """
    Peering is symmetric: if A dials B, both should eventually report the
    other as a peer.
    """
    expected: list[set[int]] = [set() for _ in range(node_count)]

    for idx, peers in enumerate(initial_peers):
        for peer_idx in peers:
            if peer_idx == idx:
                continue

            expected[idx].add(peer_idx)
            expected[peer_idx].add(idx)

    return [len(peers) for peers in expected]


def _layout_peers(layout: NetworkLayout, position: int) -> list[int]:
    if position == 0:
        return []

    if layout == NetworkLayout.STAR:
        return [0]

    elif layout == NetworkLayout.CHAIN:
        return [position - 1]

    return list(range(position))


def allocate_local_ports(count: int) -> list[NodePorts]:
    """Reserve distinct free host ports for ``count`` nodes."""
    sockets: list[socket.socket] = []
    ports: list[int] = []

    try:
        for _ in range(count * 4):
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            sock.bind(("127.0.0.1", 0))
            sockets.append(sock)
            ports.append(sock.getsockname()[1])

    finally:
        for sock in sockets:
            sock.close()

    return [
        NodePorts(
            api=ports[idx * 4],
            testing=ports[idx * 4 + 1],
            network=ports[idx * 4 + 2],
            da=ports[idx * 4 + 3],
        )
        for idx in range(count)
    ]


def generate_topology(
    config: TopologyConfig,
    wallets: WalletConfig,
    ports: Sequence[NodePorts] | None = None,
    hostname: Callable[[NodeId], str] | None = None,
) -> GeneratedTopology:
    node_ids = [NodeId.validator(idx) for idx in range(config.validators)] + [
        NodeId.executor(idx) for idx in range(config.executors)
    ]

    if ports is None:
        ports = [NodePorts() for _ in node_ids]

    if len(ports) != len(node_ids):
        raise ValueError(
            f"expected {len(node_ids)} port assignments, got {len(ports)}"
        )

    if hostname is None:
        hostname = _loopback

    addresses = [
        PeerAddress(
            node=node,
            host=hostname(node),
            port=node_ports.network,
        )
        for node, node_ports in zip(node_ids, ports)
    ]

    generated: list[GeneratedNodeConfig] = []
    for position, (node, node_ports) in enumerate(zip(node_ids, ports)):
        generated.append(
            GeneratedNodeConfig(
                node=node,
                host=addresses[position].host,
                ports=node_ports,
                initial_peers=tuple(
                    addresses[peer] for peer in _layout_peers(config.layout, position)
                ),
                topology=config,
                wallets=wallets,
            )
        )

    return GeneratedTopology(
        config=config,
        wallets=wallets,
        validators=tuple(
            node for node in generated if node.role == NodeRole.VALIDATOR
        ),
        executors=tuple(
            node for node in generated if node.role == NodeRole.EXECUTOR
        ),
    )


def _loopback(node: NodeId) -> str:
    return "127.0.0.1"
