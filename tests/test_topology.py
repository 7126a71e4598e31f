"""
Tests for topology configuration, node identities, wallets and
per-node config generation.
"""

import asyncio

import msgspec
import pytest

from chainscale.topology import (
    DaParams,
    NetworkLayout,
    NodeId,
    NodePorts,
    NodeRole,
    TopologyBuilder,
    TopologyConfig,
    WalletAccount,
    WalletConfig,
    WalletRegistry,
    allocate_local_ports,
    find_expected_peer_counts,
    generate_topology,
)


class TestNodeId:
    """Test node identities and labels."""

    def test_labels(self):
        assert NodeId.validator(0).label == "validator-0"
        assert NodeId.executor(3).label == "executor-3"
        assert str(NodeId.executor(1)) == "executor-1"

    def test_parse_round_trips_label(self):
        node = NodeId.parse("executor-2")

        assert node.role == NodeRole.EXECUTOR
        assert node.index == 2
        assert node == NodeId.executor(2)

    def test_parse_rejects_unknown_role(self):
        with pytest.raises(ValueError):
            NodeId.parse("miner-0")


class TestTopologyBuilder:
    """Test the fluent topology builder."""

    def test_counts_and_layout(self):
        config = (
            TopologyBuilder()
            .validators(3)
            .executors(2)
            .network_chain()
            .build()
        )

        assert config.validators == 3
        assert config.executors == 2
        assert config.node_count == 5
        assert config.layout == NetworkLayout.CHAIN

    def test_slot_parameters(self):
        config = TopologyBuilder().validators(1).slot_duration(0.5).active_slot_coeff(0.8).build()

        assert config.slot_duration == 0.5
        assert config.active_slot_coeff == 0.8
        assert config.consensus.expected_block_interval == pytest.approx(0.625)

    def test_da_params_follow_node_count(self):
        single = TopologyBuilder().validators(1).build()
        many = TopologyBuilder().validators(2).executors(2).build()

        assert single.da.dispersal_factor == 1
        assert single.da.min_dispersal_peers == 0
        assert many.da.dispersal_factor == 2
        assert many.da.min_dispersal_peers == 1

    def test_explicit_da_params_are_kept(self):
        params = DaParams(dispersal_factor=4, subnetwork_size=4, num_subnets=4)
        config = TopologyBuilder().validators(2).da_params(params).validators(5).build()

        assert config.da == params

    def test_presets(self):
        assert TopologyConfig.two_validators().validators == 2
        assert TopologyConfig.two_validators().executors == 0

        mixed = TopologyConfig.validator_and_executor()
        assert (mixed.validators, mixed.executors) == (1, 1)
        assert mixed.da.dispersal_factor == 2

    def test_same_settings_build_equal_configs(self):
        first = TopologyBuilder().validators(2).executors(1).build()
        second = TopologyBuilder().validators(2).executors(1).build()

        assert first == second


class TestWallets:
    """Test genesis wallet allocation and nonce issuing."""

    def test_uniform_spreads_remainder_over_first_accounts(self):
        config = WalletConfig.uniform(10, 3)

        assert [account.value for account in config.accounts] == [4, 3, 3]
        assert config.total_funds == 10
        assert config.users == 3

    def test_uniform_rejects_invalid_allocations(self):
        with pytest.raises(ValueError):
            WalletConfig.uniform(10, 0)

        with pytest.raises(ValueError):
            WalletConfig.uniform(2, 3)

    def test_with_users_funds_each_user(self):
        config = WalletConfig.with_users(4)

        assert config.users == 4
        assert all(account.value == 100 for account in config.accounts)
        assert WalletConfig.with_users(0).users == 0

    def test_accounts_are_deterministic(self):
        first = WalletAccount.deterministic(7, 10)
        second = WalletAccount.deterministic(7, 10)

        assert first == second
        assert first.public_key == second.public_key
        assert first.secret_key != WalletAccount.deterministic(8, 10).secret_key

    def test_registry_take(self):
        registry = WalletRegistry(WalletConfig.with_users(5))

        assert len(registry) == 5
        assert len(registry.take()) == 5
        assert len(registry.take(2)) == 2

    @pytest.mark.asyncio
    async def test_nonces_are_unique_under_concurrency(self):
        """Concurrent reservations on one account never hand out a nonce twice."""
        registry = WalletRegistry(WalletConfig.with_users(1))
        account = registry.accounts[0]

        nonces = await asyncio.gather(
            *[registry.reserve_nonce(account) for _ in range(50)]
        )

        assert sorted(nonces) == list(range(50))
        assert registry.issued(account) == 50


class TestExpectedPeerCounts:
    """Test symmetric peer expectations."""

    def test_star(self):
        assert find_expected_peer_counts(4, [set(), {0}, {0}, {0}]) == [3, 1, 1, 1]

    def test_chain(self):
        assert find_expected_peer_counts(3, [set(), {0}, {1}]) == [1, 2, 1]

    def test_self_references_are_ignored(self):
        assert find_expected_peer_counts(2, [{0}, {0}]) == [1, 1]


class TestGenerateTopology:
    """Test per-node config generation."""

    def test_validators_come_before_executors(self):
        topology = generate_topology(
            TopologyConfig.with_node_numbers(2, 1),
            WalletConfig.with_users(2),
        )

        assert topology.node_ids == [
            NodeId.validator(0),
            NodeId.validator(1),
            NodeId.executor(0),
        ]
        assert topology.get(NodeId.executor(0)).role == NodeRole.EXECUTOR

    def test_star_layout_peers_with_first_node(self):
        topology = generate_topology(
            TopologyConfig.with_node_numbers(3, 0),
            WalletConfig(),
        )

        first, second, third = topology.nodes()
        assert first.initial_peers == ()
        assert [peer.node for peer in second.initial_peers] == [first.node]
        assert [peer.node for peer in third.initial_peers] == [first.node]

        assert topology.expected_peer_counts() == {
            first.node: 2,
            second.node: 1,
            third.node: 1,
        }

    def test_full_layout_peers_with_every_earlier_node(self):
        config = TopologyBuilder().validators(3).network_full().build()
        topology = generate_topology(config, WalletConfig())

        expected = topology.expected_peer_counts()
        assert set(expected.values()) == {2}

    def test_hostname_and_ports(self):
        ports = [NodePorts(api=1000 + idx, testing=2000 + idx, network=3000 + idx, da=4000 + idx) for idx in range(2)]
        topology = generate_topology(
            TopologyConfig.with_node_numbers(1, 1),
            WalletConfig(),
            ports=ports,
            hostname=lambda node: node.label,
        )

        executor = topology.get(NodeId.executor(0))
        assert executor.host == "executor-0"
        assert executor.api_port == 1001
        assert executor.initial_peers[0].multiaddr == "/dns/validator-0/udp/3000/quic-v1"

    def test_port_count_must_match(self):
        with pytest.raises(ValueError):
            generate_topology(
                TopologyConfig.with_node_numbers(2, 0),
                WalletConfig(),
                ports=[NodePorts()],
            )

    def test_config_document_carries_genesis_wallets(self):
        wallets = WalletConfig.with_users(2)
        topology = generate_topology(TopologyConfig.with_node_numbers(1, 1), wallets)

        document = msgspec.json.decode(topology.get(NodeId.validator(0)).to_json())

        assert document["node"] == {"id": "validator-0", "role": "validator"}
        assert document["consensus"]["participants"] == 2
        assert document["da"]["enabled"] is True
        assert [account["public_key"] for account in document["wallet"]["accounts"]] == [
            account.public_key for account in wallets.accounts
        ]

    def test_allocate_local_ports_are_distinct(self):
        allocated = allocate_local_ports(3)
        flat = [port for ports in allocated for port in (ports.api, ports.testing, ports.network, ports.da)]

        assert len(allocated) == 3
        assert len(set(flat)) == 12
