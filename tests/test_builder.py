"""
Tests for ScenarioBuilder.

Builders only record intent; every invariant is checked in build() and
reported together.
"""

import pytest

from chainscale.env import Env
from chainscale.scenario import (
    Capability,
    ChaosRestartWorkloadSpec,
    ConsensusLivenessSpec,
    CustomExpectationSpec,
    CustomWorkloadSpec,
    DataAvailabilityWorkloadSpec,
    ScenarioBuildError,
    ScenarioBuilder,
    TransactionWorkloadSpec,
    ViolationKind,
    WorkloadKind,
    scenario_from_env,
)
from chainscale.workloads import TransactionWorkload


def validators_and_executors(validators: int, executors: int):
    return lambda topology: topology.validators(validators).executors(executors)


class TestScenarioBuild:
    """Test successful builds."""

    def test_fluent_chain(self):
        """A whole scenario reads as one chain from a fresh builder."""
        scenario = (
            ScenarioBuilder().topology_with(validators_and_executors(2, 1))
            .wallets(10)
            .transactions_with(lambda flow: flow.rate(3).users(5))
            .with_run_duration(30)
            .expect_consensus_liveness()
            .build()
        )

        assert scenario.topology.validators == 2
        assert scenario.topology.executors == 1
        assert scenario.wallets.users == 10
        assert scenario.duration == 30.0
        assert scenario.workloads == (TransactionWorkloadSpec(rate=3, users=5),)
        assert scenario.expectations == (ConsensusLivenessSpec(),)

    def test_topology_with_needs_an_instance(self):
        with pytest.raises(TypeError):
            ScenarioBuilder.topology_with(validators_and_executors(1, 0))

    def test_repeated_builds_are_equal(self):
        def build():
            return (
                ScenarioBuilder().topology_with(validators_and_executors(1, 1))
                .wallets(4)
                .transactions_with(lambda flow: flow.rate(2))
                .da_with(lambda flow: flow.channel_rate(2).blob_rate(1))
                .expect_consensus_liveness()
                .with_run_duration(20)
                .build()
            )

        assert build() == build()

    def test_builtin_workload_kinds_are_replaced_in_place(self):
        scenario = (
            ScenarioBuilder().topology_with(validators_and_executors(1, 1))
            .wallets(4)
            .transactions_with(lambda flow: flow.rate(1))
            .da_with(lambda flow: flow.channel_rate(1))
            .transactions_with(lambda flow: flow.rate(9))
            .build()
        )

        assert [spec.kind for spec in scenario.workloads] == [
            WorkloadKind.TRANSACTION,
            WorkloadKind.DATA_AVAILABILITY,
        ]
        assert scenario.workloads[0].rate == 9

    def test_custom_workloads_accumulate(self):
        def factory():
            return TransactionWorkload(rate=1)

        scenario = (
            ScenarioBuilder().topology_with(validators_and_executors(1, 0))
            .with_workload(factory, name="first")
            .with_workload(factory, name="second")
            .build()
        )

        assert [spec.name for spec in scenario.workloads] == ["first", "second"]
        assert all(isinstance(spec, CustomWorkloadSpec) for spec in scenario.workloads)

    def test_custom_expectation_from_callable(self):
        def my_check():
            raise AssertionError("not called at build time")

        scenario = (
            ScenarioBuilder().topology_with(validators_and_executors(1, 0))
            .with_expectation(my_check)
            .build()
        )

        assert scenario.expectations == (CustomExpectationSpec(name="my_check", factory=my_check),)

    def test_chaos_with_node_control(self):
        scenario = (
            ScenarioBuilder().topology_with(validators_and_executors(2, 1))
            .enable_node_control()
            .chaos_with(
                lambda chaos: chaos.restart()
                .min_delay(5)
                .max_delay(10)
                .target_cooldown(20)
            )
            .build()
        )

        assert scenario.workloads == (
            ChaosRestartWorkloadSpec(min_delay=5, max_delay=10, target_cooldown=20),
        )
        assert scenario.requires_node_control
        assert Capability.NODE_CONTROL in scenario.required_capabilities

    def test_chaos_without_variant_attaches_nothing(self):
        scenario = (
            ScenarioBuilder().topology_with(validators_and_executors(1, 0))
            .chaos_with(lambda chaos: chaos)
            .build()
        )

        assert scenario.workloads == ()

    def test_default_duration(self):
        scenario = ScenarioBuilder().topology_with(validators_and_executors(1, 0)).build()

        assert scenario.duration == 60.0
        assert scenario.slot_duration == 2.0


class TestScenarioViolations:
    """Test that build() reports every violated invariant."""

    def test_empty_topology(self):
        with pytest.raises(ScenarioBuildError) as error:
            ScenarioBuilder().build()

        assert error.value.has(ViolationKind.TOPOLOGY)

    def test_duration_shorter_than_two_slots(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(
                    lambda topology: topology.validators(1).slot_duration(5)
                )
                .with_run_duration(9)
                .build()
            )

        assert error.value.has(ViolationKind.DURATION)

    def test_duration_of_exactly_two_slots_is_allowed(self):
        scenario = (
            ScenarioBuilder().topology_with(lambda topology: topology.validators(1).slot_duration(5))
            .with_run_duration(10)
            .build()
        )

        assert scenario.duration == 10.0

    def test_transactions_need_wallets(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(validators_and_executors(1, 0))
                .transactions_with(lambda flow: flow.rate(1))
                .build()
            )

        assert error.value.has(ViolationKind.WALLETS)

    def test_transaction_users_cannot_exceed_wallets(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(validators_and_executors(1, 0))
                .wallets(2)
                .transactions_with(lambda flow: flow.rate(1).users(3))
                .build()
            )

        violations = error.value.of_kind(ViolationKind.WALLETS)
        assert len(violations) == 1
        assert "exceed" in violations[0].message

    def test_zero_rates(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(validators_and_executors(1, 1))
                .wallets(1)
                .transactions_with(lambda flow: flow.rate(0))
                .da_with(lambda flow: flow.channel_rate(0).blob_rate(0))
                .build()
            )

        assert len(error.value.of_kind(ViolationKind.RATE)) == 3

    def test_da_needs_an_executor(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(validators_and_executors(2, 0))
                .da_with(lambda flow: flow.channel_rate(1))
                .build()
            )

        assert error.value.has(ViolationKind.TOPOLOGY)

    def test_chaos_without_node_control(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(validators_and_executors(2, 0))
                .chaos_with(lambda chaos: chaos.restart())
                .build()
            )

        assert error.value.has(ViolationKind.CAPABILITY)

    def test_chaos_delay_bounds(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(validators_and_executors(2, 0))
                .enable_node_control()
                .chaos_with(
                    lambda chaos: chaos.restart()
                    .min_delay(10)
                    .max_delay(5)
                    .target_cooldown(2)
                )
                .build()
            )

        assert len(error.value.of_kind(ViolationKind.CHAOS)) == 2

    def test_invalid_wallet_allocation(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder().topology_with(validators_and_executors(1, 0))
                .initialize_wallet(total_funds=1, users=5)
                .build()
            )

        assert error.value.has(ViolationKind.WALLETS)

    def test_all_violations_are_reported_together(self):
        with pytest.raises(ScenarioBuildError) as error:
            (
                ScenarioBuilder()
                .with_run_duration(0)
                .transactions_with(lambda flow: flow.rate(0))
                .da_with(lambda flow: flow.channel_rate(1))
                .chaos_with(lambda chaos: chaos.restart())
                .build()
            )

        kinds = {violation.kind for violation in error.value.violations}
        assert kinds == {
            ViolationKind.TOPOLOGY,
            ViolationKind.DURATION,
            ViolationKind.WALLETS,
            ViolationKind.RATE,
            ViolationKind.CAPABILITY,
        }
        assert f"{len(error.value.violations)} invalid setting(s)" in str(error.value)


class TestScenarioFromEnv:
    """Test mapping resolved configuration onto a builder."""

    def test_defaults(self):
        scenario = scenario_from_env(Env(CHAINSCALE_WALLETS=10, CHAINSCALE_TX_USERS=5)).build()

        assert scenario.topology.validators == 1
        assert scenario.topology.executors == 1
        assert scenario.duration == 60.0
        assert [spec.kind for spec in scenario.workloads] == [
            WorkloadKind.TRANSACTION,
            WorkloadKind.DATA_AVAILABILITY,
        ]
        assert scenario.expectations == (ConsensusLivenessSpec(),)

    def test_node_control_adds_chaos(self):
        env = Env(
            CHAINSCALE_VALIDATORS=2,
            CHAINSCALE_EXECUTORS=0,
            CHAINSCALE_WALLETS=10,
            CHAINSCALE_TX_USERS=None,
            CHAINSCALE_NODE_CONTROL=True,
            CHAINSCALE_CHAOS_MIN_DELAY="1s",
            CHAINSCALE_CHAOS_MAX_DELAY="2s",
            CHAINSCALE_CHAOS_TARGET_COOLDOWN="3s",
        )

        scenario = scenario_from_env(env).build()

        assert isinstance(scenario.workloads[-1], ChaosRestartWorkloadSpec)
        assert scenario.workloads[-1].target_cooldown == 3.0
        assert not any(isinstance(spec, DataAvailabilityWorkloadSpec) for spec in scenario.workloads)
