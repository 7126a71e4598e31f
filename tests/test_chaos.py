"""
Tests for the random restart workload.
"""

import asyncio
import random

import pytest

from chainscale.scenario import ChaosRestartWorkloadSpec, WorkloadSetupError
from chainscale.topology import NodeId
from chainscale.workloads import RandomRestartWorkload

from tests.mocks import MockNodeControl, make_context


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class SlowNodeControl(MockNodeControl):
    def __init__(self, restart_delay: float) -> None:
        super().__init__()
        self.restart_delay = restart_delay

    async def restart(self, node):
        await asyncio.sleep(self.restart_delay)
        await super().restart(node)


def restart_workload(**kwargs) -> RandomRestartWorkload:
    kwargs.setdefault("rng", random.Random(7))
    return RandomRestartWorkload(**kwargs)


class TestTargetSelection:
    """Test which nodes may be restarted."""

    def test_single_validator_is_never_a_target(self):
        workload = restart_workload()
        nodes = [NodeId.validator(0), NodeId.executor(0), NodeId.executor(1)]

        assert workload.select_targets(nodes) == [NodeId.executor(0), NodeId.executor(1)]

    def test_groups_can_be_excluded(self):
        workload = restart_workload(include_executors=False)
        nodes = [NodeId.validator(0), NodeId.validator(1), NodeId.executor(0)]

        assert workload.select_targets(nodes) == [NodeId.validator(0), NodeId.validator(1)]

    @pytest.mark.asyncio
    async def test_init_requires_node_control(self):
        workload = restart_workload()

        with pytest.raises(WorkloadSetupError, match="node control"):
            await workload.init(make_context(validators=2))

    @pytest.mark.asyncio
    async def test_init_requires_targets(self):
        workload = restart_workload()

        with pytest.raises(WorkloadSetupError, match="no eligible targets"):
            await workload.init(make_context(validators=1, node_control=MockNodeControl()))

    @pytest.mark.asyncio
    async def test_init_collects_targets(self):
        workload = restart_workload()

        await workload.init(make_context(validators=1, executors=2, node_control=MockNodeControl()))

        assert workload.targets == [NodeId.executor(0), NodeId.executor(1)]


class TestCooldown:
    """Test target choice against per-node cooldowns."""

    @pytest.mark.asyncio
    async def test_recently_restarted_nodes_are_not_eligible(self):
        clock = FakeClock(100.0)
        workload = restart_workload(target_cooldown=10.0, clock=clock)
        await workload.init(make_context(validators=2, node_control=MockNodeControl()))

        assert workload.eligible(clock.now) == [NodeId.validator(0), NodeId.validator(1)]

        workload.record_restart(NodeId.validator(0), started_at=100.0)
        workload.record_restart(NodeId.validator(1), started_at=100.0)

        clock.now = 105.0
        assert workload.choose(clock.now) is None
        assert workload.next_eligible_at() == 110.0

        clock.now = 110.0
        assert workload.choose(clock.now) in (NodeId.validator(0), NodeId.validator(1))

    @pytest.mark.asyncio
    async def test_choice_favours_nodes_restarted_longest_ago(self):
        clock = FakeClock(100.0)
        workload = restart_workload(target_cooldown=1.0, clock=clock)
        await workload.init(make_context(validators=2, node_control=MockNodeControl()))

        clock.now = 0.0
        workload.record_restart(NodeId.validator(0), started_at=0.0)
        clock.now = 99.0
        workload.record_restart(NodeId.validator(1), started_at=99.0)

        choices = [workload.choose(100.0) for _ in range(200)]

        assert choices.count(NodeId.validator(0)) > 150

    def test_random_delay_stays_within_bounds(self):
        workload = restart_workload(min_delay=2.0, max_delay=5.0)

        delays = [workload.random_delay() for _ in range(100)]

        assert all(2.0 <= delay <= 5.0 for delay in delays)
        assert restart_workload(min_delay=3.0, max_delay=3.0).random_delay() == 3.0


class TestRestartLoop:
    """Test the workload running against a mock node control."""

    @pytest.mark.asyncio
    async def test_restarts_respect_cooldown(self):
        control = MockNodeControl()
        ctx = make_context(validators=1, executors=2, node_control=control)
        workload = restart_workload(min_delay=0.01, max_delay=0.02, target_cooldown=0.05)
        await workload.init(ctx)

        stop = asyncio.Event()
        task = asyncio.create_task(workload.execute(ctx, stop))
        await asyncio.sleep(0.4)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

        assert set(control.restarted) == {NodeId.executor(0), NodeId.executor(1)}
        assert NodeId.validator(0) not in control.restarted

        for node in workload.targets:
            records = [record for record in workload.history if record.node == node]
            for previous, current in zip(records, records[1:]):
                assert current.started_at - previous.completed_at >= 0.05

    @pytest.mark.asyncio
    async def test_failed_restart_is_recorded_and_loop_continues(self):
        control = MockNodeControl(failing={NodeId.executor(0)})
        ctx = make_context(validators=1, executors=2, node_control=control)
        workload = restart_workload(min_delay=0.01, max_delay=0.01, target_cooldown=0.01)
        await workload.init(ctx)

        stop = asyncio.Event()
        task = asyncio.create_task(workload.execute(ctx, stop))
        await asyncio.sleep(0.3)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

        failed = [record for record in workload.history if record.error is not None]
        assert failed
        assert all(record.node == NodeId.executor(0) for record in failed)
        assert NodeId.executor(1) in control.restarted

    @pytest.mark.asyncio
    async def test_stop_interrupts_the_delay(self):
        ctx = make_context(validators=2, node_control=MockNodeControl())
        workload = restart_workload(min_delay=30.0, max_delay=60.0, target_cooldown=60.0)
        await workload.init(ctx)

        stop = asyncio.Event()
        task = asyncio.create_task(workload.execute(ctx, stop))
        await asyncio.sleep(0.05)
        stop.set()

        await asyncio.wait_for(task, timeout=1)
        assert workload.history == []


    @pytest.mark.asyncio
    async def test_cancelled_workload_finishes_restart_in_flight(self):
        control = SlowNodeControl(restart_delay=0.3)
        ctx = make_context(validators=2, node_control=control)
        workload = restart_workload(min_delay=0.0, max_delay=0.0, target_cooldown=60.0)
        await workload.init(ctx)

        task = asyncio.create_task(workload.execute(ctx, asyncio.Event()))
        await asyncio.sleep(0.1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(control.restarted) == 1
        assert [record.node for record in workload.history] == control.restarted
        assert workload.history[0].error is None


class TestChaosSpec:
    """Test the declarative spec."""

    def test_create_passes_settings(self):
        workload = ChaosRestartWorkloadSpec(
            min_delay=1.0,
            max_delay=2.0,
            target_cooldown=3.0,
            include_validators=False,
        ).create()

        assert isinstance(workload, RandomRestartWorkload)
        assert (workload.min_delay, workload.max_delay, workload.target_cooldown) == (1.0, 2.0, 3.0)
        assert workload.include_validators is False
        assert workload.include_executors is True
