"""
Deployment template shared by every backend.

``Deployer.deploy`` checks capabilities, asks the backend to launch the
cluster, waits for HTTP readiness, starts the block feed and returns a
Runner that owns everything provisioned. If any step fails, whatever was
provisioned is torn down and a DeploymentError names the root causes.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from chainscale.logging import Logger
from chainscale.nodes.api_client import ApiClient
from chainscale.nodes.node_clients import NodeClients
from chainscale.topology.constants import (
    DEFAULT_HTTP_POLL_INTERVAL,
    DEFAULT_NODE_HTTP_PROBE_TIMEOUT,
)
from chainscale.topology.generation import GeneratedTopology
from chainscale.topology.wallet import WalletRegistry

from .block_feed import spawn_block_feed
from .capabilities import Capability
from .cleanup import CleanupStack
from .context import RunContext, RunMetrics, Telemetry
from .errors import (
    CapabilityError,
    CleanupError,
    DeploymentError,
    NodeFailure,
    ReadinessError,
)
from .http_probe import DEFAULT_READINESS_TIMEOUT, ReadinessTarget, wait_for_http_ready
from .logging_models import DeployerDebug, DeployerError, DeployerInfo
from .node_control import NodeControlHandle
from .runner import DEFAULT_GRACE_PERIOD, Runner
from .scenario import Scenario

DEFAULT_READINESS_SKIP_GRACE = 5.0


def new_deployment_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(slots=True)
class LaunchedDeployment:
    topology: GeneratedTopology
    node_clients: NodeClients
    telemetry: Telemetry = Telemetry()
    node_control: NodeControlHandle | None = None


class Deployer(ABC):
    backend: str = "deployer"
    capabilities: frozenset[Capability] = frozenset()

    def __init__(
        self,
        readiness_checks: bool = True,
        readiness_timeout: float = DEFAULT_READINESS_TIMEOUT,
        readiness_poll_interval: float = DEFAULT_HTTP_POLL_INTERVAL,
        probe_timeout: float = DEFAULT_NODE_HTTP_PROBE_TIMEOUT,
        readiness_skip_grace: float = DEFAULT_READINESS_SKIP_GRACE,
        block_feed_interval: float = DEFAULT_HTTP_POLL_INTERVAL,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self.readiness_checks = readiness_checks
        self.readiness_timeout = readiness_timeout
        self.readiness_poll_interval = readiness_poll_interval
        self.probe_timeout = probe_timeout
        self.readiness_skip_grace = readiness_skip_grace
        self.block_feed_interval = block_feed_interval
        self.grace_period = grace_period
        self._logger = Logger()

    def ensure_capabilities(self, scenario: Scenario) -> None:
        missing = scenario.required_capabilities - self.capabilities
        if missing:
            raise CapabilityError(self.backend, missing)

    def check_scenario(self, scenario: Scenario) -> None:
        """Backend-specific pre-flight checks. Runs before provisioning."""
        return None

    @abstractmethod
    async def _launch(
        self,
        scenario: Scenario,
        deployment_id: str,
        cleanup: CleanupStack,
    ) -> LaunchedDeployment:
        """
        Provision the cluster. Every resource created must be registered
        on ``cleanup`` as soon as it exists, so a failure halfway through
        still tears it down.
        """
        ...

    async def deploy(self, scenario: Scenario) -> Runner:
        self.ensure_capabilities(scenario)
        self.check_scenario(scenario)

        deployment_id = new_deployment_id()
        cleanup = CleanupStack()

        await self._logger.log(
            DeployerInfo(
                message=f"Deploying {scenario.topology.validators} validator(s) and {scenario.topology.executors} executor(s)",
                backend=self.backend,
                deployment_id=deployment_id,
            )
        )

        try:
            launched = await self._launch(scenario, deployment_id, cleanup)
            cleanup.callback("node_clients", launched.node_clients.close)
            self._check_clients(launched, deployment_id)

            await self._await_ready(launched, deployment_id)

            feed_task = await spawn_block_feed(
                self._block_feed_client(launched.node_clients),
                poll_interval=self.block_feed_interval,
            )
            cleanup.push(feed_task)

        except asyncio.CancelledError:
            await self._teardown(cleanup, deployment_id)
            raise

        except Exception as err:
            teardown_error = await self._teardown(cleanup, deployment_id)
            deployment_error = DeploymentError(
                self.backend,
                deployment_id,
                _failure_causes(err),
                teardown_error=teardown_error,
            )

            await self._logger.log(
                DeployerError(
                    message=str(deployment_error),
                    backend=self.backend,
                    deployment_id=deployment_id,
                )
            )

            raise deployment_error from err

        context = RunContext(
            topology=launched.topology,
            node_clients=launched.node_clients,
            run_metrics=RunMetrics.from_scenario(scenario),
            block_feed=feed_task.feed,
            wallets=WalletRegistry(scenario.wallets),
            telemetry=launched.telemetry,
            node_control=launched.node_control,
            deployment_id=deployment_id,
        )

        await self._logger.log(
            DeployerInfo(
                message=f"Deployment ready with {len(launched.node_clients)} node(s)",
                backend=self.backend,
                deployment_id=deployment_id,
            )
        )

        return Runner(context, cleanup, grace_period=self.grace_period)

    def _check_clients(self, launched: LaunchedDeployment, deployment_id: str) -> None:
        expected = set(launched.topology.node_ids)
        registered = set(launched.node_clients)

        causes = [
            NodeFailure(node=node.label, cause="no API client registered")
            for node in launched.topology.node_ids
            if node not in registered
        ]
        causes.extend(
            NodeFailure(node=node.label, cause="API client registered for a node outside the topology")
            for node in sorted(registered - expected, key=lambda node: node.label)
        )

        if causes:
            raise DeploymentError(self.backend, deployment_id, causes)

    async def _await_ready(self, launched: LaunchedDeployment, deployment_id: str) -> None:
        if not self.readiness_checks:
            await self._logger.log(
                DeployerDebug(
                    message=f"Readiness checks disabled, waiting {self.readiness_skip_grace:.1f}s",
                    backend=self.backend,
                    deployment_id=deployment_id,
                )
            )
            await asyncio.sleep(self.readiness_skip_grace)
            return

        expected = launched.topology.expected_peer_counts()
        await wait_for_http_ready(
            [
                ReadinessTarget(
                    node=node,
                    client=client,
                    expected_peers=expected.get(node, 0),
                )
                for node, client in launched.node_clients.items()
            ],
            timeout=self.readiness_timeout,
            poll_interval=self.readiness_poll_interval,
            probe_timeout=self.probe_timeout,
        )

    def _block_feed_client(self, clients: NodeClients) -> ApiClient:
        candidates = clients.validator_clients() or clients.executor_clients()
        return candidates[0]

    async def _teardown(self, cleanup: CleanupStack, deployment_id: str) -> CleanupError | None:
        try:
            await cleanup.cleanup()

        except CleanupError as err:
            await self._logger.log(
                DeployerError(
                    message=f"Teardown after failed deployment was incomplete: {err}",
                    backend=self.backend,
                    deployment_id=deployment_id,
                )
            )
            return err

        return None


def _failure_causes(err: Exception) -> list[NodeFailure]:
    if isinstance(err, ReadinessError):
        return err.failures

    if isinstance(err, DeploymentError):
        return err.causes

    return [NodeFailure(node="deployment", cause=f"{type(err).__name__}: {err}")]
