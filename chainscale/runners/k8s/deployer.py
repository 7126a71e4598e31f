from __future__ import annotations

import asyncio
import functools
from typing import Any

from chainscale.env import Env
from chainscale.nodes.api_client import READ_RETRY, ApiClient
from chainscale.nodes.node_clients import NodeClients
from chainscale.scenario.cleanup import CleanupStack
from chainscale.scenario.deployer import Deployer, LaunchedDeployment
from chainscale.scenario.errors import DeploymentError, NodeFailure
from chainscale.scenario.logging_models import DeployerInfo
from chainscale.scenario.scenario import Scenario
from chainscale.topology.constants import DEFAULT_K8S_DEPLOYMENT_TIMEOUT
from chainscale.topology.generation import allocate_local_ports, generate_topology
from chainscale.topology.node import NodeId

from ..commands import CommandFailedError, CommandRunner, CommandTimeoutError, terminate_process
from ..workspace import create_workspace, remove_workspace, write_json
from .errors import RolloutError, UnsupportedTopologyError
from .manifests import namespace_name, render_manifests

MANIFEST_FILE = "manifests.json"
KUBECTL_TIMEOUT = 60.0


class K8sDeployer(Deployer):
    """
    Applies rendered manifests into a fresh namespace and reaches node
    APIs through ``kubectl port-forward``. Node control is not supported.
    """

    backend = "k8s"
    capabilities = frozenset()

    def __init__(
        self,
        image: str = "chainscale-node:local",
        rollout_timeout: float = DEFAULT_K8S_DEPLOYMENT_TIMEOUT,
        kubectl: str = "kubectl",
        workspace_root: str | None = None,
        preserve: bool = False,
        commands: CommandRunner | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.image = image
        self.rollout_timeout = rollout_timeout
        self.kubectl = kubectl
        self.workspace_root = workspace_root
        self.preserve = preserve
        self._commands = commands or CommandRunner()

    @classmethod
    def from_env(cls, env: Env, **kwargs: Any) -> K8sDeployer:
        return cls(
            image=env.CHAINSCALE_NODE_IMAGE,
            rollout_timeout=env.k8s_rollout_timeout,
            preserve=env.CHAINSCALE_PRESERVE_DEPLOYMENT,
            readiness_timeout=env.readiness_timeout,
            readiness_poll_interval=env.readiness_poll_interval,
            probe_timeout=env.probe_timeout,
            grace_period=env.CHAINSCALE_CONTROL_GRACE_PERIOD,
            **kwargs,
        )

    def check_scenario(self, scenario: Scenario) -> None:
        topology = scenario.topology
        if topology.validators < 1 or topology.executors < 1:
            raise UnsupportedTopologyError(
                f"k8s deployer requires at least one validator and one executor, got {topology.validators} and {topology.executors}"
            )

    def _kubectl(self, namespace: str, *args: str) -> list[str]:
        return [self.kubectl, "--namespace", namespace, *args]

    async def _launch(
        self,
        scenario: Scenario,
        deployment_id: str,
        cleanup: CleanupStack,
    ) -> LaunchedDeployment:
        namespace = namespace_name(deployment_id)
        topology = generate_topology(
            scenario.topology,
            scenario.wallets,
            hostname=lambda node: node.label,
        )

        workspace = create_workspace(deployment_id, self.workspace_root)
        manifest_file = write_json(
            workspace / MANIFEST_FILE,
            render_manifests(topology, namespace, self.image, deployment_id),
        )

        if not self.preserve:
            cleanup.callback("workspace", functools.partial(remove_workspace, workspace))
            cleanup.callback("namespace", functools.partial(self._delete_namespace, namespace))

        await self._commands.run(
            [self.kubectl, "apply", "-f", str(manifest_file)],
            timeout=KUBECTL_TIMEOUT,
        )

        await self._await_rollouts(namespace, deployment_id, [config.label for config in topology.nodes()])

        local_ports = allocate_local_ports(topology.config.node_count)
        clients: dict[NodeId, ApiClient] = {}
        for config, ports in zip(topology.nodes(), local_ports):
            process = await self._commands.spawn(
                self._kubectl(
                    namespace,
                    "port-forward",
                    f"service/{config.label}",
                    f"{ports.api}:{config.api_port}",
                    f"{ports.testing}:{config.testing_http_port}",
                )
            )
            cleanup.callback(
                f"port-forward {config.label}",
                functools.partial(terminate_process, process),
            )

            clients[config.node] = ApiClient(
                f"http://127.0.0.1:{ports.api}",
                testing_url=f"http://127.0.0.1:{ports.testing}",
                label=config.label,
                retry=READ_RETRY,
            )

        return LaunchedDeployment(topology=topology, node_clients=NodeClients(clients))

    async def _await_rollouts(self, namespace: str, deployment_id: str, deployments: list[str]) -> None:
        results = await asyncio.gather(
            *[self._await_rollout(namespace, deployment) for deployment in deployments],
            return_exceptions=True,
        )

        failures = [
            NodeFailure(node=deployment, cause=str(result))
            for deployment, result in zip(deployments, results)
            if isinstance(result, Exception)
        ]

        if failures:
            raise DeploymentError(self.backend, deployment_id, failures)

        await self._logger.log(
            DeployerInfo(
                message=f"Rolled out {len(deployments)} deployment(s) in {namespace}",
                backend=self.backend,
                deployment_id=deployment_id,
            )
        )

    async def _await_rollout(self, namespace: str, deployment: str) -> None:
        try:
            await self._commands.run(
                self._kubectl(
                    namespace,
                    "rollout",
                    "status",
                    f"deployment/{deployment}",
                    f"--timeout={int(self.rollout_timeout)}s",
                ),
                timeout=self.rollout_timeout + KUBECTL_TIMEOUT,
            )

        except (CommandFailedError, CommandTimeoutError) as err:
            raise RolloutError(deployment, str(err)) from err

    async def _delete_namespace(self, namespace: str) -> None:
        await self._commands.run(
            [self.kubectl, "delete", "namespace", namespace, "--wait=false", "--ignore-not-found"],
            timeout=KUBECTL_TIMEOUT,
        )
