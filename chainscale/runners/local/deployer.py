from __future__ import annotations

import functools
from typing import Any

from chainscale.env import Env
from chainscale.nodes.api_client import READ_RETRY, ApiClient
from chainscale.nodes.lifecycle import NodeHandle
from chainscale.nodes.node_clients import NodeClients
from chainscale.scenario.cleanup import CleanupStack
from chainscale.scenario.deployer import Deployer, LaunchedDeployment
from chainscale.scenario.errors import DeploymentError, NodeFailure
from chainscale.scenario.logging_models import DeployerDebug
from chainscale.scenario.scenario import Scenario
from chainscale.topology.generation import allocate_local_ports, generate_topology

from ..commands import CommandRunner
from ..workspace import create_workspace, remove_workspace
from .lifecycle import LocalProcessLifecycle


class LocalDeployer(Deployer):
    """
    Spawns node binaries directly on the host. No node control: processes
    are only stopped during teardown.
    """

    backend = "local"
    capabilities = frozenset()

    def __init__(
        self,
        binary: str = "chain-node",
        executor_binary: str | None = None,
        workspace_root: str | None = None,
        preserve: bool = False,
        commands: CommandRunner | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.binary = binary
        self.executor_binary = executor_binary
        self.workspace_root = workspace_root
        self.preserve = preserve
        self._commands = commands or CommandRunner()

    @classmethod
    def from_env(cls, env: Env, **kwargs: Any) -> LocalDeployer:
        return cls(
            binary=env.CHAINSCALE_NODE_BINARY,
            executor_binary=env.CHAINSCALE_EXECUTOR_BINARY,
            preserve=env.CHAINSCALE_PRESERVE_DEPLOYMENT,
            readiness_timeout=env.readiness_timeout,
            readiness_poll_interval=env.readiness_poll_interval,
            probe_timeout=env.probe_timeout,
            grace_period=env.CHAINSCALE_CONTROL_GRACE_PERIOD,
            **kwargs,
        )

    async def _launch(
        self,
        scenario: Scenario,
        deployment_id: str,
        cleanup: CleanupStack,
    ) -> LaunchedDeployment:
        topology = generate_topology(
            scenario.topology,
            scenario.wallets,
            ports=allocate_local_ports(scenario.topology.node_count),
        )

        workspace = create_workspace(deployment_id, self.workspace_root)
        if not self.preserve:
            cleanup.callback("workspace", functools.partial(remove_workspace, workspace))

        await self._logger.log(
            DeployerDebug(
                message=f"Workspace at {workspace}",
                backend=self.backend,
                deployment_id=deployment_id,
            )
        )

        lifecycle = LocalProcessLifecycle(
            workspace,
            self.binary,
            executor_binary=self.executor_binary,
            commands=self._commands,
        )

        handles: list[NodeHandle] = []
        failures: list[NodeFailure] = []
        for config in topology.nodes():
            try:
                handle = await lifecycle.start(config)

            except OSError as err:
                failures.append(NodeFailure(node=config.label, cause=f"failed to spawn: {err}"))
                continue

            handles.append(handle)
            cleanup.callback(f"stop {config.label}", functools.partial(lifecycle.stop, handle))

        if failures:
            raise DeploymentError(self.backend, deployment_id, failures)

        clients = NodeClients(
            {
                handle.node: ApiClient(
                    handle.api_url,
                    testing_url=handle.testing_url,
                    label=handle.node.label,
                    retry=READ_RETRY,
                )
                for handle in handles
            }
        )

        return LaunchedDeployment(topology=topology, node_clients=clients)
