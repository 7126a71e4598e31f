from __future__ import annotations

import asyncio
import functools
from typing import Any

from chainscale.env import Env
from chainscale.nodes.api_client import READ_RETRY, ApiClient
from chainscale.nodes.node_clients import NodeClients
from chainscale.scenario.capabilities import Capability
from chainscale.scenario.cleanup import CleanupStack
from chainscale.scenario.context import Telemetry
from chainscale.scenario.deployer import Deployer, LaunchedDeployment
from chainscale.scenario.logging_models import DeployerInfo
from chainscale.scenario.node_control import LifecycleNodeControl
from chainscale.scenario.scenario import Scenario
from chainscale.topology.constants import DEFAULT_PROMETHEUS_HTTP_PORT
from chainscale.topology.generation import allocate_local_ports, generate_topology

from ..commands import CommandFailedError, CommandRunner, CommandTimeoutError
from ..workspace import create_workspace, remove_workspace, write_json
from .descriptor import (
    PROMETHEUS_CONFIG,
    PROMETHEUS_SERVICE,
    compose_project_name,
    node_config_filename,
    render_compose,
    render_prometheus_config,
)
from .errors import ComposeUnavailableError
from .lifecycle import ComposeCommands, ComposeNodeLifecycle

COMPOSE_FILE = "docker-compose.json"
DOCKER_CHECK_TIMEOUT = 15.0


class ComposeDeployer(Deployer):
    """
    Runs the topology as a docker compose project with a Prometheus
    sidecar. Supports node control through ``docker compose restart``.
    """

    backend = "compose"
    capabilities = frozenset({Capability.NODE_CONTROL, Capability.TELEMETRY})

    def __init__(
        self,
        image: str = "chainscale-node:local",
        prometheus_image: str = "prom/prometheus:v2.53.0",
        workspace_root: str | None = None,
        preserve: bool = False,
        commands: CommandRunner | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.image = image
        self.prometheus_image = prometheus_image
        self.workspace_root = workspace_root
        self.preserve = preserve
        self._commands = commands or CommandRunner()

    @classmethod
    def from_env(cls, env: Env, **kwargs: Any) -> ComposeDeployer:
        return cls(
            image=env.CHAINSCALE_NODE_IMAGE,
            prometheus_image=env.CHAINSCALE_PROMETHEUS_IMAGE,
            preserve=env.CHAINSCALE_PRESERVE_DEPLOYMENT,
            readiness_timeout=env.readiness_timeout,
            readiness_poll_interval=env.readiness_poll_interval,
            probe_timeout=env.probe_timeout,
            grace_period=env.CHAINSCALE_CONTROL_GRACE_PERIOD,
            **kwargs,
        )

    async def ensure_docker(self) -> None:
        try:
            await self._commands.run(
                ["docker", "compose", "version"],
                timeout=DOCKER_CHECK_TIMEOUT,
            )

        except (OSError, CommandFailedError, CommandTimeoutError) as err:
            raise ComposeUnavailableError(f"docker compose is not available: {err}") from err

    async def _launch(
        self,
        scenario: Scenario,
        deployment_id: str,
        cleanup: CleanupStack,
    ) -> LaunchedDeployment:
        await self.ensure_docker()

        topology = generate_topology(
            scenario.topology,
            scenario.wallets,
            hostname=lambda node: node.label,
        )

        host_ports = allocate_local_ports(scenario.topology.node_count + 1)
        prometheus_port = host_ports[-1].api

        workspace = create_workspace(deployment_id, self.workspace_root)
        for config in topology.nodes():
            write_json(workspace / node_config_filename(config.label), config.to_config())

        write_json(workspace / PROMETHEUS_CONFIG, render_prometheus_config(topology))
        compose_file = write_json(
            workspace / COMPOSE_FILE,
            render_compose(
                topology,
                self.image,
                host_ports[:-1],
                self.prometheus_image,
                prometheus_port,
                deployment_id,
            ),
        )

        compose = ComposeCommands(
            compose_project_name(deployment_id),
            compose_file,
            commands=self._commands,
        )

        if self.preserve:
            cleanup.callback(
                "preserve",
                functools.partial(self._log_preserved, compose, deployment_id),
            )

        else:
            cleanup.callback("workspace", functools.partial(remove_workspace, workspace))
            cleanup.callback("compose down", compose.down)

        await compose.up()

        lifecycle = ComposeNodeLifecycle(compose)
        handles = await asyncio.gather(
            *[lifecycle.handle_for(config) for config in topology.nodes()]
        )
        discovered_prometheus = await compose.port(PROMETHEUS_SERVICE, DEFAULT_PROMETHEUS_HTTP_PORT)

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

        return LaunchedDeployment(
            topology=topology,
            node_clients=clients,
            telemetry=Telemetry(prometheus_url=f"http://127.0.0.1:{discovered_prometheus}"),
            node_control=LifecycleNodeControl(lifecycle, handles),
        )

    async def _log_preserved(self, compose: ComposeCommands, deployment_id: str) -> None:
        await self._logger.log(
            DeployerInfo(
                message=f"Preserving compose project {compose.project} ({compose.compose_file})",
                backend=self.backend,
                deployment_id=deployment_id,
            )
        )
