from __future__ import annotations

import pathlib

from chainscale.nodes.lifecycle import NodeHandle, NodeLifecycle
from chainscale.topology.generation import GeneratedNodeConfig

from ..commands import CommandResult, CommandRunner
from .errors import PortDiscoveryError

DEFAULT_COMPOSE_TIMEOUT = 120.0


class ComposeCommands:
    """``docker compose`` invocations bound to one project and file."""

    def __init__(
        self,
        project: str,
        compose_file: pathlib.Path,
        commands: CommandRunner | None = None,
        timeout: float = DEFAULT_COMPOSE_TIMEOUT,
    ) -> None:
        self.project = project
        self.compose_file = compose_file
        self._commands = commands or CommandRunner()
        self._timeout = timeout

    def _args(self, *args: str) -> list[str]:
        return [
            "docker",
            "compose",
            "-f",
            str(self.compose_file),
            "-p",
            self.project,
            *args,
        ]

    async def run(self, *args: str, check: bool = True) -> CommandResult:
        return await self._commands.run(
            self._args(*args),
            timeout=self._timeout,
            cwd=str(self.compose_file.parent),
            check=check,
        )

    async def up(self, *services: str) -> CommandResult:
        if services:
            return await self.run("up", "-d", "--no-deps", *services)

        return await self.run("up", "-d")

    async def stop(self, service: str) -> CommandResult:
        return await self.run("stop", service)

    async def restart(self, service: str) -> CommandResult:
        return await self.run("restart", service)

    async def down(self) -> CommandResult:
        return await self.run("down", "--volumes", "--remove-orphans")

    async def port(self, service: str, container_port: int) -> int:
        result = await self.run("port", service, str(container_port))
        output = result.stdout.strip().splitlines()
        if not output:
            raise PortDiscoveryError(service, container_port, result.stdout)

        _, _, port = output[0].rpartition(":")
        if not port.isdigit():
            raise PortDiscoveryError(service, container_port, result.stdout)

        return int(port)


class ComposeNodeLifecycle(NodeLifecycle):
    def __init__(self, compose: ComposeCommands) -> None:
        self._compose = compose

    async def handle_for(self, config: GeneratedNodeConfig) -> NodeHandle:
        api_port = await self._compose.port(config.label, config.api_port)
        testing_port = await self._compose.port(config.label, config.testing_http_port)

        return NodeHandle(
            node=config.node,
            config=config,
            api_url=f"http://127.0.0.1:{api_port}",
            testing_url=f"http://127.0.0.1:{testing_port}",
            details={"service": config.label},
        )

    async def start(self, config: GeneratedNodeConfig) -> NodeHandle:
        await self._compose.up(config.label)
        return await self.handle_for(config)

    async def stop(self, handle: NodeHandle) -> None:
        await self._compose.stop(handle.node.label)

    async def restart(self, handle: NodeHandle) -> None:
        await self._compose.restart(handle.node.label)
