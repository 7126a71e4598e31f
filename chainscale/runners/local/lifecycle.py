from __future__ import annotations

import pathlib

from chainscale.logging import Logger
from chainscale.nodes.lifecycle import NodeHandle, NodeLifecycle
from chainscale.topology.generation import GeneratedNodeConfig
from chainscale.topology.node import NodeRole

from ..commands import CommandRunner, terminate_process
from ..logging_models import ProcessWarning
from ..workspace import write_json

DEFAULT_STOP_GRACE = 5.0


class LocalProcessLifecycle(NodeLifecycle):
    """
    Runs each node binary as a host process with its own directory under
    the deployment workspace holding ``config.json`` and ``node.log``.
    """

    def __init__(
        self,
        workspace: pathlib.Path,
        binary: str,
        executor_binary: str | None = None,
        commands: CommandRunner | None = None,
        stop_grace: float = DEFAULT_STOP_GRACE,
    ) -> None:
        self._workspace = workspace
        self._binary = binary
        self._executor_binary = executor_binary or binary
        self._commands = commands or CommandRunner()
        self._stop_grace = stop_grace
        self._logger = Logger()

    def _binary_for(self, config: GeneratedNodeConfig) -> str:
        if config.role == NodeRole.EXECUTOR:
            return self._executor_binary

        return self._binary

    async def start(self, config: GeneratedNodeConfig) -> NodeHandle:
        node_dir = self._workspace / config.label
        config_path = write_json(node_dir / "config.json", config.to_config())
        log_path = node_dir / "node.log"

        with open(log_path, "ab") as log_file:
            process = await self._commands.spawn(
                [self._binary_for(config), "--config", str(config_path)],
                output=log_file,
                cwd=str(node_dir),
            )

        return NodeHandle(
            node=config.node,
            config=config,
            api_url=f"http://{config.host}:{config.api_port}",
            testing_url=f"http://{config.host}:{config.testing_http_port}",
            details={
                "process": process,
                "log_path": str(log_path),
                "config_path": str(config_path),
            },
        )

    async def stop(self, handle: NodeHandle) -> None:
        process = handle.details.get("process")
        if process is None:
            return

        if process.returncode is not None and process.returncode != 0:
            await self._logger.log(
                ProcessWarning(
                    message=f"Node {handle.node} had already exited with {process.returncode}, see {handle.details.get('log_path')}",
                    node=handle.node.label,
                )
            )

        await terminate_process(process, grace=self._stop_grace)

    async def restart(self, handle: NodeHandle) -> None:
        await self.stop(handle)
        restarted = await self.start(handle.config)
        handle.details = restarted.details
