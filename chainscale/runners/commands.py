"""
External command seam.

Every backend shells out through a CommandRunner so tests can replace
docker, kubectl or node binaries with a fake recording the calls.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import IO, Sequence

from chainscale.errors import ChainscaleError
from chainscale.logging import Logger

from .logging_models import CommandDebug, CommandWarning


class CommandFailedError(ChainscaleError):
    def __init__(self, result: CommandResult) -> None:
        self.result = result
        detail = (result.stderr or result.stdout).strip()[:500]
        super().__init__(
            f"`{result.command}` exited with {result.return_code}: {detail}"
        )


class CommandTimeoutError(ChainscaleError):
    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"`{command}` timed out after {timeout:.1f}s")


@dataclass(frozen=True, slots=True)
class CommandResult:
    args: tuple[str, ...]
    return_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def command(self) -> str:
        return " ".join(self.args)

    @property
    def ok(self) -> bool:
        return self.return_code == 0

    def check(self) -> CommandResult:
        if not self.ok:
            raise CommandFailedError(self)

        return self


class CommandRunner:
    def __init__(self) -> None:
        self._logger = Logger()

    async def run(
        self,
        args: Sequence[str],
        timeout: float | None = None,
        cwd: str | None = None,
        check: bool = True,
    ) -> CommandResult:
        command = " ".join(args)
        await self._logger.log(
            CommandDebug(
                message=f"Running {command}",
                command=command,
            )
        )

        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout,
            )

        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CommandTimeoutError(command, timeout or 0)

        result = CommandResult(
            args=tuple(args),
            return_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

        if not result.ok:
            await self._logger.log(
                CommandWarning(
                    message=f"{command} exited with {result.return_code}",
                    command=command,
                    return_code=result.return_code,
                )
            )

        if check:
            result.check()

        return result

    async def spawn(
        self,
        args: Sequence[str],
        output: IO[bytes] | None = None,
        cwd: str | None = None,
    ) -> asyncio.subprocess.Process:
        """Start a long-running process; output goes to ``output`` or is discarded."""
        await self._logger.log(
            CommandDebug(
                message=f"Spawning {' '.join(args)}",
                command=" ".join(args),
            )
        )

        return await asyncio.create_subprocess_exec(
            *args,
            stdout=output if output is not None else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.STDOUT if output is not None else asyncio.subprocess.DEVNULL,
            cwd=cwd,
        )


async def terminate_process(process: asyncio.subprocess.Process, grace: float = 5.0) -> int | None:
    """SIGTERM, then SIGKILL once ``grace`` seconds pass."""
    if process.returncode is not None:
        return process.returncode

    try:
        process.terminate()

    except ProcessLookupError:
        return process.returncode

    try:
        return await asyncio.wait_for(process.wait(), timeout=grace)

    except asyncio.TimeoutError:
        process.kill()
        return await process.wait()
