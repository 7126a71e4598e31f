from __future__ import annotations

import asyncio
import pathlib
import shutil
import tempfile
from typing import Any

import msgspec


def create_workspace(deployment_id: str, root: str | None = None) -> pathlib.Path:
    return pathlib.Path(
        tempfile.mkdtemp(prefix=f"chainscale-{deployment_id}-", dir=root)
    )


def write_json(path: pathlib.Path, payload: Any) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(msgspec.json.format(msgspec.json.encode(payload), indent=2))
    return path


async def remove_workspace(path: pathlib.Path) -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, shutil.rmtree, path, True)
