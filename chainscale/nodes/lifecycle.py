"""
Process and container lifecycle boundary.

Deployers start nodes through a NodeLifecycle, and node control issues
restarts through the same object. Each backend supplies one
implementation; the rest of the framework only sequences these calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from chainscale.topology.generation import GeneratedNodeConfig
from chainscale.topology.node import NodeId


@dataclass(slots=True)
class NodeHandle:
    node: NodeId
    config: GeneratedNodeConfig
    api_url: str
    testing_url: str | None = None
    restarts: int = 0
    details: dict[str, Any] = field(default_factory=dict)


class NodeLifecycle(ABC):
    @abstractmethod
    async def start(self, config: GeneratedNodeConfig) -> NodeHandle:
        ...

    @abstractmethod
    async def stop(self, handle: NodeHandle) -> None:
        ...

    @abstractmethod
    async def restart(self, handle: NodeHandle) -> None:
        ...
