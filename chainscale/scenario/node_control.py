from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Iterable

from chainscale.nodes.lifecycle import NodeHandle, NodeLifecycle
from chainscale.topology.node import NodeId


class NodeControlHandle(ABC):
    """
    Restart/stop/start individual nodes. Present on the run context only
    for backends that support it.
    """

    @abstractmethod
    def nodes(self) -> list[NodeId]:
        ...

    @abstractmethod
    async def restart(self, node: NodeId) -> None:
        ...

    @abstractmethod
    async def stop(self, node: NodeId) -> None:
        ...

    @abstractmethod
    async def start(self, node: NodeId) -> None:
        ...

    async def restart_matching(self, selector: Callable[[NodeId], bool]) -> list[NodeId]:
        selected = [node for node in self.nodes() if selector(node)]
        for node in selected:
            await self.restart(node)

        return selected


class LifecycleNodeControl(NodeControlHandle):
    """
    Node control backed by a NodeLifecycle. Operations on the same node are
    serialized; different nodes may be controlled concurrently.
    """

    def __init__(self, lifecycle: NodeLifecycle, handles: Iterable[NodeHandle]) -> None:
        self._lifecycle = lifecycle
        self._handles = {handle.node: handle for handle in handles}
        self._locks: dict[NodeId, asyncio.Lock] = defaultdict(asyncio.Lock)

    def nodes(self) -> list[NodeId]:
        return list(self._handles)

    def _handle(self, node: NodeId) -> NodeHandle:
        handle = self._handles.get(node)
        if handle is None:
            raise KeyError(f"unknown node {node}")

        return handle

    async def restart(self, node: NodeId) -> None:
        handle = self._handle(node)
        async with self._locks[node]:
            await self._lifecycle.restart(handle)
            handle.restarts += 1

    async def stop(self, node: NodeId) -> None:
        handle = self._handle(node)
        async with self._locks[node]:
            await self._lifecycle.stop(handle)

    async def start(self, node: NodeId) -> None:
        handle = self._handle(node)
        async with self._locks[node]:
            self._handles[node] = await self._lifecycle.start(handle.config)
