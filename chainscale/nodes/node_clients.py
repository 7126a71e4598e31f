from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Iterator, Mapping, TypeVar

from chainscale.topology.node import NodeId, NodeRole

from .api_client import ApiClient
from .errors import NoReachableNodeError

T = TypeVar("T")


class NodeClients:
    """
    Registry of API clients keyed by node identity.

    The registry is populated once by the deployer and never mutated
    afterwards, so workloads and expectations can share it without locks.
    """

    def __init__(self, clients: Mapping[NodeId, ApiClient]) -> None:
        self._clients: dict[NodeId, ApiClient] = dict(clients)
        self._validators = tuple(
            client
            for node, client in sorted(self._clients.items(), key=lambda item: item[0].index)
            if node.role == NodeRole.VALIDATOR
        )
        self._executors = tuple(
            client
            for node, client in sorted(self._clients.items(), key=lambda item: item[0].index)
            if node.role == NodeRole.EXECUTOR
        )

    def __len__(self) -> int:
        return len(self._clients)

    def __getitem__(self, node: NodeId) -> ApiClient:
        return self._clients[node]

    def __iter__(self) -> Iterator[NodeId]:
        return iter(self._clients)

    def items(self):
        return self._clients.items()

    def get(self, node: NodeId) -> ApiClient | None:
        return self._clients.get(node)

    def validator_clients(self) -> tuple[ApiClient, ...]:
        return self._validators

    def executor_clients(self) -> tuple[ApiClient, ...]:
        return self._executors

    def all_clients(self) -> tuple[ApiClient, ...]:
        return self._validators + self._executors

    def random_validator(self) -> ApiClient | None:
        if len(self._validators) == 0:
            return None

        return random.choice(self._validators)

    def any_client(self) -> ApiClient | None:
        clients = self.all_clients()
        if len(clients) == 0:
            return None

        return random.choice(clients)

    async def try_all_clients(
        self,
        operation: Callable[[ApiClient], Awaitable[T]],
        operation_name: str = "operation",
    ) -> T:
        """
        Run ``operation`` against nodes in random order until one succeeds.
        Raises NoReachableNodeError with every collected failure otherwise.
        """
        clients = list(self.all_clients())
        random.shuffle(clients)

        errors: list[Exception] = []
        for client in clients:
            try:
                return await operation(client)

            except asyncio.CancelledError:
                raise

            except Exception as err:
                errors.append(err)

        raise NoReachableNodeError(operation_name, errors)

    async def close(self) -> None:
        await asyncio.gather(
            *[client.close() for client in self._clients.values()],
        )
