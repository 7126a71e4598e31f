"""
Mock implementations shared by the chainscale tests.

MockApiClient stands in for a node API: it keeps a tiny in-memory chain
that tests (or the mock itself, when ``include_submitted`` is set) can
extend, so block feeds, workloads and expectations can run end to end
without any node binary.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx
import respx

from chainscale.nodes.errors import ApiClientError
from chainscale.nodes.lifecycle import NodeHandle, NodeLifecycle
from chainscale.nodes.models import (
    Block,
    BlockHeader,
    ConsensusInfo,
    NetworkInfo,
    SignedTransaction,
)
from chainscale.nodes.node_clients import NodeClients
from chainscale.runners.commands import CommandResult
from chainscale.scenario.block_feed import BlockFeed
from chainscale.scenario.context import RunContext, RunMetrics, Telemetry
from chainscale.scenario.node_control import NodeControlHandle
from chainscale.topology.config import TopologyConfig
from chainscale.topology.generation import GeneratedNodeConfig, GeneratedTopology, generate_topology
from chainscale.topology.node import NodeId
from chainscale.topology.wallet import WalletConfig, WalletRegistry
from chainscale.workloads.tx import build_blob_op

GENESIS = "genesis"


def make_block(
    header_id: str,
    parent: str,
    slot: int,
    transactions: Sequence[SignedTransaction] = (),
) -> Block:
    return Block(
        header=BlockHeader(id=header_id, parent=parent, slot=slot),
        transactions=list(transactions),
    )


def unreachable(label: str, path: str = "/cryptarchia/info") -> ApiClientError:
    return ApiClientError(label, path, "transport error: connection refused", retryable=True)


def rejected(label: str, path: str = "/mempool/add/tx") -> ApiClientError:
    return ApiClientError(label, path, "HTTP 400: invalid transaction", status_code=400)


def mock_node_routes(n_peers: int = 8) -> None:
    """
    Answer node API calls on any host as an online node at genesis. Call
    inside an active respx mock.
    """
    respx.route(method="GET", path="/cryptarchia/info").mock(
        return_value=httpx.Response(200, json={"height": 0, "tip": GENESIS, "slot": 0, "mode": "Online"})
    )
    respx.route(method="GET", path="/network/info").mock(
        return_value=httpx.Response(200, json={"n_peers": n_peers})
    )
    respx.route(method="POST", path="/storage/block").mock(
        return_value=httpx.Response(200, content=b"null")
    )


@dataclass
class MockApiClient:
    """In-memory node API."""

    label: str = "validator-0"
    mode: str = "Online"
    n_peers: int = 0
    tip: str = GENESIS
    height: int = 0
    blocks: dict[str, Block] = field(default_factory=dict)
    submitted: list[SignedTransaction] = field(default_factory=list)
    published: list[tuple[str, str, bytes]] = field(default_factory=list)
    info_error: Exception | None = None
    submit_error: Exception | None = None
    publish_errors: list[Exception] = field(default_factory=list)
    include_submitted: bool = False
    info_delay: float = 0.0
    info_calls: int = 0
    closed: bool = False

    def append_block(self, transactions: Sequence[SignedTransaction] = ()) -> Block:
        header_id = f"{self.label}-block-{self.height + 1}"
        block = make_block(header_id, self.tip, self.height + 1, transactions)
        self.blocks[header_id] = block
        self.tip = header_id
        self.height += 1
        return block

    async def consensus_info(self) -> ConsensusInfo:
        self.info_calls += 1
        if self.info_delay > 0:
            await asyncio.sleep(self.info_delay)

        if self.info_error is not None:
            raise self.info_error

        return ConsensusInfo(
            height=self.height,
            tip=self.tip,
            slot=self.height,
            mode=self.mode,
        )

    async def network_info(self) -> NetworkInfo:
        return NetworkInfo(n_peers=self.n_peers)

    async def storage_block(self, header_id: str) -> Block | None:
        return self.blocks.get(header_id)

    async def submit_transaction(self, transaction: SignedTransaction) -> None:
        if self.submit_error is not None:
            raise self.submit_error

        self.submitted.append(transaction)
        if self.include_submitted:
            self.append_block([transaction])

    async def publish_blob(
        self,
        channel_id: str,
        parent_msg: str,
        signer: str,
        data: bytes,
    ) -> str:
        if self.publish_errors:
            raise self.publish_errors.pop(0)

        blob_id = f"{len(self.published):064x}"
        self.published.append((channel_id, parent_msg, data))

        if self.include_submitted:
            self.append_block(
                [
                    SignedTransaction(
                        hash=f"blob-{blob_id}",
                        ops=[build_blob_op(channel_id, blob_id, parent_msg)],
                    )
                ]
            )

        return blob_id

    async def close(self) -> None:
        self.closed = True


@dataclass
class MockNodeControl(NodeControlHandle):
    """Records every control call instead of touching processes."""

    node_ids: list[NodeId] = field(default_factory=list)
    restarted: list[NodeId] = field(default_factory=list)
    stopped: list[NodeId] = field(default_factory=list)
    started: list[NodeId] = field(default_factory=list)
    failing: set[NodeId] = field(default_factory=set)

    def nodes(self) -> list[NodeId]:
        return list(self.node_ids)

    async def restart(self, node: NodeId) -> None:
        if node in self.failing:
            raise RuntimeError(f"restart of {node} failed")

        self.restarted.append(node)

    async def stop(self, node: NodeId) -> None:
        self.stopped.append(node)

    async def start(self, node: NodeId) -> None:
        self.started.append(node)


@dataclass
class MockLifecycle(NodeLifecycle):
    calls: list[tuple[str, str]] = field(default_factory=list)
    restart_delay: float = 0.0
    active: int = 0
    max_active: int = 0

    async def start(self, config: GeneratedNodeConfig) -> NodeHandle:
        self.calls.append(("start", config.label))
        return NodeHandle(
            node=config.node,
            config=config,
            api_url=f"http://127.0.0.1:{config.api_port}",
            details={"generation": len(self.calls)},
        )

    async def stop(self, handle: NodeHandle) -> None:
        self.calls.append(("stop", handle.node.label))

    async def restart(self, handle: NodeHandle) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)

        try:
            await asyncio.sleep(self.restart_delay)
            self.calls.append(("restart", handle.node.label))

        finally:
            self.active -= 1


@dataclass
class MockProcess:
    returncode: int | None = None
    terminated: bool = False
    killed: bool = False

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    async def wait(self) -> int | None:
        return self.returncode


@dataclass
class MockCommandRunner:
    """
    Records commands. ``responses`` maps a command prefix to the result
    returned for it; anything else succeeds with empty output.
    """

    responses: dict[str, CommandResult | Exception] = field(default_factory=dict)
    commands: list[list[str]] = field(default_factory=list)
    spawned: list[list[str]] = field(default_factory=list)
    processes: list[MockProcess] = field(default_factory=list)

    def _response_for(self, command: str) -> CommandResult | Exception | None:
        matches = [prefix for prefix in self.responses if command.startswith(prefix)]
        if not matches:
            return None

        return self.responses[max(matches, key=len)]

    async def run(
        self,
        args: Sequence[str],
        timeout: float | None = None,
        cwd: str | None = None,
        check: bool = True,
    ) -> CommandResult:
        self.commands.append(list(args))

        response = self._response_for(" ".join(args))
        if isinstance(response, Exception):
            raise response

        if response is None:
            response = CommandResult(args=tuple(args), return_code=0)

        if check:
            response.check()

        return response

    async def spawn(self, args: Sequence[str], output: Any = None, cwd: str | None = None) -> MockProcess:
        self.spawned.append(list(args))
        process = MockProcess()
        self.processes.append(process)
        return process

    def ran(self, *prefix: str) -> bool:
        return any(command[: len(prefix)] == list(prefix) for command in self.commands)


def make_context(
    validators: int = 1,
    executors: int = 0,
    wallets: int = 0,
    run_duration: float = 1.0,
    slot_duration: float = 0.1,
    active_slot_coeff: float = 1.0,
    clients: dict[NodeId, Any] | None = None,
    node_control: NodeControlHandle | None = None,
    telemetry: Telemetry | None = None,
) -> RunContext:
    config = TopologyConfig.with_node_numbers(validators, executors)
    wallet_config = WalletConfig.with_users(wallets)
    topology: GeneratedTopology = generate_topology(config, wallet_config)

    if clients is None:
        clients = {node: MockApiClient(label=node.label) for node in topology.node_ids}

    return RunContext(
        topology=topology,
        node_clients=NodeClients(clients),
        run_metrics=RunMetrics(
            run_duration=run_duration,
            slot_duration=slot_duration,
            active_slot_coeff=active_slot_coeff,
        ),
        block_feed=BlockFeed(),
        wallets=WalletRegistry(wallet_config),
        telemetry=telemetry or Telemetry(),
        node_control=node_control,
    )
