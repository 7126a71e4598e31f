"""
HTTP readiness polling.

Each node gets its own polling task. A node is ready once its API
answers, reports consensus online and (when an expected peer count is
given) sees at least that many peers. Every node that misses the overall
deadline is reported together with the last thing observed about it.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Sequence

from chainscale.logging import Logger
from chainscale.nodes.api_client import ApiClient
from chainscale.topology.constants import (
    DEFAULT_HTTP_POLL_INTERVAL,
    DEFAULT_NODE_HTTP_PROBE_TIMEOUT,
)
from chainscale.topology.node import NodeId

from .errors import NodeFailure, ReadinessError
from .logging_models import ReadinessDebug, ReadinessWarning

DEFAULT_READINESS_TIMEOUT = 60.0


@dataclass(frozen=True, slots=True)
class ReadinessTarget:
    node: NodeId
    client: ApiClient
    expected_peers: int = 0


@dataclass(slots=True)
class NodeReadiness:
    node: NodeId
    ready: bool = False
    attempts: int = 0
    last_state: str = "no response"


async def _probe_once(target: ReadinessTarget, status: NodeReadiness) -> bool:
    info = await target.client.consensus_info()
    if not info.is_online:
        status.last_state = f"consensus mode {info.mode} at height {info.height}"
        return False

    if target.expected_peers > 0:
        network = await target.client.network_info()
        if network.n_peers < target.expected_peers:
            status.last_state = (
                f"peers {network.n_peers}/{target.expected_peers} at height {info.height}"
            )
            return False

    status.last_state = f"ready at height {info.height}"
    return True


async def _poll_node(
    target: ReadinessTarget,
    status: NodeReadiness,
    deadline: float,
    poll_interval: float,
    probe_timeout: float,
    logger: Logger,
) -> None:
    while True:
        status.attempts += 1
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return

        try:
            status.ready = await asyncio.wait_for(
                _probe_once(target, status),
                timeout=min(probe_timeout, remaining),
            )

        except asyncio.TimeoutError:
            status.last_state = f"probe timed out after {probe_timeout:.1f}s"

        except Exception as err:
            status.last_state = str(err)

        if status.ready:
            await logger.log(
                ReadinessDebug(
                    message=f"Node {target.node} ready after {status.attempts} attempt(s)",
                    node=target.node.label,
                    attempt=status.attempts,
                )
            )
            return

        if deadline - time.monotonic() <= poll_interval:
            return

        await asyncio.sleep(poll_interval)


async def wait_for_http_ready(
    targets: Sequence[ReadinessTarget],
    timeout: float = DEFAULT_READINESS_TIMEOUT,
    poll_interval: float = DEFAULT_HTTP_POLL_INTERVAL,
    probe_timeout: float = DEFAULT_NODE_HTTP_PROBE_TIMEOUT,
) -> list[NodeReadiness]:
    logger = Logger()
    deadline = time.monotonic() + timeout
    statuses = [NodeReadiness(node=target.node) for target in targets]

    await asyncio.gather(
        *[
            _poll_node(
                target,
                status,
                deadline,
                poll_interval,
                probe_timeout,
                logger,
            )
            for target, status in zip(targets, statuses)
        ]
    )

    failures = [status for status in statuses if not status.ready]
    if failures:
        for status in failures:
            await logger.log(
                ReadinessWarning(
                    message=f"Node {status.node} not ready: {status.last_state}",
                    node=status.node.label,
                    attempt=status.attempts,
                )
            )

        raise ReadinessError(
            [
                NodeFailure(node=status.node.label, cause=status.last_state)
                for status in failures
            ],
            timeout,
        )

    return statuses
