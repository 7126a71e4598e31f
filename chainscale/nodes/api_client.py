"""
Async HTTP client for a single node's API.

One ApiClient wraps one node: its base API and, when exposed, the
separate testing API (DA membership and other test-only endpoints).
"""

import functools
from typing import Any, TypeVar

import httpx
import msgspec

from chainscale.reliability import RetryConfig, RetryExecutor
from chainscale.topology.constants import DEFAULT_NODE_HTTP_TIMEOUT

from .errors import ApiClientError, is_retryable
from .models import (
    Block,
    ConsensusInfo,
    DisperseRequest,
    DisperseResponse,
    MembershipResponse,
    NetworkInfo,
    SignedTransaction,
)

T = TypeVar("T")

CRYPTARCHIA_INFO = "/cryptarchia/info"
CRYPTARCHIA_HEADERS = "/cryptarchia/headers"
NETWORK_INFO = "/network/info"
STORAGE_BLOCK = "/storage/block"
MEMPOOL_ADD_TX = "/mempool/add/tx"
DA_GET_MEMBERSHIP = "/da/membership"
DA_DISPERSE_DATA = "/da/disperse-data"

# Reads are idempotent, so transient failures against a restarting node
# are retried. Writes are never retried here.
READ_RETRY = RetryConfig(
    max_attempts=3,
    base_delay=0.25,
    max_delay=2.0,
    is_retryable=is_retryable,
)


class ApiClient:
    def __init__(
        self,
        base_url: str,
        testing_url: str | None = None,
        label: str | None = None,
        timeout: float = DEFAULT_NODE_HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._testing_url = testing_url.rstrip("/") if testing_url else None
        self._label = label or self._base_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._reads = RetryExecutor(retry) if retry is not None else None

    def __repr__(self) -> str:
        return f"ApiClient({self._label}, {self._base_url})"

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def testing_url(self) -> str | None:
        return self._testing_url

    @property
    def label(self) -> str:
        return self._label

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True

        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

        self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        path: str,
        body: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = self._get_client()

        content = msgspec.json.encode(body) if body is not None else None
        headers = {"Content-Type": "application/json"} if content is not None else None

        try:
            response = await client.request(
                method,
                f"{url}{path}",
                content=content,
                headers=headers,
                params=params,
            )

        except httpx.TimeoutException as err:
            raise ApiClientError(
                self._label,
                path,
                f"request timed out: {err}",
                retryable=True,
            ) from err

        except httpx.TransportError as err:
            raise ApiClientError(
                self._label,
                path,
                f"transport error: {err}",
                retryable=True,
            ) from err

        if response.status_code >= 400:
            raise ApiClientError(
                self._label,
                path,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                retryable=response.status_code >= 500,
            )

        return response

    async def _read(
        self,
        url: str,
        path: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        request = functools.partial(self._request, "GET", url, path, params=params)
        if self._reads is None:
            return await request()

        return await self._reads.execute(request, operation_name=f"{self._label} {path}")

    def _decode(self, response: httpx.Response, path: str, model: type[T]) -> T:
        try:
            return msgspec.json.decode(response.content, type=model)

        except msgspec.ValidationError as err:
            raise ApiClientError(
                self._label,
                path,
                f"unexpected payload: {err}",
                status_code=response.status_code,
            ) from err

        except msgspec.DecodeError as err:
            raise ApiClientError(
                self._label,
                path,
                f"invalid JSON: {err}",
                status_code=response.status_code,
            ) from err

    async def get_json(self, path: str, model: type[T]) -> T:
        response = await self._read(self._base_url, path)
        return self._decode(response, path, model)

    async def post_json(self, path: str, body: Any, model: type[T]) -> T:
        response = await self._request("POST", self._base_url, path, body=body)
        return self._decode(response, path, model)

    async def post_json_unit(self, path: str, body: Any) -> None:
        await self._request("POST", self._base_url, path, body=body)

    async def get_testing_json(self, path: str, model: type[T]) -> T:
        if self._testing_url is None:
            raise ApiClientError(
                self._label,
                path,
                "node does not expose a testing endpoint",
            )

        response = await self._read(self._testing_url, path)
        return self._decode(response, path, model)

    async def consensus_info(self) -> ConsensusInfo:
        return await self.get_json(CRYPTARCHIA_INFO, ConsensusInfo)

    async def network_info(self) -> NetworkInfo:
        return await self.get_json(NETWORK_INFO, NetworkInfo)

    async def consensus_headers(
        self,
        from_header: str | None = None,
        to_header: str | None = None,
    ) -> list[str]:
        params: dict[str, str] = {}
        if from_header:
            params["from"] = from_header

        if to_header:
            params["to"] = to_header

        response = await self._read(
            self._base_url,
            CRYPTARCHIA_HEADERS,
            params=params or None,
        )

        return self._decode(response, CRYPTARCHIA_HEADERS, list[str])

    async def storage_block(self, header_id: str) -> Block | None:
        return await self.post_json(STORAGE_BLOCK, header_id, Block | None)

    async def submit_transaction(self, transaction: SignedTransaction) -> None:
        await self.post_json_unit(MEMPOOL_ADD_TX, transaction)

    async def da_membership(self) -> MembershipResponse:
        return await self.get_testing_json(DA_GET_MEMBERSHIP, MembershipResponse)

    async def publish_blob(
        self,
        channel_id: str,
        parent_msg: str,
        signer: str,
        data: bytes,
    ) -> str:
        response = await self.post_json(
            DA_DISPERSE_DATA,
            DisperseRequest(
                channel_id=channel_id,
                parent_msg=parent_msg,
                signer=signer,
                data=data.hex(),
            ),
            DisperseResponse,
        )

        return response.blob_id

    async def is_ready(self, expected_peers: int = 0) -> bool:
        info = await self.consensus_info()
        if not info.is_online:
            return False

        if expected_peers > 0:
            network = await self.network_info()
            return network.n_peers >= expected_peers

        return True
