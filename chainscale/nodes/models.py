"""
Wire models for the node HTTP API.

All payloads are JSON; decoding goes through msgspec so a node returning
an unexpected shape fails loudly at the client boundary rather than deep
inside a workload.
"""

import msgspec


class ConsensusInfo(msgspec.Struct, kw_only=True):
    height: int
    tip: str
    slot: int
    lib: str | None = None
    mode: str = "Online"

    @property
    def is_online(self) -> bool:
        return self.mode == "Online"


class NetworkInfo(msgspec.Struct, kw_only=True):
    n_peers: int
    n_connections: int = 0
    n_pending_connections: int = 0
    listen_addresses: list[str] = []


class ChannelInscribe(msgspec.Struct, kw_only=True, tag_field="type", tag="inscribe"):
    id: str
    channel_id: str
    inscription: str
    parent: str
    signer: str


class ChannelBlob(msgspec.Struct, kw_only=True, tag_field="type", tag="blob"):
    id: str
    channel: str
    blob: str
    parent: str
    signer: str


Op = ChannelInscribe | ChannelBlob


class LedgerOutput(msgspec.Struct, kw_only=True):
    public_key: str
    value: int


class SignedTransaction(msgspec.Struct, kw_only=True):
    hash: str
    ops: list[Op] = []
    inputs: list[str] = []
    outputs: list[LedgerOutput] = []
    nonce: int = 0
    signature: str = ""


class BlockHeader(msgspec.Struct, kw_only=True):
    id: str
    parent: str
    slot: int


class Block(msgspec.Struct, kw_only=True):
    header: BlockHeader
    transactions: list[SignedTransaction] = []


class MembershipResponse(msgspec.Struct, kw_only=True):
    assignations: dict[str, list[str]] = {}
    addressbook: dict[str, str] = {}

    @property
    def is_empty(self) -> bool:
        return len(self.assignations) == 0


class DisperseRequest(msgspec.Struct, kw_only=True):
    channel_id: str
    parent_msg: str
    signer: str
    data: str


class DisperseResponse(msgspec.Struct, kw_only=True):
    blob_id: str
