"""
Transaction builders used by the workloads.

Hashes and signatures are deterministic digests over the msgspec JSON
encoding of the transaction body, so a transaction observed in a block
can be matched back to the one that was submitted.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

import msgspec

from chainscale.nodes.models import (
    ChannelBlob,
    ChannelInscribe,
    LedgerOutput,
    Op,
    SignedTransaction,
)
from chainscale.topology.wallet import WalletAccount

ROOT_MSG_ID = "00" * 32
TEST_SIGNING_KEY = bytes(32)
TEST_SIGNER = hashlib.sha256(b"pk" + TEST_SIGNING_KEY).hexdigest()

_CHANNEL_PREFIX = b"chn_wrkd"


def _digest(*parts: bytes) -> str:
    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(part)

    return hasher.hexdigest()


def transaction_hash(
    ops: Sequence[Op],
    inputs: Sequence[str],
    outputs: Sequence[LedgerOutput],
    nonce: int,
) -> str:
    return _digest(
        msgspec.json.encode(
            {
                "ops": list(ops),
                "inputs": list(inputs),
                "outputs": list(outputs),
                "nonce": nonce,
            }
        )
    )


def sign(secret_key: bytes, tx_hash: str) -> str:
    return _digest(secret_key, bytes.fromhex(tx_hash))


def deterministic_channel_id(index: int) -> str:
    return (_CHANNEL_PREFIX + bytes(16) + index.to_bytes(8, "big")).hex()


def channel_msg_id(channel_id: str, parent: str, payload: str) -> str:
    return _digest(
        bytes.fromhex(channel_id),
        bytes.fromhex(parent),
        payload.encode(),
    )


def build_transfer(account: WalletAccount, nonce: int) -> SignedTransaction:
    """
    Self-transfer of the account's full genesis note. Inputs and outputs
    reference the account public key so inclusion can be tracked by owner.
    """
    inputs = [account.public_key]
    outputs = [LedgerOutput(public_key=account.public_key, value=account.value)]
    tx_hash = transaction_hash([], inputs, outputs, nonce)

    return SignedTransaction(
        hash=tx_hash,
        inputs=inputs,
        outputs=outputs,
        nonce=nonce,
        signature=sign(bytes.fromhex(account.secret_key), tx_hash),
    )


def build_inscription(channel_id: str, parent: str = ROOT_MSG_ID) -> SignedTransaction:
    inscription = f"Test channel inscription {channel_id}".encode().hex()
    op = ChannelInscribe(
        id=channel_msg_id(channel_id, parent, inscription),
        channel_id=channel_id,
        inscription=inscription,
        parent=parent,
        signer=TEST_SIGNER,
    )

    tx_hash = transaction_hash([op], [], [], 0)
    return SignedTransaction(
        hash=tx_hash,
        ops=[op],
        signature=sign(TEST_SIGNING_KEY, tx_hash),
    )


def build_blob_op(channel_id: str, blob_id: str, parent: str) -> ChannelBlob:
    return ChannelBlob(
        id=channel_msg_id(channel_id, parent, blob_id),
        channel=channel_id,
        blob=blob_id,
        parent=parent,
        signer=TEST_SIGNER,
    )
