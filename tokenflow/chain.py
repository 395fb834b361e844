# tokenflow/chain.py
"""
Chain RPC collaborator.

`ChainClient` is the contract the scanner consumes. `Web3ChainClient` is the
web3.py implementation used in production: it is blocking, so the scanner
calls it through `maybe_async` (thread pool). web3's HTTPProvider keeps a
pooled `requests` session per endpoint, so concurrent calls from the scanner's
tasks are safe.
"""

from __future__ import annotations

from typing import Awaitable, Optional, Protocol, Union

import bittensor as bt
import requests
from web3 import Web3
from web3.exceptions import BlockNotFound, TransactionNotFound, Web3Exception

from tokenflow.errors import ChainRpcError
from tokenflow.models import Block, RawLogEntry, Receipt, Transaction
from tokenflow.utils.helpers import to_hex

# web3 v6 surfaces JSON-RPC errors as ValueError, v7 as Web3RPCError.
_TRANSPORT_ERRORS = (Web3Exception, requests.RequestException, ValueError, OSError)


class ChainClient(Protocol):
    def get_chain_head(self) -> Union[int, Awaitable[int]]: ...

    def get_block_with_transactions(
        self, number: int
    ) -> Union[Optional[Block], Awaitable[Optional[Block]]]: ...

    def get_transaction_receipt(
        self, tx_hash: str
    ) -> Union[Optional[Receipt], Awaitable[Optional[Receipt]]]: ...


def _data_bytes(data) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    s = str(data or "")
    return bytes.fromhex(s[2:] if s.startswith("0x") else s)


def log_from_rpc(raw) -> RawLogEntry:
    return RawLogEntry(
        address=str(raw["address"]).lower(),
        topics=tuple(to_hex(t) for t in (raw.get("topics") or ())),
        data=_data_bytes(raw.get("data")),
        log_index=raw.get("logIndex"),
    )


def block_from_rpc(raw) -> Block:
    txs = []
    for tx in raw.get("transactions") or ():
        to = tx.get("to")
        txs.append(Transaction(hash=to_hex(tx["hash"]), to=str(to).lower() if to else None))
    return Block(number=int(raw["number"]), timestamp=int(raw["timestamp"]), transactions=tuple(txs))


def receipt_from_rpc(raw) -> Receipt:
    return Receipt(
        transaction_hash=to_hex(raw["transactionHash"]),
        status=int(raw.get("status", 1)),
        logs=tuple(log_from_rpc(lg) for lg in (raw.get("logs") or ())),
    )


class Web3ChainClient:
    """Blocking JSON-RPC client over web3.py's HTTPProvider."""

    def __init__(self, endpoint: str, *, timeout: float = 20.0, w3: Optional[Web3] = None):
        if w3 is None:
            if not endpoint:
                raise ValueError("PROVIDER_URL / --chain.endpoint is required")
            w3 = Web3(Web3.HTTPProvider(endpoint, request_kwargs={"timeout": timeout}))
        self.w3 = w3
        self.endpoint = endpoint

    def get_chain_head(self) -> int:
        try:
            return int(self.w3.eth.block_number)
        except _TRANSPORT_ERRORS as e:
            raise ChainRpcError(f"eth_blockNumber failed: {e}") from e

    def get_block_with_transactions(self, number: int) -> Optional[Block]:
        try:
            raw = self.w3.eth.get_block(number, full_transactions=True)
        except BlockNotFound:
            bt.logging.debug(f"[CHAIN] block {number} not found")
            return None
        except _TRANSPORT_ERRORS as e:
            raise ChainRpcError(f"eth_getBlockByNumber({number}) failed: {e}") from e
        if raw is None:
            return None
        return block_from_rpc(raw)

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        try:
            raw = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            bt.logging.debug(f"[CHAIN] receipt for {tx_hash} not found")
            return None
        except _TRANSPORT_ERRORS as e:
            raise ChainRpcError(f"eth_getTransactionReceipt({tx_hash}) failed: {e}") from e
        if raw is None:
            return None
        return receipt_from_rpc(raw)
