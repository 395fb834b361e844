# tokenflow/scanner/decoder.py
"""Decode one matched Transfer log into a DecodedTransfer."""

from __future__ import annotations

from typing import Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from tokenflow.errors import MalformedLog
from tokenflow.events import TRANSFER_EVENT, EventSchema
from tokenflow.models import DecodedTransfer, RawLogEntry, TransferKind

_WORD = 32


def _topic_bytes(topic: str, idx: int, log_index: Optional[int]) -> bytes:
    raw = topic[2:] if topic[:2].lower() == "0x" else topic
    try:
        word = bytes.fromhex(raw)
    except ValueError:
        raise MalformedLog(f"topic[{idx}] is not hex", log_index=log_index) from None
    if len(word) != _WORD:
        raise MalformedLog(f"topic[{idx}] is {len(word)} bytes, expected {_WORD}", log_index=log_index)
    return word


def decode_transfer(
    log: RawLogEntry,
    schema: EventSchema = TRANSFER_EVENT,
    *,
    contract: str,
    block_number: int,
    timestamp: int,
    kind: TransferKind = TransferKind.ORDINARY,
    transaction_hash: Optional[str] = None,
) -> DecodedTransfer:
    """
    Decode *log* per *schema* (two indexed addresses, one uint256 amount).

    Raises:
        MalformedLog: wrong topic count, non-word topics, data length mismatch,
            or a payload eth_abi refuses (e.g. dirty address padding).
    """
    idx = log.log_index
    if len(log.topics) < schema.topic_count:
        raise MalformedLog(
            f"{len(log.topics)} topics, expected {schema.topic_count}", log_index=idx
        )
    if len(log.data) != schema.data_length:
        raise MalformedLog(
            f"data is {len(log.data)} bytes, expected {schema.data_length}", log_index=idx
        )

    indexed = schema.indexed_inputs
    try:
        values = {}
        for i, param in enumerate(indexed, start=1):
            (values[param.name],) = abi_decode([param.type], _topic_bytes(log.topics[i], i, idx))
        data_vals = abi_decode([p.type for p in schema.data_inputs], bytes(log.data))
        values.update(zip((p.name for p in schema.data_inputs), data_vals))
    except DecodingError as e:
        raise MalformedLog(f"abi decode failed: {e}", log_index=idx) from e

    src, dst = (str(values[p.name]).lower() for p in indexed[:2])
    amount = values[schema.data_inputs[0].name]

    return DecodedTransfer(
        contract=contract,
        contract_address=log.address.lower(),
        from_address=src,
        to_address=dst,
        value=str(int(amount)),
        block_number=block_number,
        timestamp=timestamp,
        kind=kind,
        transaction_hash=transaction_hash,
        log_index=idx,
    )
