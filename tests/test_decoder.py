from __future__ import annotations

import pytest

from fakes import ALICE, AXS, BOB, transfer_log
from tokenflow.errors import DecodeError, MalformedLog
from tokenflow.events import TRANSFER_EVENT, TRANSFER_TOPIC
from tokenflow.models import RawLogEntry, TransferKind
from tokenflow.scanner.decoder import decode_transfer


def _decode(log, **kw):
    kw.setdefault("contract", "AXS")
    kw.setdefault("block_number", 17_000_001)
    kw.setdefault("timestamp", 1_680_000_000)
    return decode_transfer(log, TRANSFER_EVENT, **kw)


def test_transfer_topic_is_the_erc20_signature_hash():
    assert TRANSFER_EVENT.signature == "Transfer(address,address,uint256)"
    assert TRANSFER_TOPIC == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
    assert TRANSFER_EVENT.topic_count == 3
    assert TRANSFER_EVENT.data_length == 32


def test_decodes_addresses_and_amount():
    rec = _decode(transfer_log(AXS, ALICE, BOB, 1234, log_index=7), kind=TransferKind.TREASURY, transaction_hash="0xabc")
    assert rec.contract == "AXS"
    assert rec.contract_address == AXS
    assert rec.from_address == ALICE
    assert rec.to_address == BOB
    assert rec.value == "1234"
    assert rec.block_number == 17_000_001
    assert rec.timestamp == 1_680_000_000
    assert rec.kind is TransferKind.TREASURY
    assert rec.transaction_hash == "0xabc"
    assert rec.log_index == 7


def test_full_uint256_range_is_kept_as_decimal_string():
    rec = _decode(transfer_log(AXS, ALICE, BOB, 2**256 - 1))
    assert rec.value == str(2**256 - 1)


def test_too_few_topics_is_malformed():
    good = transfer_log(AXS, ALICE, BOB, 1)
    log = RawLogEntry(address=AXS, topics=good.topics[:2], data=good.data, log_index=3)
    with pytest.raises(MalformedLog) as exc:
        _decode(log)
    assert exc.value.log_index == 3
    assert isinstance(exc.value, DecodeError)


@pytest.mark.parametrize("data", [b"", b"\x01" * 31, b"\x00" * 64])
def test_wrong_data_width_is_malformed(data):
    good = transfer_log(AXS, ALICE, BOB, 1)
    with pytest.raises(MalformedLog):
        _decode(RawLogEntry(address=AXS, topics=good.topics, data=data))


def test_non_word_topic_is_malformed():
    good = transfer_log(AXS, ALICE, BOB, 1)
    log = RawLogEntry(address=AXS, topics=(good.topics[0], "0x1234", good.topics[2]), data=good.data)
    with pytest.raises(MalformedLog):
        _decode(log)


def test_non_hex_topic_is_malformed():
    good = transfer_log(AXS, ALICE, BOB, 1)
    log = RawLogEntry(address=AXS, topics=(good.topics[0], "0x" + "zz" * 32, good.topics[2]), data=good.data)
    with pytest.raises(MalformedLog):
        _decode(log)


def test_to_dict_is_json_friendly():
    d = _decode(transfer_log(AXS, ALICE, BOB, 5)).to_dict()
    assert d["kind"] == "ordinary"
    assert d["value"] == "5"
