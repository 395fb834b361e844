from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests
from hexbytes import HexBytes
from web3.exceptions import BlockNotFound, TransactionNotFound

from fakes import ALICE, AXS, BOB
from tokenflow.chain import Web3ChainClient, block_from_rpc, log_from_rpc, receipt_from_rpc
from tokenflow.errors import ChainRpcError
from tokenflow.events import TRANSFER_TOPIC
from tokenflow.utils.helpers import topic_address

TX = HexBytes("0x" + "ab" * 32)


def _raw_log():
    return {
        "address": AXS.upper().replace("0X", "0x"),
        "topics": [HexBytes(TRANSFER_TOPIC), HexBytes(topic_address(ALICE)), HexBytes(topic_address(BOB))],
        "data": HexBytes((5).to_bytes(32, "big")),
        "logIndex": 3,
    }


def test_log_normalisation():
    log = log_from_rpc(_raw_log())
    assert log.address == AXS
    assert log.topics == (TRANSFER_TOPIC, topic_address(ALICE), topic_address(BOB))
    assert log.data == (5).to_bytes(32, "big")
    assert log.log_index == 3


def test_log_data_as_hex_string():
    raw = dict(_raw_log(), data="0x" + "00" * 31 + "07")
    assert log_from_rpc(raw).data[-1] == 7
    assert log_from_rpc(dict(_raw_log(), data="0x")).data == b""


def test_block_normalisation_handles_contract_creation():
    raw = {
        "number": 17_000_001,
        "timestamp": 1_680_000_000,
        "transactions": [
            {"hash": TX, "to": AXS.upper().replace("0X", "0x")},
            {"hash": TX, "to": None},
        ],
    }
    block = block_from_rpc(raw)
    assert block.number == 17_000_001
    assert block.timestamp == 1_680_000_000
    assert [t.to for t in block.transactions] == [AXS, None]
    assert block.transactions[0].hash == "0x" + "ab" * 32


def test_receipt_normalisation():
    r = receipt_from_rpc({"transactionHash": TX, "status": 1, "logs": [_raw_log()]})
    assert r.transaction_hash == "0x" + "ab" * 32
    assert r.status == 1
    assert len(r.logs) == 1


class _StubEth:
    def __init__(self, *, block=None, receipt=None, error=None, head=123):
        self._block = block
        self._receipt = receipt
        self._error = error
        self._head = head

    @property
    def block_number(self):
        if self._error is not None:
            raise self._error
        return self._head

    def get_block(self, number, full_transactions=False):
        assert full_transactions is True
        if self._error is not None:
            raise self._error
        return self._block

    def get_transaction_receipt(self, tx_hash):
        if self._error is not None:
            raise self._error
        return self._receipt


def _client(**kw) -> Web3ChainClient:
    return Web3ChainClient("", w3=SimpleNamespace(eth=_StubEth(**kw)))


def test_client_reads_head_and_block():
    c = _client(head=42, block={"number": 41, "timestamp": 1, "transactions": []})
    assert c.get_chain_head() == 42
    assert c.get_block_with_transactions(41).number == 41


def test_not_found_maps_to_none():
    assert _client(error=BlockNotFound("nope")).get_block_with_transactions(1) is None
    assert _client(error=TransactionNotFound("nope")).get_transaction_receipt("0x01") is None
    assert _client(block=None).get_block_with_transactions(1) is None


@pytest.mark.parametrize(
    "error",
    [requests.ConnectionError("reset"), ValueError({"code": -32000, "message": "busy"}), OSError("socket")],
)
def test_transport_errors_become_chain_rpc_error(error):
    c = _client(error=error)
    with pytest.raises(ChainRpcError):
        c.get_chain_head()
    with pytest.raises(ChainRpcError):
        c.get_block_with_transactions(1)
    with pytest.raises(ChainRpcError):
        c.get_transaction_receipt("0x01")


def test_endpoint_required_without_w3():
    with pytest.raises(ValueError):
        Web3ChainClient("")
