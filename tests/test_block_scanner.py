# ------------------------------------------------------------------------
# tests/test_block_scanner.py
# ------------------------------------------------------------------------
# BlockScanner against an in-memory chain:
#   ① tracked destination → receipt → decoded transfers (two routing paths)
#   ② untracked destinations / contract creations never fetch receipts
#   ③ one malformed log among five does not abort the block
#   ④ missing block / receipt, RPC failure and timeout surface as ScanErrors
# ------------------------------------------------------------------------
from __future__ import annotations

import asyncio

import pytest

from fakes import (
    ALICE,
    AXS,
    BOB,
    MARKETPLACE,
    SLP,
    TREASURY,
    TREASURY_TOPIC,
    UNTRACKED,
    AsyncFakeChain,
    FakeChain,
    make_registry,
    transfer_log,
)
from tokenflow.errors import BlockUnavailable, FetchTimeout, ReceiptUnavailable, RpcFailure, ScanError
from tokenflow.models import RawLogEntry, TransferKind
from tokenflow.scanner import BlockScanner


# ====================================================================== #
# ① happy path
# ====================================================================== #
@pytest.mark.asyncio
async def test_decodes_transfers_from_tracked_transaction(chain, scanner):
    chain.add_tx(
        100,
        AXS,
        [
            transfer_log(AXS, ALICE, BOB, 10, log_index=0),
            transfer_log(AXS, ALICE, TREASURY, 3, log_index=1),
        ],
    )

    res = await scanner.scan(100)

    assert res.block_number == 100
    assert res.timestamp == 1_600_000_100
    assert [t.value for t in res.transfers] == ["10", "3"]
    assert [t.value for t in res.ordinary] == ["10"]
    assert [t.value for t in res.treasury] == ["3"]
    assert res.treasury[0].kind is TransferKind.TREASURY
    assert res.failures == []
    assert all(t.contract == "AXS" for t in res.transfers)
    assert scanner.blocks_scanned == 1
    assert scanner.transfers_decoded == 2


@pytest.mark.asyncio
async def test_marketplace_transaction_yields_token_logs(chain, scanner):
    chain.add_tx(
        101,
        MARKETPLACE,
        [
            transfer_log(SLP, ALICE, BOB, 500, log_index=0),
            transfer_log(UNTRACKED, ALICE, BOB, 1, log_index=1),
            RawLogEntry(address=MARKETPLACE, topics=("0x" + "00" * 32,), data=b"", log_index=2),
        ],
    )

    res = await scanner.scan(101)

    assert [(t.contract, t.value) for t in res.transfers] == [("SLP", "500")]


@pytest.mark.asyncio
async def test_async_chain_client_is_supported(registry):
    chain = AsyncFakeChain(head=10)
    chain.add_tx(5, AXS, [transfer_log(AXS, ALICE, BOB, 1)])
    scanner = BlockScanner(chain, registry, treasury_topic=TREASURY_TOPIC, fetch_timeout=1.0)

    res = await scanner.scan(5)

    assert len(res.transfers) == 1


# ====================================================================== #
# ② receipt fetches are bounded to tracked destinations
# ====================================================================== #
@pytest.mark.asyncio
async def test_untracked_destinations_skip_receipt_fetch(chain, scanner):
    chain.add_tx(200, UNTRACKED, [transfer_log(AXS, ALICE, BOB, 1)])
    chain.add_tx(200, None, [transfer_log(AXS, ALICE, BOB, 1)])  # contract creation
    tracked = chain.add_tx(200, SLP, [])

    res = await scanner.scan(200)

    assert res.transfers == []
    assert chain.receipt_calls == [tracked]
    assert scanner.receipts_fetched == 1


# ====================================================================== #
# ③ decode failure isolation
# ====================================================================== #
@pytest.mark.asyncio
async def test_one_malformed_log_among_five(chain, scanner):
    logs = [transfer_log(AXS, ALICE, BOB, i + 1, log_index=i) for i in range(5)]
    bad = logs[2]
    logs[2] = RawLogEntry(address=bad.address, topics=bad.topics, data=b"\x01" * 7, log_index=2)
    h = chain.add_tx(300, AXS, logs)

    seen = []
    scanner.on_decode_failure = seen.append
    res = await scanner.scan(300)

    assert [t.value for t in res.transfers] == ["1", "2", "4", "5"]
    assert len(res.failures) == 1
    assert res.failures[0].log_index == 2
    assert res.failures[0].transaction_hash == h
    assert scanner.decode_failures == 1
    assert seen == res.failures


# ====================================================================== #
# ④ block-level failures
# ====================================================================== #
@pytest.mark.asyncio
async def test_missing_block_is_an_error(chain, scanner):
    chain.missing_blocks.add(400)
    with pytest.raises(BlockUnavailable) as exc:
        await scanner.scan(400)
    assert exc.value.block_number == 400


@pytest.mark.asyncio
async def test_missing_receipt_is_an_error(chain, scanner):
    h = chain.add_tx(401, AXS, [transfer_log(AXS, ALICE, BOB, 1)])
    chain.missing_receipts.add(h)
    with pytest.raises(ReceiptUnavailable) as exc:
        await scanner.scan(401)
    assert exc.value.tx_hash == h
    assert isinstance(exc.value, ScanError)


@pytest.mark.asyncio
async def test_rpc_failure_is_wrapped(chain, scanner):
    chain.fail_blocks[402] = 1
    with pytest.raises(RpcFailure):
        await scanner.scan(402)
    # transient: next attempt succeeds
    res = await scanner.scan(402)
    assert res.block_number == 402


class SlowChain(FakeChain):
    async def get_block_with_transactions(self, number):  # type: ignore[override]
        await asyncio.sleep(1.0)
        return FakeChain.get_block_with_transactions(self, number)


@pytest.mark.asyncio
async def test_fetch_timeout(registry):
    scanner = BlockScanner(SlowChain(head=10), registry, treasury_topic=TREASURY_TOPIC, fetch_timeout=0.05)
    with pytest.raises(FetchTimeout) as exc:
        await scanner.scan(3)
    assert exc.value.block_number == 3


@pytest.mark.asyncio
async def test_unregistered_emitter_never_decoded():
    registry = make_registry()
    chain = FakeChain(head=10)
    chain.add_tx(1, AXS, [transfer_log(UNTRACKED, ALICE, BOB, 1)])
    scanner = BlockScanner(chain, registry, treasury_topic=TREASURY_TOPIC)
    assert (await scanner.scan(1)).transfers == []


@pytest.mark.asyncio
async def test_treasury_given_as_plain_address(chain, registry):
    chain.add_tx(4, AXS, [transfer_log(AXS, ALICE, TREASURY, 3)])
    scanner = BlockScanner(chain, registry, treasury_topic=TREASURY.upper().replace("0X", "0x"))
    result = await scanner.scan(4)
    assert [t.kind for t in result.transfers] == [TransferKind.TREASURY]


@pytest.mark.parametrize("topic", ["", "0x1234"])
def test_treasury_topic_is_required(chain, registry, topic):
    with pytest.raises(ValueError):
        BlockScanner(chain, registry, treasury_topic=topic)
