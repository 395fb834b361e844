from __future__ import annotations

import pytest

from fakes import ALICE, AXS, BOB, SLP, TREASURY, make_registry
from tokenflow.metrics import (
    TRANSFER_SERIES,
    TREASURY_SERIES,
    route_points,
    scaled_amount,
    transfer_points,
    treasury_points,
)
from tokenflow.models import DecodedTransfer, TransferKind
from tokenflow.sinks import InfluxSink


def _t(contract: str, address: str, value: int, block: int, kind=TransferKind.ORDINARY, dst=BOB) -> DecodedTransfer:
    return DecodedTransfer(
        contract=contract,
        contract_address=address,
        from_address=ALICE,
        to_address=dst,
        value=str(value),
        block_number=block,
        timestamp=1_600_000_000 + block,
        kind=kind,
    )


def test_scaled_amount_uses_token_decimals():
    assert scaled_amount(1_500_000_000_000_000_000, 18) == pytest.approx(1.5)
    assert scaled_amount("42", 0) == 42.0


def test_treasury_points_one_per_deposit():
    reg = make_registry()
    deps = [
        _t("AXS", AXS, 2 * 10**18, 5, TransferKind.TREASURY, TREASURY),
        _t("AXS", AXS, 10**18, 5, TransferKind.TREASURY, TREASURY),
    ]
    pts = treasury_points(deps, reg)

    assert len(pts) == 2
    assert all(p.measurement == TREASURY_SERIES for p in pts)
    assert pts[0].tags == {"contract": "AXS", "direction": "deposit", "log_index": "0"}
    assert pts[1].tags["log_index"] == "1"
    assert pts[0].fields["value"] == str(2 * 10**18)
    assert pts[0].fields["amount"] == pytest.approx(2.0)
    assert pts[0].fields["from"] == ALICE
    assert pts[0].timestamp == 1_600_000_005


def test_transfer_points_aggregate_per_contract_and_block():
    reg = make_registry()
    pts = transfer_points(
        [
            _t("SLP", SLP, 3, 7),
            _t("SLP", SLP, 4, 7),
            _t("AXS", AXS, 10**18, 7),
            _t("SLP", SLP, 1, 6),
        ],
        reg,
    )

    assert [(p.fields["block_number"], p.tags["contract"]) for p in pts] == [(6, "SLP"), (7, "AXS"), (7, "SLP")]
    slp7 = pts[2]
    assert slp7.fields["value"] == "7"
    assert slp7.fields["count"] == 2
    assert slp7.fields["amount"] == 7.0


def test_builders_reject_wrong_kind():
    reg = make_registry()
    with pytest.raises(ValueError):
        treasury_points([_t("AXS", AXS, 1, 1)], reg)
    with pytest.raises(ValueError):
        transfer_points([_t("AXS", AXS, 1, 1, TransferKind.TREASURY)], reg)


def test_route_points_splits_and_omits_empty_series():
    reg = make_registry()
    assert route_points([], reg) == {}

    only_ordinary = route_points([_t("AXS", AXS, 1, 1)], reg)
    assert list(only_ordinary) == [TRANSFER_SERIES]

    mixed = route_points([_t("AXS", AXS, 1, 1), _t("AXS", AXS, 9, 1, TransferKind.TREASURY, TREASURY)], reg)
    assert set(mixed) == {TREASURY_SERIES, TRANSFER_SERIES}
    assert [p.fields["value"] for p in mixed[TREASURY_SERIES]] == ["9"]
    assert [p.fields["value"] for p in mixed[TRANSFER_SERIES]] == ["1"]


def test_same_block_deposits_keep_distinct_influx_keys():
    reg = make_registry()
    deps = [
        DecodedTransfer(
            contract="AXS",
            contract_address=AXS,
            from_address=src,
            to_address=TREASURY,
            value=str(v),
            block_number=5,
            timestamp=1_600_000_005,
            kind=TransferKind.TREASURY,
            transaction_hash="0x" + "ab" * 32,
            log_index=i,
        )
        for i, (src, v) in enumerate([(ALICE, 10), (BOB, 20)])
    ]
    pts = route_points(deps, reg)[TREASURY_SERIES]

    # line protocol: "<measurement,tags> <fields> <time>"
    lines = [InfluxSink._to_influx(p).to_line_protocol() for p in pts]
    keys = {(line.split(" ")[0], line.split(" ")[-1]) for line in lines}
    assert len(keys) == 2
    assert all(line.split(" ")[-1] == "1600000005" for line in lines)
    assert sum(int(p.fields["value"]) for p in pts) == 30
