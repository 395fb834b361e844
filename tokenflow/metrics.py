# tokenflow/metrics.py
# --------------------------------------------------------------------------- #
# Turning decoded transfers into time-series points.
#
# Two series, never mixed:
#   treasury_deposits – one point per deposit into the treasury
#   token_transfers   – ordinary circulation, aggregated per (token, block)
# --------------------------------------------------------------------------- #

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Protocol, Sequence, Tuple

from tokenflow.contracts import ContractRegistry
from tokenflow.models import DecodedTransfer, TransferKind

TREASURY_SERIES = "treasury_deposits"
TRANSFER_SERIES = "token_transfers"


@dataclass(slots=True, frozen=True)
class Point:
    measurement: str
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, object] = field(default_factory=dict)
    timestamp: int = 0  # unix seconds


class MetricsSink(Protocol):
    def write_points(self, series_name: str, points: Sequence[Point]) -> None:
        """Persist *points*; raise SinkWriteError on failure."""


def scaled_amount(value: int | str, decimals: int) -> float:
    return float(Decimal(int(value)) / (Decimal(10) ** decimals))


def _decimals(registry: ContractRegistry, t: DecodedTransfer) -> int:
    c = registry.get(t.contract_address)
    return c.decimals if c is not None else 0


def treasury_points(transfers: Iterable[DecodedTransfer], registry: ContractRegistry) -> List[Point]:
    # Influx keys a point on (measurement, tags, time); tx + log_index keep
    # same-block deposits of one token from overwriting each other.
    points: List[Point] = []
    seen: Dict[Tuple[str, int], int] = defaultdict(int)
    for t in transfers:
        if t.kind is not TransferKind.TREASURY:
            raise ValueError(f"{t.kind.value} transfer routed to {TREASURY_SERIES}")
        ordinal = seen[(t.contract, t.block_number)]
        seen[(t.contract, t.block_number)] += 1
        tags = {
            "contract": t.contract,
            "direction": "deposit",
            "log_index": str(t.log_index if t.log_index is not None else ordinal),
        }
        if t.transaction_hash:
            tags["tx"] = t.transaction_hash
        points.append(
            Point(
                measurement=TREASURY_SERIES,
                tags=tags,
                fields={
                    "value": t.value,
                    "amount": scaled_amount(t.value, _decimals(registry, t)),
                    "block_number": t.block_number,
                    "from": t.from_address,
                },
                timestamp=t.timestamp,
            )
        )
    return points


def transfer_points(transfers: Iterable[DecodedTransfer], registry: ContractRegistry) -> List[Point]:
    # (contract, block) -> [raw sum, count, timestamp, decimals]
    buckets: Dict[Tuple[str, int], list] = defaultdict(lambda: [0, 0, 0, 0])
    for t in transfers:
        if t.kind is not TransferKind.ORDINARY:
            raise ValueError(f"{t.kind.value} transfer routed to {TRANSFER_SERIES}")
        b = buckets[(t.contract, t.block_number)]
        b[0] += int(t.value)
        b[1] += 1
        b[2] = t.timestamp
        b[3] = _decimals(registry, t)

    return [
        Point(
            measurement=TRANSFER_SERIES,
            tags={"contract": contract, "direction": "transfer"},
            fields={
                "value": str(total),
                "amount": scaled_amount(total, decimals),
                "count": count,
                "block_number": block,
            },
            timestamp=ts,
        )
        for (contract, block), (total, count, ts, decimals) in sorted(buckets.items(), key=lambda kv: (kv[0][1], kv[0][0]))
    ]


def route_points(transfers: Iterable[DecodedTransfer], registry: ContractRegistry) -> Dict[str, List[Point]]:
    """Split by kind and build each series; empty series are omitted."""
    treasury: List[DecodedTransfer] = []
    ordinary: List[DecodedTransfer] = []
    for t in transfers:
        (treasury if t.kind is TransferKind.TREASURY else ordinary).append(t)
    out: Dict[str, List[Point]] = {}
    if treasury:
        out[TREASURY_SERIES] = treasury_points(treasury, registry)
    if ordinary:
        out[TRANSFER_SERIES] = transfer_points(ordinary, registry)
    return out
