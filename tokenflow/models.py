# tokenflow/models.py
# --------------------------------------------------------------------------- #
# Dataclasses shared across the scanner, scheduler and sinks. They carry plain
# Python values (lowercase hex strings, ints, bytes) so tests can build them
# without a node and the sinks can serialise them without web3 types.
# --------------------------------------------------------------------------- #

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


# --------------------------------------------------------------------------- #
# Chain views
# --------------------------------------------------------------------------- #

@dataclass(slots=True, frozen=True)
class RawLogEntry:
    """
    One log emitted inside a transaction receipt.

    Attributes:
        address: Emitting contract, lowercase hex.
        topics: Ordered topic words, lowercase `0x`-prefixed hex.
        data: Non-indexed payload bytes.
        log_index: Position of the log within its block, when known.
    """

    address: str
    topics: Tuple[str, ...]
    data: bytes = b""
    log_index: Optional[int] = None


@dataclass(slots=True, frozen=True)
class Transaction:
    hash: str
    to: Optional[str]  # None for contract creation


@dataclass(slots=True, frozen=True)
class Block:
    number: int
    timestamp: int
    transactions: Tuple[Transaction, ...] = ()


@dataclass(slots=True, frozen=True)
class Receipt:
    transaction_hash: str
    status: int
    logs: Tuple[RawLogEntry, ...] = ()


# --------------------------------------------------------------------------- #
# Decoded events
# --------------------------------------------------------------------------- #

class TransferKind(str, Enum):
    """Routing tag resolved once per matched log."""

    ORDINARY = "ordinary"
    TREASURY = "treasury"


@dataclass(slots=True, frozen=True)
class DecodedTransfer:
    """
    A decoded `Transfer` event.

    Attributes:
        contract: Token name from the registry (e.g. `AXS`).
        contract_address: Emitting token contract.
        from_address / to_address: Decoded indexed parameters.
        value: Raw amount as a decimal string, not scaled by token decimals.
        block_number / timestamp: Block the event was mined in.
        kind: `ORDINARY` or `TREASURY`.
        transaction_hash / log_index: Traceability back to the receipt.
    """

    contract: str
    contract_address: str
    from_address: str
    to_address: str
    value: str
    block_number: int
    timestamp: int
    kind: TransferKind = TransferKind.ORDINARY
    transaction_hash: Optional[str] = None
    log_index: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(slots=True, frozen=True)
class DecodeFailure:
    block_number: int
    transaction_hash: str
    log_index: Optional[int]
    reason: str


@dataclass(slots=True)
class BlockScanResult:
    """Everything one block produced: decoded transfers plus recorded failures."""

    block_number: int
    timestamp: int
    transfers: List[DecodedTransfer] = field(default_factory=list)
    failures: List[DecodeFailure] = field(default_factory=list)

    @property
    def treasury(self) -> List[DecodedTransfer]:
        return [t for t in self.transfers if t.kind is TransferKind.TREASURY]

    @property
    def ordinary(self) -> List[DecodedTransfer]:
        return [t for t in self.transfers if t.kind is TransferKind.ORDINARY]


# --------------------------------------------------------------------------- #
# Scheduling
# --------------------------------------------------------------------------- #

@dataclass(slots=True, frozen=True)
class ScanWindow:
    """Closed block range `[start_block, end_block]` dispatched as one batch."""

    start_block: int
    end_block: int

    def __post_init__(self) -> None:
        if self.end_block < self.start_block:
            raise ValueError(
                f"empty window: end_block {self.end_block} < start_block {self.start_block}"
            )

    @property
    def size(self) -> int:
        return self.end_block - self.start_block + 1

    def blocks(self) -> Iterator[int]:
        return iter(range(self.start_block, self.end_block + 1))
