# tokenflow/events.py
"""Layout of the single event shape the ingester understands."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Tuple

from eth_utils import keccak


@dataclass(slots=True, frozen=True)
class EventParam:
    name: str
    type: str
    indexed: bool


@dataclass(frozen=True)
class EventSchema:
    name: str
    inputs: Tuple[EventParam, ...]

    @cached_property
    def signature(self) -> str:
        """Canonical text form, e.g. `Transfer(address,address,uint256)`."""
        return f"{self.name}({','.join(p.type for p in self.inputs)})"

    @cached_property
    def topic(self) -> str:
        """topics[0] of every log emitted by this event."""
        return "0x" + keccak(text=self.signature).hex()

    @property
    def indexed_inputs(self) -> Tuple[EventParam, ...]:
        return tuple(p for p in self.inputs if p.indexed)

    @property
    def data_inputs(self) -> Tuple[EventParam, ...]:
        return tuple(p for p in self.inputs if not p.indexed)

    @property
    def topic_count(self) -> int:
        return 1 + len(self.indexed_inputs)

    @property
    def data_length(self) -> int:
        # every supported data type is one static 32-byte word
        return 32 * len(self.data_inputs)


TRANSFER_EVENT = EventSchema(
    name="Transfer",
    inputs=(
        EventParam("_from", "address", indexed=True),
        EventParam("_to", "address", indexed=True),
        EventParam("_value", "uint256", indexed=False),
    ),
)

TRANSFER_TOPIC: str = TRANSFER_EVENT.topic
