# tokenflow/contracts.py
"""
Tracked token contracts.

The registry is built once at startup and never mutated; lookups are
case-insensitive because every address is normalised to lowercase hex.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, Iterator, Mapping, Optional

from tokenflow.config import TESTING
from tokenflow.utils.helpers import normalize_address


class TokenStandard(str, Enum):
    ERC20 = "ERC20"


@dataclass(slots=True, frozen=True)
class TrackedContract:
    address: str
    name: str
    decimals: int
    standard: TokenStandard = TokenStandard.ERC20

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address))
        if self.decimals < 0:
            raise ValueError(f"{self.name}: decimals must be >= 0, got {self.decimals}")


class ContractRegistry:
    """Read-only address → TrackedContract mapping."""

    def __init__(
        self,
        contracts: Iterable[TrackedContract],
        *,
        extra_destinations: Iterable[str] = (),
    ) -> None:
        by_addr: dict[str, TrackedContract] = {}
        for c in contracts:
            if c.address in by_addr:
                raise ValueError(f"duplicate tracked contract address {c.address}")
            by_addr[c.address] = c
        self._by_addr: Mapping[str, TrackedContract] = MappingProxyType(by_addr)
        self._erc20: FrozenSet[str] = frozenset(
            a for a, c in by_addr.items() if c.standard is TokenStandard.ERC20
        )
        self._destinations: FrozenSet[str] = frozenset(by_addr) | frozenset(
            normalize_address(a) for a in extra_destinations
        )

    def get(self, address: Optional[str]) -> Optional[TrackedContract]:
        if not address:
            return None
        return self._by_addr.get(address.lower())

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._by_addr

    def __len__(self) -> int:
        return len(self._by_addr)

    def __iter__(self) -> Iterator[TrackedContract]:
        return iter(self._by_addr.values())

    def erc20_addresses(self) -> FrozenSet[str]:
        """Emitters whose Transfer logs are decoded."""
        return self._erc20

    def tx_destinations(self) -> FrozenSet[str]:
        """Transaction targets whose receipts are worth fetching."""
        return self._destinations


# ── default deployment ──────────────────────────────────────────────────
PRODUCTION_CONTRACTS: tuple[TrackedContract, ...] = (
    TrackedContract("0xc99a6a985ed2cac1ef41640596c5a5f9f4e19ef5", "WETH", 18),
    TrackedContract("0x97a9107c1793bc407d6f527b77e7fff4d812bece", "AXS", 18),
    TrackedContract("0xa8754b9fa15fc18bb59458815510e40a12cd2014", "SLP", 0),
    TrackedContract("0xfff9ce5f71ca6178d3beecedb61e7eff1602950e", "GATEWAY", 18),
    TrackedContract("0x32950db2a7164ae833121501c797d79e7b79d74c", "AXIE", 0),
)

# Marketplace: does not emit Transfer itself, but its transactions move tracked tokens.
PRODUCTION_EXTRA_DESTINATIONS: tuple[str, ...] = (
    "0x7d0556d55ca1a92708681e2e231733ebd922597d",
)

TESTING_CONTRACTS: tuple[TrackedContract, ...] = (
    TrackedContract("0x1111111111111111111111111111111111111111", "TEST", 18),
)
TESTING_EXTRA_DESTINATIONS: tuple[str, ...] = ()


def default_registry() -> ContractRegistry:
    """Registry selected by the TESTING flag."""
    if TESTING:
        return ContractRegistry(TESTING_CONTRACTS, extra_destinations=TESTING_EXTRA_DESTINATIONS)
    return ContractRegistry(PRODUCTION_CONTRACTS, extra_destinations=PRODUCTION_EXTRA_DESTINATIONS)
