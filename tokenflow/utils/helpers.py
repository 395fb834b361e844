# tokenflow/utils/helpers.py
from __future__ import annotations

import asyncio
import inspect
from typing import Callable, TypeVar

T = TypeVar("T")

_ADDRESS_HEX_LEN = 40
_WORD_HEX_LEN = 64


async def maybe_async(fn: Callable[..., T] | T, *args, **kwargs) -> T:  # noqa: N802
    """
    Await *fn* whether it's:
    • a coroutine object / awaitable,
    • a coroutine function,
    • or a plain blocking function (runs in default thread-pool).
    """
    if inspect.isawaitable(fn):
        return await fn  # type: ignore[return-value]
    if asyncio.iscoroutinefunction(fn):
        return await fn(*args, **kwargs)  # type: ignore[misc]
    # Blocking clients (web3 HTTPProvider) must not stall the event loop.
    result = await asyncio.to_thread(fn, *args, **kwargs)
    if inspect.isawaitable(result):
        return await result  # type: ignore[return-value]
    return result  # type: ignore[return-value]


def to_hex(value) -> str:
    """Lowercase `0x`-prefixed hex for bytes-like values (HexBytes included) and hex strings."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    s = str(value).strip().lower()
    return s if s.startswith("0x") else "0x" + s


def normalize_address(addr: str) -> str:
    if not isinstance(addr, str):
        raise ValueError(f"address must be a string, got: {type(addr)}")
    addr = addr.strip().lower()
    if not addr.startswith("0x") or len(addr) != 2 + _ADDRESS_HEX_LEN:
        raise ValueError(f"invalid address format: {addr}")
    int(addr[2:], 16)
    return addr


def topic_address(addr: str) -> str:
    """Left-pad an address to the 32-byte topic word used for indexed parameters."""
    return "0x" + "0" * (_WORD_HEX_LEN - _ADDRESS_HEX_LEN) + normalize_address(addr)[2:]


def normalize_topic(topic: str) -> str:
    """Accept either a 20-byte address or a full 32-byte word; return the word."""
    t = to_hex(topic)
    if len(t) == 2 + _ADDRESS_HEX_LEN:
        return topic_address(t)
    if len(t) != 2 + _WORD_HEX_LEN:
        raise ValueError(f"invalid topic: {topic}")
    int(t[2:], 16)
    return t


def mask(addr: str | None, enabled: bool = True) -> str:
    if addr is None:
        return "None"
    if not enabled or len(addr) < 12:
        return addr
    return f"{addr[:6]}…{addr[-4:]}"
