# tokenflow/errors.py
"""
Exception hierarchy.

    TokenflowError
    ├── DecodeError          – one log could not be decoded (recovered locally)
    │   └── MalformedLog
    ├── ScanError            – one block could not be scanned (fails the batch)
    │   ├── BlockUnavailable
    │   ├── ReceiptUnavailable
    │   ├── FetchTimeout
    │   └── RpcFailure
    ├── ChainRpcError        – transport/RPC failure raised by chain adapters
    ├── BatchError           – a window had at least one ScanError
    ├── PersistenceError     – checkpoint could not be durably read/written (fatal)
    └── SinkWriteError       – time-series write failed
"""

from __future__ import annotations

from typing import Optional, Sequence


class TokenflowError(Exception):
    """Base class for every error raised by tokenflow."""


# ── log level ───────────────────────────────────────────────────────────
class DecodeError(TokenflowError):
    pass


class MalformedLog(DecodeError):
    def __init__(self, reason: str, *, log_index: Optional[int] = None):
        self.reason = reason
        self.log_index = log_index
        super().__init__(reason)


# ── block level ─────────────────────────────────────────────────────────
class ScanError(TokenflowError):
    def __init__(self, block_number: int, message: str):
        self.block_number = block_number
        super().__init__(f"block {block_number}: {message}")


class BlockUnavailable(ScanError):
    def __init__(self, block_number: int):
        super().__init__(block_number, "provider returned no block")


class ReceiptUnavailable(ScanError):
    def __init__(self, block_number: int, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(block_number, f"no receipt for mined transaction {tx_hash}")


class FetchTimeout(ScanError):
    def __init__(self, block_number: int, what: str, timeout: float):
        self.what = what
        self.timeout = timeout
        super().__init__(block_number, f"{what} timed out after {timeout:.1f}s")


class RpcFailure(ScanError):
    def __init__(self, block_number: int, what: str, cause: BaseException):
        self.what = what
        super().__init__(block_number, f"{what} failed: {type(cause).__name__}: {cause}")


class ChainRpcError(TokenflowError):
    pass


# ── window level ────────────────────────────────────────────────────────
class BatchError(TokenflowError):
    def __init__(self, window, failures: Sequence[ScanError]):
        self.window = window
        self.failures = sorted(failures, key=lambda e: e.block_number)
        first = self.failures[0] if self.failures else None
        detail = f"; first: {first}" if first is not None else ""
        super().__init__(
            f"window [{window.start_block}..{window.end_block}] failed "
            f"({len(self.failures)} block(s)){detail}"
        )

    @property
    def first_failed_block(self) -> Optional[int]:
        return self.failures[0].block_number if self.failures else None


# ── process level ───────────────────────────────────────────────────────
class PersistenceError(TokenflowError):
    pass


class SinkWriteError(TokenflowError):
    pass
