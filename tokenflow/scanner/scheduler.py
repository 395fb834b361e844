# ======================================================================
#
# tokenflow/scanner/scheduler.py
#
# Checkpointed, windowed forward scan:
#
#   IDLE → COMPUTING_WINDOW → DISPATCHING → AWAITING_BATCH → COMMITTING ─┐
#                 ↑  └──────────→ DRAINED (no safe blocks yet)            │
#                 └───────────────────────────────────────────────────────┘
#
#   • A window is [checkpoint+1, min(checkpoint+batch_size, head-lag)].
#   • The checkpoint only moves to a window's end after every block in it
#     scanned successfully; a failed window is retried from the same start.
#   • The checkpoint is written before any of the window's points are sent.
#   • Stop requests are honoured between windows only.
#
# ======================================================================

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

import bittensor as bt

from tokenflow.chain import ChainClient
from tokenflow.contracts import ContractRegistry
from tokenflow.errors import (
    BatchError,
    ChainRpcError,
    FetchTimeout,
    RpcFailure,
    ScanError,
    SinkWriteError,
)
from tokenflow.metrics import MetricsSink, route_points
from tokenflow.models import BlockScanResult, ScanWindow
from tokenflow.scanner.block_scanner import BlockScanner
from tokenflow.state import CheckpointStore
from tokenflow.utils.helpers import maybe_async
from tokenflow.utils.pretty_logs import pretty


class SchedulerState(str, Enum):
    IDLE = "idle"
    COMPUTING_WINDOW = "computing_window"
    DISPATCHING = "dispatching"
    AWAITING_BATCH = "awaiting_batch"
    COMMITTING = "committing"
    DRAINED = "drained"


class ScanScheduler:
    """Drives BlockScanner over consecutive confirmed windows and commits progress."""

    def __init__(
        self,
        chain: ChainClient,
        scanner: BlockScanner,
        store: CheckpointStore,
        sink: MetricsSink,
        registry: ContractRegistry,
        *,
        batch_size: int = 150,
        confirmation_lag: int = 50,
        genesis_block: int = 0,
        max_concurrency: int = 16,
        fetch_timeout: float = 20.0,
        idle_sleep: float = 6.0,
        retry_base: float = 2.0,
        retry_cap: float = 300.0,
        alert_after: int = 10,
        on_alert: Optional[Callable[[int, int, str], None]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if confirmation_lag < 0:
            raise ValueError(f"confirmation_lag must be >= 0, got {confirmation_lag}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        if genesis_block < 0:
            raise ValueError(f"genesis_block must be >= 0, got {genesis_block}")

        self.chain = chain
        self.scanner = scanner
        self.store = store
        self.sink = sink
        self.registry = registry
        self.batch_size = batch_size
        self.confirmation_lag = confirmation_lag
        self.genesis_block = genesis_block
        self.max_concurrency = max_concurrency
        self.fetch_timeout = fetch_timeout
        self.idle_sleep = idle_sleep
        self.retry_base = retry_base
        self.retry_cap = retry_cap
        self.alert_after = max(1, alert_after)
        self.on_alert = on_alert
        self._sleep = sleep or self._interruptible_sleep

        self.state = SchedulerState.IDLE
        self._checkpoint: Optional[int] = None
        self._stop_requested = False
        self._stop_event = asyncio.Event()

        # retry bookkeeping
        self._consecutive_failures = 0
        self._failing_block: Optional[int] = None
        self._same_block_failures = 0

        self.stats: Dict[str, int] = {
            "windows_committed": 0,
            "blocks_scanned": 0,
            "transfers_emitted": 0,
            "treasury_deposits": 0,
            "decode_failures": 0,
            "batch_failures": 0,
            "sink_failures": 0,
            "alerts": 0,
        }

    # ----------------------- checkpoint ------------------------------- #
    @property
    def checkpoint(self) -> int:
        if self._checkpoint is None:
            self.load_checkpoint()
        return self._checkpoint  # type: ignore[return-value]

    def load_checkpoint(self) -> int:
        stored = self.store.load()
        if stored is None:
            # genesis itself is the first block to scan
            self._checkpoint = self.genesis_block - 1
            bt.logging.info(f"[SCHEDULER] starting from genesis block {self._checkpoint + 1:,}")
        else:
            self._checkpoint = stored
            bt.logging.info(f"[SCHEDULER] resuming after checkpoint {stored:,}")
        return self._checkpoint

    # ----------------------- window ----------------------------------- #
    def window_for(self, chain_head: int) -> Optional[ScanWindow]:
        """Next window given *chain_head*, or None when no confirmed block is pending."""
        safe_head = chain_head - self.confirmation_lag
        start = self.checkpoint + 1
        if safe_head < start:
            return None
        return ScanWindow(start, min(self.checkpoint + self.batch_size, safe_head))

    async def _chain_head(self) -> int:
        nxt = self.checkpoint + 1
        try:
            head = await asyncio.wait_for(maybe_async(self.chain.get_chain_head), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            raise FetchTimeout(nxt, "get_chain_head", self.fetch_timeout) from None
        except ChainRpcError as e:
            raise RpcFailure(nxt, "get_chain_head", e) from e
        return int(head)

    async def compute_window(self) -> Optional[ScanWindow]:
        self.state = SchedulerState.COMPUTING_WINDOW
        head = await self._chain_head()
        window = self.window_for(head)
        bt.logging.debug(
            f"[SCHEDULER] head={head:,} safe_head={head - self.confirmation_lag:,} "
            f"checkpoint={self.checkpoint:,} window={window}"
        )
        return window

    # ----------------------- batch ------------------------------------ #
    async def run_window(self, window: ScanWindow) -> List[BlockScanResult]:
        """
        Scan every block of *window* concurrently and wait for all of them.

        Raises:
            BatchError: at least one block raised a ScanError.
        """
        self.state = SchedulerState.DISPATCHING
        sem = asyncio.Semaphore(self.max_concurrency)

        async def _one(bn: int) -> BlockScanResult:
            async with sem:
                return await self.scanner.scan(bn)

        blocks = list(window.blocks())
        tasks = [asyncio.create_task(_one(bn)) for bn in blocks]
        bt.logging.info(
            f"[SCHEDULER] dispatched window [{window.start_block:,}..{window.end_block:,}] "
            f"({window.size} blocks, concurrency={self.max_concurrency})"
        )

        self.state = SchedulerState.AWAITING_BATCH
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: List[BlockScanResult] = []
        failures: List[ScanError] = []
        for out in outcomes:
            if isinstance(out, ScanError):
                failures.append(out)
            elif isinstance(out, BaseException):
                raise out
            else:
                results.append(out)
        if failures:
            raise BatchError(window, failures)
        results.sort(key=lambda r: r.block_number)
        return results

    async def commit(self, window: ScanWindow, results: List[BlockScanResult]) -> None:
        """Persist the window end, then hand its records to the sink."""
        self.state = SchedulerState.COMMITTING
        self.store.save(window.end_block)  # PersistenceError is fatal
        self._checkpoint = window.end_block

        transfers = [t for r in results for t in r.transfers]
        for series, points in route_points(transfers, self.registry).items():
            try:
                await maybe_async(self.sink.write_points, series, points)
            except SinkWriteError as e:
                # Checkpoint already advanced; re-derive with scripts/scan_range.py.
                self.stats["sink_failures"] += 1
                bt.logging.error(
                    f"[SINK] window [{window.start_block:,}..{window.end_block:,}] "
                    f"series={series} lost {len(points)} points: {e}"
                )

        self.stats["windows_committed"] += 1
        self.stats["blocks_scanned"] += window.size
        self.stats["transfers_emitted"] += len(transfers)
        self.stats["treasury_deposits"] += sum(len(r.treasury) for r in results)
        self.stats["decode_failures"] += sum(len(r.failures) for r in results)

    # ----------------------- retry policy ----------------------------- #
    def backoff_delay(self, attempt: int) -> float:
        return min(self.retry_cap, self.retry_base * (2 ** max(0, attempt - 1)))

    async def _on_failure(self, block: Optional[int], reason: str) -> None:
        self._consecutive_failures += 1
        if block is not None and block == self._failing_block:
            self._same_block_failures += 1
        else:
            self._failing_block = block
            self._same_block_failures = 1

        delay = self.backoff_delay(self._consecutive_failures)
        bt.logging.warning(
            f"[SCHEDULER] {reason} – retrying from block {self.checkpoint + 1:,} "
            f"in {delay:.1f}s (attempt {self._consecutive_failures})"
        )
        if self._same_block_failures % self.alert_after == 0:
            self._alert(block, self._same_block_failures, reason)
        await self._sleep(delay)

    def _alert(self, block: Optional[int], attempts: int, reason: str) -> None:
        self.stats["alerts"] += 1
        blk = block if block is not None else self.checkpoint + 1
        bt.logging.error(f"[SCHEDULER] ALERT: block {blk:,} failed {attempts} times in a row: {reason}")
        pretty.show_alert(blk, attempts, reason)
        if self.on_alert is not None:
            self.on_alert(blk, attempts, reason)

    def _reset_failures(self) -> None:
        self._consecutive_failures = 0
        self._failing_block = None
        self._same_block_failures = 0

    # ----------------------- loop ------------------------------------- #
    async def step(self) -> bool:
        """
        One scheduler cycle. Returns False when drained (no confirmed blocks
        past the checkpoint), True otherwise, including after a failed attempt.
        """
        try:
            window = await self.compute_window()
        except ScanError as e:
            await self._on_failure(e.block_number, str(e))
            return True
        if window is None:
            self.state = SchedulerState.DRAINED
            return False

        t0 = time.monotonic()
        try:
            results = await self.run_window(window)
        except BatchError as e:
            self.stats["batch_failures"] += 1
            await self._on_failure(e.first_failed_block, str(e))
            return True

        await self.commit(window, results)
        self._reset_failures()
        pretty.show_window(
            window.start_block,
            window.end_block,
            sum(len(r.transfers) for r in results),
            sum(len(r.treasury) for r in results),
            sum(len(r.failures) for r in results),
            time.monotonic() - t0,
        )
        return True

    async def run(self, *, until_drained: bool = False) -> None:
        """Scan forever (or until drained) until request_stop() is called."""
        if self._checkpoint is None:
            self.load_checkpoint()
        while not self._stop_requested:
            if await self.step():
                continue
            if until_drained:
                bt.logging.info(f"[SCHEDULER] drained at checkpoint {self.checkpoint:,}")
                return
            bt.logging.debug(f"[SCHEDULER] no confirmed blocks past {self.checkpoint:,}; sleeping {self.idle_sleep}s")
            await self._sleep(self.idle_sleep)
        self.state = SchedulerState.IDLE
        bt.logging.success(f"[SCHEDULER] stopped at checkpoint {self.checkpoint:,}")

    def request_stop(self) -> None:
        self._stop_requested = True
        self._stop_event.set()

    async def _interruptible_sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
