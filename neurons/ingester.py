# tokenflow/neurons/ingester.py
from __future__ import annotations

import asyncio
import signal
import sys

import bittensor as bt

from tokenflow import __version__
from tokenflow.chain import Web3ChainClient
from tokenflow.contracts import default_registry
from tokenflow.errors import PersistenceError
from tokenflow.runtime_config import check_config, config
from tokenflow.scanner import BlockScanner, ScanScheduler
from tokenflow.sinks import InfluxSink, MemorySink
from tokenflow.state import CheckpointStore
from tokenflow.utils.pretty_logs import pretty


def build_scheduler(cfg) -> ScanScheduler:
    registry = default_registry()
    chain = Web3ChainClient(cfg.chain.endpoint, timeout=cfg.chain.fetch_timeout)
    store = CheckpointStore(cfg.checkpoint.path)
    if cfg.fresh:
        store.wipe()

    if cfg.dry_run:
        sink = MemorySink()
    else:
        sink = InfluxSink(cfg.influx.url, cfg.influx.token, cfg.influx.org, cfg.influx.bucket)

    scanner = BlockScanner(
        chain,
        registry,
        treasury_topic=cfg.treasury.address,
        fetch_timeout=cfg.chain.fetch_timeout,
    )
    return ScanScheduler(
        chain,
        scanner,
        store,
        sink,
        registry,
        batch_size=cfg.scan.batch_size,
        confirmation_lag=cfg.scan.confirmation_lag,
        genesis_block=cfg.scan.genesis_block,
        max_concurrency=cfg.scan.max_concurrency,
        fetch_timeout=cfg.chain.fetch_timeout,
        idle_sleep=cfg.scan.idle_sleep,
        retry_base=cfg.scan.retry_base,
        retry_cap=cfg.scan.retry_cap,
        alert_after=cfg.scan.alert_after,
    )


async def run(cfg) -> int:
    scheduler = build_scheduler(cfg)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.request_stop)
        except NotImplementedError:  # pragma: no cover – Windows
            pass

    try:
        pretty.show_startup(
            [
                ("version", __version__),
                ("endpoint", cfg.chain.endpoint),
                ("tracked contracts", ", ".join(c.name for c in scheduler.registry)),
                ("treasury", scheduler.scanner.treasury_topic),
                ("checkpoint", f"{scheduler.checkpoint:,} ({cfg.checkpoint.path})"),
                ("batch / lag", f"{cfg.scan.batch_size} / {cfg.scan.confirmation_lag}"),
                ("sink", "memory (dry run)" if cfg.dry_run else f"influx {cfg.influx.bucket}"),
            ]
        )
        await scheduler.run(until_drained=cfg.scan.once)
    except PersistenceError as e:
        bt.logging.error(f"[CHECKPOINT] cannot record progress, stopping: {e}")
        return 1
    finally:
        close = getattr(scheduler.sink, "close", None)
        if close is not None:
            close()

    pretty.kv_panel("Ingester stats", sorted(scheduler.stats.items()), style="bold green")
    return 0


def main() -> int:
    cfg = config()
    bt.logging.set_config(cfg.logging)
    try:
        check_config(cfg)
    except ValueError as e:
        bt.logging.error(f"Invalid configuration: {e}")
        return 2
    try:
        return asyncio.run(run(cfg))
    except PersistenceError as e:
        bt.logging.error(f"[CHECKPOINT] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
