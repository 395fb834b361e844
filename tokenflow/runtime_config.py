# tokenflow/runtime_config.py

from __future__ import annotations

import argparse

import bittensor as bt

from tokenflow import config as env
from tokenflow.utils.helpers import normalize_topic


# ───────────────────── argument groups (defaults) ───────────────────── #

def add_chain_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--chain.endpoint", type=str, default=env.PROVIDER_URL,
                        help="JSON-RPC endpoint of the chain node (env PROVIDER_URL).")
    parser.add_argument("--chain.fetch_timeout", type=float, default=env.FETCH_TIMEOUT,
                        help="Timeout per RPC fetch (seconds).")


def add_scan_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--scan.batch_size", type=int, default=env.SCAN_BATCH_SIZE,
                        help="Blocks per window.")
    parser.add_argument("--scan.confirmation_lag", type=int, default=env.CONFIRMATION_LAG,
                        help="Blocks withheld from the chain head to avoid reorgs.")
    parser.add_argument("--scan.genesis_block", type=int, default=env.GENESIS_BLOCK,
                        help="First block to scan when no checkpoint exists.")
    parser.add_argument("--scan.max_concurrency", type=int, default=env.SCAN_CONCURRENCY,
                        help="Concurrent block scans within a window.")
    parser.add_argument("--scan.idle_sleep", type=float, default=env.IDLE_SLEEP,
                        help="Pause when no confirmed blocks are pending (seconds).")
    parser.add_argument("--scan.retry_base", type=float, default=env.RETRY_BASE,
                        help="First retry delay after a failed window (seconds).")
    parser.add_argument("--scan.retry_cap", type=float, default=env.RETRY_CAP,
                        help="Upper bound of the exponential retry delay (seconds).")
    parser.add_argument("--scan.alert_after", type=int, default=env.ALERT_AFTER_FAILURES,
                        help="Raise an operator alert after this many failures on the same block.")
    parser.add_argument("--scan.once", action="store_true", default=False,
                        help="Exit once caught up with the confirmed head instead of polling.")


def add_checkpoint_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--checkpoint.path", type=str, default=env.CHECKPOINT_PATH,
                        help="File holding the last fully scanned block.")
    parser.add_argument("--fresh", action="store_true", default=False,
                        help="Delete the checkpoint and start from the genesis block.")


def add_treasury_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--treasury.address", type=str, default=env.TREASURY_ADDRESS,
                        help="Treasury destination: 20-byte address or 32-byte topic (env TREASURY_ADDRESS).")


def add_sink_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--influx.url", type=str, default=env.INFLUXDB_URL, help="InfluxDB URL.")
    parser.add_argument("--influx.org", type=str, default=env.INFLUXDB_ORG, help="InfluxDB organisation.")
    parser.add_argument("--influx.bucket", type=str, default=env.INFLUXDB_BUCKET, help="InfluxDB bucket.")
    parser.add_argument("--influx.token", type=str, default=env.INFLUXDB_TOKEN,
                        help="InfluxDB API token (env INFLUXDB_TOKEN).")
    parser.add_argument("--dry_run", action="store_true", default=False,
                        help="Keep points in memory instead of writing to InfluxDB.")


# ──────────────────────── main entrypoint ───────────────────────── #

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(conflict_handler="resolve")
    bt.logging.add_args(parser)
    add_chain_args(parser)
    add_scan_args(parser)
    add_checkpoint_args(parser)
    add_treasury_args(parser)
    add_sink_args(parser)
    return parser


def config(parser: argparse.ArgumentParser | None = None) -> bt.config:
    """Build the ingester config: logging flags, chain, scan, checkpoint, treasury and sink groups."""
    return bt.config(parser or build_parser())


def check_config(cfg) -> None:
    """Reject settings the scheduler cannot run with."""
    if not cfg.chain.endpoint:
        raise ValueError("--chain.endpoint (or PROVIDER_URL) must be set")
    if cfg.scan.batch_size < 1:
        raise ValueError(f"--scan.batch_size must be >= 1, got {cfg.scan.batch_size}")
    if cfg.scan.confirmation_lag < 0:
        raise ValueError(f"--scan.confirmation_lag must be >= 0, got {cfg.scan.confirmation_lag}")
    if cfg.scan.max_concurrency < 1:
        raise ValueError(f"--scan.max_concurrency must be >= 1, got {cfg.scan.max_concurrency}")
    if cfg.scan.genesis_block < 0:
        raise ValueError(f"--scan.genesis_block must be >= 0, got {cfg.scan.genesis_block}")
    if not cfg.treasury.address:
        raise ValueError("--treasury.address (or TREASURY_ADDRESS) must be set")
    normalize_topic(cfg.treasury.address)  # ValueError on a malformed address
    if not cfg.dry_run and not cfg.influx.token:
        raise ValueError("--influx.token (or INFLUXDB_TOKEN) must be set unless --dry_run")
