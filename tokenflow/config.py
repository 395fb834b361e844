"""
tokenflow/config.py — global constants
(env-driven defaults for the transfer ingester)
"""

from __future__ import annotations
import os
from dotenv import load_dotenv

load_dotenv()

# ╭─────────────────────────── ENVIRONMENT ────────────────────────────╮
PROVIDER_URL: str = os.getenv("PROVIDER_URL", "")
TESTING: bool = os.getenv("TESTING", "false").lower() == "true"
# ╰────────────────────────────────────────────────────────────────────╯


# ╭──────────────────────────── INFLUXDB ──────────────────────────────╮
INFLUXDB_URL: str = os.getenv("INFLUXDB_URL", "https://us-east-1-1.aws.cloud2.influxdata.com")
INFLUXDB_TOKEN: str = os.getenv("INFLUXDB_TOKEN", "")
INFLUXDB_ORG: str = os.getenv("INFLUXDB_ORG", "")
INFLUXDB_BUCKET: str = os.getenv("INFLUXDB_BUCKET", "transfers")
# ╰────────────────────────────────────────────────────────────────────╯


# ╭────────────────────── SCANNER / SCHEDULER KNOBS ───────────────────╮
SCAN_BATCH_SIZE: int = int(os.getenv("SCAN_BATCH_SIZE", "150"))
CONFIRMATION_LAG: int = int(os.getenv("CONFIRMATION_LAG", "50"))
GENESIS_BLOCK: int = int(os.getenv("GENESIS_BLOCK", "17000000"))
SCAN_CONCURRENCY: int = int(os.getenv("SCAN_CONCURRENCY", "16"))
FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "20"))
IDLE_SLEEP: float = float(os.getenv("IDLE_SLEEP", "6"))  # ~2 blocks
# ╰────────────────────────────────────────────────────────────────────╯


# ╭──────────────────────── RETRY & ALERTING ──────────────────────────╮
RETRY_BASE: float = float(os.getenv("RETRY_BASE", "2"))
RETRY_CAP: float = float(os.getenv("RETRY_CAP", "300"))
ALERT_AFTER_FAILURES: int = int(os.getenv("ALERT_AFTER_FAILURES", "10"))
# ╰────────────────────────────────────────────────────────────────────╯


# ╭─────────────────────────── CHECKPOINT ─────────────────────────────╮
# Holds the last fully scanned block. Not interchangeable with the older
# "current_block" file, which stored the next block to scan.
CHECKPOINT_PATH: str = os.getenv("CHECKPOINT_PATH", "last_scanned_block")
# ╰────────────────────────────────────────────────────────────────────╯


# ╭──────────────────────────── TREASURY ──────────────────────────────╮
# Destination whose incoming transfers are booked as deposits: a 20-byte
# address or the full 32-byte topic. Required.
TREASURY_ADDRESS: str = os.getenv("TREASURY_ADDRESS", "")
# ╰────────────────────────────────────────────────────────────────────╯


# ╭──────────────────────────── LOGGING (pretty) ──────────────────────╮
PRETTY_LOGS: bool = os.getenv("PRETTY_LOGS", "true").lower() == "true"
LOG_TOP_N: int = int(os.getenv("LOG_TOP_N", "12"))
MASK_ADDRESSES: bool = os.getenv("MASK_ADDRESSES", "true").lower() == "true"
# ╰────────────────────────────────────────────────────────────────────╯
