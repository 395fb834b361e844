# ============================================================================
# scripts/scan_range.py
# ============================================================================
# One-shot scan of a closed block range with the production BlockScanner.
#
# The checkpoint is neither read nor written. Use it to:
#   • inspect what a range contains (per-token totals, treasury deposits);
#   • re-derive the points of an already committed window after a sink
#     failure (--emit writes them to InfluxDB).
#
# Example:
#   python3 scripts/scan_range.py --start 17000001 --end 17000150
#   python3 scripts/scan_range.py --start 17000001 --end 17000150 --emit
# ============================================================================

from __future__ import annotations

import argparse
import asyncio
import sys
from collections import defaultdict
from typing import Dict, List, Tuple

from tqdm.auto import tqdm

import bittensor as bt

from tokenflow import config as env
from tokenflow.chain import Web3ChainClient
from tokenflow.contracts import default_registry
from tokenflow.errors import ScanError, SinkWriteError
from tokenflow.metrics import TREASURY_SERIES, TRANSFER_SERIES, route_points, scaled_amount
from tokenflow.models import BlockScanResult
from tokenflow.scanner import BlockScanner
from tokenflow.sinks import InfluxSink
from tokenflow.utils.pretty_logs import pretty

# ╭────────────────────────────── CLI ───────────────────────────────────────╮ #
parser = argparse.ArgumentParser(
    formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    description="Scan a block range for tracked Transfer events.",
)
parser.add_argument("--start", type=int, required=True, help="First block (inclusive)")
parser.add_argument("--end", type=int, required=True, help="Last block (inclusive)")
parser.add_argument("--endpoint", default=env.PROVIDER_URL, help="JSON-RPC endpoint")
parser.add_argument("--treasury", default=env.TREASURY_ADDRESS, help="Treasury address or topic (env TREASURY_ADDRESS)")
parser.add_argument("--concurrency", type=int, default=env.SCAN_CONCURRENCY, help="Parallel block scans")
parser.add_argument("--timeout", type=float, default=env.FETCH_TIMEOUT, help="Per-fetch timeout (s)")
parser.add_argument("--emit", action="store_true", help="Write the resulting points to InfluxDB")
parser.add_argument("--debug", action="store_true", help="Verbose scanner logs")
# ╰──────────────────────────────────────────────────────────────────────────╯ #


async def scan_range(scanner: BlockScanner, start: int, end: int, concurrency: int) -> Tuple[List[BlockScanResult], List[ScanError]]:
    sem = asyncio.Semaphore(concurrency)
    results: List[BlockScanResult] = []
    errors: List[ScanError] = []

    async def _one(bn: int) -> None:
        async with sem:
            try:
                results.append(await scanner.scan(bn))
            except ScanError as e:
                errors.append(e)

    tasks = [asyncio.create_task(_one(bn)) for bn in range(start, end + 1)]
    for fut in tqdm(asyncio.as_completed(tasks), total=len(tasks), desc="Scanning", unit="blk"):
        await fut
    results.sort(key=lambda r: r.block_number)
    return results, errors


def _totals(results: List[BlockScanResult], treasury: bool) -> Dict[str, Tuple[int, float]]:
    registry = default_registry()
    acc: Dict[str, list] = defaultdict(lambda: [0, 0.0])
    for r in results:
        for t in (r.treasury if treasury else r.ordinary):
            c = registry.get(t.contract_address)
            acc[t.contract][0] += 1
            acc[t.contract][1] += scaled_amount(t.value, c.decimals if c else 0)
    return {k: (v[0], v[1]) for k, v in acc.items()}


async def main() -> int:
    args = parser.parse_args()
    if args.debug:
        bt.logging.set_debug(True)
    if args.end < args.start:
        bt.logging.error(f"--end {args.end} < --start {args.start}")
        return 1
    if not args.treasury:
        bt.logging.error("--treasury (or TREASURY_ADDRESS) must be set")
        return 1

    registry = default_registry()
    chain = Web3ChainClient(args.endpoint, timeout=args.timeout)
    scanner = BlockScanner(chain, registry, treasury_topic=args.treasury, fetch_timeout=args.timeout)

    pretty.rule(f"[bold cyan]SCAN [{args.start:,}..{args.end:,}][/bold cyan]")
    results, errors = await scan_range(scanner, args.start, args.end, max(1, args.concurrency))

    pretty.show_token_totals("Ordinary transfers", _totals(results, treasury=False))
    pretty.show_token_totals("Treasury deposits", _totals(results, treasury=True))
    failures = [f for r in results for f in r.failures]
    pretty.kv_panel(
        "Range summary",
        [
            ("blocks scanned", f"{len(results)} / {args.end - args.start + 1}"),
            ("receipts fetched", scanner.receipts_fetched),
            ("transfers decoded", scanner.transfers_decoded),
            ("decode failures", len(failures)),
            ("failed blocks", ", ".join(str(e.block_number) for e in sorted(errors, key=lambda e: e.block_number)) or "-"),
        ],
    )
    if errors:
        for e in errors[:10]:
            bt.logging.warning(f"[SCANNER] {e}")
        return 1

    if args.emit:
        sink = InfluxSink(env.INFLUXDB_URL, env.INFLUXDB_TOKEN, env.INFLUXDB_ORG, env.INFLUXDB_BUCKET)
        try:
            series = route_points([t for r in results for t in r.transfers], registry)
            for name in (TREASURY_SERIES, TRANSFER_SERIES):
                if name in series:
                    sink.write_points(name, series[name])
                    pretty.log(f"[green]wrote {len(series[name])} points to {name}[/green]")
        except SinkWriteError as e:
            bt.logging.error(f"[SINK] {e}")
            return 1
        finally:
            sink.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
