from tokenflow.scanner.block_scanner import BlockScanner
from tokenflow.scanner.decoder import decode_transfer
from tokenflow.scanner.log_filter import classify, filter_logs, select_transfers
from tokenflow.scanner.scheduler import ScanScheduler, SchedulerState

__all__ = [
    "BlockScanner",
    "ScanScheduler",
    "SchedulerState",
    "classify",
    "decode_transfer",
    "filter_logs",
    "select_transfers",
]
