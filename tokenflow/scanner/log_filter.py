# tokenflow/scanner/log_filter.py
"""
Pure selection over a receipt's logs.

Selection is signature + emitter only; the treasury tag is attached afterwards
and never removes a log.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable, List, Tuple

from tokenflow.events import TRANSFER_TOPIC
from tokenflow.models import RawLogEntry, TransferKind

# topics[2] is the indexed destination of Transfer(from, to, value)
DEST_TOPIC_IDX = 2


def filter_logs(
    logs: Iterable[RawLogEntry],
    tracked: AbstractSet[str],
    signature: str = TRANSFER_TOPIC,
) -> List[RawLogEntry]:
    """Logs whose first topic is *signature* and whose emitter is in *tracked*, in order."""
    out: List[RawLogEntry] = []
    for log in logs:
        if not log.topics:
            continue  # anonymous / signature-less log
        if log.topics[0].lower() != signature:
            continue
        if log.address.lower() not in tracked:
            continue
        out.append(log)
    return out


def classify(log: RawLogEntry, treasury_topic: str) -> TransferKind:
    if len(log.topics) > DEST_TOPIC_IDX and log.topics[DEST_TOPIC_IDX].lower() == treasury_topic:
        return TransferKind.TREASURY
    return TransferKind.ORDINARY


def select_transfers(
    logs: Iterable[RawLogEntry],
    tracked: AbstractSet[str],
    treasury_topic: str,
    signature: str = TRANSFER_TOPIC,
) -> List[Tuple[RawLogEntry, TransferKind]]:
    return [(log, classify(log, treasury_topic)) for log in filter_logs(logs, tracked, signature)]
