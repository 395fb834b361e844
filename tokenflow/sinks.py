# tokenflow/sinks.py
"""Time-series sink implementations."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, List, Sequence

import bittensor as bt
from influxdb_client import InfluxDBClient, Point as InfluxPoint, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS
from influxdb_client.rest import ApiException
from urllib3.exceptions import HTTPError

from tokenflow.errors import SinkWriteError
from tokenflow.metrics import Point


class MemorySink:
    """Keeps points in memory; used for dry runs and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.series: Dict[str, List[Point]] = defaultdict(list)
        self.writes = 0

    def write_points(self, series_name: str, points: Sequence[Point]) -> None:
        with self._lock:
            self.series[series_name].extend(points)
            self.writes += 1

    def all_points(self) -> List[Point]:
        with self._lock:
            return [p for pts in self.series.values() for p in pts]


class InfluxSink:
    """Writes points to an InfluxDB 2.x bucket with the synchronous write API."""

    def __init__(self, url: str, token: str, org: str, bucket: str, *, timeout_ms: int = 20_000):
        if not token:
            raise ValueError("INFLUXDB_TOKEN / --influx.token is required")
        self.bucket = bucket
        self.org = org
        self._client = InfluxDBClient(url=url, token=token, org=org, timeout=timeout_ms)
        self._write_api = self._client.write_api(write_options=SYNCHRONOUS)

    @staticmethod
    def _to_influx(p: Point) -> InfluxPoint:
        ip = InfluxPoint(p.measurement)
        for k, v in p.tags.items():
            ip = ip.tag(k, v)
        for k, v in p.fields.items():
            ip = ip.field(k, v)
        return ip.time(p.timestamp, WritePrecision.S)

    def write_points(self, series_name: str, points: Sequence[Point]) -> None:
        if not points:
            return
        records = [self._to_influx(p) for p in points]
        try:
            self._write_api.write(bucket=self.bucket, org=self.org, record=records)
        except (ApiException, HTTPError, OSError) as e:
            raise SinkWriteError(f"{series_name}: {len(points)} points not written: {e}") from e
        bt.logging.debug(f"[SINK] wrote {len(points)} points to {self.bucket}/{series_name}")

    def close(self) -> None:
        self._write_api.close()
        self._client.close()
