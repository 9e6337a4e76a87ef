"""Lightweight in-memory metrics collector."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict


@dataclass
class MetricSnapshot:
    sync_runs: Dict[str, int]
    rows_created: Dict[str, int]
    rows_updated: Dict[str, int]
    sync_failures: Dict[str, int]
    enrich_updated: Dict[str, int]
    enrich_failed: Dict[str, int]


class MetricsCollector:
    """Thread-safe counter storage for sync and enrichment activity."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sync_runs: Counter[str] = Counter()
        self._created: Counter[str] = Counter()
        self._updated: Counter[str] = Counter()
        self._sync_failures: Counter[str] = Counter()
        self._enrich_updated: Counter[str] = Counter()
        self._enrich_failed: Counter[str] = Counter()

    def record_sync(self, category: str, created: int, updated: int, failed: bool = False) -> None:
        with self._lock:
            self._sync_runs[category] += 1
            self._created[category] += created
            self._updated[category] += updated
            if failed:
                self._sync_failures[category] += 1

    def record_enrichment(self, pass_name: str, updated: int, failed: int) -> None:
        with self._lock:
            self._enrich_updated[pass_name] += updated
            self._enrich_failed[pass_name] += failed

    def snapshot(self) -> MetricSnapshot:
        with self._lock:
            return MetricSnapshot(
                sync_runs=dict(self._sync_runs),
                rows_created=dict(self._created),
                rows_updated=dict(self._updated),
                sync_failures=dict(self._sync_failures),
                enrich_updated=dict(self._enrich_updated),
                enrich_failed=dict(self._enrich_failed),
            )
