"""In-memory state the admin API keeps between requests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from tourdesk.catalog.categories import Category
from tourdesk.catalog.models import ExternalRecord, LocalRecord

from .types import EnrichmentResult, SyncResult


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class SyncStatus:
    running: bool = False
    started_at: str | None = None
    finished_at: str | None = None
    last_results: dict[str, dict[str, Any]] = field(default_factory=dict)

    def start(self) -> None:
        self.running = True
        self.started_at = _now()
        self.finished_at = None

    def finish(self, results: list[SyncResult]) -> None:
        for result in results:
            self.last_results[result.category.value] = result.to_dict()
        self.running = False
        self.finished_at = _now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "last_results": self.last_results,
        }


@dataclass
class EnrichmentProgress:
    """Progress of one enrichment pass; usable directly as the progress callback."""

    pass_name: str
    running: bool = False
    current: int = 0
    total: int = 0
    label: str | None = None
    last_result: dict[str, Any] | None = None

    def __call__(self, current: int, total: int, label: str) -> None:
        self.current = current
        self.total = total
        self.label = label

    def start(self) -> None:
        self.running = True
        self.current = 0
        self.total = 0
        self.label = None

    def finish(self, result: EnrichmentResult | None = None) -> None:
        self.running = False
        if result is not None:
            self.last_result = result.to_dict()

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass": self.pass_name,
            "running": self.running,
            "current": self.current,
            "total": self.total,
            "label": self.label,
            "last_result": self.last_result,
        }


@dataclass
class OrphanAudit:
    """Local records of one category that the upstream catalog no longer lists."""

    category: Category
    records: list[LocalRecord] = field(default_factory=list)
    audited_at: str = field(default_factory=_now)

    @property
    def content_ids(self) -> set[str]:
        return {record.content_id for record in self.records}

    def discard(self, content_ids: set[str]) -> None:
        self.records = [record for record in self.records if record.content_id not in content_ids]

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "audited_at": self.audited_at,
            "count": len(self.records),
            "with_enrichment": sum(1 for record in self.records if record.has_enrichment),
            "records": [record.to_dict() for record in self.records],
        }


@dataclass
class MappingWorkspace:
    """Side-by-side lists for linking local records to English entries by hand."""

    category: Category
    unmapped_local: list[LocalRecord] = field(default_factory=list)
    candidates: list[ExternalRecord] = field(default_factory=list)

    def find_local(self, content_id: str) -> LocalRecord | None:
        return next((record for record in self.unmapped_local if record.content_id == content_id), None)

    def find_candidate(self, content_id_en: str) -> ExternalRecord | None:
        return next((record for record in self.candidates if record.source_id == content_id_en), None)

    def remove(self, content_id: str | None = None, content_id_en: str | None = None) -> None:
        if content_id is not None:
            self.unmapped_local = [record for record in self.unmapped_local if record.content_id != content_id]
        if content_id_en is not None:
            self.candidates = [record for record in self.candidates if record.source_id != content_id_en]

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "unmapped_local": [
                {"content_id": record.content_id, "title": record.title, "addr1": record.get("addr1")}
                for record in self.unmapped_local
            ],
            "candidates": [
                {"content_id_en": record.source_id, "title": record.title, "addr1": record.addr1}
                for record in self.candidates
            ],
        }


@dataclass
class AdminState:
    sync: SyncStatus = field(default_factory=SyncStatus)
    enrichment: dict[str, EnrichmentProgress] = field(default_factory=dict)
    audits: dict[Category, OrphanAudit] = field(default_factory=dict)
    workspaces: dict[Category, MappingWorkspace] = field(default_factory=dict)
    locks: dict[str, asyncio.Lock] = field(default_factory=dict)

    def lock_for(self, name: str) -> asyncio.Lock:
        if name not in self.locks:
            self.locks[name] = asyncio.Lock()
        return self.locks[name]

    def progress_for(self, pass_name: str) -> EnrichmentProgress:
        if pass_name not in self.enrichment:
            self.enrichment[pass_name] = EnrichmentProgress(pass_name=pass_name)
        return self.enrichment[pass_name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sync": self.sync.to_dict(),
            "enrichment": {name: progress.to_dict() for name, progress in self.enrichment.items()},
            "audits": {
                category.value: {"audited_at": audit.audited_at, "count": len(audit.records)}
                for category, audit in self.audits.items()
            },
        }
