"""Result types and collaborator protocols for the sync workflow."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from tourdesk.catalog.categories import Category
from tourdesk.catalog.models import ExternalRecord, SourcePage
from tourdesk.core.errors import FetchError, SyncError


class ProgressCallback(Protocol):
    def __call__(self, current: int, total: int, label: str) -> None: ...


class SourceFetcher(Protocol):
    """Anything that can page through one catalog."""

    async def fetch(self, category: Category, page_no: int, page_size: int) -> SourcePage: ...


@dataclass(slots=True)
class PageSweep:
    """Everything one pass over a category's pages produced."""

    records: list[ExternalRecord] = field(default_factory=list)
    pages: int = 0
    error: FetchError | None = None

    @property
    def complete(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class SyncPlan:
    """Write-set computed from a source snapshot and a local snapshot."""

    creates: list[dict[str, Any]] = field(default_factory=list)
    updates: list[dict[str, Any]] = field(default_factory=list)
    unchanged_count: int = 0
    duplicate_count: int = 0
    filtered_count: int = 0

    @property
    def writes(self) -> list[dict[str, Any]]:
        return self.creates + self.updates


@dataclass(slots=True)
class SyncResult:
    category: Category
    created_count: int = 0
    updated_count: int = 0
    unchanged_count: int = 0
    duplicate_count: int = 0
    fetched_count: int = 0
    pages: int = 0
    error: SyncError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "unchanged_count": self.unchanged_count,
            "duplicate_count": self.duplicate_count,
            "fetched_count": self.fetched_count,
            "pages": self.pages,
            "success": self.success,
            "error": self.error.context() if self.error else None,
        }


@dataclass(slots=True)
class FailedItem:
    source_id: str
    title: str | None
    reason: str


@dataclass(slots=True)
class EnrichmentResult:
    pass_name: str
    total: int = 0
    updated_count: int = 0
    failed_count: int = 0
    failed_items: list[FailedItem] = field(default_factory=list)

    def record_failure(self, source_id: str, title: str | None, reason: str) -> None:
        self.failed_count += 1
        self.failed_items.append(FailedItem(source_id=source_id, title=title, reason=reason))

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass": self.pass_name,
            "total": self.total,
            "updated_count": self.updated_count,
            "failed_count": self.failed_count,
            "failed_items": [asdict(item) for item in self.failed_items],
        }


@dataclass(slots=True)
class MappingResult:
    success: bool
    content_id: str
    content_id_en: str
    reason: str | None = None


@dataclass(slots=True)
class OrphanDeletion:
    category: Category
    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "deleted_count": len(self.deleted),
            "deleted": self.deleted,
            "skipped": self.skipped,
        }


@dataclass(slots=True)
class CategoryCount:
    category: Category
    source_total: int | None = None
    local_count: int = 0
    english_total: int | None = None
    error: str | None = None

    @property
    def needs_sync(self) -> bool:
        return self.source_total is not None and self.source_total != self.local_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "label": self.category.descriptor.label_ko,
            "source_total": self.source_total,
            "local_count": self.local_count,
            "english_total": self.english_total,
            "needs_sync": self.needs_sync,
            "error": self.error,
        }
