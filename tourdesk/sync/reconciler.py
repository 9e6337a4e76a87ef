"""Reconciling sync: page the upstream catalog and upsert structural fields.

The merge is upsert-only. Rows that exist locally but are missing upstream
are left alone; they are surfaced later by the orphan audit.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from tourdesk.catalog.categories import Category
from tourdesk.catalog.models import KEY_COLUMNS, ExternalRecord
from tourdesk.core.errors import FetchError, SyncError
from tourdesk.store.base import LocalStore, QueryFilter

from .types import PageSweep, SourceFetcher, SyncPlan, SyncResult

logger = logging.getLogger("tourdesk.sync")


def dedupe_by_source_id(records: Iterable[ExternalRecord]) -> tuple[list[ExternalRecord], int]:
    """Keep the first occurrence of each ``source_id``; return (unique, duplicates)."""

    seen: set[str] = set()
    unique: list[ExternalRecord] = []
    duplicates = 0
    for record in records:
        if record.source_id in seen:
            duplicates += 1
            continue
        seen.add(record.source_id)
        unique.append(record)
    return unique, duplicates


def plan_sync(
    category: Category,
    source_records: Sequence[ExternalRecord],
    local_rows: Iterable[Mapping[str, Any]],
) -> SyncPlan:
    """Compute the write-set for one category.

    Only structural columns ever appear in the plan, so enrichment columns
    of existing rows are never touched by a sync.
    """

    unique, duplicates = dedupe_by_source_id(source_records)
    plan = SyncPlan(duplicate_count=duplicates)

    record_filter = category.descriptor.record_filter
    local_by_id = {str(row["content_id"]): row for row in local_rows}

    for record in unique:
        if record_filter is not None and not record_filter(record):
            plan.filtered_count += 1
            continue

        fields = record.structural_fields(category)
        existing = local_by_id.get(record.source_id)
        if existing is None:
            plan.creates.append(fields)
        elif any(existing.get(name) != value for name, value in fields.items()):
            plan.updates.append(fields)
        else:
            plan.unchanged_count += 1
    return plan


async def fetch_all_pages(
    source: SourceFetcher,
    category: Category,
    page_size: int,
) -> PageSweep:
    """Page through ``category`` until a short or empty page.

    A failing page stops the loop; the sweep keeps what was accumulated and
    carries the error instead of raising it.
    """

    sweep = PageSweep()
    page_no = 1
    while True:
        try:
            page = await source.fetch(category, page_no, page_size)
        except FetchError as exc:
            exc.category = category.value
            exc.page = page_no
            sweep.error = exc
            return sweep

        sweep.pages = page_no
        sweep.records.extend(page.items)
        if not page.items or len(page.items) < page_size:
            return sweep
        page_no += 1


class Reconciler:
    """Sync upstream catalog categories into the local store."""

    def __init__(self, source: SourceFetcher, store: LocalStore, page_size: int = 100) -> None:
        self.source = source
        self.store = store
        self.page_size = page_size

    def local_rows(self, category: Category) -> list[dict[str, Any]]:
        result = self.store.query(
            category.table,
            QueryFilter(equals={"content_type_id": category.content_type_id}),
        )
        return result.items

    async def sync(self, category: Category) -> SyncResult:
        result = SyncResult(category=category)

        sweep = await fetch_all_pages(self.source, category, self.page_size)
        records = sweep.records
        failure = sweep.error
        result.pages = sweep.pages
        result.fetched_count = len(records)

        plan = plan_sync(category, records, self.local_rows(category))
        if plan.writes:
            self.store.upsert(category.table, plan.writes, KEY_COLUMNS)

        result.created_count = len(plan.creates)
        result.updated_count = len(plan.updates)
        result.unchanged_count = plan.unchanged_count
        result.duplicate_count = plan.duplicate_count

        if failure is not None:
            result.error = SyncError(
                f"{category.value} sync stopped at page {failure.page}: {failure.message}",
                category=category.value,
                page=failure.page or 1,
                created_count=result.created_count,
                updated_count=result.updated_count,
            )
            logger.warning(
                "Sync %s failed at page %s after %d records (created=%d updated=%d)",
                category.value,
                failure.page,
                len(records),
                result.created_count,
                result.updated_count,
            )
        else:
            logger.info(
                "Sync %s: %d fetched over %d page(s), created=%d updated=%d unchanged=%d duplicates=%d",
                category.value,
                result.fetched_count,
                result.pages,
                result.created_count,
                result.updated_count,
                result.unchanged_count,
                result.duplicate_count,
            )
        return result

    async def sync_all(self, categories: Iterable[Category] | None = None) -> list[SyncResult]:
        """Sync each category in turn; one category failing does not stop the rest."""

        results: list[SyncResult] = []
        for category in categories or list(Category):
            results.append(await self.sync(category))
        return results
