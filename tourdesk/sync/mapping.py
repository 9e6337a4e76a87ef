"""Manual pairing of local records with English catalog entries."""

from __future__ import annotations

import logging
from typing import Any

from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient
from tourdesk.catalog.models import ExternalRecord, LocalRecord
from tourdesk.store.base import LocalStore, QueryFilter

from .reconciler import fetch_all_pages
from .state import MappingWorkspace
from .types import MappingResult

logger = logging.getLogger("tourdesk.mapping")


def english_fields(candidate: ExternalRecord, detail: dict[str, Any]) -> dict[str, Any]:
    """Columns written onto a local record once it is linked to ``candidate``."""

    return {
        "content_id_en": candidate.source_id,
        "title_en": (detail.get("title") or candidate.title or "").strip() or None,
        "addr1_en": (detail.get("addr1") or candidate.addr1 or "").strip() or None,
        "overview_en": (detail.get("overview") or "").strip() or None,
    }


def linked_english_ids(store: LocalStore, category: Category) -> set[str]:
    result = store.query(
        category.table,
        QueryFilter(equals={"content_type_id": category.content_type_id}, present=("content_id_en",)),
    )
    return {str(row["content_id_en"]) for row in result.items}


async def load_english_candidates(
    english: TourApiClient,
    store: LocalStore,
    category: Category,
    page_size: int = 100,
) -> list[ExternalRecord]:
    """English entries for ``category`` that no local record links to yet."""

    sweep = await fetch_all_pages(english, category, page_size)
    if sweep.error is not None:
        raise sweep.error
    taken = linked_english_ids(store, category)
    return [record for record in sweep.records if record.source_id not in taken]


class EnglishMappingPicker:
    def __init__(self, store: LocalStore, english: TourApiClient, page_size: int = 100) -> None:
        self.store = store
        self.english = english
        self.page_size = page_size

    async def load_workspace(self, category: Category) -> MappingWorkspace:
        local = self.store.query(
            category.table,
            QueryFilter(equals={"content_type_id": category.content_type_id}, missing=("content_id_en",)),
            sort=("title", False),
        )
        candidates = await load_english_candidates(self.english, self.store, category, self.page_size)
        candidates.sort(key=lambda record: record.title or "")
        return MappingWorkspace(
            category=category,
            unmapped_local=[LocalRecord.from_row(row) for row in local.items],
            candidates=candidates,
        )

    def _current_row(self, local: LocalRecord) -> dict[str, Any] | None:
        result = self.store.query(
            local.category.table,
            QueryFilter(equals={"content_type_id": local.content_type_id, "content_id": local.content_id}),
        )
        return result.items[0] if result.items else None

    def _refusal(self, local: LocalRecord, candidate: ExternalRecord, workspace: MappingWorkspace | None) -> MappingResult | None:
        """Check the stored row, which may have changed since the workspace loaded."""

        row = self._current_row(local)
        if row is None:
            if workspace is not None:
                workspace.remove(content_id=local.content_id)
            return MappingResult(False, local.content_id, candidate.source_id, reason="local_record_missing")
        if row.get("content_id_en"):
            local.fields["content_id_en"] = row["content_id_en"]
            if workspace is not None:
                workspace.remove(local.content_id, str(row["content_id_en"]))
            return MappingResult(False, local.content_id, candidate.source_id, reason="already_mapped")
        if candidate.source_id in linked_english_ids(self.store, local.category):
            if workspace is not None:
                workspace.remove(content_id_en=candidate.source_id)
            return MappingResult(False, local.content_id, candidate.source_id, reason="candidate_taken")
        return None

    async def map(
        self,
        local: LocalRecord,
        candidate: ExternalRecord,
        workspace: MappingWorkspace | None = None,
    ) -> MappingResult:
        """Link one local record to one English entry.

        The record must still lack an English link in the store and the
        entry must not be linked to any other record, both before and after
        the detail fetch.
        """

        category = local.category
        refusal = self._refusal(local, candidate, workspace)
        if refusal is not None:
            return refusal

        detail = await self.english.detail_common(candidate.source_id)
        refusal = self._refusal(local, candidate, workspace)
        if refusal is not None:
            return refusal

        fields = english_fields(candidate, detail)
        updated = self.store.update(
            category.table,
            {"content_type_id": local.content_type_id, "content_id": local.content_id},
            fields,
        )
        if not updated:
            return MappingResult(False, local.content_id, candidate.source_id, reason="local_record_missing")

        local.fields.update(fields)
        if workspace is not None:
            workspace.remove(local.content_id, candidate.source_id)
        logger.info("Mapped %s %s -> %s", category.value, local.content_id, candidate.source_id)
        return MappingResult(True, local.content_id, candidate.source_id)
