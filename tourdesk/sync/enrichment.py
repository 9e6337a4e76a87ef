"""Per-field enrichment passes over stored catalog records.

Each pass selects the records missing its target column, fetches or
generates the value one record at a time, and writes back only its own
columns. A failure on one record is recorded and the pass moves on.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from tourdesk.ai.describer import DescriptionGenerator
from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient
from tourdesk.catalog.models import KEY_COLUMNS, ExternalRecord, LocalRecord
from tourdesk.catalog.text import clean_intro_info
from tourdesk.core.errors import EnrichmentError, MatchNotFound
from tourdesk.store.base import LocalStore, QueryFilter

from .mapping import english_fields, load_english_candidates
from .matching import NameMatcher, default_matcher, index_titles
from .types import EnrichmentResult, ProgressCallback

logger = logging.getLogger("tourdesk.enrich")


def record_key(record: LocalRecord) -> dict[str, str]:
    return dict(zip(KEY_COLUMNS, record.key))


class EnrichmentPass(ABC):
    """Fill one group of enrichment columns for records that lack them."""

    name: str
    target_column: str
    writes: tuple[str, ...]
    scope: tuple[Category, ...] | None = None

    def __init__(self, store: LocalStore) -> None:
        self.store = store

    def selection_filter(self, category: Category) -> QueryFilter:
        return QueryFilter(
            equals={"content_type_id": category.content_type_id},
            missing=(self.target_column,),
        )

    def categories(self, category: Category | None = None) -> list[Category]:
        allowed = list(self.scope or Category)
        if category is None:
            return allowed
        if category not in allowed:
            raise ValueError(f"{self.name} pass does not apply to {category.value}")
        return [category]

    def select(self, category: Category | None = None, batch_limit: int | None = None) -> list[LocalRecord]:
        """Return records missing the target column, oldest first."""

        selected: list[LocalRecord] = []
        for current in self.categories(category):
            remaining = None if batch_limit is None else batch_limit - len(selected)
            if remaining is not None and remaining <= 0:
                break
            result = self.store.query(
                current.table,
                self.selection_filter(current),
                window=None if remaining is None else (0, remaining),
            )
            selected.extend(LocalRecord.from_row(row) for row in result.items)
        return selected

    async def prepare(self, records: Sequence[LocalRecord]) -> None:
        """Load anything the pass needs before the per-record loop."""

    @abstractmethod
    async def extract(self, record: LocalRecord) -> dict[str, Any]:
        """Return the column values to write for ``record``."""

    async def enrich(
        self,
        batch_limit: int | None = None,
        on_progress: ProgressCallback | None = None,
        category: Category | None = None,
    ) -> EnrichmentResult:
        records = self.select(category, batch_limit)
        result = EnrichmentResult(pass_name=self.name, total=len(records))
        await self.prepare(records)

        for index, record in enumerate(records, start=1):
            try:
                fields = {name: value for name, value in (await self.extract(record)).items() if name in self.writes}
                if not fields:
                    raise EnrichmentError("nothing to write")
                self.store.update(record.category.table, record_key(record), fields)
                result.updated_count += 1
            except MatchNotFound as exc:
                result.record_failure(record.content_id, record.title, "no_match")
                logger.info("%s: no English match for %s (%s)", self.name, record.content_id, exc)
            except Exception as exc:  # noqa: BLE001
                reason = str(exc) or exc.__class__.__name__
                result.record_failure(record.content_id, record.title, reason)
                logger.warning("%s failed for %s %s: %s", self.name, record.content_id, record.label, reason)

            if on_progress is not None:
                on_progress(index, len(records), record.label)

        logger.info(
            "%s pass finished: %d updated, %d failed of %d",
            self.name,
            result.updated_count,
            result.failed_count,
            result.total,
        )
        return result


class OverviewPass(EnrichmentPass):
    name = "overview"
    target_column = "overview"
    writes = ("overview", "homepage")

    def __init__(self, store: LocalStore, source: TourApiClient) -> None:
        super().__init__(store)
        self.source = source

    async def extract(self, record: LocalRecord) -> dict[str, Any]:
        item = await self.source.detail_common(record.content_id)
        overview = (item.get("overview") or "").strip()
        if not overview:
            raise EnrichmentError("no overview upstream")
        fields: dict[str, Any] = {"overview": overview}
        homepage = (item.get("homepage") or "").strip()
        if homepage:
            fields["homepage"] = homepage
        return fields


class IntroInfoPass(EnrichmentPass):
    name = "intro"
    target_column = "intro_info"
    writes = ("intro_info",)

    def __init__(self, store: LocalStore, source: TourApiClient) -> None:
        super().__init__(store)
        self.source = source

    async def extract(self, record: LocalRecord) -> dict[str, Any]:
        item = await self.source.detail_intro(record.content_id, record.content_type_id)
        info = clean_intro_info(item)
        if not info:
            raise EnrichmentError("no intro info upstream")
        return {"intro_info": info}


class RoomInfoPass(EnrichmentPass):
    name = "rooms"
    target_column = "room_info"
    writes = ("room_info",)
    scope = (Category.LODGING,)

    def __init__(self, store: LocalStore, source: TourApiClient) -> None:
        super().__init__(store)
        self.source = source

    async def extract(self, record: LocalRecord) -> dict[str, Any]:
        items = await self.source.detail_info(record.content_id, record.content_type_id)
        rooms = []
        for item in items:
            room = clean_intro_info(item)
            if room.get("roomtitle") or room.get("roomcode"):
                rooms.append(room)
        if not rooms:
            raise EnrichmentError("no room info upstream")
        return {"room_info": rooms}


class EnglishPass(EnrichmentPass):
    """Link records to the English catalog by name and copy translated fields."""

    name = "english"
    target_column = "content_id_en"
    writes = ("content_id_en", "title_en", "addr1_en", "overview_en")

    def __init__(
        self,
        store: LocalStore,
        english: TourApiClient,
        matcher: NameMatcher | None = None,
        page_size: int = 100,
    ) -> None:
        super().__init__(store)
        self.english = english
        self.matcher = matcher or default_matcher()
        self.page_size = page_size
        self._candidates: dict[Category, list[ExternalRecord]] = {}
        self._titles: dict[Category, dict[str, str]] = {}

    async def load_candidates(self, category: Category) -> list[ExternalRecord]:
        return await load_english_candidates(self.english, self.store, category, self.page_size)

    async def prepare(self, records: Sequence[LocalRecord]) -> None:
        self._candidates = {}
        self._titles = {}
        for category in dict.fromkeys(record.category for record in records):
            self._candidates[category] = await self.load_candidates(category)
            self._titles[category] = index_titles(self._candidates[category])
            logger.info("Loaded %d English candidates for %s", len(self._candidates[category]), category.value)

    async def extract(self, record: LocalRecord) -> dict[str, Any]:
        candidates = self._candidates.get(record.category, [])
        found = self.matcher.match(record, candidates, self._titles.get(record.category))
        if found is None:
            raise MatchNotFound(record.label)

        detail = await self.english.detail_common(found.source_id)
        candidates.remove(found)
        return english_fields(found, detail)


class AiDescriptionPass(EnrichmentPass):
    name = "ai"
    target_column = "ai_description"
    writes = ("ai_description",)

    def __init__(self, store: LocalStore, describer: DescriptionGenerator) -> None:
        super().__init__(store)
        self.describer = describer

    def selection_filter(self, category: Category) -> QueryFilter:
        selection = super().selection_filter(category)
        selection.present = ("overview",)
        return selection

    async def extract(self, record: LocalRecord) -> dict[str, Any]:
        return {"ai_description": await self.describer.describe(record)}
