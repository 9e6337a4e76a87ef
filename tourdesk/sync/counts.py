"""Upstream vs. local row counts per category."""

from __future__ import annotations

import logging
from typing import Iterable

from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient
from tourdesk.core.errors import FetchError
from tourdesk.store.base import LocalStore, QueryFilter

from .types import CategoryCount

logger = logging.getLogger("tourdesk.counts")


def local_count(store: LocalStore, category: Category) -> int:
    result = store.query(
        category.table,
        QueryFilter(equals={"content_type_id": category.content_type_id}),
        window=(0, 0),
    )
    return result.count


async def compare_counts(
    korean: TourApiClient,
    english: TourApiClient | None,
    store: LocalStore,
    categories: Iterable[Category] | None = None,
) -> list[CategoryCount]:
    counts: list[CategoryCount] = []
    for category in categories or list(Category):
        entry = CategoryCount(category=category, local_count=local_count(store, category))
        try:
            entry.source_total = await korean.total_count(category)
            if english is not None:
                entry.english_total = await english.total_count(category)
        except FetchError as exc:
            entry.error = exc.message
            logger.warning("Count check for %s failed: %s", category.value, exc.message)
        counts.append(entry)
    return counts
