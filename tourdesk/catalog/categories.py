"""Closed set of catalog categories and their static descriptors."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from tourdesk.catalog.client import TourApiClient
    from tourdesk.catalog.models import ExternalRecord, SourcePage


SPOTS_TABLE = "tour_spots"
FESTIVALS_TABLE = "tour_festivals"


class Category(str, Enum):
    """TourAPI content types synced into the local store."""

    SPOT = "spot"
    CULTURAL_FACILITY = "cultural_facility"
    LEISURE = "leisure"
    LODGING = "lodging"
    SHOPPING = "shopping"
    RESTAURANT = "restaurant"
    EVENT = "event"

    @property
    def descriptor(self) -> "CategoryDescriptor":
        return CATEGORIES[self]

    @property
    def content_type_id(self) -> str:
        return CATEGORIES[self].content_type_id

    @property
    def table(self) -> str:
        return CATEGORIES[self].table

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Resolve a member value (``lodging``) or a content type id (``32``)."""

        raw = str(value).strip().lower()
        for member in cls:
            if raw == member.value or raw == member.content_type_id:
                return member
        raise ValueError(f"Unknown category: {value!r}")

    @classmethod
    def from_content_type_id(cls, content_type_id: str) -> "Category":
        for member in cls:
            if member.content_type_id == str(content_type_id):
                return member
        raise ValueError(f"Unknown content type id: {content_type_id!r}")


FetchPage = Callable[["TourApiClient", str, int, int], Awaitable["SourcePage"]]
RecordFilter = Callable[["ExternalRecord"], bool]


async def _fetch_area_based(client: "TourApiClient", content_type_id: str, page_no: int, page_size: int) -> "SourcePage":
    return await client.area_based_list(content_type_id, page_no=page_no, page_size=page_size)


async def _fetch_festivals(client: "TourApiClient", content_type_id: str, page_no: int, page_size: int) -> "SourcePage":
    return await client.search_festival(page_no=page_no, page_size=page_size)


def _event_not_finished(record: "ExternalRecord") -> bool:
    end = record.eventenddate
    return not end or end >= date.today().strftime("%Y%m%d")


@dataclass(frozen=True, slots=True)
class CategoryDescriptor:
    content_type_id: str
    label_ko: str
    label_en: str
    table: str
    english_content_type_id: str
    fetch: FetchPage
    key_field: str = "content_id"
    source_key_field: str = "contentid"
    record_filter: RecordFilter | None = None


CATEGORIES: dict[Category, CategoryDescriptor] = {
    Category.SPOT: CategoryDescriptor(
        content_type_id="12",
        label_ko="관광지",
        label_en="Tourist Attraction",
        table=SPOTS_TABLE,
        english_content_type_id="76",
        fetch=_fetch_area_based,
    ),
    Category.CULTURAL_FACILITY: CategoryDescriptor(
        content_type_id="14",
        label_ko="문화시설",
        label_en="Cultural Facility",
        table=SPOTS_TABLE,
        english_content_type_id="78",
        fetch=_fetch_area_based,
    ),
    Category.LEISURE: CategoryDescriptor(
        content_type_id="28",
        label_ko="레포츠",
        label_en="Leisure",
        table=SPOTS_TABLE,
        english_content_type_id="75",
        fetch=_fetch_area_based,
    ),
    Category.LODGING: CategoryDescriptor(
        content_type_id="32",
        label_ko="숙박",
        label_en="Accommodation",
        table=SPOTS_TABLE,
        english_content_type_id="80",
        fetch=_fetch_area_based,
    ),
    Category.SHOPPING: CategoryDescriptor(
        content_type_id="38",
        label_ko="쇼핑",
        label_en="Shopping",
        table=SPOTS_TABLE,
        english_content_type_id="79",
        fetch=_fetch_area_based,
    ),
    Category.RESTAURANT: CategoryDescriptor(
        content_type_id="39",
        label_ko="음식점",
        label_en="Restaurant",
        table=SPOTS_TABLE,
        english_content_type_id="82",
        fetch=_fetch_area_based,
    ),
    Category.EVENT: CategoryDescriptor(
        content_type_id="15",
        label_ko="축제/행사",
        label_en="Festival",
        table=FESTIVALS_TABLE,
        english_content_type_id="85",
        fetch=_fetch_festivals,
        record_filter=_event_not_finished,
    ),
}


def categories_for_table(table: str) -> list[Category]:
    return [category for category, descriptor in CATEGORIES.items() if descriptor.table == table]
