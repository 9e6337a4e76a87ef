"""Dataclasses for upstream catalog items and their stored counterparts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from tourdesk.catalog.categories import Category

# Columns the list endpoints supply. A sync writes these and nothing else.
STRUCTURAL_COLUMNS: tuple[str, ...] = (
    "content_id",
    "content_type_id",
    "title",
    "addr1",
    "addr2",
    "zipcode",
    "tel",
    "mapx",
    "mapy",
    "firstimage",
    "firstimage2",
    "sigungucode",
    "modifiedtime",
)
EVENT_COLUMNS: tuple[str, ...] = ("eventstartdate", "eventenddate")

ENRICHMENT_COLUMNS: tuple[str, ...] = (
    "overview",
    "homepage",
    "intro_info",
    "room_info",
    "content_id_en",
    "title_en",
    "addr1_en",
    "overview_en",
    "ai_description",
)
JSON_COLUMNS: frozenset[str] = frozenset({"intro_info", "room_info"})

KEY_COLUMNS: tuple[str, str] = ("content_type_id", "content_id")


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True)
class SourcePage:
    """One page of list results from the upstream catalog."""

    items: list["ExternalRecord"]
    total_count: int
    page_no: int = 1


@dataclass(slots=True)
class ExternalRecord:
    """A catalog item as listed by TourAPI."""

    source_id: str
    content_type_id: str
    title: str | None = None
    addr1: str | None = None
    addr2: str | None = None
    zipcode: str | None = None
    tel: str | None = None
    mapx: str | None = None
    mapy: str | None = None
    firstimage: str | None = None
    firstimage2: str | None = None
    sigungucode: str | None = None
    modifiedtime: str | None = None
    eventstartdate: str | None = None
    eventenddate: str | None = None

    @classmethod
    def from_api(cls, item: Mapping[str, Any], content_type_id: str | None = None) -> "ExternalRecord":
        source_id = _clean(item.get("contentid"))
        if source_id is None:
            raise ValueError("catalog item without contentid")
        return cls(
            source_id=source_id,
            content_type_id=content_type_id or _clean(item.get("contenttypeid")) or "",
            title=_clean(item.get("title")),
            addr1=_clean(item.get("addr1")),
            addr2=_clean(item.get("addr2")),
            zipcode=_clean(item.get("zipcode")),
            tel=_clean(item.get("tel")),
            mapx=_clean(item.get("mapx")),
            mapy=_clean(item.get("mapy")),
            firstimage=_clean(item.get("firstimage")),
            firstimage2=_clean(item.get("firstimage2")),
            sigungucode=_clean(item.get("sigungucode")),
            modifiedtime=_clean(item.get("modifiedtime")),
            eventstartdate=_clean(item.get("eventstartdate")),
            eventenddate=_clean(item.get("eventenddate")),
        )

    def structural_fields(self, category: Category) -> dict[str, Any]:
        """Return the column values a sync is allowed to write."""

        fields: dict[str, Any] = {
            "content_id": self.source_id,
            "content_type_id": category.content_type_id,
            "title": self.title,
            "addr1": self.addr1,
            "addr2": self.addr2,
            "zipcode": self.zipcode,
            "tel": self.tel,
            "mapx": self.mapx,
            "mapy": self.mapy,
            "firstimage": self.firstimage,
            "firstimage2": self.firstimage2,
            "sigungucode": self.sigungucode,
            "modifiedtime": self.modifiedtime,
        }
        if category is Category.EVENT:
            fields["eventstartdate"] = self.eventstartdate
            fields["eventenddate"] = self.eventenddate
        return fields


@dataclass(slots=True)
class LocalRecord:
    """A stored catalog row, structural and enrichment columns together."""

    content_id: str
    content_type_id: str
    title: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "LocalRecord":
        return cls(
            content_id=str(row["content_id"]),
            content_type_id=str(row["content_type_id"]),
            title=row.get("title"),
            fields=dict(row),
        )

    @property
    def category(self) -> Category:
        return Category.from_content_type_id(self.content_type_id)

    @property
    def key(self) -> tuple[str, str]:
        return (self.content_type_id, self.content_id)

    @property
    def label(self) -> str:
        return self.title or self.content_id

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    @property
    def has_enrichment(self) -> bool:
        return any(self.fields.get(column) for column in ENRICHMENT_COLUMNS)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.fields)
        payload["category"] = self.category.value
        payload["has_enrichment"] = self.has_enrichment
        return payload
