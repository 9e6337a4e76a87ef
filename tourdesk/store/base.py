"""Local store abstraction: the four access shapes the catalog workflow uses."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from tourdesk.catalog.models import KEY_COLUMNS


@dataclass(slots=True)
class QueryFilter:
    """Conjunction of simple predicates.

    ``missing`` columns must be NULL or empty, ``present`` columns must hold a
    value, ``search`` is a case-insensitive substring match on one column.
    """

    equals: dict[str, Any] = field(default_factory=dict)
    missing: tuple[str, ...] = ()
    present: tuple[str, ...] = ()
    search: tuple[str, str] | None = None


@dataclass(slots=True)
class QueryResult:
    items: list[dict[str, Any]]
    count: int


Sort = tuple[str, bool]
Window = tuple[int, int]


class LocalStore(ABC):
    """Keyed record storage for synced catalog rows."""

    @abstractmethod
    def upsert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        conflict_key: Sequence[str] = KEY_COLUMNS,
    ) -> int:
        """Insert or update ``records`` keyed by ``conflict_key``.

        Only the columns present in each record are written; other columns of
        an existing row keep their values. Returns the number of rows written.
        """

    @abstractmethod
    def update(self, table: str, key: Mapping[str, Any], fields: Mapping[str, Any]) -> int:
        """Write ``fields`` onto the row identified by ``key``."""

    @abstractmethod
    def delete(self, table: str, keys: Iterable[Mapping[str, Any]]) -> int:
        """Delete rows by key; missing rows are ignored. Returns rows removed."""

    @abstractmethod
    def query(
        self,
        table: str,
        where: QueryFilter | None = None,
        sort: Sort | None = None,
        window: Window | None = None,
    ) -> QueryResult:
        """Return matching rows (optionally a ``(offset, limit)`` slice) and the total match count."""
