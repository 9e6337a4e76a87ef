"""SQLite implementation of the local catalog store."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from tourdesk.catalog.categories import FESTIVALS_TABLE, SPOTS_TABLE
from tourdesk.catalog.models import (
    ENRICHMENT_COLUMNS,
    EVENT_COLUMNS,
    JSON_COLUMNS,
    KEY_COLUMNS,
    STRUCTURAL_COLUMNS,
)
from tourdesk.core.db import sqlite_connection

from .base import LocalStore, QueryFilter, QueryResult, Sort, Window

BOOKKEEPING_COLUMNS: tuple[str, ...] = ("created_at", "updated_at")

TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    SPOTS_TABLE: STRUCTURAL_COLUMNS + ENRICHMENT_COLUMNS + BOOKKEEPING_COLUMNS,
    FESTIVALS_TABLE: STRUCTURAL_COLUMNS
    + EVENT_COLUMNS
    + tuple(column for column in ENRICHMENT_COLUMNS if column != "room_info")
    + BOOKKEEPING_COLUMNS,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SQLiteLocalStore(LocalStore):
    """SQLite-backed store with one table for spots and one for festivals."""

    def __init__(self, db_path: Path, batch_size: int = 100) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.batch_size = max(1, batch_size)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Create required tables if they do not exist."""

        with sqlite_connection(self.db_path) as conn:
            for table, columns in TABLE_COLUMNS.items():
                column_sql = ",\n".join(
                    f"    {column} TEXT NOT NULL" if column in KEY_COLUMNS else f"    {column} TEXT"
                    for column in columns
                )
                conn.executescript(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                    {column_sql},
                        UNIQUE (content_type_id, content_id)
                    );

                    CREATE INDEX IF NOT EXISTS idx_{table}_type ON {table} (content_type_id);
                    """
                )

    def _columns(self, table: str) -> tuple[str, ...]:
        try:
            return TABLE_COLUMNS[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    def _check_columns(self, table: str, names: Iterable[str]) -> None:
        allowed = set(self._columns(table))
        unknown = [name for name in names if name not in allowed]
        if unknown:
            raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")

    def upsert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        conflict_key: Sequence[str] = KEY_COLUMNS,
    ) -> int:
        if not records:
            return 0

        written = 0
        timestamp = _now()
        for start in range(0, len(records), self.batch_size):
            batch = records[start : start + self.batch_size]
            with sqlite_connection(self.db_path) as conn:
                for record in batch:
                    data = {key: _encode(key, value) for key, value in record.items()}
                    self._check_columns(table, data)
                    missing_key = [column for column in conflict_key if not data.get(column)]
                    if missing_key:
                        raise ValueError(f"Record missing conflict key column(s): {', '.join(missing_key)}")

                    data["created_at"] = timestamp
                    data["updated_at"] = timestamp
                    columns = ", ".join(data.keys())
                    placeholders = ", ".join("?" for _ in data)
                    update_clause = ", ".join(
                        f"{col}=excluded.{col}"
                        for col in data
                        if col not in conflict_key and col != "created_at"
                    )
                    conn.execute(
                        f"""
                        INSERT INTO {table} ({columns}) VALUES ({placeholders})
                        ON CONFLICT({', '.join(conflict_key)}) DO UPDATE SET {update_clause}
                        """,
                        tuple(data.values()),
                    )
                    written += 1
        return written

    def update(self, table: str, key: Mapping[str, Any], fields: Mapping[str, Any]) -> int:
        if not fields:
            return 0
        self._check_columns(table, list(key) + list(fields))
        if any(column in fields for column in key):
            raise ValueError("Key columns cannot be updated")

        assignments = {name: _encode(name, value) for name, value in fields.items()}
        assignments["updated_at"] = _now()
        set_clause = ", ".join(f"{name} = ?" for name in assignments)
        where_clause = " AND ".join(f"{name} = ?" for name in key)

        with sqlite_connection(self.db_path) as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {set_clause} WHERE {where_clause}",
                tuple(assignments.values()) + tuple(key.values()),
            )
            return cursor.rowcount

    def delete(self, table: str, keys: Iterable[Mapping[str, Any]]) -> int:
        removed = 0
        with sqlite_connection(self.db_path) as conn:
            for key in keys:
                self._check_columns(table, key)
                where_clause = " AND ".join(f"{name} = ?" for name in key)
                cursor = conn.execute(f"DELETE FROM {table} WHERE {where_clause}", tuple(key.values()))
                removed += cursor.rowcount
        return removed

    def query(
        self,
        table: str,
        where: QueryFilter | None = None,
        sort: Sort | None = None,
        window: Window | None = None,
    ) -> QueryResult:
        where = where or QueryFilter()
        clauses: list[str] = []
        params: list[Any] = []

        self._check_columns(table, list(where.equals) + list(where.missing) + list(where.present))
        for name, value in where.equals.items():
            clauses.append(f"{name} = ?")
            params.append(value)
        for name in where.missing:
            clauses.append(f"({name} IS NULL OR {name} = '')")
        for name in where.present:
            clauses.append(f"({name} IS NOT NULL AND {name} != '')")
        if where.search:
            column, text = where.search
            self._check_columns(table, [column])
            escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            clauses.append(f"LOWER({column}) LIKE LOWER(?) ESCAPE '\\'")
            params.append(f"%{escaped}%")

        where_sql = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        order_sql = " ORDER BY id ASC"
        if sort:
            column, descending = sort
            self._check_columns(table, [column])
            order_sql = f" ORDER BY {column} {'DESC' if descending else 'ASC'}, id ASC"

        limit_sql = ""
        limit_params: list[Any] = []
        if window is not None:
            offset, limit = window
            limit_sql = " LIMIT ? OFFSET ?"
            limit_params = [max(0, limit), max(0, offset)]

        select_clause = ", ".join(self._columns(table))
        with sqlite_connection(self.db_path) as conn:
            count = conn.execute(f"SELECT COUNT(*) FROM {table}{where_sql}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT {select_clause} FROM {table}{where_sql}{order_sql}{limit_sql}",
                params + limit_params,
            ).fetchall()

        items = [{name: _decode(name, row[name]) for name in row.keys()} for row in rows]
        return QueryResult(items=items, count=int(count))


def _encode(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS and value is not None and not isinstance(value, str):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


def _decode(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS and isinstance(value, str) and value:
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value
