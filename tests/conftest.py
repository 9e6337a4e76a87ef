from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import pytest

# The app module builds its store at import time; point it somewhere disposable first.
os.environ.setdefault("DATABASE_PATH", str(Path(tempfile.mkdtemp(prefix="tourdesk-tests-")) / "tourdesk.db"))
os.environ.setdefault("TOURAPI_SERVICE_KEY", "test-key")
os.environ["OPENROUTER_API_KEY"] = ""

from tourdesk.catalog.categories import Category  # noqa: E402
from tourdesk.catalog.models import ExternalRecord, SourcePage  # noqa: E402
from tourdesk.core.errors import FetchError  # noqa: E402
from tourdesk.store.sqlite import SQLiteLocalStore  # noqa: E402


class FakeSource:
    """In-memory stand-in for a TourAPI client."""

    def __init__(
        self,
        records: dict[Category, list[ExternalRecord]] | None = None,
        *,
        fail_pages: dict[Category, int] | None = None,
        details: dict[str, dict[str, Any]] | None = None,
        intros: dict[str, dict[str, Any]] | None = None,
        rooms: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.records = records or {}
        self.fail_pages = fail_pages or {}
        self.details = details or {}
        self.intros = intros or {}
        self.rooms = rooms or {}
        self.calls: list[tuple[str, Any]] = []

    async def fetch(self, category: Category, page_no: int, page_size: int) -> SourcePage:
        self.calls.append(("fetch", (category, page_no)))
        if self.fail_pages.get(category) == page_no:
            raise FetchError("upstream timed out", page=page_no)
        items = self.records.get(category, [])
        start = (page_no - 1) * page_size
        return SourcePage(items=list(items[start : start + page_size]), total_count=len(items), page_no=page_no)

    async def total_count(self, category: Category) -> int:
        return len(self.records.get(category, []))

    async def detail_common(self, content_id: str) -> dict[str, Any]:
        self.calls.append(("detail_common", content_id))
        if content_id not in self.details:
            raise FetchError("detailCommon2 returned no item", content_id=content_id)
        return self.details[content_id]

    async def detail_intro(self, content_id: str, content_type_id: str) -> dict[str, Any]:
        if content_id not in self.intros:
            raise FetchError("detailIntro2 returned no item", content_id=content_id)
        return self.intros[content_id]

    async def detail_info(self, content_id: str, content_type_id: str) -> list[dict[str, Any]]:
        return self.rooms.get(content_id, [])


def make_external(source_id: str, title: str | None = None, category: Category = Category.SPOT, **fields: Any) -> ExternalRecord:
    return ExternalRecord(
        source_id=source_id,
        content_type_id=category.content_type_id,
        title=title or f"장소 {source_id}",
        **fields,
    )


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def area_page_payload(fixtures_dir: Path) -> dict:
    return json.loads((fixtures_dir / "area_based_list_lodging.json").read_text(encoding="utf-8"))


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def external():
    return make_external


@pytest.fixture()
def store(tmp_path) -> SQLiteLocalStore:
    return SQLiteLocalStore(tmp_path / "catalog.db", batch_size=50)


@pytest.fixture
def seed(store):
    def _seed(category: Category, records: list[ExternalRecord], **extra: Any) -> None:
        rows = [record.structural_fields(category) | extra for record in records]
        store.upsert(category.table, rows)

    return _seed
