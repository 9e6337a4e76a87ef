"""Async client for the Korea Tourism Organization open-data catalog (TourAPI 4.0)."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date
from typing import Any, Literal, Mapping

import httpx

from tourdesk.catalog.categories import Category
from tourdesk.catalog.models import ExternalRecord, SourcePage
from tourdesk.core.config import Settings
from tourdesk.core.errors import FetchError

SUCCESS_CODE = "0000"
AREA_LIST = "areaBasedList2"
FESTIVAL_SEARCH = "searchFestival2"


def parse_tour_response(data: Any) -> tuple[list[dict[str, Any]], int]:
    """Return ``(items, total_count)`` from a TourAPI JSON envelope.

    ``items`` comes back as ``""`` when empty and as a bare object when the
    page holds a single row; both are normalized to a list.
    """

    if not isinstance(data, dict) or "response" not in data:
        raise ValueError("unexpected TourAPI payload")

    response = data["response"] or {}
    header = response.get("header") or {}
    code = str(header.get("resultCode", ""))
    if code != SUCCESS_CODE:
        raise ValueError(f"TourAPI result {code or '?'}: {header.get('resultMsg', 'no message')}")

    body = response.get("body") or {}
    items = body.get("items") or {}
    raw = items.get("item") if isinstance(items, dict) else None
    if raw is None:
        rows: list[dict[str, Any]] = []
    elif isinstance(raw, list):
        rows = [row for row in raw if isinstance(row, dict)]
    else:
        rows = [raw] if isinstance(raw, dict) else []

    try:
        total = int(body.get("totalCount") or len(rows))
    except (TypeError, ValueError):
        total = len(rows)
    return rows, total


def festival_start_date(today: date | None = None) -> str:
    """``eventStartDate`` one year before ``today``; Feb 29 falls back to Feb 28."""

    today = today or date.today()
    try:
        start = today.replace(year=today.year - 1)
    except ValueError:
        start = today.replace(year=today.year - 1, day=28)
    return start.strftime("%Y%m%d")


def service_params(service_key: str, mobile_app: str) -> dict[str, str]:
    return {"serviceKey": service_key, "MobileOS": "ETC", "MobileApp": mobile_app, "_type": "json"}


def list_request(
    area_code: str,
    content_type_id: str,
    *,
    page_no: int,
    page_size: int,
    festival: bool = False,
    event_start_date: str | None = None,
) -> tuple[str, dict[str, str]]:
    """Operation name and query for one list page of a content type."""

    params = {"areaCode": area_code, "numOfRows": str(page_size), "pageNo": str(page_no), "arrange": "C"}
    if festival:
        params["eventStartDate"] = event_start_date or festival_start_date()
        return FESTIVAL_SEARCH, params
    params["contentTypeId"] = content_type_id
    return AREA_LIST, params


class TourApiClient:
    """Paginated list and per-item detail calls against one TourAPI service.

    The Korean (``KorService2``) and English (``EngService2``) catalogs share
    the same operations but use different content type ids, so one instance
    per language is created.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str | None,
        *,
        language: Literal["ko", "en"] = "ko",
        area_code: str = "3",
        mobile_app: str = "LetsGoDaejeon",
        timeout: float = 20.0,
        min_interval: float = 0.2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.language = language
        self._service_key = service_key or ""
        self._area_code = area_code
        self._mobile_app = mobile_app
        self._timeout = timeout
        self._min_interval = max(0.0, min_interval)
        self._last_call = 0.0
        self._rate_lock = asyncio.Lock()
        self._transport = transport
        self._logger = logging.getLogger(f"tourdesk.tourapi.{language}")

    @classmethod
    def from_settings(cls, settings: Settings, language: Literal["ko", "en"] = "ko") -> "TourApiClient":
        return cls(
            settings.tourapi_en_base_url if language == "en" else settings.tourapi_base_url,
            settings.tourapi_service_key,
            language=language,
            area_code=settings.tourapi_area_code,
            mobile_app=settings.tourapi_mobile_app,
            timeout=settings.tourapi_timeout_sec,
            min_interval=settings.request_interval_sec,
        )

    def content_type_for(self, category: Category) -> str:
        descriptor = category.descriptor
        return descriptor.english_content_type_id if self.language == "en" else descriptor.content_type_id

    async def fetch(self, category: Category, page_no: int, page_size: int) -> SourcePage:
        """Fetch one list page for ``category``."""

        page = await category.descriptor.fetch(self, self.content_type_for(category), page_no, page_size)
        page.page_no = page_no
        return page

    async def total_count(self, category: Category) -> int:
        page = await self.fetch(category, 1, 1)
        return page.total_count

    async def area_based_list(self, content_type_id: str, *, page_no: int = 1, page_size: int = 100) -> SourcePage:
        operation, params = list_request(self._area_code, content_type_id, page_no=page_no, page_size=page_size)
        rows, total = await self._get(operation, params, page=page_no, category=content_type_id)
        return SourcePage(items=self._records(rows, content_type_id, page_no), total_count=total, page_no=page_no)

    async def search_festival(
        self,
        *,
        page_no: int = 1,
        page_size: int = 100,
        event_start_date: str | None = None,
    ) -> SourcePage:
        content_type_id = "85" if self.language == "en" else "15"
        operation, params = list_request(
            self._area_code,
            content_type_id,
            page_no=page_no,
            page_size=page_size,
            festival=True,
            event_start_date=event_start_date,
        )
        rows, total = await self._get(operation, params, page=page_no, category="15")
        return SourcePage(items=self._records(rows, content_type_id, page_no), total_count=total, page_no=page_no)

    async def detail_common(self, content_id: str) -> dict[str, Any]:
        rows, _ = await self._get("detailCommon2", {"contentId": content_id}, content_id=content_id)
        if not rows:
            raise FetchError("detailCommon2 returned no item", content_id=content_id)
        return rows[0]

    async def detail_intro(self, content_id: str, content_type_id: str) -> dict[str, Any]:
        rows, _ = await self._get(
            "detailIntro2",
            {"contentId": content_id, "contentTypeId": content_type_id},
            content_id=content_id,
        )
        if not rows:
            raise FetchError("detailIntro2 returned no item", content_id=content_id)
        return rows[0]

    async def detail_info(self, content_id: str, content_type_id: str) -> list[dict[str, Any]]:
        rows, _ = await self._get(
            "detailInfo2",
            {"contentId": content_id, "contentTypeId": content_type_id},
            content_id=content_id,
        )
        return rows

    def _records(self, rows: list[dict[str, Any]], content_type_id: str, page_no: int) -> list[ExternalRecord]:
        records: list[ExternalRecord] = []
        for row in rows:
            try:
                records.append(ExternalRecord.from_api(row, content_type_id))
            except ValueError:
                self._logger.warning("Skipping item without contentid on page %s", page_no)
        return records

    async def _throttle(self) -> None:
        async with self._rate_lock:
            wait_for = self._min_interval - (time.monotonic() - self._last_call)
            if wait_for > 0:
                await asyncio.sleep(wait_for)
            self._last_call = time.monotonic()

    async def _get(
        self,
        operation: str,
        params: Mapping[str, str],
        *,
        category: str | None = None,
        page: int | None = None,
        content_id: str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        query = {**service_params(self._service_key, self._mobile_app), **params}
        url = f"{self.base_url}/{operation}"

        await self._throttle()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url, params=query, headers={"Accept": "application/json"})
                response.raise_for_status()
                data = response.json()
            return parse_tour_response(data)
        except (httpx.HTTPError, ValueError) as exc:
            self._logger.warning("%s failed (page=%s content_id=%s): %s", operation, page, content_id, exc)
            raise FetchError(
                f"{operation} failed: {exc}",
                category=category,
                page=page,
                content_id=content_id,
            ) from exc
