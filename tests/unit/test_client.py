import asyncio
import json
from datetime import date

import httpx
import pytest

from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient, festival_start_date, list_request, parse_tour_response
from tourdesk.core.errors import FetchError


def _load(fixtures_dir, name):
    return json.loads((fixtures_dir / name).read_text(encoding="utf-8"))


def _client(handler, language="ko") -> TourApiClient:
    return TourApiClient(
        "https://apis.example/B551011/KorService2",
        "secret",
        language=language,
        min_interval=0.0,
        transport=httpx.MockTransport(handler),
    )


def test_parse_normalizes_item_shapes(fixtures_dir, area_page_payload):
    rows, total = parse_tour_response(area_page_payload)
    assert len(rows) == 2
    assert total == 57

    rows, total = parse_tour_response(_load(fixtures_dir, "single_item.json"))
    assert [row["contentid"] for row in rows] == ["129145"]

    rows, total = parse_tour_response(_load(fixtures_dir, "empty_items.json"))
    assert rows == []
    assert total == 200


def test_parse_raises_on_error_result_code(fixtures_dir):
    with pytest.raises(ValueError, match="SERVICE_KEY"):
        parse_tour_response(_load(fixtures_dir, "service_key_error.json"))


def test_fetch_lodging_page_sends_expected_params(area_page_payload):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=area_page_payload)

    page = asyncio.run(_client(handler).fetch(Category.LODGING, 2, 100))

    assert seen["path"].endswith("/areaBasedList2")
    assert seen["params"]["contentTypeId"] == "32"
    assert seen["params"]["areaCode"] == "3"
    assert seen["params"]["pageNo"] == "2"
    assert seen["params"]["serviceKey"] == "secret"
    assert seen["params"]["_type"] == "json"
    assert page.page_no == 2
    assert [record.source_id for record in page.items] == ["142785", "2769361"]
    assert page.items[0].addr2 is None
    assert page.items[0].content_type_id == "32"


def test_english_client_uses_english_type_ids(area_page_payload):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=area_page_payload)

    asyncio.run(_client(handler, language="en").fetch(Category.LODGING, 1, 10))

    assert seen["params"]["contentTypeId"] == "80"


def test_events_use_festival_search(fixtures_dir):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=_load(fixtures_dir, "empty_items.json"))

    page = asyncio.run(_client(handler).fetch(Category.EVENT, 3, 100))

    assert seen["path"].endswith("/searchFestival2")
    assert seen["params"]["eventStartDate"] == festival_start_date()
    assert "contentTypeId" not in seen["params"]
    assert page.items == []


def test_festival_start_date_goes_back_one_calendar_year():
    assert festival_start_date(date(2025, 10, 18)) == "20241018"
    assert festival_start_date(date(2024, 2, 29)) == "20230228"


def test_list_request_picks_operation_per_content_type():
    operation, params = list_request("3", "32", page_no=2, page_size=50)
    assert operation == "areaBasedList2"
    assert params == {"areaCode": "3", "contentTypeId": "32", "numOfRows": "50", "pageNo": "2", "arrange": "C"}

    operation, params = list_request("3", "15", page_no=1, page_size=1, festival=True, event_start_date="20240101")
    assert operation == "searchFestival2"
    assert params["eventStartDate"] == "20240101"
    assert "contentTypeId" not in params


def test_http_failure_becomes_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="Service Unavailable")

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(_client(handler).fetch(Category.SPOT, 4, 100))

    assert excinfo.value.page == 4


def test_detail_common_returns_single_item(fixtures_dir):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["contentId"] == "129145"
        return httpx.Response(200, json=_load(fixtures_dir, "single_item.json"))

    item = asyncio.run(_client(handler).detail_common("129145"))

    assert item["title"] == "대전시립미술관"


def test_detail_common_without_item_raises(fixtures_dir):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_load(fixtures_dir, "empty_items.json"))

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(_client(handler).detail_common("1"))

    assert excinfo.value.content_id == "1"
