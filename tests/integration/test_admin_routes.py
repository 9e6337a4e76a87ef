import asyncio

from fastapi.testclient import TestClient

from tourdesk import main
from tourdesk.catalog.categories import Category
from tourdesk.main import app


client = TestClient(app, raise_server_exceptions=False)


def test_health_and_ready():
    assert client.get("/health").json() == {"status": "ok"}

    ready = client.get("/ready").json()
    assert ready["components"]["catalog_db"]["ok"] is True


def test_unknown_category_is_404():
    response = client.post("/admin/sync/museum")
    assert response.status_code == 404


def test_sync_category_and_browse(monkeypatch, fake_source, external):
    source = fake_source({Category.LEISURE: [external(f"lei-{index}", category=Category.LEISURE) for index in range(3)]})
    monkeypatch.setattr(main.reconciler, "source", source)

    response = client.post("/admin/sync/leisure")
    assert response.status_code == 200
    assert response.json()["created_count"] == 3

    listing = client.get("/admin/records/28", params={"limit": 2})
    payload = listing.json()
    assert payload["count"] == 3
    assert len(payload["items"]) == 2
    assert payload["items"][0]["category"] == "leisure"

    status = client.get("/admin/status").json()
    assert status["sync"]["last_results"]["leisure"]["success"] is True


def test_failed_sync_returns_502_with_context(monkeypatch, fake_source, external):
    records = [external(f"shop-{index}", category=Category.SHOPPING) for index in range(3)]
    source = fake_source({Category.SHOPPING: records}, fail_pages={Category.SHOPPING: 2})
    monkeypatch.setattr(main.reconciler, "source", source)
    monkeypatch.setattr(main.reconciler, "page_size", 2)

    response = client.post("/admin/sync/shopping")

    assert response.status_code == 502
    payload = response.json()
    assert payload["error"] == "sync_failed"
    assert payload["category"] == "shopping"
    assert payload["page"] == 2
    assert payload["created_count"] == 2


def test_sync_all_reports_each_category(monkeypatch, fake_source, external):
    source = fake_source({Category.RESTAURANT: [external("food-1", category=Category.RESTAURANT)]}, fail_pages={Category.SPOT: 1})
    monkeypatch.setattr(main.reconciler, "source", source)

    response = client.post("/admin/sync", json={"categories": ["spot", "restaurant"]})

    payload = response.json()
    assert response.status_code == 200
    assert payload["success"] is False
    assert [result["success"] for result in payload["results"]] == [False, True]


def test_enrich_unknown_pass_and_unconfigured_ai():
    assert client.post("/admin/enrich/poetry").status_code == 404
    assert client.post("/admin/enrich/ai").status_code == 503


def test_enrich_overview_pass(monkeypatch, fake_source, external):
    main.store.upsert(
        Category.LEISURE.table,
        [external("enrich-1", category=Category.LEISURE).structural_fields(Category.LEISURE)],
    )
    source = fake_source(details={"enrich-1": {"overview": "레포츠 개요"}})
    monkeypatch.setattr(main.passes["overview"], "source", source)

    response = client.post("/admin/enrich/overview", json={"category": "leisure", "batch_limit": 500})

    payload = response.json()
    assert response.status_code == 200
    assert payload["pass"] == "overview"
    assert payload["updated_count"] >= 1
    assert client.get("/admin/records/leisure/enrich-1").json()["overview"] == "레포츠 개요"
    assert client.get("/admin/status").json()["enrichment"]["overview"]["running"] is False


def test_enrich_rejects_concurrent_run(monkeypatch):
    lock = asyncio.Lock()
    asyncio.run(lock.acquire())
    monkeypatch.setitem(main.state.locks, "enrich:intro", lock)

    response = client.post("/admin/enrich/intro")

    assert response.status_code == 409


def test_enrich_rooms_rejects_wrong_category():
    response = client.post("/admin/enrich/rooms", json={"category": "spot"})
    assert response.status_code == 400


def test_orphan_audit_and_confirmed_delete(monkeypatch, fake_source, external):
    main.store.upsert(
        Category.CULTURAL_FACILITY.table,
        [
            external(cid, category=Category.CULTURAL_FACILITY).structural_fields(Category.CULTURAL_FACILITY)
            for cid in ("cf-live", "cf-gone")
        ],
    )
    source = fake_source({Category.CULTURAL_FACILITY: [external("cf-live", category=Category.CULTURAL_FACILITY)]})
    monkeypatch.setattr(main.auditor, "source", source)
    main.state.audits.pop(Category.CULTURAL_FACILITY, None)

    blocked = client.post("/admin/orphans/cultural_facility/delete", json={"content_ids": ["cf-gone"], "confirm": True})
    assert blocked.status_code == 400

    audit = client.get("/admin/orphans/cultural_facility").json()
    assert [record["content_id"] for record in audit["records"]] == ["cf-gone"]

    unconfirmed = client.post("/admin/orphans/cultural_facility/delete", json={"content_ids": ["cf-gone"]})
    assert unconfirmed.status_code == 400

    deleted = client.post(
        "/admin/orphans/cultural_facility/delete",
        json={"content_ids": ["cf-gone", "cf-live"], "confirm": True},
    ).json()
    assert deleted["deleted"] == ["cf-gone"]
    assert deleted["skipped"] == ["cf-live"]
    assert client.get("/admin/records/cultural_facility/cf-gone").status_code == 404


def test_sync_discards_stale_orphan_audit(monkeypatch, fake_source, external):
    main.store.upsert(
        Category.LEISURE.table,
        [external(cid, category=Category.LEISURE).structural_fields(Category.LEISURE) for cid in ("ls-a", "ls-b")],
    )
    source = fake_source({Category.LEISURE: [external("ls-a", category=Category.LEISURE)]})
    monkeypatch.setattr(main.auditor, "source", source)
    monkeypatch.setattr(main.reconciler, "source", source)

    audit = client.get("/admin/orphans/leisure").json()
    assert [record["content_id"] for record in audit["records"]] == ["ls-b"]

    source.records[Category.LEISURE].append(external("ls-b", category=Category.LEISURE))
    assert client.post("/admin/sync/leisure").status_code == 200

    stale = client.post("/admin/orphans/leisure/delete", json={"content_ids": ["ls-b"], "confirm": True})
    assert stale.status_code == 400
    assert client.get("/admin/records/leisure/ls-b").status_code == 200


def test_english_mapping_flow(monkeypatch, fake_source, external):
    main.store.upsert(
        Category.SPOT.table,
        [external("map-1", "엑스포과학공원", category=Category.SPOT).structural_fields(Category.SPOT)],
    )
    english = fake_source(
        {Category.SPOT: [external("map-E1", "Expo Science Park")]},
        details={"map-E1": {"title": "Expo Science Park", "overview": "Science park."}},
    )
    monkeypatch.setattr(main.picker, "english", english)
    main.state.workspaces.pop(Category.SPOT, None)

    workspace = client.get("/admin/english/spot/unmapped").json()
    assert "map-E1" in [candidate["content_id_en"] for candidate in workspace["candidates"]]

    missing = client.post("/admin/english/map", json={"category": "spot", "content_id": "map-1"})
    assert missing.status_code == 400

    mapped = client.post(
        "/admin/english/map",
        json={"category": "spot", "content_id": "map-1", "content_id_en": "map-E1"},
    )
    assert mapped.status_code == 200
    assert mapped.json()["success"] is True
    assert client.get("/admin/records/spot/map-1").json()["content_id_en"] == "map-E1"


def test_counts(monkeypatch):
    async def fake_total(category):
        return 7

    monkeypatch.setattr(main.korean, "total_count", fake_total)
    monkeypatch.setattr(main.english, "total_count", fake_total)

    payload = client.get("/admin/counts").json()

    assert len(payload["categories"]) == len(Category)
    assert all(entry["source_total"] == 7 for entry in payload["categories"])


def test_manual_edit_and_delete(external):
    main.store.upsert(
        Category.LODGING.table,
        [external("edit-1", "호텔", category=Category.LODGING).structural_fields(Category.LODGING)],
    )

    patched = client.patch("/admin/records/lodging/edit-1", json={"title_en": "Hotel", "tel": "042-000"})
    assert patched.status_code == 200
    assert patched.json()["title_en"] == "Hotel"

    assert client.patch("/admin/records/lodging/edit-1", json={"content_id": "x"}).status_code == 400
    assert client.patch("/admin/records/lodging/nope", json={"tel": "1"}).status_code == 404

    assert client.delete("/admin/records/lodging/edit-1").json()["deleted"] == 1
    assert client.delete("/admin/records/lodging/edit-1").json()["deleted"] == 0


def test_unexpected_error_returns_500(monkeypatch):
    async def failing_sync(*args, **kwargs):  # noqa: ANN002, ANN003
        raise RuntimeError("disk full")

    monkeypatch.setattr(main.reconciler, "sync", failing_sync)

    response = client.post("/admin/sync/spot")
    assert response.status_code == 500
    payload = response.json()
    assert payload["error"] == "internal_error"
    assert payload["message"] == "Something unexpected happened. Please try again later."


def test_metrics_and_request_id():
    response = client.get("/metrics", headers={"X-Request-ID": "test-req-123"})
    assert response.headers.get("X-Request-ID") == "test-req-123"
    assert set(response.json()) == {
        "sync_runs",
        "rows_created",
        "rows_updated",
        "sync_failures",
        "enrich_updated",
        "enrich_failed",
    }
