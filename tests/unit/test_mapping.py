import asyncio

from tourdesk.catalog.categories import Category
from tourdesk.store.base import QueryFilter
from tourdesk.sync.enrichment import EnglishPass
from tourdesk.sync.mapping import EnglishMappingPicker


def _row(store, content_id):
    result = store.query(Category.SPOT.table, QueryFilter(equals={"content_type_id": "12", "content_id": content_id}))
    return result.items[0]


def _english(fake_source, external):
    return fake_source(
        {Category.SPOT: [external("E1", "Expo Science Park"), external("E2", "Hanbat Arboretum"), external("E3", "Linked")]},
        details={"E1": {"title": "Expo Science Park", "addr1": "480, Daedeok-daero", "overview": "<p>Science park.</p>"}},
    )


def test_workspace_lists_unmapped_records_and_free_candidates(store, fake_source, external, seed):
    seed(Category.SPOT, [external("1", "엑스포과학공원"), external("2", "한밭수목원")])
    seed(Category.SPOT, [external("3", "연결됨")], content_id_en="E3")

    workspace = asyncio.run(EnglishMappingPicker(store, _english(fake_source, external)).load_workspace(Category.SPOT))

    assert [record.content_id for record in workspace.unmapped_local] == ["1", "2"]
    assert {record.source_id for record in workspace.candidates} == {"E1", "E2"}


def test_map_writes_fields_and_shrinks_workspace(store, fake_source, external, seed):
    seed(Category.SPOT, [external("1", "엑스포과학공원"), external("2", "한밭수목원")])
    picker = EnglishMappingPicker(store, _english(fake_source, external))
    workspace = asyncio.run(picker.load_workspace(Category.SPOT))

    result = asyncio.run(picker.map(workspace.find_local("1"), workspace.find_candidate("E1"), workspace))

    row = _row(store, "1")
    assert result.success
    assert row["content_id_en"] == "E1"
    assert row["addr1_en"] == "480, Daedeok-daero"
    assert workspace.find_local("1") is None
    assert workspace.find_candidate("E1") is None
    assert len(workspace.candidates) == 1


def test_map_refuses_candidate_linked_elsewhere(store, fake_source, external, seed):
    seed(Category.SPOT, [external("1", "엑스포과학공원"), external("2", "한밭수목원")])
    picker = EnglishMappingPicker(store, _english(fake_source, external))
    workspace = asyncio.run(picker.load_workspace(Category.SPOT))
    candidate = workspace.find_candidate("E1")
    asyncio.run(picker.map(workspace.find_local("1"), candidate, workspace))

    result = asyncio.run(picker.map(workspace.find_local("2"), candidate))

    assert not result.success
    assert result.reason == "candidate_taken"
    assert not _row(store, "2")["content_id_en"]


def test_map_refuses_record_linked_after_workspace_loaded(store, fake_source, external, seed):
    seed(Category.SPOT, [external("1", "Hanbat Arboretum")])
    english = fake_source(
        {Category.SPOT: [external("E1", "Expo Science Park"), external("E2", "HANBAT ARBORETUM")]},
        details={"E1": {"title": "Expo Science Park"}, "E2": {"title": "Hanbat Arboretum"}},
    )
    picker = EnglishMappingPicker(store, english)
    workspace = asyncio.run(picker.load_workspace(Category.SPOT))
    local = workspace.find_local("1")

    linked = asyncio.run(EnglishPass(store, english).enrich())
    assert linked.updated_count == 1
    assert _row(store, "1")["content_id_en"] == "E2"

    result = asyncio.run(picker.map(local, workspace.find_candidate("E1"), workspace))

    assert not result.success
    assert result.reason == "already_mapped"
    assert _row(store, "1")["content_id_en"] == "E2"
    assert workspace.find_local("1") is None
    assert workspace.find_candidate("E2") is None
    assert workspace.find_candidate("E1") is not None


def test_map_refuses_record_deleted_after_workspace_loaded(store, fake_source, external, seed):
    seed(Category.SPOT, [external("1", "엑스포과학공원")])
    picker = EnglishMappingPicker(store, _english(fake_source, external))
    workspace = asyncio.run(picker.load_workspace(Category.SPOT))
    store.delete(Category.SPOT.table, [{"content_type_id": "12", "content_id": "1"}])

    result = asyncio.run(picker.map(workspace.find_local("1"), workspace.find_candidate("E1"), workspace))

    assert result.reason == "local_record_missing"
    assert workspace.find_local("1") is None
