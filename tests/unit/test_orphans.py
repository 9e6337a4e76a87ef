import asyncio

import pytest

from tourdesk.catalog.categories import Category
from tourdesk.core.errors import FetchError
from tourdesk.store.base import QueryFilter
from tourdesk.sync.orphans import OrphanAuditor
from tourdesk.sync.reconciler import Reconciler


def _ids(store, category):
    rows = store.query(category.table, QueryFilter(equals={"content_type_id": category.content_type_id})).items
    return {row["content_id"] for row in rows}


def test_find_orphans_returns_missing_records_with_enrichment_flag(store, fake_source, external, seed):
    seed(Category.LODGING, [external(cid, category=Category.LODGING) for cid in ("1", "2", "3")])
    store.update(Category.LODGING.table, {"content_type_id": "32", "content_id": "3"}, {"overview": "폐업한 숙소"})
    source = fake_source({Category.LODGING: [external("1", category=Category.LODGING), external("2", category=Category.LODGING)]})

    orphans = asyncio.run(OrphanAuditor(source, store).find_orphans(Category.LODGING))

    assert [record.content_id for record in orphans] == ["3"]
    assert orphans[0].to_dict()["has_enrichment"] is True
    assert _ids(store, Category.LODGING) == {"1", "2", "3"}


def test_incomplete_upstream_list_aborts_audit(store, fake_source, external, seed):
    seed(Category.SPOT, [external(str(index)) for index in range(150)])
    source = fake_source({Category.SPOT: [external(str(index)) for index in range(150)]}, fail_pages={Category.SPOT: 2})

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(OrphanAuditor(source, store, page_size=100).find_orphans(Category.SPOT))

    assert excinfo.value.page == 2


def test_delete_requires_confirmation(store, fake_source, external, seed):
    seed(Category.SPOT, [external("gone")])
    auditor = OrphanAuditor(fake_source({Category.SPOT: []}), store)
    audit = asyncio.run(auditor.audit(Category.SPOT))

    with pytest.raises(ValueError):
        asyncio.run(auditor.delete_orphans(audit, ["gone"]))

    assert _ids(store, Category.SPOT) == {"gone"}


def test_delete_only_removes_audited_ids(store, fake_source, external, seed):
    seed(Category.SPOT, [external("gone"), external("live")])
    auditor = OrphanAuditor(fake_source({Category.SPOT: [external("live")]}), store)
    audit = asyncio.run(auditor.audit(Category.SPOT))

    result = asyncio.run(auditor.delete_orphans(audit, ["gone", "live"], confirm=True))

    assert result.deleted == ["gone"]
    assert result.skipped == ["live"]
    assert _ids(store, Category.SPOT) == {"live"}
    assert audit.records == []


def test_repeat_delete_is_a_no_op(store, fake_source, external, seed):
    seed(Category.SPOT, [external("gone")])
    auditor = OrphanAuditor(fake_source({Category.SPOT: []}), store)
    audit = asyncio.run(auditor.audit(Category.SPOT))
    asyncio.run(auditor.delete_orphans(audit, ["gone"], confirm=True))

    again = asyncio.run(auditor.delete_orphans(audit, ["gone"], confirm=True))

    assert again.deleted == []
    assert again.skipped == ["gone"]


def test_record_listed_upstream_again_after_sync_is_kept(store, fake_source, external, seed):
    seed(Category.SPOT, [external("A"), external("B")])
    store.update(Category.SPOT.table, {"content_type_id": "12", "content_id": "B"}, {"overview": "다시 열린 관광지"})
    source = fake_source({Category.SPOT: [external("A")]})
    auditor = OrphanAuditor(source, store)
    audit = asyncio.run(auditor.audit(Category.SPOT))
    assert audit.content_ids == {"B"}

    source.records[Category.SPOT] = [external("A"), external("B")]
    asyncio.run(Reconciler(source, store).sync(Category.SPOT))
    result = asyncio.run(auditor.delete_orphans(audit, ["B"], confirm=True))

    assert result.deleted == []
    assert result.skipped == ["B"]
    assert _ids(store, Category.SPOT) == {"A", "B"}
    kept = store.query(Category.SPOT.table, QueryFilter(equals={"content_id": "B"})).items[0]
    assert kept["overview"] == "다시 열린 관광지"
    assert audit.records == []


def test_delete_aborts_when_upstream_list_is_incomplete(store, fake_source, external, seed):
    seed(Category.SPOT, [external("gone")])
    source = fake_source({Category.SPOT: []})
    auditor = OrphanAuditor(source, store)
    audit = asyncio.run(auditor.audit(Category.SPOT))
    source.fail_pages[Category.SPOT] = 1

    with pytest.raises(FetchError):
        asyncio.run(auditor.delete_orphans(audit, ["gone"], confirm=True))

    assert _ids(store, Category.SPOT) == {"gone"}
