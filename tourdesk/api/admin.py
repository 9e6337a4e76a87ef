"""Admin routes driving sync, enrichment, orphan cleanup and English mapping."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Mapping

from fastapi import APIRouter, HTTPException

from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient
from tourdesk.catalog.models import ENRICHMENT_COLUMNS, EVENT_COLUMNS, KEY_COLUMNS, STRUCTURAL_COLUMNS, LocalRecord
from tourdesk.core.metrics import MetricsCollector
from tourdesk.store.base import LocalStore, QueryFilter
from tourdesk.sync.counts import compare_counts
from tourdesk.sync.enrichment import AiDescriptionPass, EnrichmentPass
from tourdesk.sync.mapping import EnglishMappingPicker
from tourdesk.sync.orphans import OrphanAuditor
from tourdesk.sync.reconciler import Reconciler
from tourdesk.sync.state import AdminState

logger = logging.getLogger("tourdesk.admin")

EDITABLE_COLUMNS = frozenset(STRUCTURAL_COLUMNS + EVENT_COLUMNS + ENRICHMENT_COLUMNS) - set(KEY_COLUMNS)
MAX_PAGE_SIZE = 200


def create_admin_router(
    state: AdminState,
    store: LocalStore,
    reconciler: Reconciler,
    passes: Mapping[str, EnrichmentPass],
    auditor: OrphanAuditor,
    picker: EnglishMappingPicker,
    korean: TourApiClient,
    english: TourApiClient,
    metrics: MetricsCollector,
) -> APIRouter:
    router = APIRouter(prefix="/admin", tags=["admin"])

    @router.post("/sync/{category}")
    async def sync_category(category: str) -> dict:
        member = _category(category)
        lock = state.lock_for("sync")
        if lock.locked():
            raise HTTPException(status_code=409, detail="A sync is already running")

        async with lock:
            state.sync.start()
            try:
                result = await reconciler.sync(member)
            finally:
                state.sync.running = False
            state.sync.finish([result])
            state.audits.pop(member, None)
            metrics.record_sync(member.value, result.created_count, result.updated_count, failed=not result.success)

        result.raise_for_error()
        return result.to_dict()

    @router.post("/sync")
    async def sync_all(payload: dict | None = None) -> dict:
        requested = (payload or {}).get("categories")
        if requested is not None and not isinstance(requested, list):
            raise HTTPException(status_code=400, detail="categories must be a list")
        categories = [_category(value) for value in requested] if requested else list(Category)

        lock = state.lock_for("sync")
        if lock.locked():
            raise HTTPException(status_code=409, detail="A sync is already running")

        async with lock:
            state.sync.start()
            try:
                results = await reconciler.sync_all(categories)
            finally:
                state.sync.running = False
            state.sync.finish(results)
            for synced in categories:
                state.audits.pop(synced, None)

        for result in results:
            metrics.record_sync(
                result.category.value, result.created_count, result.updated_count, failed=not result.success
            )
        return {
            "success": all(result.success for result in results),
            "results": [result.to_dict() for result in results],
        }

    @router.get("/status")
    async def status() -> dict:
        return state.to_dict()

    @router.post("/enrich/{pass_name}")
    async def enrich(pass_name: str, payload: dict | None = None) -> dict:
        enrichment_pass = passes.get(pass_name)
        if enrichment_pass is None:
            raise HTTPException(status_code=404, detail=f"Unknown enrichment pass: {pass_name}")
        if isinstance(enrichment_pass, AiDescriptionPass) and not enrichment_pass.describer.enabled:
            raise HTTPException(status_code=503, detail="AI descriptions are not configured")

        payload = payload or {}
        batch_limit = payload.get("batch_limit")
        if batch_limit is not None and (not isinstance(batch_limit, int) or batch_limit < 1):
            raise HTTPException(status_code=400, detail="batch_limit must be a positive integer")
        member = _category(payload["category"]) if payload.get("category") else None

        lock = state.lock_for(f"enrich:{pass_name}")
        if lock.locked():
            raise HTTPException(status_code=409, detail=f"The {pass_name} pass is already running")

        progress = state.progress_for(pass_name)
        async with lock:
            progress.start()
            try:
                result = await enrichment_pass.enrich(batch_limit=batch_limit, on_progress=progress, category=member)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            finally:
                progress.running = False
            progress.finish(result)

        metrics.record_enrichment(pass_name, result.updated_count, result.failed_count)
        return result.to_dict()

    @router.get("/orphans/{category}")
    async def find_orphans(category: str) -> dict:
        member = _category(category)
        audit = await auditor.audit(member)
        state.audits[member] = audit
        return audit.to_dict()

    @router.post("/orphans/{category}/delete")
    async def delete_orphans(category: str, payload: dict) -> dict:
        member = _category(category)
        content_ids = payload.get("content_ids")
        if not isinstance(content_ids, list) or not content_ids:
            raise HTTPException(status_code=400, detail="content_ids must be a non-empty list")

        audit = state.audits.get(member)
        if audit is None:
            raise HTTPException(status_code=400, detail="Run an orphan audit for this category first")
        try:
            result = await auditor.delete_orphans(audit, content_ids, confirm=payload.get("confirm") is True)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return result.to_dict()

    @router.get("/english/{category}/unmapped")
    async def unmapped(category: str) -> dict:
        member = _category(category)
        workspace = await picker.load_workspace(member)
        state.workspaces[member] = workspace
        return workspace.to_dict()

    @router.post("/english/map")
    async def map_english(payload: dict) -> dict:
        category = payload.get("category")
        content_id = payload.get("content_id")
        content_id_en = payload.get("content_id_en")
        if not category or not content_id or not content_id_en:
            raise HTTPException(status_code=400, detail="category, content_id and content_id_en are required")

        member = _category(category)
        workspace = state.workspaces.get(member)
        if workspace is None:
            workspace = await picker.load_workspace(member)
            state.workspaces[member] = workspace

        local = workspace.find_local(str(content_id))
        if local is None:
            raise HTTPException(status_code=404, detail=f"{content_id} is not an unmapped {member.value} record")
        candidate = workspace.find_candidate(str(content_id_en))
        if candidate is None:
            raise HTTPException(status_code=404, detail=f"{content_id_en} is not an available English entry")

        result = await picker.map(local, candidate, workspace)
        if not result.success:
            raise HTTPException(status_code=409, detail=result.reason)
        return asdict(result) | {"remaining": len(workspace.unmapped_local)}

    @router.get("/counts")
    async def counts() -> dict:
        entries = await compare_counts(korean, english, store)
        return {"categories": [entry.to_dict() for entry in entries]}

    @router.get("/records/{category}")
    async def list_records(
        category: str,
        search: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> dict:
        member = _category(category)
        if offset < 0 or limit < 1:
            raise HTTPException(status_code=400, detail="offset must be >= 0 and limit >= 1")
        where = QueryFilter(
            equals={"content_type_id": member.content_type_id},
            search=("title", search) if search else None,
        )
        result = store.query(member.table, where, window=(offset, min(limit, MAX_PAGE_SIZE)))
        return {
            "category": member.value,
            "count": result.count,
            "items": [LocalRecord.from_row(row).to_dict() for row in result.items],
        }

    @router.get("/records/{category}/{content_id}")
    async def get_record(category: str, content_id: str) -> dict:
        member = _category(category)
        return _load_record(store, member, content_id).to_dict()

    @router.patch("/records/{category}/{content_id}")
    async def update_record(category: str, content_id: str, payload: dict) -> dict:
        member = _category(category)
        if not payload:
            raise HTTPException(status_code=400, detail="No fields to update")
        rejected = [name for name in payload if name not in EDITABLE_COLUMNS]
        if rejected:
            raise HTTPException(status_code=400, detail=f"Columns cannot be edited: {', '.join(sorted(rejected))}")

        try:
            updated = store.update(member.table, _key(member, content_id), payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if not updated:
            raise HTTPException(status_code=404, detail=f"No {member.value} record {content_id}")
        logger.info("Manual edit of %s %s: %s", member.value, content_id, sorted(payload))
        return _load_record(store, member, content_id).to_dict()

    @router.delete("/records/{category}/{content_id}")
    async def delete_record(category: str, content_id: str) -> dict:
        member = _category(category)
        removed = store.delete(member.table, [_key(member, content_id)])
        if removed:
            logger.warning("Manually deleted %s %s", member.value, content_id)
        return {"category": member.value, "content_id": content_id, "deleted": removed}

    return router


def _category(value: Any) -> Category:
    try:
        return Category.parse(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _key(category: Category, content_id: str) -> dict[str, str]:
    return {"content_type_id": category.content_type_id, "content_id": content_id}


def _load_record(store: LocalStore, category: Category, content_id: str) -> LocalRecord:
    result = store.query(category.table, QueryFilter(equals=_key(category, content_id)), window=(0, 1))
    if not result.items:
        raise HTTPException(status_code=404, detail=f"No {category.value} record {content_id}")
    return LocalRecord.from_row(result.items[0])
