"""FastAPI application entry point for the Daejeon tourism admin service."""

import logging
import sqlite3
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tourdesk.ai.describer import DescriptionGenerator
from tourdesk.api.admin import create_admin_router
from tourdesk.catalog.categories import FESTIVALS_TABLE, SPOTS_TABLE
from tourdesk.catalog.client import TourApiClient
from tourdesk.core.config import get_settings
from tourdesk.core.errors import FetchError, fetch_error_handler, unhandled_exception_handler
from tourdesk.core.logging import configure_logging, request_id_middleware
from tourdesk.core.metrics import MetricsCollector
from tourdesk.store.sqlite import SQLiteLocalStore
from tourdesk.sync.enrichment import (
    AiDescriptionPass,
    EnglishPass,
    EnrichmentPass,
    IntroInfoPass,
    OverviewPass,
    RoomInfoPass,
)
from tourdesk.sync.mapping import EnglishMappingPicker
from tourdesk.sync.matching import EquivalenceMatcher, default_matcher
from tourdesk.sync.orphans import OrphanAuditor
from tourdesk.sync.reconciler import Reconciler
from tourdesk.sync.state import AdminState

settings = get_settings()
logger = logging.getLogger("tourdesk.app")

store = SQLiteLocalStore(settings.database_path, batch_size=settings.upsert_batch_size)
korean = TourApiClient.from_settings(settings, "ko")
english = TourApiClient.from_settings(settings, "en")
describer = DescriptionGenerator.from_settings(settings)
equivalences = EquivalenceMatcher.from_file(settings.english_equivalences_path)

reconciler = Reconciler(korean, store, page_size=settings.sync_page_size)
auditor = OrphanAuditor(korean, store, page_size=settings.sync_page_size)
picker = EnglishMappingPicker(store, english, page_size=settings.sync_page_size)
passes: dict[str, EnrichmentPass] = {
    enrichment_pass.name: enrichment_pass
    for enrichment_pass in (
        OverviewPass(store, korean),
        IntroInfoPass(store, korean),
        RoomInfoPass(store, korean),
        EnglishPass(store, english, default_matcher(equivalences), page_size=settings.sync_page_size),
        AiDescriptionPass(store, describer),
    )
}
state = AdminState()
metrics = MetricsCollector()

app = FastAPI(title=settings.app_name, version="0.1.0", docs_url="/docs")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(request_id_middleware)

app.include_router(
    create_admin_router(state, store, reconciler, passes, auditor, picker, korean, english, metrics)
)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Return basic service status for monitoring."""

    return {"status": "ok"}


@app.get("/ready", tags=["health"])
async def readiness_probe() -> dict[str, Any]:
    """Readiness endpoint that verifies critical dependencies.

    Checks:
    - Catalog SQLite DB reachable and has both record tables.
    - TourAPI service key configured.
    - OpenRouter key configured (optional; only the AI pass needs it).
    """

    components: dict[str, dict[str, Any]] = {}

    db_ok = False
    db_error: str | None = None
    try:
        with sqlite3.connect(Path(settings.database_path)) as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name IN (?, ?)",
                (SPOTS_TABLE, FESTIVALS_TABLE),
            ).fetchall()
            db_ok = len(rows) == 2
    except sqlite3.Error as exc:
        db_error = str(exc)
    components["catalog_db"] = {
        "path": str(settings.database_path),
        "ok": db_ok,
        **({"error": db_error} if db_error else {}),
    }

    components["tourapi"] = {
        "base_url": settings.tourapi_base_url,
        "english_base_url": settings.tourapi_en_base_url,
        "ok": bool(settings.tourapi_service_key),
        **({} if settings.tourapi_service_key else {"error": "TOURAPI_SERVICE_KEY is not set"}),
    }
    components["openrouter"] = {
        "model": settings.openrouter_model,
        "ok": settings.openrouter_enabled,
        "equivalences": len(equivalences),
    }

    overall = (
        "ok"
        if components["catalog_db"]["ok"] and components["tourapi"]["ok"]
        else ("degraded" if components["catalog_db"]["ok"] else "fail")
    )

    return {
        "status": overall,
        "environment": settings.environment,
        "components": components,
    }


@app.on_event("startup")
async def startup_logging() -> None:
    level = configure_logging(settings.log_level)
    logger.info("Logging configured at %s level for %s environment", logging.getLevelName(level), settings.environment)
    if not settings.tourapi_service_key:
        logger.warning("TOURAPI_SERVICE_KEY is not set; upstream calls will be rejected")


app.add_exception_handler(FetchError, fetch_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.get("/metrics", tags=["metrics"])
async def metrics_endpoint() -> dict:
    snapshot = metrics.snapshot()
    return {
        "sync_runs": snapshot.sync_runs,
        "rows_created": snapshot.rows_created,
        "rows_updated": snapshot.rows_updated,
        "sync_failures": snapshot.sync_failures,
        "enrich_updated": snapshot.enrich_updated,
        "enrich_failed": snapshot.enrich_failed,
    }
