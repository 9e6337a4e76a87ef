"""Run one enrichment pass over the local catalog.

Usage:

    python scripts/enrich_catalog.py overview --limit 50
    python scripts/enrich_catalog.py rooms
    python scripts/enrich_catalog.py english --category spot --equivalences data/english_equivalences.json
    python scripts/enrich_catalog.py ai --limit 20     # needs OPENROUTER_API_KEY
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from tourdesk.ai.describer import DescriptionGenerator
from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient
from tourdesk.core.config import Settings, get_settings
from tourdesk.core.errors import FetchError
from tourdesk.core.logging import configure_logging
from tourdesk.store.base import LocalStore
from tourdesk.store.sqlite import SQLiteLocalStore
from tourdesk.sync.enrichment import (
    AiDescriptionPass,
    EnglishPass,
    EnrichmentPass,
    IntroInfoPass,
    OverviewPass,
    RoomInfoPass,
)
from tourdesk.sync.matching import EquivalenceMatcher, default_matcher

PASS_NAMES = ("overview", "intro", "rooms", "english", "ai")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fill missing detail fields from TourAPI or OpenRouter")
    parser.add_argument("pass_name", choices=PASS_NAMES)
    parser.add_argument("--limit", type=int, help="Process at most this many records")
    parser.add_argument("--category", help="Restrict to one category")
    parser.add_argument("--database", type=Path, help="SQLite path (defaults to DATABASE_PATH)")
    parser.add_argument("--equivalences", type=Path, help="Korean->English title equivalence JSON")
    return parser.parse_args()


def build_pass(name: str, store: LocalStore, settings: Settings, equivalences: Path | None) -> EnrichmentPass:
    korean = TourApiClient.from_settings(settings, "ko")
    if name == "overview":
        return OverviewPass(store, korean)
    if name == "intro":
        return IntroInfoPass(store, korean)
    if name == "rooms":
        return RoomInfoPass(store, korean)
    if name == "english":
        matcher = default_matcher(EquivalenceMatcher.from_file(equivalences or settings.english_equivalences_path))
        return EnglishPass(store, TourApiClient.from_settings(settings, "en"), matcher, settings.sync_page_size)
    return AiDescriptionPass(store, DescriptionGenerator.from_settings(settings))


def print_progress(current: int, total: int, label: str) -> None:
    print(f"[{current}/{total}] {label}")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.pass_name == "ai" and not settings.openrouter_enabled:
        print("[error] OPENROUTER_API_KEY is not set.", file=sys.stderr)
        return 2

    store = SQLiteLocalStore(args.database or settings.database_path, batch_size=settings.upsert_batch_size)
    enrichment_pass = build_pass(args.pass_name, store, settings, args.equivalences)
    try:
        category = Category.parse(args.category) if args.category else None
        result = await enrichment_pass.enrich(batch_limit=args.limit, on_progress=print_progress, category=category)
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2
    except FetchError as exc:
        print(f"[error] {exc.context()}", file=sys.stderr)
        return 1

    for item in result.failed_items:
        print(f"[warn] {item.source_id} {item.title or ''}: {item.reason}", file=sys.stderr)
    print(f"Done. Updated {result.updated_count} of {result.total}; {result.failed_count} failed.")
    return 0


def main() -> None:
    configure_logging(get_settings().log_level)
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
