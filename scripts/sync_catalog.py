"""Run a reconciling sync of the Daejeon catalog into the local SQLite store.

Usage:

    python scripts/sync_catalog.py                 # every category
    python scripts/sync_catalog.py lodging event   # selected categories

Reads TOURAPI_SERVICE_KEY and DATABASE_PATH from the environment or `.env`.
Exits non-zero when any category stopped on a failing page; rerunning is safe.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient
from tourdesk.core.config import get_settings
from tourdesk.core.logging import configure_logging
from tourdesk.store.sqlite import SQLiteLocalStore
from tourdesk.sync.reconciler import Reconciler


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync TourAPI categories into the local catalog database")
    parser.add_argument("categories", nargs="*", help="Category names or content type ids (default: all)")
    parser.add_argument("--database", type=Path, help="SQLite path (defaults to DATABASE_PATH)")
    parser.add_argument("--page-size", type=int, help="Rows requested per page")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = SQLiteLocalStore(args.database or settings.database_path, batch_size=settings.upsert_batch_size)
    reconciler = Reconciler(
        TourApiClient.from_settings(settings, "ko"),
        store,
        page_size=args.page_size or settings.sync_page_size,
    )

    try:
        categories = [Category.parse(value) for value in args.categories] or list(Category)
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2

    failures = 0
    for result in await reconciler.sync_all(categories):
        line = (
            f"{result.category.value:<18} fetched={result.fetched_count:<5} created={result.created_count:<5} "
            f"updated={result.updated_count:<5} unchanged={result.unchanged_count}"
        )
        if result.error is not None:
            failures += 1
            print(f"{line}  FAILED page {result.error.page}: {result.error.message}", file=sys.stderr)
        else:
            print(line)
    return 1 if failures else 0


def main() -> None:
    configure_logging(get_settings().log_level)
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
