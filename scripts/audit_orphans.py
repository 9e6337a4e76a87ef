"""List local records that TourAPI no longer returns, and optionally delete them.

Usage:

    python scripts/audit_orphans.py lodging
    python scripts/audit_orphans.py lodging --delete 123456 234567 --confirm

Only ids reported by the audit in the same run can be deleted.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import TourApiClient
from tourdesk.core.config import get_settings
from tourdesk.core.errors import FetchError
from tourdesk.core.logging import configure_logging
from tourdesk.store.sqlite import SQLiteLocalStore
from tourdesk.sync.orphans import OrphanAuditor


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audit local catalog rows missing upstream")
    parser.add_argument("category", help="Category name or content type id")
    parser.add_argument("--delete", nargs="+", default=[], metavar="CONTENT_ID", help="Orphaned ids to delete")
    parser.add_argument("--confirm", action="store_true", help="Actually delete the ids given with --delete")
    parser.add_argument("--database", type=Path, help="SQLite path (defaults to DATABASE_PATH)")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    try:
        category = Category.parse(args.category)
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2

    store = SQLiteLocalStore(args.database or settings.database_path, batch_size=settings.upsert_batch_size)
    auditor = OrphanAuditor(TourApiClient.from_settings(settings, "ko"), store, settings.sync_page_size)
    try:
        audit = await auditor.audit(category)
    except FetchError as exc:
        print(f"[error] audit aborted, upstream list incomplete: {exc.context()}", file=sys.stderr)
        return 1

    for record in audit.records:
        marker = "*" if record.has_enrichment else " "
        print(f"{marker} {record.content_id:<10} {record.label}")
    print(f"{len(audit.records)} orphaned {category.value} record(s); * = carries enrichment")

    if args.delete:
        try:
            deletion = await auditor.delete_orphans(audit, args.delete, confirm=args.confirm)
        except ValueError as exc:
            print(f"[error] {exc}", file=sys.stderr)
            return 2
        except FetchError as exc:
            print(f"[error] delete aborted, upstream list incomplete: {exc.context()}", file=sys.stderr)
            return 1
        print(f"Deleted {len(deletion.deleted)}; skipped {len(deletion.skipped)}: {', '.join(deletion.skipped)}")
    return 0


def main() -> None:
    configure_logging(get_settings().log_level)
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
