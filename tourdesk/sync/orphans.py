"""Find local records the upstream catalog no longer lists, and delete them on request."""

from __future__ import annotations

import logging
from typing import Iterable

from tourdesk.catalog.categories import Category
from tourdesk.catalog.models import LocalRecord
from tourdesk.store.base import LocalStore, QueryFilter

from .reconciler import fetch_all_pages
from .state import OrphanAudit
from .types import OrphanDeletion, SourceFetcher

logger = logging.getLogger("tourdesk.orphans")


class OrphanAuditor:
    def __init__(self, source: SourceFetcher, store: LocalStore, page_size: int = 100) -> None:
        self.source = source
        self.store = store
        self.page_size = page_size

    async def find_orphans(self, category: Category) -> list[LocalRecord]:
        """Return local records of ``category`` whose id is absent upstream.

        The full upstream id list is required; a sweep that stopped on a
        failing page raises instead of reporting every unseen row as orphaned.
        """

        sweep = await fetch_all_pages(self.source, category, self.page_size)
        if sweep.error is not None:
            raise sweep.error
        source_ids = {record.source_id for record in sweep.records}

        local = self.store.query(category.table, QueryFilter(equals={"content_type_id": category.content_type_id}))
        orphans = [LocalRecord.from_row(row) for row in local.items if str(row["content_id"]) not in source_ids]
        logger.info(
            "Orphan audit %s: %d upstream, %d local, %d orphaned",
            category.value,
            len(source_ids),
            local.count,
            len(orphans),
        )
        return orphans

    async def audit(self, category: Category) -> OrphanAudit:
        return OrphanAudit(category=category, records=await self.find_orphans(category))

    async def delete_orphans(self, audit: OrphanAudit, content_ids: Iterable[str], confirm: bool = False) -> OrphanDeletion:
        """Delete the chosen records from ``audit``.

        Ids that the audit did not report are skipped, and so are ids the
        upstream list carries again by the time of the delete. Nothing is
        deleted unless ``confirm`` is true.
        """

        if not confirm:
            raise ValueError("Deleting orphaned records requires confirm=true")

        category = audit.category
        sweep = await fetch_all_pages(self.source, category, self.page_size)
        if sweep.error is not None:
            raise sweep.error
        source_ids = {record.source_id for record in sweep.records}

        result = OrphanDeletion(category=category)
        allowed = audit.content_ids - source_ids
        for content_id in dict.fromkeys(str(value) for value in content_ids):
            if content_id in allowed:
                result.deleted.append(content_id)
            else:
                result.skipped.append(content_id)

        returned = audit.content_ids & source_ids
        if returned:
            audit.discard(returned)
            logger.info("%d audited %s record(s) are listed upstream again: %s", len(returned), category.value, sorted(returned))

        if result.deleted:
            self.store.delete(
                category.table,
                [{"content_type_id": category.content_type_id, "content_id": content_id} for content_id in result.deleted],
            )
            audit.discard(set(result.deleted))
            logger.warning("Deleted %d orphaned %s record(s): %s", len(result.deleted), category.value, result.deleted)
        if result.skipped:
            logger.info("Skipped %d id(s) not orphaned in the %s catalog", len(result.skipped), category.value)
        return result
