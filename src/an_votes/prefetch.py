"""Bulk cache warm-up for the deputies referenced by a ballot.

The persistent store is consulted first, in bounded batches; its hits are
authoritative and go straight into the cache.  Everything it does not return
is escalated to the remote scheduler with priority.  A store failure is never
fatal: the affected IDs are simply treated as missing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from .adapters import PersistentLookupAdapter
from .cache import DeputyCache
from .config import LEGISLATURE, STORE_BATCH_SIZE
from .models import PrefetchReport
from .normalize import canonicalize_deputy_id, deputy_ids_from_groups, groups_from_ballot_detail
from .scheduler import FetchScheduler

LOGGER = logging.getLogger(__name__)


def _chunks(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class PrefetchOrchestrator:
    def __init__(
        self,
        cache: DeputyCache,
        scheduler: FetchScheduler,
        store: PersistentLookupAdapter | None,
        *,
        batch_size: int = STORE_BATCH_SIZE,
    ):
        self.cache = cache
        self.scheduler = scheduler
        self.store = store
        self.batch_size = max(1, batch_size)

    async def warm(self, group_breakdowns: Any, legislature: str | None = None) -> PrefetchReport:
        """Warm the cache for every deputy referenced by *group_breakdowns*.

        *group_breakdowns* maps group IDs to raw group ballot data (any of the
        upstream shapes) or :class:`GroupBallotBreakdown` objects.  Returns
        once the store lookups are done; escalated remote fetches continue in
        the background.
        """
        legislature = str(legislature or self.scheduler.legislature or LEGISLATURE)
        ids = deputy_ids_from_groups(group_breakdowns)
        report = PrefetchReport(requested=len(ids))
        if not ids:
            LOGGER.info("No deputy IDs found in groups data")
            return report

        found: set[str] = {cid for cid in ids if self.cache.is_cached(cid)}
        to_lookup = [cid for cid in ids if cid not in found]

        if to_lookup and self.store is not None:
            report.store_empty = await self._store_is_empty(legislature)
            if not report.store_empty:
                for chunk in _chunks(to_lookup, self.batch_size):
                    found |= await self._lookup_chunk(chunk, legislature)

        missing = [cid for cid in ids if cid not in found]
        for cid in missing:
            self.scheduler.enqueue(cid, priority=True)

        report.found = len(found)
        report.missing = len(missing)
        LOGGER.info(
            "Prefetch (legislature %s): %d requested, %d found, %d escalated to remote.",
            legislature,
            report.requested,
            report.found,
            report.missing,
        )
        return report

    async def warm_from_ballot(self, detail: Any, legislature: str | None = None) -> PrefetchReport:
        """Convenience wrapper: extract groups from a ballot-detail response first."""
        return await self.warm(groups_from_ballot_detail(detail), legislature)

    async def _store_is_empty(self, legislature: str) -> bool:
        try:
            count = await self.store.count(legislature)
        except Exception as exc:
            # Unknown, not empty: the batch lookups will degrade on their own.
            LOGGER.warning("Could not count stored deputies for legislature %s: %s", legislature, exc)
            return False
        if count == 0:
            LOGGER.warning(
                "Deputy store is empty for legislature %s; run scripts/sync_deputies.py. "
                "Every deputy will be fetched from the remote API.",
                legislature,
            )
            return True
        LOGGER.debug("Deputy store holds %d deputies for legislature %s", count, legislature)
        return False

    async def _lookup_chunk(self, chunk: list[str], legislature: str) -> set[str]:
        try:
            records = await self.store.batch_get(chunk, legislature)
        except Exception as exc:
            LOGGER.warning("Persistent store lookup failed for %d deputies: %s", len(chunk), exc)
            return set()

        wanted = set(chunk)
        found: set[str] = set()
        for record in records or []:
            cid = canonicalize_deputy_id(getattr(record, "id", ""))
            if cid not in wanted:
                continue
            if self.cache.merge_resolved(record, source="store"):
                found.add(cid)
        return found
