"""In-process deputy cache: deputy ID → :class:`CacheEntry`.

Reads never block and never perform I/O.  A miss creates a ``queued``
placeholder and hands the ID to the bound :class:`FetchScheduler`; the entry
is filled in later by the scheduler or by a persistent-store prefetch.

State machine per ID::

    absent → queued → loading → resolved
                          └──→ failed ──(cooldown)──→ queued

A resolved entry is never downgraded to a placeholder.  All mutations go
through the methods below; consumers never write into the map.
"""

from __future__ import annotations

import logging
import time
from collections import Counter, OrderedDict
from collections.abc import Callable
from typing import TYPE_CHECKING

from .config import CACHE_MAX_ENTRIES
from .models import CacheEntry, DeputyRecord, ResolutionState
from .normalize import canonicalize_deputy_id
from .retry import RetryPolicy

if TYPE_CHECKING:
    from .scheduler import FetchScheduler

LOGGER = logging.getLogger(__name__)

Subscriber = Callable[[str, CacheEntry], None]

_EVICTABLE = (ResolutionState.RESOLVED,)


class DeputyCache:
    """Authoritative map of deputy records plus per-entry resolution state."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        retry_policy: RetryPolicy | None = None,
        max_entries: int = CACHE_MAX_ENTRIES,
    ):
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._clock = clock
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_entries = max_entries
        self._scheduler: FetchScheduler | None = None
        self._subscribers: list[Subscriber] = []
        # Bumped on every resolve/fail so pollers can detect changes cheaply.
        self.generation = 0

    def bind_scheduler(self, scheduler: FetchScheduler) -> None:
        self._scheduler = scheduler

    def now(self) -> float:
        return self._clock()

    # ── reads ─────────────────────────────────────────────────────────────

    def get(self, deputy_id: object) -> CacheEntry | None:
        """Return the entry for *deputy_id*, queueing a fetch on a miss.

        Returns ``None`` only when the ID cannot be canonicalized.  A failed
        entry whose cooldown has elapsed is queued again on read.
        """
        cid = canonicalize_deputy_id(deputy_id)
        if not cid:
            LOGGER.debug("Ignoring invalid deputy ID %r", deputy_id)
            return None

        entry = self._entries.get(cid)
        if entry is not None:
            self._entries.move_to_end(cid)
            if entry.state is ResolutionState.FAILED:
                self._request_fetch(cid)
            return entry

        entry = self._ensure_entry(cid)
        self._request_fetch(cid)
        return entry

    def peek(self, deputy_id: object) -> CacheEntry | None:
        """Read without queueing anything or touching LRU order."""
        return self._entries.get(canonicalize_deputy_id(deputy_id))

    def display_name(self, deputy_id: object) -> str:
        """``"Given Family"`` when resolved, else ``"Député <id>"`` (queues a fetch)."""
        entry = self.get(deputy_id)
        if entry is None:
            return f"Député {deputy_id}"
        return entry.record.display_name

    def is_cached(self, deputy_id: object) -> bool:
        entry = self.peek(deputy_id)
        return entry is not None and entry.state is ResolutionState.RESOLVED

    def can_requeue(self, deputy_id: str) -> bool:
        """Whether *deputy_id* may enter a fetch queue right now."""
        entry = self._entries.get(deputy_id)
        if entry is None:
            return True
        if entry.state is ResolutionState.RESOLVED and entry.record.is_resolved:
            return False
        if entry.state is ResolutionState.LOADING:
            return False
        if entry.state is ResolutionState.FAILED:
            if entry.not_found:
                return False
            return self.retry_policy.is_eligible(entry.last_attempt_at, entry.attempts, self.now())
        return True

    def stats(self) -> dict[str, int]:
        counts = Counter(entry.state.value for entry in self._entries.values())
        return {state.value: counts.get(state.value, 0) for state in ResolutionState}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, deputy_id: object) -> bool:
        return canonicalize_deputy_id(deputy_id) in self._entries

    # ── subscriptions ─────────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call *callback(deputy_id, entry)* whenever an entry resolves or fails.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, cid: str, entry: CacheEntry) -> None:
        self.generation += 1
        for callback in list(self._subscribers):
            try:
                callback(cid, entry)
            except Exception:
                LOGGER.exception("Cache subscriber failed for %s", cid)

    # ── mutations ─────────────────────────────────────────────────────────

    def _request_fetch(self, cid: str) -> None:
        if self._scheduler is None:
            LOGGER.debug("No scheduler bound; %s stays queued", cid)
            return
        self._scheduler.enqueue(cid)

    def _ensure_entry(self, cid: str) -> CacheEntry:
        entry = self._entries.get(cid)
        if entry is None:
            entry = CacheEntry(record=DeputyRecord(id=cid))
            self._entries[cid] = entry
            self._evict_if_needed()
        return entry

    def _evict_if_needed(self) -> None:
        if self.max_entries <= 0 or len(self._entries) <= self.max_entries:
            return
        # Only resolved entries are evicted, oldest first. Failed ones carry
        # the not-found flag and the retry cooldown.
        for cid in list(self._entries):
            if len(self._entries) <= self.max_entries:
                break
            if self._entries[cid].state in _EVICTABLE:
                del self._entries[cid]
                LOGGER.debug("Evicted %s from deputy cache", cid)

    def _touch_attempt(self, entry: CacheEntry) -> None:
        # last_attempt_at never moves backwards, even with a skewed clock.
        entry.last_attempt_at = max(entry.last_attempt_at, self.now())

    def mark_queued(self, cid: str) -> bool:
        entry = self._ensure_entry(cid)
        if entry.state is ResolutionState.RESOLVED:
            return False
        entry.state = ResolutionState.QUEUED
        return True

    def mark_loading(self, cid: str) -> bool:
        entry = self._ensure_entry(cid)
        if entry.state is ResolutionState.RESOLVED:
            return False
        entry.state = ResolutionState.LOADING
        self._touch_attempt(entry)
        return True

    def mark_failed(self, cid: str, *, not_found: bool = False) -> None:
        entry = self._ensure_entry(cid)
        if entry.state is ResolutionState.RESOLVED:
            return
        entry.state = ResolutionState.FAILED
        entry.attempts += 1
        entry.not_found = entry.not_found or not_found
        entry.source = "remote"
        self._touch_attempt(entry)
        self._notify(cid, entry)

    def merge_resolved(self, record: DeputyRecord, *, source: str) -> bool:
        """Store *record* as resolved.  Placeholders (empty names) are refused."""
        cid = canonicalize_deputy_id(record.id)
        if not cid or not record.is_resolved:
            return False
        record.id = cid
        entry = self._ensure_entry(cid)
        entry.record = record
        entry.state = ResolutionState.RESOLVED
        entry.attempts = 0
        entry.not_found = False
        entry.source = source
        self._touch_attempt(entry)
        LOGGER.debug("Resolved %s: %s (%s)", cid, record.display_name, source)
        self._notify(cid, entry)
        return True
