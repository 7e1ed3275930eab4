"""Batched, deduplicating fetch scheduler for deputy records.

Two FIFO queues feed a single drain loop:

- the **priority** queue (IDs escalated by a store prefetch) is always
  drained to exhaustion before any regular item;
- the **regular** queue (cache misses on read).

Each cycle pulls up to ``batch_size`` IDs, looks them up concurrently on the
remote API, merges every result into the cache, then pauses briefly before
the next cycle.  Only one drain loop is ever active; the ``draining`` flag is
checked and set without an ``await`` in between, which is enough on a single
event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from .adapters import DeputyNotFoundError, LookupAdapterError, RemoteLookupAdapter
from .cache import DeputyCache
from .config import FETCH_BATCH_SIZE, INTER_BATCH_PAUSE_S
from .models import ResolutionState
from .normalize import canonicalize_deputy_id, deputy_record_from_remote

LOGGER = logging.getLogger(__name__)


class FetchScheduler:
    def __init__(
        self,
        cache: DeputyCache,
        remote: RemoteLookupAdapter,
        *,
        batch_size: int = FETCH_BATCH_SIZE,
        inter_batch_pause_s: float = INTER_BATCH_PAUSE_S,
        legislature: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.cache = cache
        self.remote = remote
        self.batch_size = max(1, batch_size)
        self.inter_batch_pause_s = inter_batch_pause_s
        self.legislature = legislature
        self._sleep = sleep
        self._priority: deque[str] = deque()
        self._regular: deque[str] = deque()
        self._draining = False
        self._task: asyncio.Task | None = None
        cache.bind_scheduler(self)

    # ── queue management ─────────────────────────────────────────────────

    @property
    def is_draining(self) -> bool:
        return self._draining and self._task is not None and not self._task.done()

    def pending(self) -> int:
        return len(self._priority) + len(self._regular)

    def queued_ids(self) -> tuple[list[str], list[str]]:
        """Snapshot of ``(priority, regular)`` queue contents."""
        return list(self._priority), list(self._regular)

    def enqueue(self, deputy_id: object, priority: bool = False) -> bool:
        """Queue *deputy_id* for a remote lookup.

        Returns ``True`` when the ID was added or promoted to the priority
        queue, ``False`` when it was a duplicate, already resolved, in flight,
        cooling down after a failure, or known not to exist.
        """
        cid = canonicalize_deputy_id(deputy_id)
        if not cid:
            return False

        if cid in self._priority:
            return False
        if cid in self._regular:
            if not priority:
                return False
            self._regular.remove(cid)
            self._priority.append(cid)
            LOGGER.debug("Promoted %s to the priority queue", cid)
            return True

        if not self.cache.can_requeue(cid):
            return False

        self.cache.mark_queued(cid)
        (self._priority if priority else self._regular).append(cid)
        self._kick()
        return True

    def _live_task(self, loop: asyncio.AbstractEventLoop) -> asyncio.Task | None:
        # A task bound to an event loop that has since closed never ran its
        # cleanup; it does not count as an active drain.
        task = self._task
        if task is None or task.done() or task.get_loop() is not loop:
            return None
        return task

    def _start(self, loop: asyncio.AbstractEventLoop) -> asyncio.Task:
        task = self._live_task(loop)
        if task is None:
            self._draining = True
            task = self._task = loop.create_task(self._drain_loop())
        return task

    def _kick(self) -> None:
        """Start a drain task if none is active and an event loop is running.

        Outside an event loop the IDs simply wait for :meth:`drain`.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._start(loop)

    def _next_batch(self) -> list[str]:
        batch: list[str] = []
        while len(batch) < self.batch_size and (self._priority or self._regular):
            queue = self._priority if self._priority else self._regular
            cid = queue.popleft()
            entry = self.cache.peek(cid)
            # A store prefetch may have resolved it while it waited.
            if entry is not None and entry.state is ResolutionState.RESOLVED:
                continue
            self.cache.mark_loading(cid)
            batch.append(cid)
        return batch

    # ── draining ─────────────────────────────────────────────────────────

    async def drain(self) -> None:
        """Run drain cycles until both queues are empty.

        If a drain task is already active, wait for it instead of starting a
        second loop.
        """
        task = self._start(asyncio.get_running_loop())
        if task is not asyncio.current_task():
            await task

    async def _drain_loop(self) -> None:
        try:
            while True:
                batch = self._next_batch()
                if batch:
                    LOGGER.info("Fetching batch of %d deputies", len(batch))
                    await self._run_batch(batch)
                if not self.pending():
                    break
                await self._sleep(self.inter_batch_pause_s)
        finally:
            self._draining = False
            self._task = None

    async def _run_batch(self, batch: list[str]) -> None:
        try:
            results = await asyncio.gather(
                *(self._resolve_one(cid) for cid in batch), return_exceptions=True
            )
        except asyncio.CancelledError:
            self._requeue_in_flight(batch)
            raise
        for cid, result in zip(batch, results):
            if isinstance(result, BaseException):
                LOGGER.error("Unexpected error resolving %s: %r", cid, result)
                self.cache.mark_failed(cid)

    def _requeue_in_flight(self, batch: list[str]) -> None:
        """Put IDs still ``loading`` back at the head of the priority queue."""
        requeued = 0
        for cid in reversed(batch):
            entry = self.cache.peek(cid)
            if entry is None or entry.state is not ResolutionState.LOADING:
                continue
            self.cache.mark_queued(cid)
            self._priority.appendleft(cid)
            requeued += 1
        if requeued:
            LOGGER.warning("Drain cancelled; %d deputies put back in the queue", requeued)

    async def _resolve_one(self, cid: str) -> None:
        try:
            raw = await self.remote.fetch_detail(cid, self.legislature)
        except DeputyNotFoundError:
            LOGGER.info("Deputy %s not found on the remote API", cid)
            self.cache.mark_failed(cid, not_found=True)
            return
        except LookupAdapterError as exc:
            LOGGER.warning("Error fetching deputy %s: %s", cid, exc)
            self.cache.mark_failed(cid)
            return

        record = deputy_record_from_remote(raw, cid)
        if not self.cache.merge_resolved(record, source="remote"):
            LOGGER.warning("Invalid data structure for deputy %s", cid)
            self.cache.mark_failed(cid)
