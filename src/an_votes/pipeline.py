"""Wiring for one session's cache, scheduler and prefetch orchestrator."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .adapters import PersistentLookupAdapter, RemoteLookupAdapter
from .cache import DeputyCache
from .config import (
    CACHE_MAX_ENTRIES,
    FETCH_BATCH_SIZE,
    INTER_BATCH_PAUSE_S,
    LEGISLATURE,
    STORE_BATCH_SIZE,
)
from .prefetch import PrefetchOrchestrator
from .retry import RetryPolicy
from .scheduler import FetchScheduler


@dataclass
class DeputyPipeline:
    cache: DeputyCache
    scheduler: FetchScheduler
    prefetcher: PrefetchOrchestrator


def build_pipeline(
    remote: RemoteLookupAdapter,
    store: PersistentLookupAdapter | None = None,
    *,
    legislature: str = LEGISLATURE,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    retry_policy: RetryPolicy | None = None,
    fetch_batch_size: int = FETCH_BATCH_SIZE,
    store_batch_size: int = STORE_BATCH_SIZE,
    inter_batch_pause_s: float = INTER_BATCH_PAUSE_S,
    max_entries: int = CACHE_MAX_ENTRIES,
) -> DeputyPipeline:
    cache = DeputyCache(clock=clock, retry_policy=retry_policy, max_entries=max_entries)
    scheduler = FetchScheduler(
        cache,
        remote,
        batch_size=fetch_batch_size,
        inter_batch_pause_s=inter_batch_pause_s,
        legislature=legislature,
        sleep=sleep,
    )
    prefetcher = PrefetchOrchestrator(cache, scheduler, store, batch_size=store_batch_size)
    return DeputyPipeline(cache=cache, scheduler=scheduler, prefetcher=prefetcher)
