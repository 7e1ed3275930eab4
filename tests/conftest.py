from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from an_votes.adapters import DeputyNotFoundError, StoreUnavailableError
from an_votes.cache import DeputyCache
from an_votes.models import DeputyRecord
from an_votes.pipeline import DeputyPipeline, build_pipeline
from an_votes.retry import RetryPolicy

# ── Fakes ─────────────────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested pauses and advances the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)
        await asyncio.sleep(0)


class FakeRemote:
    """Remote adapter serving raw detail payloads from a dict.

    IDs in *errors* raise the given exception; unknown IDs raise
    :class:`DeputyNotFoundError`.
    """

    def __init__(self, records: dict[str, dict] | None = None, errors: dict | None = None):
        self.records = dict(records or {})
        self.errors = dict(errors or {})
        self.calls: list[str] = []

    async def fetch_detail(self, deputy_id: str, legislature: str | None = None) -> dict:
        self.calls.append(deputy_id)
        await asyncio.sleep(0)
        if deputy_id in self.errors:
            raise self.errors[deputy_id]
        if deputy_id in self.records:
            return self.records[deputy_id]
        raise DeputyNotFoundError(deputy_id)


class FakeStore:
    def __init__(self, records: list[DeputyRecord] | None = None, fail: bool = False):
        self.records = {r.id: r for r in records or []}
        self.fail = fail
        self.batches: list[list[str]] = []

    async def batch_get(self, ids: list[str], legislature: str) -> list[DeputyRecord]:
        self.batches.append(list(ids))
        if self.fail:
            raise StoreUnavailableError("store down")
        return [replace(self.records[i]) for i in ids if i in self.records]

    async def count(self, legislature: str) -> int:
        if self.fail:
            raise StoreUnavailableError("store down")
        return len(self.records)


def detail(given: str, family: str, **extra) -> dict:
    return {"prenom": given, "nom": family, **extra}


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote(
        {
            "PA1": detail("Marie", "Curie", groupe_politique="Renaissance"),
            "PA2": detail("Victor", "Hugo"),
            "PA3": detail("George", "Sand"),
            "PA1592": detail("Jean", "Jaurès", profession="Professeur"),
        }
    )


@pytest.fixture
def cache(clock: FakeClock) -> DeputyCache:
    return DeputyCache(clock=clock, retry_policy=RetryPolicy(cooldown_s=10.0))


@pytest.fixture
def make_pipeline(remote: FakeRemote, clock: FakeClock, sleep: FakeSleep):
    def _make(store=None, **kwargs) -> DeputyPipeline:
        kwargs.setdefault("retry_policy", RetryPolicy(cooldown_s=10.0))
        kwargs.setdefault("inter_batch_pause_s", 0.3)
        return build_pipeline(
            kwargs.pop("remote", remote),
            store,
            legislature="17",
            clock=clock,
            sleep=sleep,
            **kwargs,
        )

    return _make


# ── Ballot payloads ──────────────────────────────────────────────────────────


@pytest.fixture
def wrapped_group() -> dict:
    """Group ballot with positions inside a ``decompte`` wrapper."""
    return {
        "organeRef": "PO800",
        "libelle": "Groupe Alpha",
        "decompte": {
            "pours": {"votant": [{"acteurRef": "PA1"}, {"acteurRef": "PA2"}]},
            "contres": {"votant": {"acteurRef": "PA3"}},
            "abstentions": None,
            "nonVotants": {"votant": [{"acteurRef": "PA4", "causePosition": "PAN"}]},
        },
    }


@pytest.fixture
def flat_group() -> dict:
    """Same group ballot with the position lists at the top level."""
    return {
        "organeRef": "PO800",
        "libelle": "Groupe Alpha",
        "pours": {"votant": [{"acteurRef": "PA1"}, {"acteurRef": "PA2"}]},
        "contres": {"votant": {"acteurRef": "PA3"}},
        "abstentions": None,
        "nonVotants": {"votant": [{"acteurRef": "PA4", "causePosition": "PAN"}]},
    }
