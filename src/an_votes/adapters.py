"""Interfaces of the two lookup backends and their error taxonomy.

The remote public-data API and the persistent store are external
collaborators; the cache and scheduler only depend on these protocols.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import DeputyRecord


class LookupAdapterError(Exception):
    """Base class for lookup backend failures."""


class DeputyNotFoundError(LookupAdapterError):
    """The remote API answered 404 for this deputy ID."""

    def __init__(self, deputy_id: str):
        super().__init__(f"Deputy {deputy_id} not found")
        self.deputy_id = deputy_id


class RemoteLookupError(LookupAdapterError):
    """Any other remote failure: network error, 5xx, unparseable body."""


class StoreUnavailableError(LookupAdapterError):
    """The persistent store could not be read."""


@runtime_checkable
class RemoteLookupAdapter(Protocol):
    async def fetch_detail(self, deputy_id: str, legislature: str | None = None) -> Any:
        """Return the raw detail record for one deputy.

        Raises :class:`DeputyNotFoundError` for a 404 and
        :class:`RemoteLookupError` for everything else.
        """
        ...


@runtime_checkable
class PersistentLookupAdapter(Protocol):
    async def batch_get(self, ids: list[str], legislature: str) -> list[DeputyRecord]:
        """Return the rows found among *ids*; absent IDs are simply omitted."""
        ...

    async def count(self, legislature: str) -> int:
        """Number of deputies stored for *legislature* (0 = unsynced)."""
        ...
