from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .adapters import DeputyNotFoundError, RemoteLookupError
from .config import API_BASE_URL, REQUEST_DELAY_S, REQUEST_TIMEOUT_S
from .models import Deport, DeputyBallot, OrganeDetail, SearchResult
from .normalize import (
    canonicalize_deputy_id,
    canonicalize_organe_id,
    deports_from_remote,
    deputy_record_from_remote,
    normalize_date,
    normalize_position,
    organe_detail_from_remote,
    text_value,
)

LOGGER = logging.getLogger(__name__)


def build_session() -> requests.Session:
    """Session with a retry adapter for transient upstream errors.

    404 is deliberately absent from the retried statuses: it means "no such
    deputy" and is reported as such.
    """
    session = requests.Session()
    retry_strategy = Retry(
        total=3,
        backoff_factor=1.0,
        status_forcelist=[429, 500, 502, 503, 504],
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=5,
        pool_maxsize=10,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"Accept": "application/json", "Cache-Control": "no-cache"})
    return session


@dataclass
class AssembleeApiClient:
    """Client for the deputy/vote endpoints of the public-data API."""

    base_url: str = API_BASE_URL
    timeout_seconds: float = REQUEST_TIMEOUT_S
    request_delay: float = REQUEST_DELAY_S
    _session: requests.Session = field(default_factory=build_session, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _last_request_time: float = field(default=0.0, repr=False)

    # ── throttled HTTP ────────────────────────────────────────────────────

    def _throttled_get(self, path: str, **kwargs: Any) -> requests.Response:
        """GET with a per-instance rate limit shared by all worker threads."""
        with self._lock:
            elapsed = time.time() - self._last_request_time
            wait = max(0.0, self.request_delay - elapsed)
            # Reserve our slot by advancing the timestamp before releasing the lock.
            self._last_request_time = time.time() + wait
        if wait > 0:
            time.sleep(wait)
        kwargs.setdefault("timeout", self.timeout_seconds)
        return self._session.get(f"{self.base_url.rstrip('/')}{path}", **kwargs)

    # ── deputy detail (RemoteLookupAdapter) ──────────────────────────────

    def get_deputy_detail(self, deputy_id: str, legislature: str | None = None) -> Any:
        """Fetch the raw detail record of one deputy (blocking)."""
        cid = canonicalize_deputy_id(deputy_id)
        if not cid:
            raise RemoteLookupError(f"Invalid deputy ID format: {deputy_id!r}")

        params = {"depute_id": cid}
        if legislature:
            params["legislature"] = str(legislature)
        try:
            resp = self._throttled_get("/depute", params=params)
        except requests.RequestException as exc:
            raise RemoteLookupError(f"Request for deputy {cid} failed: {exc}") from exc

        if resp.status_code == 404:
            raise DeputyNotFoundError(cid)
        if not resp.ok:
            raise RemoteLookupError(f"API error: {resp.status_code} {resp.reason}")
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteLookupError(f"Unparseable response for deputy {cid}") from exc

    async def fetch_detail(self, deputy_id: str, legislature: str | None = None) -> Any:
        return await asyncio.to_thread(self.get_deputy_detail, deputy_id, legislature)

    # ── user-initiated lookups ───────────────────────────────────────────

    def search_deputy(self, query: str) -> SearchResult:
        """Look a deputy up by ID or by name.

        Failures come back as an unsuccessful :class:`SearchResult` carrying
        a human-readable message; homonyms come back as ``options``.
        """
        query = (query or "").strip()
        if not query:
            return SearchResult(success=False, message="Saisissez un nom ou un identifiant.")

        cid = canonicalize_deputy_id(query)
        params = {"depute_id": cid} if cid else {"nom": query}
        LOGGER.info("Searching for deputy by %s: %s", next(iter(params)), query)
        try:
            resp = self._throttled_get("/depute", params=params)
        except requests.RequestException as exc:
            LOGGER.error("Error searching for deputy %r: %s", query, exc)
            return SearchResult(success=False, message=f"Erreur lors de la recherche du député: {exc}")

        if resp.status_code == 404:
            return SearchResult(
                success=False,
                message=f'Aucun député trouvé pour "{query}". Vérifiez le nom ou l\'identifiant.',
            )
        if not resp.ok:
            return SearchResult(success=False, message=f"Erreur API: {resp.status_code} {resp.reason}")
        try:
            data = resp.json()
        except ValueError:
            return SearchResult(success=False, message="Réponse de l'API illisible.")

        if isinstance(data, dict) and data.get("error") and data.get("options"):
            options = [deputy_record_from_remote(o) for o in data["options"] if isinstance(o, dict)]
            return SearchResult(success=False, options=options, message=text_value(data["error"]))

        record = deputy_record_from_remote(data, cid)
        if not record.id and not record.is_resolved:
            return SearchResult(success=False, message="Réponse de l'API inattendue.")
        return SearchResult(success=True, record=record)

    def fetch_deputy_votes(self, deputy: str) -> list[DeputyBallot]:
        """Voting history of a deputy (by ID or name), newest first as served.

        A 404 means no votes; any other failure raises :class:`RemoteLookupError`.
        """
        cid = canonicalize_deputy_id(deputy)
        query = (deputy or "").strip() if isinstance(deputy, str) else ""
        if not cid and not query:
            LOGGER.error("Invalid deputy reference for votes: %r", deputy)
            return []
        params = {"depute_id": cid} if cid else {"nom": query}
        try:
            resp = self._throttled_get("/votes", params=params)
        except requests.RequestException as exc:
            raise RemoteLookupError(f"Votes request failed: {exc}") from exc
        if resp.status_code == 404:
            return []
        if not resp.ok:
            raise RemoteLookupError(f"API error: {resp.status_code} {resp.reason}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteLookupError("Unparseable votes response") from exc
        if not isinstance(data, list):
            return []

        ballots = [
            DeputyBallot(
                number=text_value(item.get("numero")),
                date=normalize_date(text_value(item.get("date") or item.get("dateScrutin"))),
                title=text_value(item.get("titre") or item.get("title")),
                position=normalize_position(item.get("position")),
            )
            for item in data
            if isinstance(item, dict)
        ]
        LOGGER.info("Received %d votes for %s", len(ballots), cid or query)
        return ballots

    # ── organes and deports ──────────────────────────────────────────────

    def get_organe_details(self, organe_id: str) -> OrganeDetail:
        """Fetch one organe (political group, committee...) and its members.

        Any failure raises :class:`RemoteLookupError`.
        """
        oid = canonicalize_organe_id(organe_id)
        if not oid:
            raise RemoteLookupError(f"Invalid organe ID format: {organe_id!r}")
        LOGGER.info("Fetching details for organe %s", oid)
        try:
            resp = self._throttled_get("/organes", params={"organe_id": oid})
        except requests.RequestException as exc:
            raise RemoteLookupError(f"Request for organe {oid} failed: {exc}") from exc
        if not resp.ok:
            raise RemoteLookupError(f"API error: {resp.status_code} {resp.reason}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteLookupError(f"Unparseable response for organe {oid}") from exc
        return organe_detail_from_remote(data, oid)

    def fetch_deputy_deports(self, deputy: Any) -> list[Deport]:
        """Declared recusations of a deputy; empty on any failure."""
        cid = canonicalize_deputy_id(deputy)
        if not cid:
            LOGGER.warning("Invalid deputy ID for deports: %r", deputy)
            return []
        try:
            resp = self._throttled_get("/deports", params={"depute_id": cid})
        except requests.RequestException as exc:
            LOGGER.warning("Error fetching deports for %s: %s", cid, exc)
            return []
        if resp.status_code == 404:
            return []
        if not resp.ok:
            LOGGER.warning("Deports for %s: API error %s %s", cid, resp.status_code, resp.reason)
            return []
        try:
            data = resp.json()
        except ValueError:
            LOGGER.warning("Unparseable deports response for %s", cid)
            return []
        if isinstance(data, dict) and "message" in data:
            message = text_value(data["message"])
            if "Aucun déport" not in message:
                LOGGER.warning("Deports for %s: %s", cid, message)
            return []
        deports = deports_from_remote(data, cid)
        LOGGER.info("Received %d deports for %s", len(deports), cid)
        return deports
