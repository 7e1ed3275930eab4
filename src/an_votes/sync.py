"""Roster sync: fill the persistent deputy store from public rosters.

Sources are tried in order until one yields at least one usable deputy.  Two
roster families are understood:

- **NosDéputés** (``{"deputes": [{"depute": {...}}]}``, ``export.deputes``,
  bare lists): AN identifier in ``id_an``, family name in
  ``nom_de_famille``, group acronym in ``groupe_sigle``.
- **Assemblée nationale open data** (``acteurs.acteur``,
  ``export.acteurs.acteur``, ``items``, ``deputes``): identity under
  ``etatCivil.ident`` or ``mandant``, group under ``groupe``.

Records without a canonical ID or without both names are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import requests

from .config import LEGISLATURE, REQUEST_TIMEOUT_S, get_sync_sources
from .models import PROFESSION_NOT_PROVIDED, DeputyRecord
from .normalize import (
    as_list,
    canonicalize_deputy_id,
    deputy_record_from_remote,
    first_present,
    split_full_name,
    text_value,
)
from .remote import build_session
from .store import JsonDeputyStore

LOGGER = logging.getLogger(__name__)


@dataclass
class SyncResult:
    success: bool
    source: str = ""
    count: int = 0
    errors: list[str] = field(default_factory=list)


def _values(container: Any) -> list:
    if isinstance(container, Mapping):
        return list(container.values())
    return as_list(container)


def _nosdeputes_entries(data: Any) -> list:
    if isinstance(data, Mapping):
        if "deputes" in data:
            return _values(data["deputes"])
        if isinstance(data.get("export"), Mapping) and "deputes" in data["export"]:
            return _values(data["export"]["deputes"])
        return []
    if isinstance(data, list):
        return data
    return []


def parse_nosdeputes_roster(data: Any) -> list[DeputyRecord]:
    records: list[DeputyRecord] = []
    for item in _nosdeputes_entries(data):
        if not isinstance(item, Mapping):
            continue
        depute = item.get("depute") if isinstance(item.get("depute"), Mapping) else item
        deputy_id = (
            canonicalize_deputy_id(depute.get("id_an"))
            or canonicalize_deputy_id(item.get("id_an"))
            or canonicalize_deputy_id(depute.get("uid"))
        )
        given = text_value(depute.get("prenom"))
        family = first_present(depute, ("nom_de_famille", "nom"))
        given, family = split_full_name(given, family, "")
        group = text_value(depute.get("groupe_sigle")) or None
        records.append(
            DeputyRecord(
                id=deputy_id,
                given_name=given,
                family_name=family,
                profession=text_value(depute.get("profession")) or PROFESSION_NOT_PROVIDED,
                political_group_name=group,
                political_group_id=group,
            )
        )
    return [r for r in records if r.id and r.is_resolved]


def _assemblee_entries(data: Any) -> list:
    if isinstance(data, list):
        return data
    if not isinstance(data, Mapping):
        return []
    for path in (("deputes",), ("acteurs", "acteur"), ("items",), ("export", "acteurs", "acteur")):
        current: Any = data
        for key in path:
            current = current.get(key) if isinstance(current, Mapping) else None
        if current is not None:
            return _values(current)
    return []


def parse_assemblee_roster(data: Any) -> list[DeputyRecord]:
    records = [deputy_record_from_remote(entry) for entry in _assemblee_entries(data)]
    return [r for r in records if r.id and r.is_resolved]


def parse_roster(data: Any, url: str = "") -> list[DeputyRecord]:
    """Parse a roster payload, choosing the parser from the source URL.

    The other parser is tried when the preferred one finds nothing.
    """
    if "nosdeputes.fr" in url or "github" in url:
        parsers = (parse_nosdeputes_roster, parse_assemblee_roster)
    else:
        parsers = (parse_assemblee_roster, parse_nosdeputes_roster)
    for parser in parsers:
        records = parser(data)
        if records:
            return records
    return []


def fetch_roster(url: str, session: requests.Session, timeout: float = REQUEST_TIMEOUT_S) -> Any:
    resp = session.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def sync_deputies(
    store: JsonDeputyStore,
    legislature: str = LEGISLATURE,
    sources: list[str] | None = None,
    *,
    session: requests.Session | None = None,
) -> SyncResult:
    """Fetch a roster and upsert its deputies into *store*."""
    sources = sources if sources is not None else get_sync_sources()
    session = session or build_session()
    errors: list[str] = []

    for url in sources:
        LOGGER.info("Fetching deputy roster from %s", url)
        try:
            data = fetch_roster(url, session)
        except (requests.RequestException, ValueError) as exc:
            LOGGER.warning("Error fetching from %s: %s", url, exc)
            errors.append(f"Error fetching from {url}: {exc}")
            continue

        records = parse_roster(data, url)
        if not records:
            LOGGER.warning("No deputies could be parsed from %s", url)
            errors.append(f"No deputies could be parsed from {url}")
            continue

        count = store.upsert(records, legislature)
        LOGGER.info("Synced %d deputies for legislature %s from %s", count, legislature, url)
        return SyncResult(success=True, source=url, count=count, errors=errors)

    LOGGER.error("Failed to fetch deputies from all %d sources", len(sources))
    return SyncResult(success=False, errors=errors)
