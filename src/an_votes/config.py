"""Centralized configuration for the deputy-record resolution pipeline.

All settings live here so they can be overridden by environment variables or a
``.env`` file without touching source code.

**Profile system:** Set ``AN_PROFILE=dev`` (default) or ``AN_PROFILE=prod``
to get sensible defaults for each environment.  Any individual ``AN_*`` var
still overrides the profile value.

Usage::

    from an_votes.config import API_BASE_URL, LEGISLATURE

    url = f"{API_BASE_URL}/depute?depute_id=PA1592"
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

LOGGER = logging.getLogger(__name__)

# ── Profile: one knob for the whole environment ──────────────────────────────

PROFILE: str = os.getenv("AN_PROFILE", "dev").lower().strip()

_PROFILE_DEFAULTS: dict[str, dict[str, str]] = {
    "dev": {
        "AN_INTER_BATCH_PAUSE_S": "0.3",
        "AN_REQUEST_DELAY_S": "0",
        "AN_CACHE_MAX_ENTRIES": "0",
    },
    "prod": {
        "AN_INTER_BATCH_PAUSE_S": "0.5",
        "AN_REQUEST_DELAY_S": "0.2",
        "AN_CACHE_MAX_ENTRIES": "5000",
    },
}

if PROFILE not in _PROFILE_DEFAULTS:
    LOGGER.warning("Unknown AN_PROFILE=%r, falling back to 'dev'.", PROFILE)
    PROFILE = "dev"

_defaults = _PROFILE_DEFAULTS[PROFILE]


def _env(key: str, fallback: str = "") -> str:
    """Read an env var, falling back to profile default then *fallback*."""
    return os.getenv(key, _defaults.get(key, fallback))


# ── Remote API ───────────────────────────────────────────────────────────────
API_BASE_URL: str = _env("AN_API_BASE_URL", "https://api-dataan.onrender.com").rstrip("/")
REQUEST_TIMEOUT_S: float = float(_env("AN_REQUEST_TIMEOUT_S", "20"))
REQUEST_DELAY_S: float = float(_env("AN_REQUEST_DELAY_S", "0"))

# 17th legislature (2024-).
LEGISLATURE: str = _env("AN_LEGISLATURE", "17").strip() or "17"

# ── Persistent store ─────────────────────────────────────────────────────────
STORE_DIR: Path = Path(_env("AN_STORE_DIR", "cache"))

# ── Scheduling ───────────────────────────────────────────────────────────────
FETCH_BATCH_SIZE: int = int(_env("AN_FETCH_BATCH_SIZE", "10"))
STORE_BATCH_SIZE: int = int(_env("AN_STORE_BATCH_SIZE", "50"))
FAILURE_COOLDOWN_S: float = float(_env("AN_FAILURE_COOLDOWN_S", "10"))
INTER_BATCH_PAUSE_S: float = float(_env("AN_INTER_BATCH_PAUSE_S", "0.3"))
CACHE_MAX_ENTRIES: int = int(_env("AN_CACHE_MAX_ENTRIES", "0"))

if FETCH_BATCH_SIZE < 1:
    LOGGER.warning("AN_FETCH_BATCH_SIZE=%d is invalid, using 10.", FETCH_BATCH_SIZE)
    FETCH_BATCH_SIZE = 10
if STORE_BATCH_SIZE < 1:
    LOGGER.warning("AN_STORE_BATCH_SIZE=%d is invalid, using 50.", STORE_BATCH_SIZE)
    STORE_BATCH_SIZE = 50

# ── Roster sync sources (tried in order) ─────────────────────────────────────
DEFAULT_SYNC_SOURCES: list[str] = [
    "https://www.nosdeputes.fr/deputes/enmandat/json",
    "https://www.nosdeputes.fr/deputes/tous/json",
    "https://www.assemblee-nationale.fr/dyn/opendata/deputes.json",
    "https://data.assemblee-nationale.fr/api/v1/deputies/active",
    "https://raw.githubusercontent.com/regardscitoyens/nosdeputes.fr/master/batch/depute/json/tous.json",
]


def get_sync_sources() -> list[str]:
    """Return roster URLs from env or defaults.

    Used by both :func:`an_votes.sync.sync_deputies` and
    ``scripts/sync_deputies.py`` so the same sources are tried everywhere.
    """
    custom = _env("AN_SYNC_SOURCES").strip()
    if custom:
        return [u.strip() for u in custom.split(",") if u.strip()]
    return list(DEFAULT_SYNC_SOURCES)
