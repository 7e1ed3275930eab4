"""File-backed persistent deputy store.

One JSON file per legislature (``deputies_<legislature>.json``) holding a
list of store rows (``deputy_id``, ``first_name``, ``last_name``,
``political_group``, ...).  Writes are atomic (temp file + rename).
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .adapters import StoreUnavailableError
from .config import STORE_DIR
from .models import DeputyRecord
from .normalize import (
    canonicalize_deputy_id,
    deputy_record_from_store_row,
    deputy_record_to_store_row,
)

LOGGER = logging.getLogger(__name__)


@dataclass
class JsonDeputyStore:
    store_dir: Path = STORE_DIR
    _rows: dict[str, dict[str, dict]] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def path_for(self, legislature: str) -> Path:
        return Path(self.store_dir) / f"deputies_{legislature}.json"

    def load_rows(self, legislature: str) -> dict[str, dict]:
        """``{deputy_id: row}`` for *legislature*; empty when never synced."""
        legislature = str(legislature)
        with self._lock:
            if legislature in self._rows:
                return self._rows[legislature]
            path = self.path_for(legislature)
            rows: dict[str, dict] = {}
            if path.exists():
                try:
                    with open(path, encoding="utf-8") as f:
                        raw = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    raise StoreUnavailableError(f"Cannot read {path}: {e}") from e
                for row in raw if isinstance(raw, list) else []:
                    cid = canonicalize_deputy_id(row.get("deputy_id")) if isinstance(row, dict) else ""
                    if cid:
                        rows[cid] = row
                LOGGER.info("Loaded %d stored deputies from %s", len(rows), path)
            self._rows[legislature] = rows
            return rows

    def _save_rows(self, legislature: str, rows: dict[str, dict]) -> None:
        path = self.path_for(legislature)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(list(rows.values()), f, indent=2, ensure_ascii=False)
        tmp.replace(path)
        with self._lock:
            self._rows[legislature] = rows
        LOGGER.info("Saved deputy store to %s (%d deputies)", path, len(rows))

    def upsert(self, records: Iterable[DeputyRecord], legislature: str) -> int:
        """Insert or replace *records*; unresolved placeholders are skipped."""
        legislature = str(legislature)
        # Read, merge and write under one lock so concurrent upserts never
        # drop each other's rows.
        with self._lock:
            rows = dict(self.load_rows(legislature))
            written = 0
            for record in records:
                cid = canonicalize_deputy_id(record.id)
                if not cid or not record.is_resolved:
                    continue
                record.id = cid
                rows[cid] = deputy_record_to_store_row(record, legislature)
                written += 1
            self._save_rows(legislature, rows)
        return written

    def get(self, deputy_id: str, legislature: str) -> DeputyRecord | None:
        row = self.load_rows(str(legislature)).get(canonicalize_deputy_id(deputy_id))
        return deputy_record_from_store_row(row) if row is not None else None

    # ── PersistentLookupAdapter ──────────────────────────────────────────

    async def batch_get(self, ids: list[str], legislature: str) -> list[DeputyRecord]:
        rows = await asyncio.to_thread(self.load_rows, str(legislature))
        records: list[DeputyRecord] = []
        for deputy_id in ids:
            row = rows.get(canonicalize_deputy_id(deputy_id))
            if row is not None:
                records.append(deputy_record_from_store_row(row))
        return records

    async def count(self, legislature: str) -> int:
        rows = await asyncio.to_thread(self.load_rows, str(legislature))
        return len(rows)
