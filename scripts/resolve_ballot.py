#!/usr/bin/env python3
"""Resolve every deputy of a ballot and print the per-group breakdown.

Reads a ballot-detail JSON document (any of the upstream shapes), warms the
deputy cache from the persistent store, fetches the rest from the API, then
prints one table per political group.

Usage::

    python scripts/resolve_ballot.py scrutin_1234.json
    python scripts/resolve_ballot.py scrutin_1234.json --legislature 16 --offline
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from an_votes.adapters import RemoteLookupError  # noqa: E402
from an_votes.config import LEGISLATURE, STORE_DIR  # noqa: E402
from an_votes.models import BallotPosition  # noqa: E402
from an_votes.normalize import (  # noqa: E402
    deputy_votes_from_group,
    group_display_name,
    groups_from_ballot_detail,
    position_counts,
)
from an_votes.pipeline import build_pipeline  # noqa: E402
from an_votes.remote import AssembleeApiClient  # noqa: E402
from an_votes.store import JsonDeputyStore  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(message)s",
    stream=sys.stderr,
    force=True,
)

_LABELS = {
    BallotPosition.FOR: "[green]Pour[/]",
    BallotPosition.AGAINST: "[red]Contre[/]",
    BallotPosition.ABSTAIN: "[yellow]Abstention[/]",
    BallotPosition.ABSENT: "[dim]Absent[/]",
}


class _OfflineRemote:
    async def fetch_detail(self, deputy_id: str, legislature: str | None = None) -> dict:
        raise RemoteLookupError("offline mode")


async def _resolve(detail: dict, legislature: str, store_dir: Path, offline: bool):
    remote = _OfflineRemote() if offline else AssembleeApiClient()
    pipeline = build_pipeline(remote, JsonDeputyStore(store_dir=store_dir), legislature=legislature)
    report = await pipeline.prefetcher.warm_from_ballot(detail, legislature)
    await pipeline.scheduler.drain()
    return pipeline, report


def main() -> int:
    parser = argparse.ArgumentParser(description="Resolve the deputies of one ballot.")
    parser.add_argument("ballot", type=Path, help="Ballot-detail JSON file.")
    parser.add_argument("--legislature", default=LEGISLATURE)
    parser.add_argument("--store-dir", type=Path, default=STORE_DIR)
    parser.add_argument("--offline", action="store_true", help="Store only, no API calls.")
    args = parser.parse_args()

    console = Console()
    try:
        with open(args.ballot, encoding="utf-8") as f:
            detail = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Cannot read {args.ballot}: {e}[/]")
        return 1

    groups = groups_from_ballot_detail(detail)
    if not groups:
        console.print("[bold red]No political groups found in this ballot.[/]")
        return 1

    pipeline, report = asyncio.run(_resolve(detail, args.legislature, args.store_dir, args.offline))
    console.print(
        f"[bold cyan]{report.requested} députés[/]: {report.found} depuis la base, "
        f"{report.missing} via l'API"
    )
    if report.store_empty:
        console.print("[yellow]Base de données des députés vide: lancez scripts/sync_deputies.py[/]")

    for group_id, raw in groups.items():
        counts = position_counts(raw)
        table = Table(
            title=f"{group_display_name(raw)} ({group_id})",
            caption=" · ".join(f"{_LABELS[p]} {counts[p]}" for p in BallotPosition),
        )
        table.add_column("ID", style="dim")
        table.add_column("Député")
        table.add_column("Groupe")
        table.add_column("Position")
        for vote in deputy_votes_from_group(raw):
            entry = pipeline.cache.peek(vote.deputy_id)
            record = entry.record if entry is not None else None
            name = record.display_name if record is not None else vote.deputy_id
            if vote.by_delegation:
                name += " [dim](délégation)[/]"
            table.add_row(
                vote.deputy_id,
                name,
                (record.political_group_name or "") if record is not None else "",
                _LABELS[vote.position],
            )
        console.print(table)

    stats = pipeline.cache.stats()
    console.print(f"[dim]Cache: {stats}[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
