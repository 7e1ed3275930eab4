#!/usr/bin/env python3
"""Fill the persistent deputy store from the public rosters.

Tries each roster source in order (NosDéputés first, then Assemblée nationale
open data) and writes the first usable one to ``<store>/deputies_<leg>.json``.

Usage::

    python scripts/sync_deputies.py                     # legislature from AN_LEGISLATURE
    python scripts/sync_deputies.py --legislature 16
    python scripts/sync_deputies.py --source https://www.nosdeputes.fr/deputes/enmandat/json
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from rich.console import Console  # noqa: E402

from an_votes.config import LEGISLATURE, STORE_DIR, get_sync_sources  # noqa: E402
from an_votes.store import JsonDeputyStore  # noqa: E402
from an_votes.sync import sync_deputies  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(message)s",
    stream=sys.stderr,
    force=True,
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync the deputy store from public rosters.")
    parser.add_argument("--legislature", default=LEGISLATURE, help="Legislature number.")
    parser.add_argument("--store-dir", type=Path, default=STORE_DIR, help="Store directory.")
    parser.add_argument(
        "--source",
        action="append",
        default=None,
        help="Roster URL (repeatable). Default: AN_SYNC_SOURCES or built-in list.",
    )
    args = parser.parse_args()

    console = Console()
    store = JsonDeputyStore(store_dir=args.store_dir)
    result = sync_deputies(store, args.legislature, args.source or get_sync_sources())

    if result.success:
        console.print(
            f"[bold green]Synchronisation des députés réussie[/]: "
            f"{result.count} députés (législature {args.legislature}) depuis {result.source}"
        )
    else:
        console.print("[bold red]Échec de la synchronisation des députés[/]")
    for err in result.errors:
        console.print(f"[dim]  {err}[/]")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
