from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Sentinel for a profession the upstream never filled in.
PROFESSION_NOT_PROVIDED = "Non renseignée"


class BallotPosition(str, Enum):
    FOR = "for"
    AGAINST = "against"
    ABSTAIN = "abstain"
    ABSENT = "absent"


class ResolutionState(str, Enum):
    QUEUED = "queued"
    LOADING = "loading"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class DeputyRecord:
    id: str  # canonical, e.g. "PA1592"
    given_name: str = ""
    family_name: str = ""
    profession: str = PROFESSION_NOT_PROVIDED
    political_group_name: str | None = None
    political_group_id: str | None = None  # e.g. "PO845401"

    @property
    def is_resolved(self) -> bool:
        return bool(self.given_name.strip()) and bool(self.family_name.strip())

    @property
    def display_name(self) -> str:
        """``"Given Family"`` once resolved, ``"Député <id>"`` otherwise."""
        if self.is_resolved:
            return f"{self.given_name} {self.family_name}"
        return f"Député {self.id}"


@dataclass
class CacheEntry:
    record: DeputyRecord
    state: ResolutionState = ResolutionState.QUEUED
    last_attempt_at: float = 0.0
    attempts: int = 0
    not_found: bool = False  # remote said 404: terminal for the session
    source: str = ""  # "store" | "remote" | ""


@dataclass
class GroupBallotBreakdown:
    group_id: str
    group_name: str = ""
    positions: dict[BallotPosition, list[str]] = field(
        default_factory=lambda: {p: [] for p in BallotPosition}
    )

    def ids_for(self, position: BallotPosition) -> list[str]:
        return self.positions.get(position, [])

    def all_ids(self) -> list[str]:
        """Every deputy ID across all positions, first occurrence wins."""
        seen: dict[str, None] = {}
        for position in BallotPosition:
            for deputy_id in self.ids_for(position):
                seen.setdefault(deputy_id, None)
        return list(seen)

    @property
    def is_empty(self) -> bool:
        return not any(self.positions.get(p) for p in BallotPosition)


@dataclass
class DeputyVote:
    deputy_id: str
    position: BallotPosition
    given_name: str = ""
    family_name: str = ""
    by_delegation: bool = False
    cause: str = ""  # causePosition, e.g. "PAN" for the presiding officer


@dataclass
class DeputyBallot:
    """One row of a deputy's voting history."""

    number: str  # scrutin numero
    date: str  # ISO YYYY-MM-DD
    title: str
    position: BallotPosition


@dataclass
class PrefetchReport:
    requested: int = 0
    found: int = 0
    missing: int = 0
    store_empty: bool = False  # store has no rows for the legislature (unsynced)


@dataclass
class SearchResult:
    success: bool
    record: DeputyRecord | None = None
    options: list[DeputyRecord] = field(default_factory=list)  # homonyms
    message: str = ""


@dataclass
class Deport:
    """A declared recusation (``déport``) of a deputy."""

    deputy_id: str
    id: str = ""
    reason: str = ""  # motif
    start_date: str = ""  # ISO YYYY-MM-DD
    end_date: str = ""
    scope: str = ""  # portee
    target: str = ""  # cible


@dataclass
class OrganeDetail:
    uid: str
    name: str = ""
    legislature: str = ""
    start_date: str = ""
    end_date: str = ""  # empty while the organe is still active
    organe_type: str = ""  # typeOrgane, e.g. "GP"
    members: dict[str, str] = field(default_factory=dict)  # deputy_id -> etat
