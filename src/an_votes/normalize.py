"""Shape normalization for upstream deputy and ballot records.

The public-data API and the persistent store describe the same entities in
several incompatible JSON shapes.  Everything in this module is a pure
function: no I/O, no state, and malformed input yields an empty result rather
than an exception.

**Deputy IDs:**
    Canonical IDs are ``PA`` followed by digits.  Bare numbers (``"1592"``,
    ``1592``), lower-case prefixes (``"pa1592"``) and ``{"#text": ...}``
    wrappers are all canonicalized by :func:`canonicalize_deputy_id`.  Every
    ID used as a cache key goes through it exactly once, at extraction time.

**Ballot breakdowns:**
    A political group's ballot breakdown arrives either wrapped in a tally
    object (``votes``, ``decompte``, ``vote.decompteNominatif``) or with the
    position lists at the top level of the group.  The wrapper check runs per
    group, since one response can mix both conventions.  Position values may
    be a ``{"votant": ...}`` container, a list, or a single object.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from typing import Any

from .models import (
    PROFESSION_NOT_PROVIDED,
    BallotPosition,
    Deport,
    DeputyRecord,
    DeputyVote,
    GroupBallotBreakdown,
    OrganeDetail,
)

LOGGER = logging.getLogger(__name__)

_RE_DIGITS = re.compile(r"^[0-9]+$")
_RE_PREFIXED = re.compile(r"^pa([0-9]+)$", re.IGNORECASE)
_RE_CANONICAL = re.compile(r"^PA[0-9]+$")
_RE_ORGANE = re.compile(r"^po[0-9]+$", re.IGNORECASE)

# ── Field alias tables (first non-empty match wins) ──────────────────────────

_ID_PATHS = ("deputy_id", "acteurRef", "uid", "id_an", "id", "mandant.uid", "matricule")
_GIVEN_NAME_PATHS = (
    "prenom",
    "etatCivil.ident.prenom",
    "ident.prenom",
    "mandant.prenom",
    "first_name",
)
_FAMILY_NAME_PATHS = (
    "nom",
    "etatCivil.ident.nom",
    "ident.nom",
    "mandant.nom",
    "nom_de_famille",
    "last_name",
)
_FULL_NAME_PATHS = ("nom_complet", "full_name", "nomComplet")
_PROFESSION_PATHS = (
    "profession",
    "profession.libelleCourant",
    "profession.socProcINSEE.catSocPro",
)
_GROUP_NAME_PATHS = (
    "groupe_politique",
    "political_group",
    "groupe.libelle",
    "groupe_sigle",
    "groupe",
)
_GROUP_ID_PATHS = (
    "groupe_politique_uid",
    "political_group_id",
    "groupe.code",
    "groupe.organeRef",
)
_GROUP_LABEL_PATHS = ("libelle", "nom", "nomComplet", "nomCourt")

# Position-keyed fields, as they appear inside a tally wrapper or flat.
_POSITION_KEYS: dict[BallotPosition, tuple[str, ...]] = {
    BallotPosition.FOR: ("pours", "pour"),
    BallotPosition.AGAINST: ("contres", "contre"),
    BallotPosition.ABSTAIN: ("abstentions", "abstention"),
    BallotPosition.ABSENT: ("nonVotants", "nonVotant", "nonVotantsVolontaires", "absents"),
}
_TALLY_WRAPPER_PATHS = ("votes", "decompte", "decompteNominatif", "vote.decompteNominatif")

# Count fields: aliases inside one tuple name the same tally, distinct tuples add up.
_COUNT_KEY_GROUPS: dict[BallotPosition, tuple[tuple[str, ...], ...]] = {
    BallotPosition.FOR: (("pours", "pour"),),
    BallotPosition.AGAINST: (("contres", "contre"),),
    BallotPosition.ABSTAIN: (("abstentions", "abstention"),),
    BallotPosition.ABSENT: (("nonVotants", "nonVotant", "absents"), ("nonVotantsVolontaires",)),
}

# Numeric-only tallies on the group itself (no deputy lists).
_FLAT_NUMBER_KEYS: dict[BallotPosition, tuple[str, ...]] = {
    BallotPosition.FOR: ("nombrePour", "nbPour"),
    BallotPosition.AGAINST: ("nombreContre", "nbContre"),
    BallotPosition.ABSTAIN: ("nombreAbstention", "nombreAbstentions", "nbAbstention"),
    BallotPosition.ABSENT: ("nombreNonVotant", "nombreNonVotants", "nbNonVotant"),
}

_POSITION_ALIASES: dict[str, BallotPosition] = {
    "pour": BallotPosition.FOR,
    "pours": BallotPosition.FOR,
    "for": BallotPosition.FOR,
    "contre": BallotPosition.AGAINST,
    "contres": BallotPosition.AGAINST,
    "against": BallotPosition.AGAINST,
    "abstention": BallotPosition.ABSTAIN,
    "abstentions": BallotPosition.ABSTAIN,
    "abstain": BallotPosition.ABSTAIN,
    "absent": BallotPosition.ABSENT,
    "absents": BallotPosition.ABSENT,
    "nonvotant": BallotPosition.ABSENT,
    "nonvotants": BallotPosition.ABSENT,
    "nonvotantsvolontaires": BallotPosition.ABSENT,
}

_DATE_FORMATS = [
    "%Y-%m-%d",  # ISO (already normalized)
    "%d/%m/%Y",  # 18/07/2024
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f%z",
]

UNKNOWN_GROUP_NAME = "Groupe inconnu"


# ── Scalar helpers ───────────────────────────────────────────────────────────


def as_list(value: Any) -> list:
    """Coerce a value that may be a single object or a list into a list.

    >>> as_list(None)
    []
    >>> as_list({"acteurRef": "PA1"})
    [{'acteurRef': 'PA1'}]
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def text_value(value: Any) -> str:
    """Return the text carried by *value*, unwrapping known wrapper objects.

    Handles plain strings, numbers, ``{"#text": ...}``, ``{"value": ...}``
    and ``{"libelleCourant": ...}``.  Anything else yields ``""``.
    """
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        for key in ("#text", "value", "libelleCourant"):
            if key in value:
                return text_value(value[key])
        return ""
    if isinstance(value, list):
        for item in value:
            text = text_value(item)
            if text:
                return text
    return ""


def _dig(record: Any, path: str) -> Any:
    current = record
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def first_present(record: Any, paths: Iterable[str]) -> str:
    """Walk *paths* in priority order and return the first non-empty text."""
    for path in paths:
        text = text_value(_dig(record, path))
        if text:
            return text
    return ""


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "oui", "yes")
    return bool(value)


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = text_value(value)
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def normalize_date(date_str: str | None) -> str:
    """Normalize an upstream date string to ISO ``YYYY-MM-DD``.

    Returns empty string for None/empty input.  Unparseable values are
    returned unchanged to avoid data loss.

    >>> normalize_date("18/07/2024")
    '2024-07-18'
    >>> normalize_date("2024-07-18T15:00:00")
    '2024-07-18'
    """
    if not date_str or not isinstance(date_str, str):
        return ""
    date_str = date_str.strip()
    if re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        return date_str
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    LOGGER.debug("normalize_date: unparseable date %r", date_str)
    return date_str


# ── Deputy IDs ───────────────────────────────────────────────────────────────


def canonicalize_deputy_id(raw: Any) -> str:
    """Return the canonical ``PA<digits>`` form of a deputy ID, or ``""``.

    >>> canonicalize_deputy_id("1592")
    'PA1592'
    >>> canonicalize_deputy_id(" pa1592 ")
    'PA1592'
    >>> canonicalize_deputy_id({"#text": "PA1592"})
    'PA1592'
    >>> canonicalize_deputy_id("PO845401")
    ''
    """
    if isinstance(raw, Mapping):
        for key in ("#text", "uid", "id"):
            if key in raw:
                return canonicalize_deputy_id(raw[key])
        return ""
    if isinstance(raw, bool):
        return ""
    if isinstance(raw, int):
        try:
            raw = str(raw)
        except ValueError:  # past the interpreter's int-to-str digit limit
            return ""
    if not isinstance(raw, str):
        return ""
    text = raw.strip()
    if _RE_DIGITS.match(text):
        return f"PA{text}"
    m = _RE_PREFIXED.match(text)
    if m:
        return f"PA{m.group(1)}"
    return ""


def is_canonical_deputy_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_RE_CANONICAL.match(value))


def _first_deputy_id(record: Any) -> str:
    for path in _ID_PATHS:
        deputy_id = canonicalize_deputy_id(_dig(record, path))
        if deputy_id:
            return deputy_id
    return ""


# ── Deputy records ───────────────────────────────────────────────────────────


def split_full_name(given: str, family: str, full: str) -> tuple[str, str]:
    """Fill missing name halves from a combined ``"Given Family"`` string."""
    if full and (not given or not family):
        parts = full.split()
        if len(parts) > 1:
            given = given or parts[0]
            family = family or " ".join(parts[1:])
    if not given and " " in family:
        parts = family.split()
        given, family = parts[0], " ".join(parts[1:])
    return given, family


def _group_id_from_mandates(record: Mapping) -> str:
    """Find the political-group organe ref (``PO...``) among the mandates.

    Prefers an open ``GP`` mandate, then any ``GP`` mandate, then the first
    ``PO`` reference found.
    """
    candidates: list[tuple[int, str]] = []
    for mandate in as_list(_dig(record, "mandats.mandat")):
        if not isinstance(mandate, Mapping):
            continue
        refs = [text_value(r) for r in as_list(_dig(mandate, "organes.organeRef"))]
        ref = next((r for r in refs if r.startswith("PO")), "")
        if not ref:
            continue
        is_group = text_value(mandate.get("typeOrgane")) == "GP"
        is_open = not text_value(mandate.get("dateFin"))
        rank = 0 if is_group and is_open else 1 if is_group else 2
        candidates.append((rank, ref))
    if not candidates:
        return ""
    return min(candidates, key=lambda c: c[0])[1]


def _record_from_mapping(record: Mapping, deputy_id: str) -> DeputyRecord:
    given = first_present(record, _GIVEN_NAME_PATHS)
    family = first_present(record, _FAMILY_NAME_PATHS)
    given, family = split_full_name(given, family, first_present(record, _FULL_NAME_PATHS))

    group_id = first_present(record, _GROUP_ID_PATHS) or _group_id_from_mandates(record)
    return DeputyRecord(
        id=deputy_id,
        given_name=given,
        family_name=family,
        profession=first_present(record, _PROFESSION_PATHS) or PROFESSION_NOT_PROVIDED,
        political_group_name=first_present(record, _GROUP_NAME_PATHS) or None,
        political_group_id=group_id or None,
    )


def deputy_record_from_remote(raw: Any, deputy_id: Any = "") -> DeputyRecord:
    """Build a :class:`DeputyRecord` from a remote detail response.

    Accepts the flat shape (``prenom``/``nom`` at the top level) and the
    nested shape (``etatCivil.ident``), optionally wrapped in ``acteur``.
    The requested *deputy_id* wins over the one carried by the payload.
    Unusable input yields a placeholder record with empty names.
    """
    requested = canonicalize_deputy_id(deputy_id)
    if not isinstance(raw, Mapping):
        return DeputyRecord(id=requested)
    record = raw.get("acteur") if isinstance(raw.get("acteur"), Mapping) else raw
    return _record_from_mapping(record, requested or _first_deputy_id(record))


def deputy_record_from_store_row(row: Any) -> DeputyRecord:
    """Build a :class:`DeputyRecord` from a persistent-store row."""
    if not isinstance(row, Mapping):
        return DeputyRecord(id="")
    return _record_from_mapping(row, _first_deputy_id(row))


def deputy_record_to_store_row(record: DeputyRecord, legislature: str) -> dict:
    profession = record.profession
    return {
        "deputy_id": record.id,
        "first_name": record.given_name,
        "last_name": record.family_name,
        "full_name": f"{record.given_name} {record.family_name}".strip(),
        "legislature": str(legislature),
        "political_group": record.political_group_name,
        "political_group_id": record.political_group_id,
        "profession": None if profession == PROFESSION_NOT_PROVIDED else profession,
    }


# ── Ballot positions ─────────────────────────────────────────────────────────


def normalize_position(label: Any) -> BallotPosition:
    """Map an upstream position label to a :class:`BallotPosition`.

    Unrecognized labels map to ``ABSENT``.

    >>> normalize_position("Pour")
    <BallotPosition.FOR: 'for'>
    >>> normalize_position("Non-votant")
    <BallotPosition.ABSENT: 'absent'>
    """
    if isinstance(label, BallotPosition):
        return label
    text = text_value(label).lower()
    key = re.sub(r"[\s_-]+", "", text)
    if key in _POSITION_ALIASES:
        return _POSITION_ALIASES[key]
    if "nonvotant" in key or "absent" in key:
        return BallotPosition.ABSENT
    if "pour" in key:
        return BallotPosition.FOR
    if "contre" in key:
        return BallotPosition.AGAINST
    if "abstention" in key:
        return BallotPosition.ABSTAIN
    if text:
        LOGGER.debug("normalize_position: unknown label %r, using absent", label)
    return BallotPosition.ABSENT


# ── Ballot breakdown shapes ──────────────────────────────────────────────────


def _tally_wrappers(group: Any) -> list[Mapping]:
    if not isinstance(group, Mapping):
        return []
    wrappers = []
    for path in _TALLY_WRAPPER_PATHS:
        wrapper = _dig(group, path)
        if isinstance(wrapper, Mapping):
            wrappers.append(wrapper)
    return wrappers


def is_tally_wrapped(group: Any) -> bool:
    """True when the position lists sit inside a tally wrapper object."""
    return bool(_tally_wrappers(group))


def is_flat_counts(group: Any) -> bool:
    """True when position-keyed fields sit at the top level of the group."""
    if not isinstance(group, Mapping):
        return False
    return any(key in group for keys in _POSITION_KEYS.values() for key in keys)


def _has_voters(source: Mapping) -> bool:
    return any(
        _voters(source[key])
        for keys in _POSITION_KEYS.values()
        for key in keys
        if source.get(key) is not None
    )


def _position_source(group: Any) -> Mapping | None:
    """Pick the mapping holding the position fields.

    Wrappers come before flat fields.  A group may carry both a numeric
    ``decompte`` and a ``votes`` wrapper with the voter lists, so the first
    candidate that lists voters wins over one holding only counts.
    """
    candidates = _tally_wrappers(group)
    if is_flat_counts(group):
        candidates.append(group)
    if not candidates:
        return None
    for candidate in candidates:
        if _has_voters(candidate):
            return candidate
    return candidates[0]


def _voters(container: Any) -> list:
    """Flatten one position value into a list of voter items.

    A bare number at this level is a head count, not a voter.
    """
    if isinstance(container, Mapping) and "votant" in container:
        return as_list(container["votant"])
    if isinstance(container, Mapping) and "votants" in container:
        return _voters(container["votants"])
    if isinstance(container, Mapping):
        return [container]
    if isinstance(container, str):
        return [container] if _RE_PREFIXED.match(container.strip()) else []
    if isinstance(container, list):
        return container
    return []


def _iter_voters(group: Any) -> Iterator[tuple[BallotPosition, Any]]:
    source = _position_source(group)
    if source is None:
        return
    for position, keys in _POSITION_KEYS.items():
        for key in keys:
            if key not in source:
                continue
            for voter in _voters(source[key]):
                yield position, voter


def _voter_id(voter: Any) -> str:
    if isinstance(voter, Mapping):
        return _first_deputy_id(voter)
    return canonicalize_deputy_id(voter)


def deputy_votes_from_group(raw: Any) -> list[DeputyVote]:
    """Extract every deputy vote from one group, sorted by family name then ID.

    Voters without a usable deputy ID are skipped.
    """
    votes: list[DeputyVote] = []
    seen: set[str] = set()
    for position, voter in _iter_voters(raw):
        deputy_id = _voter_id(voter)
        if not deputy_id or deputy_id in seen:
            continue
        seen.add(deputy_id)
        vote = DeputyVote(deputy_id=deputy_id, position=position)
        if isinstance(voter, Mapping):
            vote.given_name = text_value(voter.get("prenom"))
            vote.family_name = text_value(voter.get("nom"))
            vote.by_delegation = _truthy(voter.get("parDelegation"))
            vote.cause = text_value(voter.get("causePosition"))
        votes.append(vote)
    votes.sort(key=lambda v: ((v.family_name or v.deputy_id).lower(), v.deputy_id))
    return votes


def deputy_position_pairs(raw: Any) -> list[tuple[str, BallotPosition]]:
    """``(deputy_id, position)`` for each deputy in the group, in upstream order."""
    pairs: list[tuple[str, BallotPosition]] = []
    seen: set[str] = set()
    for position, voter in _iter_voters(raw):
        deputy_id = _voter_id(voter)
        if deputy_id and deputy_id not in seen:
            seen.add(deputy_id)
            pairs.append((deputy_id, position))
    return pairs


def group_id_of(raw: Any) -> str:
    if not isinstance(raw, Mapping):
        return ""
    return text_value(raw.get("organeRef")) or text_value(raw.get("uid"))


def group_display_name(raw: Any) -> str:
    """Human-readable group name, falling back to the organe ref."""
    if isinstance(raw, str):
        return raw.strip() or UNKNOWN_GROUP_NAME
    name = first_present(raw, _GROUP_LABEL_PATHS)
    if name:
        return name
    ref = group_id_of(raw)
    if ref:
        return f"Groupe {ref}"
    return UNKNOWN_GROUP_NAME


def group_breakdown(raw: Any, group_id: str = "") -> GroupBallotBreakdown:
    """Normalize one group's raw ballot data into a :class:`GroupBallotBreakdown`."""
    if isinstance(raw, GroupBallotBreakdown):
        return raw
    breakdown = GroupBallotBreakdown(
        group_id=group_id or group_id_of(raw),
        group_name=group_display_name(raw) if isinstance(raw, (Mapping, str)) else "",
    )
    for deputy_id, position in deputy_position_pairs(raw):
        breakdown.positions[position].append(deputy_id)
    return breakdown


def deputy_ids_from_groups(groups: Any) -> list[str]:
    """Collect canonical deputy IDs across every position of every group.

    *groups* is a ``{group_id: raw_group}`` mapping or an iterable of raw
    groups / :class:`GroupBallotBreakdown`.  Order is stable, duplicates
    dropped.
    """
    if isinstance(groups, Mapping):
        items: Iterable[Any] = groups.values()
    elif isinstance(groups, (list, tuple)):
        items = groups
    else:
        return []
    seen: dict[str, None] = {}
    for raw in items:
        if raw is None:
            continue
        for deputy_id in group_breakdown(raw).all_ids():
            canonical = canonicalize_deputy_id(deputy_id)
            if canonical:
                seen.setdefault(canonical, None)
    return list(seen)


def _tally(source: Mapping, keys: tuple[str, ...]) -> int:
    for key in keys:
        value = source.get(key)
        if value is None:
            continue
        number = _to_int(value) if isinstance(value, (int, str)) else None
        return number if number is not None else len(_voters(value))
    return 0


def position_counts(raw: Any) -> dict[BallotPosition, int]:
    """Per-position head counts for one group.

    Lists are counted by length; numeric tallies (``"decompte": {"pour":
    "12"}``) are read as numbers; ``nombrePour``-style fields on the group
    are the last resort.
    """
    counts = {p: 0 for p in BallotPosition}
    source = _position_source(raw)
    if source is not None:
        for position, key_groups in _COUNT_KEY_GROUPS.items():
            for keys in key_groups:
                counts[position] += _tally(source, keys)
        return counts
    if isinstance(raw, Mapping):
        for position, keys in _FLAT_NUMBER_KEYS.items():
            for key in keys:
                number = _to_int(raw.get(key))
                if number is not None:
                    counts[position] = number
                    break
    return counts


# ── Ballot detail responses ──────────────────────────────────────────────────


def groups_from_ballot_detail(detail: Any) -> dict[str, dict]:
    """Return ``{group_id: raw_group}`` from a ballot-detail response.

    Three response shapes are recognized, tried in order:

    - ``{"groupes": [...]}`` (detailed ballot endpoint)
    - ``{"scrutin": {"ventilationVotes": {"organe": ...}}}`` (open data; the
      organe is either the group itself or wraps ``groupes.groupe``)
    - ``{"scrutin": {"groupes": {"groupe": ...}}}``
    """
    if not isinstance(detail, Mapping):
        return {}

    groups: dict[str, dict] = {}

    if isinstance(detail.get("groupes"), list):
        for group in detail["groupes"]:
            group_id = group_id_of(group)
            if group_id:
                groups[group_id] = group
        return groups

    organes = _dig(detail, "scrutin.ventilationVotes.organe")
    if organes is not None:
        for organe in as_list(organes):
            # Full open-data exports nest the groups under the assembly organe.
            inner = _dig(organe, "groupes.groupe")
            if inner is not None:
                for group in as_list(inner):
                    group_id = group_id_of(group)
                    if group_id:
                        groups[group_id] = group
                continue
            group_id = group_id_of(organe)
            if group_id:
                groups[group_id] = {**organe, "organeRef": group_id, "uid": group_id}
        return groups

    nested = _dig(detail, "scrutin.groupes.groupe")
    if nested is not None:
        for group in as_list(nested):
            group_id = group_id_of(group)
            if group_id:
                groups[group_id] = group
        return groups

    LOGGER.debug("groups_from_ballot_detail: no known group shape in %s", list(detail)[:10])
    return {}


def ballot_breakdowns(detail: Any) -> dict[str, GroupBallotBreakdown]:
    """Normalize every group of a ballot-detail response."""
    return {gid: group_breakdown(raw, gid) for gid, raw in groups_from_ballot_detail(detail).items()}


# ── Organes and deports ──────────────────────────────────────────────────────


def canonicalize_organe_id(raw: Any) -> str:
    """Return an organe ref as ``PO<digits>``, or ``""``.

    >>> canonicalize_organe_id(" po845401 ")
    'PO845401'
    """
    text = text_value(raw)
    return text.upper() if _RE_ORGANE.match(text) else ""


def organe_detail_from_remote(raw: Any, organe_id: str = "") -> OrganeDetail:
    """Build an :class:`OrganeDetail` from an ``/organes`` response."""
    requested = canonicalize_organe_id(organe_id)
    if not isinstance(raw, Mapping):
        return OrganeDetail(uid=requested)
    members: dict[str, str] = {}
    for member in as_list(raw.get("membres")):
        deputy_id = _voter_id(member)
        if deputy_id:
            state = text_value(member.get("etat")) if isinstance(member, Mapping) else ""
            members.setdefault(deputy_id, state)
    return OrganeDetail(
        uid=canonicalize_organe_id(raw.get("uid")) or requested,
        name=first_present(raw, ("libelle", "libelleAbrege", "libelleAbrev")),
        legislature=text_value(raw.get("legislature")),
        start_date=normalize_date(text_value(raw.get("dateDebut"))),
        end_date=normalize_date(text_value(raw.get("dateFin"))),
        organe_type=text_value(raw.get("typeOrgane") or raw.get("codeType")),
        members=members,
    )


def deports_from_remote(raw: Any, deputy_id: str = "") -> list[Deport]:
    """Normalize a ``/deports`` response into :class:`Deport` rows.

    Rows naming another deputy than the requested one are kept with their
    own ID; rows without any usable ID take the requested one.
    """
    requested = canonicalize_deputy_id(deputy_id)
    deports: list[Deport] = []
    for item in as_list(raw):
        if not isinstance(item, Mapping):
            continue
        owner = (
            canonicalize_deputy_id(item.get("deputeId"))
            or canonicalize_deputy_id(item.get("refActeur"))
            or requested
        )
        deports.append(
            Deport(
                deputy_id=owner,
                id=text_value(item.get("id") or item.get("uid")),
                reason=text_value(item.get("motif")),
                start_date=normalize_date(text_value(item.get("dateDebut"))),
                end_date=normalize_date(text_value(item.get("dateFin"))),
                scope=text_value(item.get("portee")),
                target=text_value(item.get("cible")),
            )
        )
    return deports
