"""
Map free-form model vocabulary onto the internal enumerations.

Lookup is a fixed table first.  Only when the table has no entry do the
hint words run, and they must match a whole word of the value ("temp"
matches "Temp role" but not "contemporary").  A value that matches none
of them maps to ``None`` so nothing is guessed.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from .schema import EmploymentType, Seniority, UrlKind, WorkMode

URL_KIND_TABLE: Dict[str, UrlKind] = {kind.value: kind for kind in UrlKind}

WORK_MODE_TABLE: Dict[str, WorkMode] = {
    "remote": WorkMode.REMOTE,
    "hybrid": WorkMode.HYBRID,
    "on_site": WorkMode.ON_SITE,
    "onsite": WorkMode.ON_SITE,
    "in_office": WorkMode.ON_SITE,
    "unknown": WorkMode.UNKNOWN,
}

EMPLOYMENT_TYPE_TABLE: Dict[str, EmploymentType] = {
    "full_time": EmploymentType.FULL_TIME,
    "fulltime": EmploymentType.FULL_TIME,
    "part_time": EmploymentType.PART_TIME,
    "parttime": EmploymentType.PART_TIME,
    "contract": EmploymentType.CONTRACT,
    "contractor": EmploymentType.CONTRACT,
    "internship": EmploymentType.INTERNSHIP,
    "intern": EmploymentType.INTERNSHIP,
    "temporary": EmploymentType.TEMPORARY,
    "temp": EmploymentType.TEMPORARY,
    "unknown": EmploymentType.UNKNOWN,
}

SENIORITY_TABLE: Dict[str, Seniority] = {
    "junior": Seniority.JUNIOR,
    "entry": Seniority.JUNIOR,
    "entry_level": Seniority.JUNIOR,
    "mid": Seniority.MID,
    "mid_level": Seniority.MID,
    "intermediate": Seniority.MID,
    "senior": Seniority.SENIOR,
    "staff": Seniority.STAFF,
    "lead": Seniority.LEAD,
    "principal": Seniority.PRINCIPAL,
    "unknown": Seniority.UNKNOWN,
}

# Ordered: first hit wins, so more specific patterns come first.
WORK_MODE_HINTS: List[Tuple[str, WorkMode]] = [
    ("hybrid", WorkMode.HYBRID),
    ("remote", WorkMode.REMOTE),
    ("onsite", WorkMode.ON_SITE),
    ("site", WorkMode.ON_SITE),
    ("office", WorkMode.ON_SITE),
]

EMPLOYMENT_TYPE_HINTS: List[Tuple[str, EmploymentType]] = [
    ("intern", EmploymentType.INTERNSHIP),
    ("internship", EmploymentType.INTERNSHIP),
    ("part", EmploymentType.PART_TIME),
    ("full", EmploymentType.FULL_TIME),
    ("contract", EmploymentType.CONTRACT),
    ("contractor", EmploymentType.CONTRACT),
    ("freelance", EmploymentType.CONTRACT),
    ("freelancer", EmploymentType.CONTRACT),
    ("temp", EmploymentType.TEMPORARY),
    ("temporary", EmploymentType.TEMPORARY),
]

SENIORITY_HINTS: List[Tuple[str, Seniority]] = [
    ("principal", Seniority.PRINCIPAL),
    ("staff", Seniority.STAFF),
    ("lead", Seniority.LEAD),
    ("senior", Seniority.SENIOR),
    ("sr", Seniority.SENIOR),
    ("junior", Seniority.JUNIOR),
    ("jr", Seniority.JUNIOR),
    ("entry", Seniority.JUNIOR),
    ("mid", Seniority.MID),
]


def _vocab_key(value: str) -> str:
    return re.sub(r"[\s\-]+", "_", value.strip().lower())


def _lookup(value: Optional[str], table, hints):
    if value is None:
        return None
    key = _vocab_key(str(value))
    if not key:
        return None
    if key in table:
        return table[key]
    words = set(w for w in re.split(r"[^a-z0-9]+", key) if w)
    for needle, member in hints:
        if needle in words:
            return member
    return None


def map_work_mode(value: Optional[str]) -> Optional[WorkMode]:
    """Map a work-mode string; ``None`` when nothing matches."""
    return _lookup(value, WORK_MODE_TABLE, WORK_MODE_HINTS)


def map_employment_type(value: Optional[str]) -> Optional[EmploymentType]:
    return _lookup(value, EMPLOYMENT_TYPE_TABLE, EMPLOYMENT_TYPE_HINTS)


def map_seniority(value: Optional[str]) -> Optional[Seniority]:
    return _lookup(value, SENIORITY_TABLE, SENIORITY_HINTS)


def map_url_kind(value: Optional[str]) -> UrlKind:
    """Map a page classification; anything unrecognised is ``irrelevant``."""
    if value is None:
        return UrlKind.IRRELEVANT
    return URL_KIND_TABLE.get(_vocab_key(str(value)), UrlKind.IRRELEVANT)
