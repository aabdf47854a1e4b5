"""
Search and filter helpers for directory views.

These only read `NormalizedRecord` values; nothing here mutates a record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from aero_common.normalize import NormalizedRecord

# Centre of Germany, used when no record has coordinates.
DEFAULT_MAP_CENTER: Tuple[float, float] = (51.163, 10.447)

_SPACES = re.compile(r"\s+")

# Option sources for the directory filters.
OPTION_GETTERS: Dict[str, Callable[[NormalizedRecord], Iterable[str]]] = {
    "type": lambda r: [r.stakeholder_type] if r.stakeholder_type else [],
    "domain": lambda r: [r.domain] if r.domain else [],
    "support": lambda r: r.cat_support,
    "applications": lambda r: r.cat_applications,
    "manufacturers": lambda r: r.cat_manufacturers,
    "hw_sw": lambda r: r.cat_hw_sw,
}


def _norm(value: Optional[str]) -> str:
    return _SPACES.sub(" ", str(value or "").lower()).strip()


def match_group(item_values: Sequence[str], selected: Sequence[str]) -> bool:
    """True when nothing is selected, or the record carries any selected value."""

    if not selected:
        return True
    if not item_values:
        return False
    present = {str(v).strip() for v in item_values}
    return any(token in present for token in selected)


def map_tokens_to_options(raw: Optional[str], options: Sequence[str]) -> List[str]:
    """
    Map comma-separated, loosely typed tokens (e.g. from a URL) to known options.

    A token that equals an option after normalization maps to that option only.
    Otherwise every option containing the token, or contained in it, is taken.
    Output keeps first-seen order without duplicates.
    """

    tokens = [t.strip() for t in str(raw or "").split(",") if t.strip()]
    if not tokens or not options:
        return []

    lookup: Dict[str, str] = {}
    for option in options:
        lookup.setdefault(_norm(option), option)

    out: List[str] = []
    for token in tokens:
        nt = _norm(token)
        if nt in lookup:
            candidates = [lookup[nt]]
        else:
            candidates = [orig for lo, orig in lookup.items() if nt in lo or lo in nt]
        for value in candidates:
            if value not in out:
                out.append(value)
    return out


def collect_options(records: Iterable[NormalizedRecord], kind: str) -> List[str]:
    """Sorted distinct values for one filter kind (see `OPTION_GETTERS`)."""

    try:
        getter = OPTION_GETTERS[kind]
    except KeyError:
        raise ValueError(f"Unknown filter kind '{kind}'; expected one of {sorted(OPTION_GETTERS)}") from None
    values = {str(v).strip() for record in records for v in getter(record) if str(v).strip()}
    return sorted(values, key=str.lower)


@dataclass
class FilterState:
    query: str = ""
    types: List[str] = field(default_factory=list)
    domains: List[str] = field(default_factory=list)
    support: List[str] = field(default_factory=list)
    applications: List[str] = field(default_factory=list)
    manufacturers: List[str] = field(default_factory=list)
    hw_sw: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.query.strip()
            or self.types
            or self.domains
            or self.support
            or self.applications
            or self.manufacturers
            or self.hw_sw
        )


def _haystack(record: NormalizedRecord) -> str:
    parts = [
        record.name,
        record.website,
        record.address,
        record.description,
        record.domain,
        record.stakeholder_type,
    ]
    return " ".join(p for p in parts if p).lower()


def record_matches(record: NormalizedRecord, state: FilterState) -> bool:
    if state.types and (record.stakeholder_type or "").strip() not in state.types:
        return False
    if state.domains and (record.domain or "").strip() not in state.domains:
        return False
    query = state.query.strip().lower()
    if query and query not in _haystack(record):
        return False
    return (
        match_group(record.cat_support, state.support)
        and match_group(record.cat_applications, state.applications)
        and match_group(record.cat_manufacturers, state.manufacturers)
        and match_group(record.cat_hw_sw, state.hw_sw)
    )


def apply_filters(records: Iterable[NormalizedRecord], state: FilterState) -> List[NormalizedRecord]:
    return [record for record in records if record_matches(record, state)]


def geo_points(records: Iterable[NormalizedRecord]) -> List[NormalizedRecord]:
    return [record for record in records if record.has_coordinates]


def map_center(records: Iterable[NormalizedRecord]) -> Tuple[float, float]:
    """Mean position of records with coordinates; Germany when there are none."""

    points = geo_points(records)
    if not points:
        return DEFAULT_MAP_CENTER
    lat = sum(p.lat for p in points) / len(points)
    lng = sum(p.lng for p in points) / len(points)
    return (lat, lng)
