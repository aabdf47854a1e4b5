from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .schema import (
    APPLICATIONS_END_USERS,
    COMMENTS,
    COMPANY_ADDRESS,
    COMPANY_NAME,
    COMPANY_WEB,
    DESCRIPTION,
    DOMAIN,
    FEDERAL_STATES,
    GOV_CLUSTERS_ASSOC,
    HARDWARE_SOFTWARE,
    LATITUDE,
    LONGITUDE,
    MANUFACTURERS_DEVELOPERS,
    MUNICH_AEROSPACE,
    RESEARCH_EDUCATION,
    STAKEHOLDER,
    SUPPORT_SERVICES,
    TAG_SOURCE_FIELDS,
    TYPE_OF_STAKEHOLDER,
)

# newline, comma, semicolon, slash, or " | "
MULTI_VALUE_SPLIT = re.compile(r"[\n,;/]| \| ")
_ID_SEPARATORS = re.compile(r"[\W_]+")
# plain decimal notation only: no "_" grouping, no "inf"/"nan" words
_NUMBER_TEXT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def cell_text(value: Any) -> str:
    """
    Render a raw cell value as text.

    Integral floats drop the trailing ".0" (spreadsheets store 2024 as 2024.0)
    and dates use ISO-8601.
    """

    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def clean_text(value: Any) -> Optional[str]:
    """Trimmed text, or None when the cell is empty/whitespace."""

    text = cell_text(value).strip()
    return text or None


def is_blank_row(row: Mapping[str, Any]) -> bool:
    return all(clean_text(v) is None for v in row.values())


def to_num(value: Any) -> Optional[float]:
    """
    Coerce a cell to a finite float.

    Native numbers pass through; strings accept a decimal comma ("48,265").
    Anything empty, unparsable or non-finite yields None.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    text = str(value).strip()
    if not text:
        return None
    text = text.replace(",", ".", 1)
    if not _NUMBER_TEXT.fullmatch(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def split_multi(value: Any) -> List[str]:
    """Split a multi-value cell on the shared delimiter set; empty pieces dropped."""

    text = cell_text(value).strip()
    if not text:
        return []
    pieces = (piece.strip() for piece in MULTI_VALUE_SPLIT.split(text))
    return [piece for piece in pieces if piece]


def uniq(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for val in values:
        if val in seen:
            continue
        seen.add(val)
        ordered.append(val)
    return ordered


def to_id(name: Any) -> str:
    """Slug used as a stable record id: case-folded, separator runs -> '-'."""

    return _ID_SEPARATORS.sub("-", cell_text(name).casefold()).strip("-")


@dataclass(frozen=True)
class NormalizedRecord:
    """One organization entry, ready for search and display."""

    id: str
    name: str
    address: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    stakeholder_type: Optional[str] = None
    domain: Optional[str] = None
    federal_state: Optional[str] = None
    comments: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    tags: Tuple[str, ...] = ()
    stakeholders: Tuple[str, ...] = ()
    cat_support: Tuple[str, ...] = ()
    cat_applications: Tuple[str, ...] = ()
    cat_manufacturers: Tuple[str, ...] = ()
    cat_research: Tuple[str, ...] = ()
    cat_government: Tuple[str, ...] = ()
    cat_hw_sw: Tuple[str, ...] = ()

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedRecord":
        """Rebuild a record from `to_dict` output; unknown keys are ignored."""

        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            if isinstance(value, list):
                value = tuple(str(v) for v in value)
            kwargs[key] = value
        if not kwargs.get("name"):
            raise ValueError(f"Record is missing a name: {dict(data)}")
        kwargs.setdefault("id", to_id(kwargs["name"]) or "id-0")
        kwargs["lat"] = to_num(kwargs.get("lat"))
        kwargs["lng"] = to_num(kwargs.get("lng"))
        return cls(**kwargs)


CATEGORY_ATTRIBUTES: Mapping[str, str] = {
    "cat_support": SUPPORT_SERVICES,
    "cat_applications": APPLICATIONS_END_USERS,
    "cat_manufacturers": MANUFACTURERS_DEVELOPERS,
    "cat_research": RESEARCH_EDUCATION,
    "cat_government": GOV_CLUSTERS_ASSOC,
    "cat_hw_sw": HARDWARE_SOFTWARE,
}


def aggregate_tags(row: Mapping[str, Any]) -> Tuple[str, ...]:
    tags = set()
    for column in TAG_SOURCE_FIELDS:
        tags.update(split_multi(row.get(column)))
    affiliation = clean_text(row.get(MUNICH_AEROSPACE))
    if affiliation:
        tags.add(f"Munich Aerospace: {affiliation}")
    return tuple(sorted(tags))


def normalize_record(row: Mapping[str, Any], index: int) -> NormalizedRecord:
    """
    Build the typed record for one canonical row.

    Total: missing or malformed cells degrade to None/empty fields. `index` is
    the row position within the accepted rows and only feeds the name/id
    fallbacks.
    """

    name = clean_text(row.get(COMPANY_NAME)) or f"Company {index + 1}"
    categories = {attr: tuple(split_multi(row.get(col))) for attr, col in CATEGORY_ATTRIBUTES.items()}

    return NormalizedRecord(
        id=to_id(name) or f"id-{index}",
        name=name,
        address=clean_text(row.get(COMPANY_ADDRESS)),
        description=clean_text(row.get(DESCRIPTION)),
        website=clean_text(row.get(COMPANY_WEB)),
        stakeholder_type=clean_text(row.get(TYPE_OF_STAKEHOLDER)),
        domain=clean_text(row.get(DOMAIN)),
        federal_state=clean_text(row.get(FEDERAL_STATES)),
        comments=clean_text(row.get(COMMENTS)),
        lat=to_num(row.get(LATITUDE)),
        lng=to_num(row.get(LONGITUDE)),
        tags=aggregate_tags(row),
        stakeholders=tuple(uniq(split_multi(row.get(STAKEHOLDER)))),
        **categories,
    )


def normalize_rows(rows: Sequence[Mapping[str, Any]]) -> List[NormalizedRecord]:
    """Normalize canonical rows in order, skipping rows with no usable value."""

    accepted = [row for row in rows if not is_blank_row(row)]
    return [normalize_record(row, idx) for idx, row in enumerate(accepted)]
