from __future__ import annotations

import re
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Sequence, Tuple

from rapidfuzz import fuzz, process

_LABEL_SPACING = re.compile(r"[\s_]+")


def normalize_label(label: Any) -> str:
    """
    Normalize a column label for alias comparison.

    Lowercases and collapses runs of whitespace/underscores to a single space so
    "Company_Name", "company  name" and " COMPANY NAME " compare equal.
    """

    if label is None:
        return ""
    return _LABEL_SPACING.sub(" ", str(label).lower()).strip()


COMPANY_NAME = "company_name"
COMPANY_ADDRESS = "company_address"
COMPANY_WEB = "company_web"
DESCRIPTION = "description"
LATITUDE = "latitude"
LONGITUDE = "longitude"
DOMAIN = "domain"
TYPE_OF_STAKEHOLDER = "type_of_stakeholder"
STAKEHOLDER = "stakeholder"
FEDERAL_STATES = "federal_states"
MUNICH_AEROSPACE = "munich_aerospace"
COMMENTS = "comments"
HARDWARE_SOFTWARE = "hardware_software"
SUPPORT_SERVICES = "support_services"
APPLICATIONS_END_USERS = "applications_end_users"
RESEARCH_EDUCATION = "research_education"
GOV_CLUSTERS_ASSOC = "gov_clusters_assoc"
MANUFACTURERS_DEVELOPERS = "manufacturers_developers"


def _build_alias_table(raw: Mapping[str, Iterable[str]]) -> Dict[str, Tuple[str, ...]]:
    """Normalize every variant and drop duplicates while keeping declared order."""

    table: Dict[str, Tuple[str, ...]] = {}
    for field, variants in raw.items():
        ordered: List[str] = []
        for variant in variants:
            label = normalize_label(variant)
            if label and label not in ordered:
                ordered.append(label)
        table[str(field)] = tuple(ordered)
    return table


# Field order matters: a column consumed by an earlier field is not offered to later ones.
ALIAS_TABLE: Dict[str, Tuple[str, ...]] = _build_alias_table(
    {
        COMPANY_NAME: ["company name", "company_name", "name"],
        COMPANY_ADDRESS: ["company address", "company_address", "address"],
        COMPANY_WEB: ["company website", "company_website", "website", "web"],
        DESCRIPTION: ["description", "desc"],
        LATITUDE: ["latitude", "lat"],
        LONGITUDE: ["longitude", "lng", "lon"],
        DOMAIN: ["domain"],
        TYPE_OF_STAKEHOLDER: ["type of stakeholder", "type_of_stakeholder"],
        STAKEHOLDER: ["stakeholder", "stakeholders"],
        FEDERAL_STATES: ["federal states", "federal state", "state", "bundesland"],
        MUNICH_AEROSPACE: ["munich aerospace", "munich_aerospace"],
        COMMENTS: ["comments", "comment", "notes", "note"],
        HARDWARE_SOFTWARE: ["hardware/software", "hardware / software", "hardwaresoftware"],
        SUPPORT_SERVICES: [
            "aerospace support & enabling services",
            "support & enabling services",
            "support services",
        ],
        APPLICATIONS_END_USERS: [
            "aerospace applications & end-users",
            "applications & end-users",
            "applications",
        ],
        RESEARCH_EDUCATION: ["research & education", "research", "education"],
        GOV_CLUSTERS_ASSOC: [
            "government, clusters & associations",
            "clusters & associations",
            "associations",
        ],
        MANUFACTURERS_DEVELOPERS: [
            "manufacturers & developers",
            "manufacturers/developers",
            "manufacturers",
            "developers",
        ],
    }
)

# Column labels downstream consumers expect; also accepted verbatim as headers.
OUTPUT_LABELS: Mapping[str, str] = {
    COMPANY_NAME: "Company_Name",
    COMPANY_ADDRESS: "Company_Address",
    COMPANY_WEB: "Company_Website",
    DESCRIPTION: "Description",
    LATITUDE: "Latitude",
    LONGITUDE: "Longitude",
    DOMAIN: "Domain",
    TYPE_OF_STAKEHOLDER: "Type_of_Stakeholder",
    STAKEHOLDER: "Stakeholder",
    FEDERAL_STATES: "Federal States",
    MUNICH_AEROSPACE: "Munich Aerospace",
    COMMENTS: "Comments",
    HARDWARE_SOFTWARE: "Hardware/Software",
    SUPPORT_SERVICES: "Aerospace Support & Enabling Services",
    APPLICATIONS_END_USERS: "Aerospace Applications & End-Users",
    RESEARCH_EDUCATION: "Research & Education",
    GOV_CLUSTERS_ASSOC: "Government, Clusters & Associations",
    MANUFACTURERS_DEVELOPERS: "Manufacturers & Developers",
}

# A header row must resolve all of these to be accepted.
MANDATORY_FIELDS: Sequence[str] = (COMPANY_NAME, LATITUDE, LONGITUDE)

CATEGORY_FIELDS: Sequence[str] = (
    SUPPORT_SERVICES,
    APPLICATIONS_END_USERS,
    RESEARCH_EDUCATION,
    GOV_CLUSTERS_ASSOC,
    MANUFACTURERS_DEVELOPERS,
)

TAG_SOURCE_FIELDS: Sequence[str] = (
    DOMAIN,
    TYPE_OF_STAKEHOLDER,
    FEDERAL_STATES,
    HARDWARE_SOFTWARE,
    *CATEGORY_FIELDS,
)


def merge_alias_table(
    overrides: Mapping[str, Iterable[str]] | None,
    base: Mapping[str, Sequence[str]] | None = None,
) -> Dict[str, Tuple[str, ...]]:
    """
    Merge extra alias variants into the alias table.

    Override variants are appended after the base variants of the same field so
    the built-in priority order is preserved. Fields not present in the base are
    added at the end.
    """

    merged: Dict[str, List[str]] = {k: list(v) for k, v in (base or ALIAS_TABLE).items()}
    if overrides:
        for field, variants in overrides.items():
            if isinstance(variants, str):
                variants = [variants]
            merged.setdefault(str(field), []).extend(str(v) for v in variants or [])
    return _build_alias_table(merged)


def _match_columns(
    labels: Sequence[Tuple[str, Hashable]],
    alias_table: Mapping[str, Sequence[str]],
) -> Dict[str, Hashable]:
    """
    Resolve canonical fields to column keys.

    `labels` holds (normalized label, column key) pairs in column order. Returns
    field -> column key. Aliases are tried first (field order, then variant
    order); the canonical output label is a lower-priority passthrough.
    """

    by_label: Dict[str, Hashable] = {}
    for label, key in labels:
        if label and label not in by_label:
            by_label[label] = key

    resolved: Dict[str, Hashable] = {}
    used: set = set()
    for field, variants in alias_table.items():
        for variant in variants:
            key = by_label.get(variant)
            if key is None or key in used:
                continue
            resolved[field] = key
            used.add(key)
            break

    for field, output_label in OUTPUT_LABELS.items():
        if field in resolved:
            continue
        key = by_label.get(normalize_label(output_label))
        if key is not None and key not in used:
            resolved[field] = key
            used.add(key)
    return resolved


def canonicalize_row(
    raw_row: Mapping[Any, Any],
    alias_table: Mapping[str, Sequence[str]] | None = None,
) -> Dict[str, Any]:
    """
    Map a raw row keyed by spreadsheet labels onto canonical field keys.

    Fields without a matching column are left out (absent, not None). Pure:
    the input row is never modified.
    """

    table = alias_table or ALIAS_TABLE
    labels = [(normalize_label(k), k) for k in raw_row.keys()]
    return {field: raw_row[key] for field, key in _match_columns(labels, table).items()}


def resolve_header_columns(
    cells: Sequence[Any],
    alias_table: Mapping[str, Sequence[str]] | None = None,
) -> Dict[str, int]:
    """Resolve a candidate header row into field -> column index."""

    table = alias_table or ALIAS_TABLE
    labels = [(normalize_label(cell), idx) for idx, cell in enumerate(cells)]
    return {field: int(idx) for field, idx in _match_columns(labels, table).items()}


def has_mandatory_fields(column_map: Mapping[str, Any]) -> bool:
    return all(field in column_map for field in MANDATORY_FIELDS)


def suggest_field_matches(
    labels: Iterable[Any],
    alias_table: Mapping[str, Sequence[str]] | None = None,
    score_cutoff: float = 80,
) -> Dict[str, str]:
    """
    Suggest canonical fields for labels that did not match any alias exactly.

    Uses fuzzy matching against every variant; returns {original label: field}.
    Only used to explain why a header row was rejected.
    """

    table = alias_table or ALIAS_TABLE
    variant_to_field: Dict[str, str] = {}
    for field, variants in table.items():
        for variant in variants:
            variant_to_field.setdefault(variant, field)
    known = set(variant_to_field) | {normalize_label(v) for v in OUTPUT_LABELS.values()}
    choices = list(variant_to_field)

    suggestions: Dict[str, str] = {}
    for label in labels:
        norm = normalize_label(label)
        if not norm or norm in known:
            continue
        match_result = process.extractOne(norm, choices, scorer=fuzz.WRatio, score_cutoff=score_cutoff)
        if match_result:
            match, _score, _ = match_result
            suggestions[str(label)] = variant_to_field[match]
    return suggestions
