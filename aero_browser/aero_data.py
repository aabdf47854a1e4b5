"""
Dataset loading helpers for the aerospace directory.

A dataset is a spreadsheet whose exact name and location are not guaranteed, so
loading scans an ordered list of candidate sources and keeps the first that
yields at least one record. Each candidate goes through:

    fetch -> decode workbook -> pick sheet -> extract rows -> normalize

Two sheet-selection modes exist. The record store uses the quick "used range"
pick; the standalone loader tries every sheet until one produces records, which
copes better with workbooks whose first sheets are notes or cover pages.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import polars as pl

from aero_common.errors import NoUsableSheetError, SourceUnavailableError
from aero_common.normalize import NormalizedRecord, normalize_rows
from aero_common.schema import ALIAS_TABLE, suggest_field_matches

from .config import Settings, load_alias_config, load_settings
from .extract import (
    Extraction,
    RowStrategy,
    default_strategies,
    extract_rows,
    row_has_data,
    select_first_extractable_sheet,
    select_sheet_by_used_range,
)
from .workbook import Workbook, decode_workbook, fetch_source

LOGGER = logging.getLogger(__name__)

USED_RANGE = "used-range"
FIRST_EXTRACTABLE = "first-extractable"
SHEET_SELECTIONS = (USED_RANGE, FIRST_EXTRACTABLE)

LIST_SEPARATOR = "; "


@dataclass
class LoadResult:
    source: str
    sheet_name: str
    strategy: str
    records: List[NormalizedRecord]


def _header_suggestions(workbook: Workbook, alias_table: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    """Fuzzy hints for the first non-blank row of each sheet."""

    suggestions: Dict[str, str] = {}
    for sheet in workbook.sheets:
        first = next((row for row in sheet.rows if row_has_data(row)), None)
        if first:
            suggestions.update(suggest_field_matches([c for c in first if c is not None], alias_table))
    return suggestions


def parse_workbook(
    workbook: Workbook,
    *,
    sheet_selection: str = FIRST_EXTRACTABLE,
    strategies: Sequence[RowStrategy] | None = None,
    alias_table: Mapping[str, Sequence[str]] | None = None,
) -> LoadResult:
    """Pick a sheet, extract canonical rows and normalize them."""

    if sheet_selection not in SHEET_SELECTIONS:
        raise ValueError(f"Unknown sheet selection '{sheet_selection}'; expected one of {SHEET_SELECTIONS}")

    table = alias_table or ALIAS_TABLE
    strategies = strategies or default_strategies(table)

    extraction: Optional[Extraction]
    if sheet_selection == USED_RANGE:
        sheet = select_sheet_by_used_range(workbook)
        extraction = extract_rows(sheet, strategies)
        failure = f"Sheet '{sheet.name}' has no recognizable headers or data rows."
    else:
        extraction = select_first_extractable_sheet(workbook, strategies)
        failure = "Could not find a sheet with recognizable headers."

    records = normalize_rows(extraction.rows) if extraction else []
    if extraction is None or not records:
        raise NoUsableSheetError(
            failure,
            sheet_names=workbook.sheet_names,
            suggestions=_header_suggestions(workbook, table),
        )

    LOGGER.info(
        "Loaded %d rows from '%s' (%s strategy)", len(records), extraction.sheet_name, extraction.strategy
    )
    return LoadResult(
        source=workbook.source,
        sheet_name=extraction.sheet_name,
        strategy=extraction.strategy,
        records=records,
    )


def parse_workbook_bytes(
    data: bytes,
    source: str = "in-memory bytes",
    *,
    sheet_selection: str = FIRST_EXTRACTABLE,
    strategies: Sequence[RowStrategy] | None = None,
    alias_table: Mapping[str, Sequence[str]] | None = None,
) -> LoadResult:
    workbook = decode_workbook(data, source)
    return parse_workbook(
        workbook,
        sheet_selection=sheet_selection,
        strategies=strategies,
        alias_table=alias_table,
    )


def locate_workbook(
    sources: Iterable[str],
    *,
    fetcher: Callable[[str], bytes] = fetch_source,
    sheet_selection: str = FIRST_EXTRACTABLE,
    strategies: Sequence[RowStrategy] | None = None,
    alias_table: Mapping[str, Sequence[str]] | None = None,
) -> LoadResult:
    """
    Return the first candidate source that yields at least one record.

    Any failure while fetching or parsing a candidate moves on to the next one,
    including errors raised by a custom fetcher. Raises SourceUnavailableError
    listing every attempt when nothing works.
    """

    if sheet_selection not in SHEET_SELECTIONS:
        raise ValueError(f"Unknown sheet selection '{sheet_selection}'; expected one of {SHEET_SELECTIONS}")

    attempted: List[str] = []
    failures: Dict[str, str] = {}
    for source in sources:
        attempted.append(source)
        try:
            data = fetcher(source)
            result = parse_workbook_bytes(
                data,
                source,
                sheet_selection=sheet_selection,
                strategies=strategies,
                alias_table=alias_table,
            )
        except Exception as exc:
            LOGGER.warning("Skipping %s: %s", source, exc)
            failures[source] = str(exc) or exc.__class__.__name__
            continue
        LOGGER.info("Using data source %s", source)
        return result

    raise SourceUnavailableError(attempted, failures)


def load_records_from_sources(
    sources: Sequence[str] | None = None,
    settings: Settings | None = None,
    *,
    fetcher: Callable[[str], bytes] | None = None,
) -> LoadResult:
    """
    Standalone loader: scan the configured candidates, trying every sheet.

    `sources` overrides the configured candidate list.
    """

    settings = settings or load_settings()
    alias_table = load_alias_config(settings.alias_config)
    candidates = list(sources) if sources else settings.candidate_sources()

    def _fetch(source: str) -> bytes:
        return fetch_source(source, timeout=settings.fetch_timeout)

    return locate_workbook(
        candidates,
        fetcher=fetcher or _fetch,
        sheet_selection=FIRST_EXTRACTABLE,
        strategies=default_strategies(alias_table, max_scan=settings.header_scan_rows),
        alias_table=alias_table,
    )


RECORD_SCHEMA: Dict[str, pl.DataType] = {
    "id": pl.Utf8,
    "name": pl.Utf8,
    "address": pl.Utf8,
    "description": pl.Utf8,
    "website": pl.Utf8,
    "stakeholder_type": pl.Utf8,
    "domain": pl.Utf8,
    "federal_state": pl.Utf8,
    "comments": pl.Utf8,
    "lat": pl.Float64,
    "lng": pl.Float64,
    "tags": pl.List(pl.Utf8),
    "stakeholders": pl.List(pl.Utf8),
    "cat_support": pl.List(pl.Utf8),
    "cat_applications": pl.List(pl.Utf8),
    "cat_manufacturers": pl.List(pl.Utf8),
    "cat_research": pl.List(pl.Utf8),
    "cat_government": pl.List(pl.Utf8),
    "cat_hw_sw": pl.List(pl.Utf8),
}
LIST_COLUMNS = [name for name, dtype in RECORD_SCHEMA.items() if isinstance(dtype, pl.List)]


def records_to_frame(records: Sequence[NormalizedRecord]) -> pl.DataFrame:
    """Records as a Polars frame; list fields stay list columns."""

    return pl.DataFrame([record.to_dict() for record in records], schema=RECORD_SCHEMA)


def flatten_frame(frame: pl.DataFrame) -> pl.DataFrame:
    """Join list columns with '; ' for flat formats (CSV/Excel)."""

    return frame.with_columns([pl.col(col).list.join(LIST_SEPARATOR) for col in LIST_COLUMNS])


def write_records(records: Sequence[NormalizedRecord], path: Path) -> Path:
    """Write records as CSV, XLSX or JSON depending on the file suffix."""

    suffix = path.suffix.lower()
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".json":
        with path.open("w", encoding="utf-8") as f:
            json.dump([record.to_dict() for record in records], f, indent=2, ensure_ascii=False)
    elif suffix == ".csv":
        flatten_frame(records_to_frame(records)).write_csv(path)
    elif suffix in {".xlsx", ".xlsm"}:
        flatten_frame(records_to_frame(records)).write_excel(path, worksheet="Companies")
    else:
        raise ValueError(f"Unsupported export format '{path.suffix}'; use .csv, .xlsx or .json")
    LOGGER.info("Wrote %d records to %s", len(records), path)
    return path


__all__ = [
    "FIRST_EXTRACTABLE",
    "USED_RANGE",
    "LoadResult",
    "parse_workbook",
    "parse_workbook_bytes",
    "locate_workbook",
    "load_records_from_sources",
    "records_to_frame",
    "flatten_frame",
    "write_records",
]
