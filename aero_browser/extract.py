from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from aero_common.normalize import cell_text, is_blank_row
from aero_common.schema import (
    ALIAS_TABLE,
    canonicalize_row,
    has_mandatory_fields,
    resolve_header_columns,
)

from .config import DEFAULT_HEADER_SCAN_ROWS
from .workbook import Sheet, Workbook

LOGGER = logging.getLogger(__name__)

CanonicalRow = Dict[str, Any]


def row_has_data(row: Sequence[Any]) -> bool:
    return any(v is not None and cell_text(v).strip() != "" for v in row)


def object_row_keys(header: Sequence[Any]) -> List[str]:
    """
    Turn a header row into unique object keys.

    Blank labels become "__EMPTY", "__EMPTY_1", ...; repeated labels get "_1",
    "_2" suffixes so no column is silently dropped.
    """

    keys: List[str] = []
    seen: Dict[str, int] = {}
    for cell in header:
        base = cell_text(cell).strip() or "__EMPTY"
        count = seen.get(base, 0)
        seen[base] = count + 1
        keys.append(base if count == 0 else f"{base}_{count}")
    return keys


class RowStrategy(ABC):
    name: str = "base"

    @abstractmethod
    def try_extract(self, sheet: Sheet) -> Optional[List[CanonicalRow]]:
        """Return non-empty canonical rows for the sheet, or None when the strategy does not apply."""
        raise NotImplementedError


class ObjectRowStrategy(RowStrategy):
    """First row of the sheet is the header; every later row becomes a mapping."""

    name = "object"

    def __init__(self, alias_table: Mapping[str, Sequence[str]] | None = None) -> None:
        self.alias_table = alias_table or ALIAS_TABLE

    def raw_rows(self, sheet: Sheet) -> List[Dict[str, Any]]:
        rows = iter(sheet.rows)
        header: Optional[Tuple[Any, ...]] = None
        for row in rows:
            if row_has_data(row):
                header = row
                break
        if header is None:
            return []

        keys = object_row_keys(header)
        raw: List[Dict[str, Any]] = []
        for row in rows:
            if not row_has_data(row):
                continue
            raw.append({key: value for key, value in zip(keys, row) if value is not None})
        return raw

    def try_extract(self, sheet: Sheet) -> Optional[List[CanonicalRow]]:
        canonical = [canonicalize_row(raw, self.alias_table) for raw in self.raw_rows(sheet)]
        non_empty = [row for row in canonical if not is_blank_row(row)]
        return non_empty or None


@dataclass
class HeaderMatch:
    row_index: int
    column_map: Dict[str, int]


class HeaderScanStrategy(RowStrategy):
    """
    Search the top of the sheet for the real header row.

    Handles title/preamble rows above the table. Blank rows are dropped before
    scanning, so the window counts non-blank rows only.
    """

    name = "header-scan"

    def __init__(
        self,
        alias_table: Mapping[str, Sequence[str]] | None = None,
        max_scan: int = DEFAULT_HEADER_SCAN_ROWS,
    ) -> None:
        self.alias_table = alias_table or ALIAS_TABLE
        self.max_scan = max_scan

    def find_header(self, rows: Sequence[Sequence[Any]]) -> Optional[HeaderMatch]:
        for idx in range(min(len(rows), self.max_scan)):
            row = rows[idx]
            if not row:
                continue
            column_map = resolve_header_columns(row, self.alias_table)
            if has_mandatory_fields(column_map):
                return HeaderMatch(row_index=idx, column_map=column_map)
        return None

    def try_extract(self, sheet: Sheet) -> Optional[List[CanonicalRow]]:
        rows = [row for row in sheet.rows if row_has_data(row)]
        if not rows:
            return None
        match = self.find_header(rows)
        if match is None:
            LOGGER.debug("No header row within the first %d rows of '%s'", self.max_scan, sheet.name)
            return None

        canonical: List[CanonicalRow] = []
        for row in rows[match.row_index + 1 :]:
            record = {
                field: row[col] if col < len(row) else None for field, col in match.column_map.items()
            }
            if not is_blank_row(record):
                canonical.append(record)
        return canonical or None


def default_strategies(
    alias_table: Mapping[str, Sequence[str]] | None = None,
    max_scan: int = DEFAULT_HEADER_SCAN_ROWS,
) -> List[RowStrategy]:
    """Fast object path first, header search as the fallback."""

    return [ObjectRowStrategy(alias_table), HeaderScanStrategy(alias_table, max_scan=max_scan)]


@dataclass
class Extraction:
    sheet_name: str
    strategy: str
    rows: List[CanonicalRow]


def extract_rows(sheet: Sheet, strategies: Sequence[RowStrategy] | None = None) -> Optional[Extraction]:
    """Try each strategy in order and stop at the first non-empty result."""

    for strategy in strategies or default_strategies():
        rows = strategy.try_extract(sheet)
        if rows:
            LOGGER.debug("Sheet '%s': %d rows via %s strategy", sheet.name, len(rows), strategy.name)
            return Extraction(sheet_name=sheet.name, strategy=strategy.name, rows=rows)
    return None


def select_sheet_by_used_range(workbook: Workbook) -> Sheet:
    """First sheet whose used range is more than one cell, else the first sheet."""

    for sheet in workbook.sheets:
        if sheet.has_used_range:
            return sheet
    return workbook.sheets[0]


def select_first_extractable_sheet(
    workbook: Workbook,
    strategies: Sequence[RowStrategy] | None = None,
) -> Optional[Extraction]:
    """Run full extraction on every sheet in order; first sheet with rows wins."""

    for sheet in workbook.sheets:
        extraction = extract_rows(sheet, strategies)
        if extraction is not None:
            return extraction
    return None
