"""
In-memory workbook model and source fetching.

Workbooks are decoded once with openpyxl into plain tuples so the sheet
selectors and row strategies can run repeatedly without touching the file.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import openpyxl
import requests

from aero_common.errors import SourceFetchError, WorkbookDecodeError

LOGGER = logging.getLogger(__name__)

CACHE_BUST_PARAM = "v"
NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


@dataclass
class Sheet:
    """One named grid of raw cell values (None for empty cells)."""

    name: str
    rows: List[Tuple[Any, ...]] = field(default_factory=list)
    max_row: int = 0
    max_column: int = 0

    @property
    def has_used_range(self) -> bool:
        """True when the declared range spans more than a single cell."""

        return self.max_row > 1 or self.max_column > 1


@dataclass
class Workbook:
    sheets: List[Sheet]
    source: str = ""

    @property
    def sheet_names(self) -> List[str]:
        return [sheet.name for sheet in self.sheets]

    def get(self, name: str) -> Optional[Sheet]:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None


def is_remote(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def fetch_source(source: str, timeout: int = 30) -> bytes:
    """
    Read workbook bytes from a URL or local path.

    Remote fetches add a timestamp query parameter and no-cache headers so a
    file replaced at the same URL is picked up on the next load. Local files are
    re-read from disk on every call.
    """

    if is_remote(source):
        params = {CACHE_BUST_PARAM: str(int(time.time() * 1000))}
        try:
            response = requests.get(source, params=params, headers=NO_CACHE_HEADERS, timeout=timeout)
        except requests.RequestException as exc:
            raise SourceFetchError(f"Fetch failed: {source} ({exc})") from exc
        if not response.ok:
            raise SourceFetchError(f"Fetch failed: {source} ({response.status_code})")
        return response.content

    path = Path(source).expanduser()
    if not path.is_file():
        raise SourceFetchError(f"Fetch failed: {source} (file not found)")
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SourceFetchError(f"Fetch failed: {source} ({exc})") from exc


def _trim_row(row: Sequence[Any]) -> Tuple[Any, ...]:
    values = list(row)
    while values and values[-1] is None:
        values.pop()
    return tuple(values)


def decode_workbook(data: bytes, source: str = "in-memory bytes") -> Workbook:
    """Decode xlsx bytes into a `Workbook`; cached formula values are used."""

    # openpyxl surfaces corrupt archives as zip, XML or key errors alike.
    try:
        wb = openpyxl.load_workbook(BytesIO(data), data_only=True)
    except Exception as exc:
        raise WorkbookDecodeError(f"Could not decode workbook from {source}: {exc}") from exc

    try:
        sheets = [
            Sheet(
                name=ws.title,
                rows=[_trim_row(row) for row in ws.iter_rows(values_only=True)],
                max_row=ws.max_row or 0,
                max_column=ws.max_column or 0,
            )
            for ws in wb.worksheets
        ]
    except Exception as exc:
        raise WorkbookDecodeError(f"Could not read sheets of workbook from {source}: {exc}") from exc
    finally:
        wb.close()

    if not sheets:
        raise WorkbookDecodeError(f"No sheets in workbook from {source}")
    LOGGER.debug("Decoded %s: sheets=%s", source, [s.name for s in sheets])
    return Workbook(sheets=sheets, source=source)
