from __future__ import annotations

from typing import Dict, List, Mapping, Sequence


class AeroDataError(Exception):
    """Base error for dataset loading failures."""


class SourceFetchError(AeroDataError):
    """Raised when a single source cannot be read (HTTP status, network, missing file)."""


class WorkbookDecodeError(AeroDataError, ValueError):
    """Raised when fetched bytes are not a readable workbook."""


class NoUsableSheetError(AeroDataError, ValueError):
    """Raised when a workbook decodes but no sheet yields records."""

    def __init__(
        self,
        message: str,
        sheet_names: Sequence[str] = (),
        suggestions: Mapping[str, str] | None = None,
    ) -> None:
        self.sheet_names: List[str] = list(sheet_names)
        self.suggestions: Dict[str, str] = dict(suggestions or {})
        if self.suggestions:
            hints = ", ".join(f"'{label}' -> {field}" for label, field in self.suggestions.items())
            message = f"{message} Possible header matches: {hints}"
        super().__init__(message)


class SourceUnavailableError(AeroDataError):
    """Raised when every candidate source failed; lists what was tried."""

    def __init__(self, attempted: Sequence[str], failures: Mapping[str, str] | None = None) -> None:
        self.attempted: List[str] = list(attempted)
        self.failures: Dict[str, str] = dict(failures or {})
        tried = " , ".join(self.attempted) if self.attempted else "(no sources configured)"
        details = "".join(f"\n  {source}: {reason}" for source, reason in self.failures.items())
        super().__init__(f"No usable data source. Tried: {tried}{details}")
