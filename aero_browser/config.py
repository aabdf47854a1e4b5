from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import yaml
from dotenv import load_dotenv

from aero_common.schema import ALIAS_TABLE, merge_alias_table

load_dotenv()

DEFAULT_DATA_FILE = "data/companies2.xlsx"
DEFAULT_FALLBACK_SOURCES = "data/companies.xlsx"
BUNDLED_SOURCE = Path(__file__).resolve().parent / "assets" / "companies2.xlsx"
SNAPSHOT_KEY = "aero-data"
DEFAULT_HEADER_SCAN_ROWS = 30


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_list(value: str | None) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    data_file: str
    fallback_sources: List[str]
    snapshot_path: Path
    alias_config: Path
    header_scan_rows: int = DEFAULT_HEADER_SCAN_ROWS
    fetch_timeout: int = 30
    bundled_source: str = str(BUNDLED_SOURCE)
    snapshot_key: str = SNAPSHOT_KEY
    extra_sources: List[str] = field(default_factory=list)

    def candidate_sources(self) -> List[str]:
        """Ordered, de-duplicated sources: primary, fallbacks, bundled asset."""

        ordered: List[str] = []
        for source in [*self.extra_sources, self.data_file, *self.fallback_sources, self.bundled_source]:
            if source and source not in ordered:
                ordered.append(source)
        return ordered


def load_settings() -> Settings:
    return Settings(
        data_file=os.getenv("AERO_DATA_FILE", DEFAULT_DATA_FILE),
        fallback_sources=_parse_list(os.getenv("AERO_FALLBACK_SOURCES", DEFAULT_FALLBACK_SOURCES)),
        snapshot_path=Path(os.getenv("AERO_SNAPSHOT_PATH", ".aero/snapshot.json")),
        alias_config=Path(os.getenv("AERO_ALIAS_CONFIG", "config/aliases.yaml")),
        header_scan_rows=_parse_int(os.getenv("AERO_HEADER_SCAN_ROWS"), DEFAULT_HEADER_SCAN_ROWS),
        fetch_timeout=_parse_int(os.getenv("AERO_FETCH_TIMEOUT"), 30),
    )


def load_alias_config(path: Path | None = None) -> Dict[str, Tuple[str, ...]]:
    """
    Load extra header aliases from YAML and merge them into the built-in table.

    Expected shape::

        aliases:
          company_name: ["firma", "organisation"]
          latitude: ["breitengrad"]

    A missing file yields the built-in table unchanged.
    """

    if path is None or not path.exists():
        return dict(ALIAS_TABLE)
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Alias config {path} must be a mapping with an 'aliases' section.")
    overrides: Any = data.get("aliases") or {}
    if not isinstance(overrides, Mapping):
        raise ValueError(f"`aliases` in {path} must map field names to lists of labels.")
    for field_name, variants in overrides.items():
        if not isinstance(variants, (str, Sequence)):
            raise ValueError(f"Aliases for '{field_name}' in {path} must be a list of labels.")
    return merge_alias_table(overrides, base=ALIAS_TABLE)
