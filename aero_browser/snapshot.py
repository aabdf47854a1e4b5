from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from aero_common.normalize import NormalizedRecord

from .config import SNAPSHOT_KEY

LOGGER = logging.getLogger(__name__)


class SnapshotStore:
    """
    Small JSON key/value file holding a manually uploaded record set.

    Only the `key` entry is touched; other keys in the file are preserved. The
    payload is a plain list of record dicts with no format version.
    """

    def __init__(self, path: Path, key: str = SNAPSHOT_KEY) -> None:
        self.path = path
        self.key = key
        self.data: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Read the file; raises ValueError when it is not a JSON object."""

        if not self.path.exists():
            self.data = {}
            return
        with self.path.open("r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Snapshot file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot file {self.path} does not hold a JSON object.")
        self.data = data

    def save(self, records: List[NormalizedRecord]) -> None:
        self.data[self.key] = [record.to_dict() for record in records]
        self._write()
        LOGGER.info("Saved %d records to snapshot %s", len(records), self.path)

    def restore(self) -> Optional[List[NormalizedRecord]]:
        """Records stored under the key, or None when nothing was saved."""

        payload = self.data.get(self.key)
        if payload is None:
            return None
        if not isinstance(payload, list):
            raise ValueError(f"Snapshot entry '{self.key}' in {self.path} is not a list of records.")
        return [NormalizedRecord.from_dict(item) for item in payload]

    def clear(self) -> bool:
        if self.key not in self.data:
            return False
        self.data.pop(self.key)
        self._write()
        LOGGER.info("Cleared snapshot entry '%s' in %s", self.key, self.path)
        return True

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(self.data, f, indent=2, ensure_ascii=False)


def sample_records() -> List[NormalizedRecord]:
    """Two hand-entered records for trying the directory without a workbook."""

    return [
        NormalizedRecord(
            id="munich-aerospace-lab",
            name="Munich Aerospace Lab",
            address="Garching",
            lat=48.265,
            lng=11.671,
            tags=("Munich Aerospace", "Research"),
        ),
        NormalizedRecord(
            id="skytech-gmbh",
            name="SkyTech GmbH",
            address="Munich",
            lat=48.137,
            lng=11.576,
            tags=("Aviation", "SME"),
        ),
    ]
