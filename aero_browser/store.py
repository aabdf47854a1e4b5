"""
Record store: the single owner of the loaded dataset.

Lifecycle is ``idle -> loading -> ready | error``. A load replaces the record set
as a whole; there is no per-record update. Presentation code receives a store
instance explicitly and reads `state` (or subscribes) instead of importing a
global.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from aero_common.normalize import NormalizedRecord

from .aero_data import (
    FIRST_EXTRACTABLE,
    USED_RANGE,
    LoadResult,
    locate_workbook,
    parse_workbook_bytes,
)
from .config import Settings, load_alias_config, load_settings
from .extract import RowStrategy, default_strategies
from .workbook import fetch_source

LOGGER = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class StoreState:
    records: Tuple[NormalizedRecord, ...] = ()
    status: LoadStatus = LoadStatus.IDLE
    error: Optional[str] = None
    last_sheet_name: Optional[str] = None
    source: Optional[str] = None


Listener = Callable[[StoreState], None]


class RecordStore:
    def __init__(
        self,
        sources: Sequence[str],
        *,
        fetcher: Callable[[str], bytes] | None = None,
        sheet_selection: str = USED_RANGE,
        strategies: Sequence[RowStrategy] | None = None,
        alias_table: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self.sources: List[str] = list(sources)
        self.fetcher = fetcher or fetch_source
        self.sheet_selection = sheet_selection
        self.alias_table = alias_table
        self.strategies = list(strategies) if strategies else default_strategies(alias_table)
        self._state = StoreState()
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    @classmethod
    def from_settings(cls, settings: Settings | None = None, sources: Sequence[str] | None = None) -> "RecordStore":
        settings = settings or load_settings()
        alias_table = load_alias_config(settings.alias_config)

        def _fetch(source: str) -> bytes:
            return fetch_source(source, timeout=settings.fetch_timeout)

        return cls(
            list(sources) if sources else settings.candidate_sources(),
            fetcher=_fetch,
            strategies=default_strategies(alias_table, max_scan=settings.header_scan_rows),
            alias_table=alias_table,
        )

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def records(self) -> Tuple[NormalizedRecord, ...]:
        return self._state.records

    @property
    def status(self) -> LoadStatus:
        return self._state.status

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def last_sheet_name(self) -> Optional[str]:
        return self._state.last_sheet_name

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with the new state after every transition."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, state: StoreState) -> None:
        # A failing listener must not leave the store stuck in `loading`.
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Store listener failed on %s", state.status.value)

    def _set_state(self, state: StoreState) -> None:
        self._state = state
        LOGGER.debug("Store status -> %s", state.status.value)
        self._notify(state)

    def _begin_loading(self) -> bool:
        # Listeners run outside the lock so they may call back into the store.
        with self._lock:
            if self._state.status is LoadStatus.LOADING:
                return False
            self._state = replace(self._state, status=LoadStatus.LOADING, error=None)
            state = self._state
        LOGGER.debug("Store status -> %s", state.status.value)
        self._notify(state)
        return True

    def _finish(self, result: LoadResult) -> None:
        self._set_state(
            StoreState(
                records=tuple(result.records),
                status=LoadStatus.READY,
                last_sheet_name=result.sheet_name,
                source=result.source,
            )
        )

    def _fail(self, exc: Exception) -> None:
        LOGGER.error("Dataset load failed: %s", exc)
        self._set_state(StoreState(status=LoadStatus.ERROR, error=str(exc) or exc.__class__.__name__))

    def _run(self, work: Callable[[], LoadResult]) -> bool:
        if not self._begin_loading():
            LOGGER.debug("Load already in progress; ignoring request.")
            return False
        try:
            result = work()
        except Exception as exc:
            self._fail(exc)
        else:
            self._finish(result)
        return True

    def load(self) -> bool:
        """
        Fetch and parse the dataset, replacing the current records.

        Returns False (and does nothing) when a load is already running. Every
        failure ends in the ``error`` state with an empty record set; nothing is
        raised to the caller.
        """

        return self._run(
            lambda: locate_workbook(
                self.sources,
                fetcher=self.fetcher,
                sheet_selection=self.sheet_selection,
                strategies=self.strategies,
                alias_table=self.alias_table,
            )
        )

    def reload(self) -> bool:
        return self.load()

    def load_upload(self, data: bytes, label: str = "uploaded workbook") -> bool:
        """Replace the dataset from manually uploaded workbook bytes."""

        return self._run(
            lambda: parse_workbook_bytes(
                data,
                label,
                sheet_selection=FIRST_EXTRACTABLE,
                strategies=self.strategies,
                alias_table=self.alias_table,
            )
        )

    def replace_records(
        self,
        records: Sequence[NormalizedRecord],
        sheet_name: Optional[str] = None,
        source: Optional[str] = None,
    ) -> bool:
        """Install an already-normalized record set (snapshot restore, sample data)."""

        return self._run(
            lambda: LoadResult(
                source=source or "manual",
                sheet_name=sheet_name or "",
                strategy="manual",
                records=list(records),
            )
        )
