#!/usr/bin/env python3
"""Command-line access to the aerospace organization directory.

Loads the directory workbook the same way the browser data layer does, then
summarizes, searches, exports or snapshots the normalized records.

Examples
--------
```
python aero_directory.py load
python aero_directory.py scan --source ./inputs/companies.xlsx
python aero_directory.py search --query munich --type "Research Institute"
python aero_directory.py export --output ./reports/companies.xlsx
python aero_directory.py snapshot save --source ./upload.xlsx
```

Sources default to `AERO_DATA_FILE`, then `AERO_FALLBACK_SOURCES`, then the
bundled asset. See `aero_browser.config` for every environment variable.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import polars as pl

from aero_browser.aero_data import LoadResult, load_records_from_sources, records_to_frame, write_records
from aero_browser.config import Settings, load_settings
from aero_browser.filters import FilterState, apply_filters, collect_options, map_tokens_to_options
from aero_browser.snapshot import SnapshotStore, sample_records
from aero_browser.store import LoadStatus, RecordStore
from aero_common.errors import AeroDataError
from aero_common.normalize import NormalizedRecord

LOGGER = logging.getLogger(__name__)

SEARCH_COLUMNS = ["id", "name", "stakeholder_type", "domain", "address", "lat", "lng"]


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    if getattr(args, "scan_rows", None):
        settings.header_scan_rows = args.scan_rows
    return settings


def _load_with_store(args: argparse.Namespace) -> Optional[RecordStore]:
    store = RecordStore.from_settings(_settings(args), sources=args.source)
    store.load()
    if store.status is not LoadStatus.READY:
        LOGGER.error("%s", store.error)
        return None
    return store


def _print_summary(source: Optional[str], sheet_name: Optional[str], records: Sequence[NormalizedRecord]) -> None:
    with_coords = sum(1 for record in records if record.has_coordinates)
    print(f"Source:  {source}")
    print(f"Sheet:   {sheet_name}")
    print(f"Records: {len(records)} ({with_coords} with coordinates)")


def cmd_load(args: argparse.Namespace) -> int:
    store = _load_with_store(args)
    if store is None:
        return 1
    _print_summary(store.state.source, store.last_sheet_name, store.records)
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    try:
        result: LoadResult = load_records_from_sources(args.source, _settings(args))
    except AeroDataError as exc:
        LOGGER.error("%s", exc)
        return 1
    _print_summary(result.source, result.sheet_name, result.records)
    print(f"Strategy: {result.strategy}")
    return 0


def _filter_state(args: argparse.Namespace, records: Sequence[NormalizedRecord]) -> FilterState:
    def mapped(raw: Optional[str], kind: str) -> List[str]:
        return map_tokens_to_options(raw, collect_options(records, kind))

    return FilterState(
        query=args.query or "",
        types=mapped(args.type, "type"),
        domains=mapped(args.domain, "domain"),
        support=mapped(args.support, "support"),
        applications=mapped(args.applications, "applications"),
        manufacturers=mapped(args.manufacturers, "manufacturers"),
        hw_sw=mapped(args.hw_sw, "hw_sw"),
    )


def cmd_search(args: argparse.Namespace) -> int:
    store = _load_with_store(args)
    if store is None:
        return 1
    state = _filter_state(args, store.records)
    matches = apply_filters(store.records, state)
    LOGGER.info("%d of %d records match", len(matches), len(store.records))
    if matches:
        with pl.Config(tbl_rows=args.limit, tbl_cols=len(SEARCH_COLUMNS), fmt_str_lengths=40):
            print(records_to_frame(matches).select(SEARCH_COLUMNS))
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    store = _load_with_store(args)
    if store is None:
        return 1
    try:
        write_records(list(store.records), args.output)
    except ValueError as exc:
        LOGGER.error("%s", exc)
        return 1
    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    settings = _settings(args)
    try:
        snapshot = SnapshotStore(args.path or settings.snapshot_path, key=settings.snapshot_key)
    except ValueError as exc:
        LOGGER.error("Snapshot is unreadable: %s", exc)
        return 1

    if args.action == "clear":
        if not snapshot.clear():
            LOGGER.info("No snapshot stored under '%s'.", snapshot.key)
        return 0

    if args.action == "sample":
        snapshot.save(sample_records())
        return 0

    if args.action == "save":
        store = _load_with_store(args)
        if store is None:
            return 1
        snapshot.save(list(store.records))
        return 0

    try:
        records = snapshot.restore()
    except ValueError as exc:
        LOGGER.error("Snapshot is unreadable: %s", exc)
        return 1
    if records is None:
        LOGGER.error("No snapshot stored under '%s' in %s", snapshot.key, snapshot.path)
        return 1
    store = RecordStore([])
    store.replace_records(records, source=str(snapshot.path))
    _print_summary(store.state.source, store.last_sheet_name, store.records)
    return 0


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--source",
        action="append",
        help="Workbook path or URL; repeat to try several in order (default: configured sources).",
    )
    parser.add_argument(
        "--scan-rows",
        type=int,
        help="Rows searched for a header when the first row is not one (default: 30).",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Aerospace organization directory tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")

    load = subparsers.add_parser("load", help="Load the dataset through the record store.")
    _add_source_args(load)
    load.set_defaults(func=cmd_load)

    scan = subparsers.add_parser("scan", help="Load with the standalone loader, trying every sheet.")
    _add_source_args(scan)
    scan.set_defaults(func=cmd_scan)

    search = subparsers.add_parser("search", help="Filter records and print the matches.")
    _add_source_args(search)
    search.add_argument("--query", "-q", help="Case-insensitive text search.")
    search.add_argument("--type", help="Comma-separated stakeholder types.")
    search.add_argument("--domain", help="Comma-separated domains.")
    search.add_argument("--support", help="Comma-separated support & enabling services.")
    search.add_argument("--applications", help="Comma-separated applications & end-users.")
    search.add_argument("--manufacturers", help="Comma-separated manufacturers & developers.")
    search.add_argument("--hw-sw", dest="hw_sw", help="Comma-separated hardware/software values.")
    search.add_argument("--limit", type=int, default=50, help="Rows to print (default: 50).")
    search.set_defaults(func=cmd_search)

    export = subparsers.add_parser("export", help="Write normalized records to CSV, XLSX or JSON.")
    _add_source_args(export)
    export.add_argument("--output", type=Path, required=True, help="Output path (.csv, .xlsx or .json).")
    export.set_defaults(func=cmd_export)

    snapshot = subparsers.add_parser("snapshot", help="Manage the local snapshot of an uploaded dataset.")
    snapshot.add_argument("action", choices=["save", "restore", "clear", "sample"])
    snapshot.add_argument("--path", type=Path, help="Snapshot file (default: AERO_SNAPSHOT_PATH).")
    _add_source_args(snapshot)
    snapshot.set_defaults(func=cmd_snapshot)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
