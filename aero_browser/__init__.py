"""
Data access for the aerospace directory: workbook loading, the record store and
directory filters. Rendering lives elsewhere and only consumes these objects.
"""

from .aero_data import (  # noqa: F401
    FIRST_EXTRACTABLE,
    USED_RANGE,
    LoadResult,
    load_records_from_sources,
    locate_workbook,
    parse_workbook,
    parse_workbook_bytes,
    records_to_frame,
    write_records,
)

from .config import Settings, load_alias_config, load_settings  # noqa: F401

from .filters import (  # noqa: F401
    FilterState,
    apply_filters,
    collect_options,
    geo_points,
    map_center,
    map_tokens_to_options,
    match_group,
)

from .snapshot import SnapshotStore, sample_records  # noqa: F401

from .store import LoadStatus, RecordStore, StoreState  # noqa: F401

__all__ = [
    "FIRST_EXTRACTABLE",
    "USED_RANGE",
    "LoadResult",
    "load_records_from_sources",
    "locate_workbook",
    "parse_workbook",
    "parse_workbook_bytes",
    "records_to_frame",
    "write_records",
    "Settings",
    "load_alias_config",
    "load_settings",
    "FilterState",
    "apply_filters",
    "collect_options",
    "geo_points",
    "map_center",
    "map_tokens_to_options",
    "match_group",
    "SnapshotStore",
    "sample_records",
    "LoadStatus",
    "RecordStore",
    "StoreState",
]
