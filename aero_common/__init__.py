"""
Shared schema and normalization helpers for the aerospace directory dataset.

Used by the loader/store in `aero_browser` and by the command-line tool.
"""

from .errors import (  # noqa: F401
    AeroDataError,
    NoUsableSheetError,
    SourceFetchError,
    SourceUnavailableError,
    WorkbookDecodeError,
)

from .schema import (  # noqa: F401
    ALIAS_TABLE,
    CATEGORY_FIELDS,
    MANDATORY_FIELDS,
    OUTPUT_LABELS,
    TAG_SOURCE_FIELDS,
    canonicalize_row,
    has_mandatory_fields,
    merge_alias_table,
    normalize_label,
    resolve_header_columns,
    suggest_field_matches,
)

from .normalize import (  # noqa: F401
    NormalizedRecord,
    cell_text,
    is_blank_row,
    normalize_record,
    normalize_rows,
    split_multi,
    to_id,
    to_num,
)

__all__ = [
    "AeroDataError",
    "NoUsableSheetError",
    "SourceFetchError",
    "SourceUnavailableError",
    "WorkbookDecodeError",
    "ALIAS_TABLE",
    "CATEGORY_FIELDS",
    "MANDATORY_FIELDS",
    "OUTPUT_LABELS",
    "TAG_SOURCE_FIELDS",
    "canonicalize_row",
    "has_mandatory_fields",
    "merge_alias_table",
    "normalize_label",
    "resolve_header_columns",
    "suggest_field_matches",
    "NormalizedRecord",
    "cell_text",
    "is_blank_row",
    "normalize_record",
    "normalize_rows",
    "split_multi",
    "to_id",
    "to_num",
]
