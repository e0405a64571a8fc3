"""Spreadsheet import and export of people."""

from roster.io.people_io import (
    CORE_COLUMNS,
    coerce_cell,
    export_columns,
    export_people,
    map_import_row,
    parse_csv,
    to_csv,
)

__all__ = [
    "CORE_COLUMNS",
    "coerce_cell",
    "export_columns",
    "export_people",
    "map_import_row",
    "parse_csv",
    "to_csv",
]
