from .fields import (
    CONVERTERS,
    Field,
    FieldIssue,
    FieldKind,
    FieldResult,
    Requirement,
    format_double,
    format_time,
    parse_date,
)
from .table import ID_COLUMN, LINE_COLUMN, Table, sanitize
from .tables import DERIVED, LOAD_ORDER, TABLES_BY_NAME, table_by_name

__all__ = [
    "CONVERTERS",
    "Field",
    "FieldIssue",
    "FieldKind",
    "FieldResult",
    "Requirement",
    "format_double",
    "format_time",
    "parse_date",
    "ID_COLUMN",
    "LINE_COLUMN",
    "Table",
    "sanitize",
    "DERIVED",
    "LOAD_ORDER",
    "TABLES_BY_NAME",
    "table_by_name",
]
