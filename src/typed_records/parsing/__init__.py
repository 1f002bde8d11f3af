"""Parsing module for the column declaration DSL."""

from typed_records.parsing.column_parser import ColumnParser, parse_columns, parse_type

__all__ = [
    "ColumnParser",
    "parse_columns",
    "parse_type",
]
