"""Typed Records - an embedded, schema'd record store persisted to a single binary file."""

from typed_records.config import Settings, get_settings
from typed_records.database import Database
from typed_records.entries import Entries, Entry
from typed_records.errors import (
    ArithmeticOverflowError,
    BatchError,
    DecodeError,
    DuplicateTableError,
    LoadError,
    SchemaError,
    TypedRecordsError,
    TypeMismatchError,
    UnknownColumnError,
)
from typed_records.logging import get_logger, setup_logging
from typed_records.parsing import ColumnParser, parse_columns, parse_type
from typed_records.table import Table
from typed_records.types import (
    BOOL,
    CHAR,
    FLOAT32,
    FLOAT64,
    INT8,
    INT64,
    STRING,
    UINT64,
    ArrayTag,
    Column,
    PrimitiveTag,
    PrimitiveType,
    TypeTag,
    array_of,
)
from typed_records.values import Value

__all__ = [
    # Main API
    "Database",
    "Table",
    "Column",
    "Value",
    "Entry",
    "Entries",
    # Types
    "PrimitiveType",
    "TypeTag",
    "PrimitiveTag",
    "ArrayTag",
    "array_of",
    "STRING",
    "CHAR",
    "INT8",
    "INT64",
    "UINT64",
    "BOOL",
    "FLOAT32",
    "FLOAT64",
    # Parsing
    "ColumnParser",
    "parse_columns",
    "parse_type",
    # Errors
    "TypedRecordsError",
    "TypeMismatchError",
    "BatchError",
    "SchemaError",
    "DuplicateTableError",
    "UnknownColumnError",
    "ArithmeticOverflowError",
    "DecodeError",
    "LoadError",
    # Configuration
    "Settings",
    "get_settings",
    "setup_logging",
    "get_logger",
]

__version__ = "0.1.0"
