"""Database: a named collection of tables persisted as one binary file."""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Sequence

from typed_records.codec import Decoder, Encoder
from typed_records.config import Settings, get_settings
from typed_records.errors import (
    DecodeError,
    DuplicateTableError,
    LoadError,
    SchemaError,
    TypeMismatchError,
)
from typed_records.logging import get_logger
from typed_records.parsing import parse_columns
from typed_records.table import Table
from typed_records.types import Column

logger = get_logger(__name__)

# File header: magic followed by a one-byte format version. Files written
# before versioning start directly with the database name.
MAGIC = b"TREC"
FORMAT_VERSION = 1
LEGACY_VERSION = 0


class Database:
    """A named, ordered collection of uniquely named tables.

    The database is serialized and deserialized as a whole; there is no
    per-table persistence. Access is single-threaded: callers that share a
    Database across threads must serialize access themselves.
    """

    def __init__(self, name: str = "", settings: Settings | None = None) -> None:
        self.name = name
        self.settings = settings or get_settings()
        self._tables: list[Table] = []

    def set_name(self, name: str) -> None:
        self.name = name

    def get_name(self) -> str:
        return self.name

    @property
    def tables(self) -> list[Table]:
        return list(self._tables)

    @property
    def table_count(self) -> int:
        """Return the number of tables in the database."""
        return len(self._tables)

    def has_table(self, name: str) -> bool:
        return self.table(name) is not None

    def table(self, name: str) -> Table | None:
        """Return the table called ``name``, or None if there is none."""
        for table in self._tables:
            if table.name == name:
                return table
        return None

    def create_table(self, name: str, columns: Sequence[Column] | str) -> Table:
        """Create and register an empty table.

        Args:
            name: Table name, unique within the database.
            columns: Column definitions, or a declaration string such as
                ``"id: int64, email: string, tags: string[]"``.

        Returns:
            The new table.

        Raises:
            DuplicateTableError: If a table with this name already exists.
            SchemaError: If the columns are invalid.
        """
        if self.has_table(name):
            raise DuplicateTableError(f"Table '{name}' already exists")
        if isinstance(columns, str):
            columns = parse_columns(columns)
        table = Table(name, columns, max_nesting_depth=self.settings.max_nesting_depth)
        self._tables.append(table)
        logger.debug("table_created", table=name, columns=[str(c) for c in table.columns])
        return table

    def drop_table(self, name: str) -> bool:
        """Remove the table called ``name``; returns whether it existed."""
        for i, table in enumerate(self._tables):
            if table.name == name:
                del self._tables[i]
                return True
        return False

    # ---- Serialization ----

    def to_bytes(self) -> bytes:
        """Encode the whole database in the current file format."""
        encoder = Encoder()
        encoder.write_raw(MAGIC)
        encoder.write_u8(FORMAT_VERSION)
        encoder.write_string(self.name)
        encoder.write_u64(len(self._tables))

        for table in self._tables:
            encoder.write_string(table.name)
            encoder.write_u64(len(table.columns))
            for column in table.columns:
                encoder.write_string(column.key)
                encoder.write_tag(column.type_tag)
                encoder.write_u8(1 if column.nullable else 0)

            encoder.write_u64(table.row_count)
            for row in table._rows:
                for column, cell in zip(table.columns, row):
                    encoder.write_cell(cell, column.nullable)

        return encoder.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes, settings: Settings | None = None) -> Database:
        """Decode a database; any failure aborts the whole load.

        Raises:
            LoadError: Chained to the underlying decode or schema error.
        """
        db = cls(settings=settings)
        try:
            db._decode(data)
        except (DecodeError, SchemaError, TypeMismatchError) as exc:
            raise LoadError(f"Failed to load database: {exc}") from exc
        return db

    def _decode(self, data: bytes) -> None:
        decoder = Decoder(data, max_nesting_depth=self.settings.max_nesting_depth)
        if data[: len(MAGIC)] == MAGIC:
            decoder.read(len(MAGIC))
            version = decoder.read_u8()
            if version != FORMAT_VERSION:
                raise DecodeError(f"Unsupported format version {version}")
        else:
            version = LEGACY_VERSION

        self.name = decoder.read_string()
        table_count = decoder.read_u64()
        for _ in range(table_count):
            table_name = decoder.read_string()
            header_count = decoder.read_u64()
            if header_count > decoder.remaining:
                raise DecodeError(f"Header count {header_count} exceeds remaining data")

            # The schema must be complete before any row can be decoded
            columns = []
            for _ in range(header_count):
                key = decoder.read_string()
                type_tag = decoder.read_tag()
                nullable = False
                if version >= 1:
                    flag = decoder.read_u8()
                    if flag not in (0, 1):
                        raise DecodeError(f"Invalid nullable flag {flag} for column '{key}'")
                    nullable = flag == 1
                columns.append(Column(key, type_tag, nullable))

            table = self.create_table(table_name, columns)

            # Every cell takes at least one byte
            row_count = decoder.read_u64()
            if not columns and row_count:
                raise DecodeError(f"Table '{table_name}' has no columns but {row_count} rows")
            if row_count > decoder.remaining:
                raise DecodeError(f"Row count {row_count} exceeds remaining data")
            for _ in range(row_count):
                cells = [decoder.read_cell(c.type_tag, c.nullable) for c in columns]
                table.insert(cells)

        if not decoder.at_end():
            raise DecodeError(f"{decoder.remaining} trailing bytes after last table")

    # ---- Files ----

    def save(self, path: str | Path) -> bool:
        """Write the database to ``path`` in a single write.

        Returns:
            True on success. I/O failures are logged and reported as False.
        """
        path = Path(path)
        data = self.to_bytes()
        try:
            if self.settings.atomic_save:
                _write_atomic(path, data)
            else:
                with open(path, "wb") as f:
                    f.write(data)
        except OSError as exc:
            logger.error("database_save_failed", path=str(path), error=str(exc))
            return False

        logger.info(
            "database_saved",
            path=str(path),
            database=self.name,
            tables=len(self._tables),
            size=len(data),
        )
        return True

    @classmethod
    def load(cls, path: str | Path, settings: Settings | None = None) -> Database:
        """Load a database file written by ``save``.

        Raises:
            LoadError: If the file cannot be read or fails to decode. The
                original exception is chained as ``__cause__``.
        """
        path = Path(path)
        try:
            with open(path, "rb") as f:
                data = f.read()
            db = cls.from_bytes(data, settings)
        except OSError as exc:
            logger.error("database_load_failed", path=str(path), error=str(exc))
            raise LoadError(f"Cannot read database file {path}: {exc}") from exc
        except LoadError as exc:
            logger.error("database_load_failed", path=str(path), error=str(exc))
            raise

        logger.info(
            "database_loaded",
            path=str(path),
            database=db.name,
            tables=db.table_count,
            size=len(data),
        )
        return db

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Database):
            return NotImplemented
        return self.name == other.name and self._tables == other._tables

    def __repr__(self) -> str:
        return f"Database({self.name!r}, tables={[t.name for t in self._tables]})"


def _write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to a temporary sibling file and rename it over ``path``."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise
