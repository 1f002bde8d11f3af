"""Typed in-memory tables with predicate-scan queries and mutations."""

from __future__ import annotations

from typing import Any, Callable, Iterator, Mapping, Sequence

from typed_records.codec import DEFAULT_MAX_NESTING_DEPTH
from typed_records.entries import Entries, Entry
from typed_records.errors import (
    ArithmeticOverflowError,
    SchemaError,
    TypeMismatchError,
    UnknownColumnError,
)
from typed_records.logging import get_logger
from typed_records.types import ArrayTag, Column, TypeTag, tag_matches
from typed_records.values import Value

Predicate = Callable[[Entries], bool]

logger = get_logger(__name__)


class Table:
    """A named, ordered set of rows over a fixed column schema.

    Every row holds one cell per column. A cell is a ``Value`` whose
    definition equals the column's declared type, an empty array in an array
    column, or ``None`` in a nullable column.

    All queries scan every row in insertion order; there is no index.
    """

    def __init__(
        self,
        name: str,
        columns: Sequence[Column],
        max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
    ) -> None:
        """Initialize an empty table.

        Args:
            name: Table name.
            columns: Column definitions, in row order.
            max_nesting_depth: Deepest array nesting allowed in column types.

        Raises:
            SchemaError: If column keys repeat or a column type is invalid.
        """
        messages = []
        seen: set[str] = set()
        for column in columns:
            if column.key in seen:
                messages.append(f"duplicate column '{column.key}'")
            seen.add(column.key)
            if not column.type_tag.is_resolved:
                messages.append(f"column '{column.key}': array element type is missing")
            elif column.type_tag.depth > max_nesting_depth:
                messages.append(
                    f"column '{column.key}': nesting depth {column.type_tag.depth} "
                    f"exceeds {max_nesting_depth}"
                )
        if messages:
            raise SchemaError(messages)

        self.name = name
        self._columns: tuple[Column, ...] = tuple(columns)
        self._rows: list[list[Value | None]] = []

    @property
    def columns(self) -> tuple[Column, ...]:
        return self._columns

    @property
    def keys(self) -> list[str]:
        return [column.key for column in self._columns]

    @property
    def row_count(self) -> int:
        """Return the number of rows in the table."""
        return len(self._rows)

    @property
    def rows(self) -> list[list[Value | None]]:
        """Return a copy of the stored rows."""
        return [list(row) for row in self._rows]

    def column(self, key: str) -> Column:
        return self._columns[self._column_index(key)]

    def _column_index(self, key: str) -> int:
        for i, column in enumerate(self._columns):
            if column.key == key:
                return i
        raise UnknownColumnError(f"Unknown column '{key}' in table '{self.name}'")

    def _entries(self, row: list[Value | None]) -> Entries:
        return Entries([Entry(column.key, cell) for column, cell in zip(self._columns, row)])

    def _matching(self, predicate: Predicate) -> Iterator[tuple[int, list[Value | None]]]:
        for index, row in enumerate(self._rows):
            if predicate(self._entries(row)):
                yield index, row

    # ---- Validation ----

    def _check_cell(self, column: Column, obj: Any) -> tuple[Value | None, str | None]:
        """Validate a cell for insertion; returns (value, error message)."""
        try:
            value = Value.coerce(obj, column.type_tag)
        except TypeMismatchError as exc:
            return None, f"column '{column.key}': {exc}"
        if value is None:
            if column.nullable:
                return None, None
            return None, f"column '{column.key}': null value in non-nullable column"
        if not tag_matches(column.type_tag, value.definition()):
            return None, (
                f"column '{column.key}': expected {column.type_tag}, got {value.definition()}"
            )
        return value, None

    def _check_update(
        self, column: Column, existing: Value | None, obj: Any
    ) -> tuple[Value | None, str | None]:
        """Validate a replacement cell; empty arrays are not wildcards here."""
        try:
            value = Value.coerce(obj, column.type_tag)
        except TypeMismatchError as exc:
            return None, f"column '{column.key}': {exc}"
        if value is None:
            if column.nullable:
                return None, None
            return None, f"column '{column.key}': null value in non-nullable column"
        definition = value.definition()
        if definition == column.type_tag:
            return value, None
        if existing is not None and definition == existing.definition():
            return value, None
        current = existing.definition() if existing is not None else column.type_tag
        return None, f"column '{column.key}': expected {current}, got {definition}"

    # ---- Insertion and lookup ----

    def insert(self, values: Sequence[Any] | Mapping[str, Any]) -> int:
        """Validate and append a row.

        Args:
            values: One value per column, in column order, or a mapping of
                column key to value. Native Python objects are converted to
                the column type; ``Value`` instances are checked as they are.

        Returns:
            Index of the new row.

        Raises:
            SchemaError: With one message per invalid column, or if the
                table has no columns. Nothing is inserted in that case.
        """
        if not self._columns:
            raise SchemaError(f"table '{self.name}' has no columns to insert into")
        if isinstance(values, Mapping):
            unknown = [key for key in values if key not in self.keys]
            if unknown:
                raise SchemaError([f"unknown column '{key}'" for key in unknown])
            missing = [c.key for c in self._columns if c.key not in values and not c.nullable]
            if missing:
                raise SchemaError([f"column '{key}': missing value" for key in missing])
            values = [values.get(c.key) for c in self._columns]

        if len(values) != len(self._columns):
            raise SchemaError(
                f"table '{self.name}' has {len(self._columns)} columns, got {len(values)} values"
            )

        row: list[Value | None] = []
        messages = []
        for column, obj in zip(self._columns, values):
            value, message = self._check_cell(column, obj)
            if message is not None:
                messages.append(message)
            row.append(value)
        if messages:
            raise SchemaError(messages)

        self._rows.append(row)
        return len(self._rows) - 1

    def get_at(self, index: int) -> Entries:
        """Return the row at ``index``."""
        if index < 0 or index >= len(self._rows):
            raise IndexError(f"Index {index} out of range [0, {len(self._rows)})")
        return self._entries(self._rows[index])

    def get_where(self, predicate: Predicate) -> list[Entries]:
        """Return every row for which ``predicate`` is true, in insertion order."""
        return [self._entries(row) for _, row in self._matching(predicate)]

    # ---- Mutation ----

    def set_where(self, predicate: Predicate, field_values: Mapping[str, Any]) -> int:
        """Overwrite fields of every matching row.

        A row is written only after all of its new values validate. The first
        invalid row stops the operation; rows already written stay written.

        Returns:
            Number of rows changed.

        Raises:
            UnknownColumnError: If a key is not a column (nothing is changed).
            SchemaError: On the first type mismatch; ``changed`` holds the
                number of rows written before it.
        """
        targets = [(self._column_index(key), obj) for key, obj in field_values.items()]

        changed = 0
        for row_index, row in self._matching(predicate):
            updates = []
            for column_index, obj in targets:
                value, message = self._check_update(
                    self._columns[column_index], row[column_index], obj
                )
                if message is not None:
                    raise SchemaError(f"row {row_index}: {message}", changed=changed)
                updates.append((column_index, value))
            for column_index, value in updates:
                row[column_index] = value
            changed += 1

        logger.debug("rows_updated", table=self.name, count=changed)
        return changed

    def remove_where(self, predicate: Predicate) -> int:
        """Delete every matching row and return how many were removed."""
        matched = [index for index, _ in self._matching(predicate)]
        for index in reversed(matched):
            del self._rows[index]
        logger.debug("rows_removed", table=self.name, count=len(matched))
        return len(matched)

    def inc_where(self, predicate: Predicate, key: str) -> int:
        """Increment the numeric cell ``key`` of every matching row by one.

        Rows whose cell would overflow (or is null) are left unchanged and
        reported; the other rows are still incremented.

        Returns:
            Number of rows changed.

        Raises:
            UnknownColumnError: If ``key`` is not a column.
            SchemaError: If the column is not numeric, or only null cells failed.
            ArithmeticOverflowError: If any row overflowed.
        """
        column_index = self._column_index(key)
        column = self._columns[column_index]
        if column.type_tag.is_array or not column.type_tag.kind.is_numeric:
            raise SchemaError(f"column '{key}' is not numeric ({column.type_tag})")

        changed = 0
        messages = []
        overflowed = False
        for row_index, row in self._matching(predicate):
            cell = row[column_index]
            if cell is None:
                messages.append(f"row {row_index}: column '{key}' is null")
                continue
            try:
                row[column_index] = cell.incremented()
            except OverflowError as exc:
                overflowed = True
                messages.append(f"row {row_index}: {exc}")
                continue
            changed += 1

        if messages:
            if overflowed:
                raise ArithmeticOverflowError(messages, changed=changed)
            raise SchemaError(messages, changed=changed)
        return changed

    def push_where(self, predicate: Predicate, key: str, value: Any) -> int:
        """Append ``value`` to the array cell ``key`` of every matching row.

        ``value`` may be a single element of the column's element type, or an
        array of the column's type whose elements are spliced in.

        Returns:
            Number of rows changed. Pushing an empty array appends
            nothing and changes no row.

        Raises:
            UnknownColumnError: If ``key`` is not a column.
            SchemaError: If the column is not an array, or with one message
                per matching row that could not be extended.
        """
        column_index = self._column_index(key)
        column = self._columns[column_index]
        tag = column.type_tag
        if not isinstance(tag, ArrayTag) or tag.element is None:
            raise SchemaError(f"column '{key}' is not an array ({tag})")

        elements, mismatch = self._push_elements(tag, tag.element, value)

        changed = 0
        messages = []
        for row_index, row in self._matching(predicate):
            if mismatch is not None:
                messages.append(f"row {row_index}: column '{key}': {mismatch}")
                continue
            cell = row[column_index]
            if cell is None:
                messages.append(f"row {row_index}: column '{key}' is null")
                continue
            if elements:
                row[column_index] = cell.appended(elements)
                changed += 1

        if messages:
            raise SchemaError(messages, changed=changed)
        return changed

    @staticmethod
    def _push_elements(
        tag: ArrayTag, element_tag: TypeTag, obj: Any
    ) -> tuple[list[Value], str | None]:
        """Resolve what ``push_where`` appends: one element or a spliced array."""
        try:
            value = Value.coerce(obj, element_tag)
        except TypeMismatchError:
            try:
                value = Value.coerce(obj, tag)
            except TypeMismatchError as exc:
                return [], str(exc)
        if value is None:
            return [], f"cannot push null onto {tag}"
        definition = value.definition()
        if tag_matches(element_tag, definition):
            return [value], None
        if tag_matches(tag, definition):
            return list(value.data), None
        return [], f"cannot push {definition} onto {tag}"

    # ---- Protocols ----

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Entries]:
        return (self._entries(row) for row in self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return (
            self.name == other.name
            and self._columns == other._columns
            and self._rows == other._rows
        )

    def __repr__(self) -> str:
        columns = ", ".join(str(column) for column in self._columns)
        return f"Table({self.name!r}, [{columns}], rows={len(self._rows)})"
