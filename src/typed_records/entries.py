"""Read-only projections of table rows returned by queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, overload

from typed_records.errors import TypeMismatchError, UnknownColumnError
from typed_records.values import Value


@dataclass(frozen=True)
class Entry:
    """A single cell of a row: the column key and its value (None for null)."""

    key: str
    value: Value | None

    def get(self) -> Any:
        """Return the cell as native Python data."""
        if self.value is None:
            return None
        return self.value.to_python()

    def is_(self, other: Any) -> bool:
        """Check whether the cell equals ``other`` (a Value or native object)."""
        if other is None or self.value is None:
            return other is None and self.value is None
        if isinstance(other, Value):
            return self.value == other
        try:
            return self.value == Value.coerce(other, self.value.definition())
        except TypeMismatchError:
            return False


class Entries:
    """One row of a table as an ordered sequence of entries."""

    def __init__(self, entries: list[Entry]) -> None:
        self.entries = entries

    def row(self, key: str) -> Entry:
        """Return the entry for column ``key``.

        Raises:
            UnknownColumnError: If the row has no such column.
        """
        for entry in self.entries:
            if entry.key == key:
                return entry
        raise UnknownColumnError(f"Unknown column '{key}'")

    def get(self, key: str, default: Any = None) -> Value | None | Any:
        """Return the value of column ``key`` or ``default`` if absent."""
        for entry in self.entries:
            if entry.key == key:
                return entry.value
        return default

    def keys(self) -> list[str]:
        return [entry.key for entry in self.entries]

    def values(self) -> list[Value | None]:
        return [entry.value for entry in self.entries]

    def to_dict(self) -> dict[str, Any]:
        """Return the row as a dict of native Python data."""
        return {entry.key: entry.get() for entry in self.entries}

    @overload
    def __getitem__(self, item: int) -> Entry: ...

    @overload
    def __getitem__(self, item: str) -> Entry: ...

    def __getitem__(self, item: int | str) -> Entry:
        if isinstance(item, str):
            return self.row(item)
        return self.entries[item]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entries):
            return NotImplemented
        return self.entries == other.entries

    def __repr__(self) -> str:
        return f"Entries({self.to_dict()!r})"
