"""Exception types raised by typed_records."""

from __future__ import annotations

from typing import Iterable


class TypedRecordsError(Exception):
    """Base class for all typed_records errors."""


class TypeMismatchError(TypedRecordsError, TypeError):
    """A value does not have the variant or range the caller asked for."""


class BatchError(TypedRecordsError):
    """A batch of independent failures.

    Attributes:
        messages: One human-readable message per failure.
        changed: Number of rows already modified when the error was raised.
    """

    def __init__(self, messages: str | Iterable[str], changed: int = 0) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages: list[str] = list(messages)
        self.changed = changed
        super().__init__("; ".join(self.messages))

    def __str__(self) -> str:
        return "; ".join(self.messages)


class SchemaError(BatchError):
    """Row length, column key or column type violations."""


class DuplicateTableError(SchemaError):
    """A table with the same name already exists."""


class UnknownColumnError(SchemaError, KeyError):
    """A column key is not part of the table schema."""


class ArithmeticOverflowError(BatchError, ArithmeticError):
    """Incrementing a cell would exceed its type's maximum."""


class DecodeError(TypedRecordsError):
    """The byte stream is truncated or malformed."""


class LoadError(TypedRecordsError):
    """A database file could not be loaded."""
