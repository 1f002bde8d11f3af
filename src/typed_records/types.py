"""Type definitions for the typed_records library."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PrimitiveType(Enum):
    """Kinds of values supported by the type system.

    The enum value is the byte code written to type tags on disk.
    """

    STRING = 1
    CHAR = 2
    INT64 = 3
    UINT64 = 4
    BOOL = 5
    FLOAT32 = 6
    FLOAT64 = 7
    ARRAY = 8
    INT8 = 9

    @property
    def type_name(self) -> str:
        """Return the name used for this kind in the column DSL."""
        return self.name.lower()

    @property
    def size_bytes(self) -> int | None:
        """Return the fixed payload size in bytes, or None for variable-length kinds."""
        return _SIZES.get(self)

    @property
    def struct_format(self) -> str | None:
        """Return the little-endian struct format for fixed-size kinds."""
        return _FORMATS.get(self)

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_TYPES

    @property
    def is_integer(self) -> bool:
        return self in INTEGER_RANGES


_SIZES: dict[PrimitiveType, int] = {
    PrimitiveType.CHAR: 4,  # Unicode code point (UTF-32)
    PrimitiveType.INT8: 1,
    PrimitiveType.INT64: 8,
    PrimitiveType.UINT64: 8,
    PrimitiveType.BOOL: 1,
    PrimitiveType.FLOAT32: 4,
    PrimitiveType.FLOAT64: 8,
}

_FORMATS: dict[PrimitiveType, str] = {
    PrimitiveType.CHAR: "<I",
    PrimitiveType.INT8: "<b",
    PrimitiveType.INT64: "<q",
    PrimitiveType.UINT64: "<Q",
    PrimitiveType.BOOL: "<B",
    PrimitiveType.FLOAT32: "<f",
    PrimitiveType.FLOAT64: "<d",
}

# Inclusive (min, max) for integer kinds
INTEGER_RANGES: dict[PrimitiveType, tuple[int, int]] = {
    PrimitiveType.INT8: (-(1 << 7), (1 << 7) - 1),
    PrimitiveType.INT64: (-(1 << 63), (1 << 63) - 1),
    PrimitiveType.UINT64: (0, (1 << 64) - 1),
}

NUMERIC_TYPES = frozenset(
    {
        PrimitiveType.INT8,
        PrimitiveType.INT64,
        PrimitiveType.UINT64,
        PrimitiveType.FLOAT32,
        PrimitiveType.FLOAT64,
    }
)

# Mapping from DSL type names to kinds; "array" is spelled with [] in the DSL
PRIMITIVE_TYPE_NAMES: dict[str, PrimitiveType] = {
    pt.type_name: pt for pt in PrimitiveType if pt is not PrimitiveType.ARRAY
}
PRIMITIVE_TYPE_NAMES.update(
    {
        "character": PrimitiveType.CHAR,
        "boolean": PrimitiveType.BOOL,
        "i8": PrimitiveType.INT8,
        "i64": PrimitiveType.INT64,
        "u64": PrimitiveType.UINT64,
        "f32": PrimitiveType.FLOAT32,
        "f64": PrimitiveType.FLOAT64,
    }
)


@dataclass(frozen=True)
class TypeTag:
    """Base class for all type tags."""

    @property
    def kind(self) -> PrimitiveType:
        raise NotImplementedError

    @property
    def is_array(self) -> bool:
        """Return whether this tag describes an array."""
        return False

    @property
    def depth(self) -> int:
        """Return the array nesting depth (0 for scalars)."""
        return 0

    @property
    def is_resolved(self) -> bool:
        """Return whether the tag is free of empty-array wildcards."""
        return True


@dataclass(frozen=True)
class PrimitiveTag(TypeTag):
    """Tag for a scalar kind."""

    primitive: PrimitiveType

    def __post_init__(self) -> None:
        if self.primitive is PrimitiveType.ARRAY:
            raise ValueError("Use ArrayTag for array types")

    @property
    def kind(self) -> PrimitiveType:
        return self.primitive

    def __str__(self) -> str:
        return self.primitive.type_name


@dataclass(frozen=True)
class ArrayTag(TypeTag):
    """Tag for an array of elements of a single type.

    ``element`` is None only for the tag of an empty array value, which has no
    decidable element type and matches any declared array type.
    """

    element: TypeTag | None

    @property
    def kind(self) -> PrimitiveType:
        return PrimitiveType.ARRAY

    @property
    def is_array(self) -> bool:
        return True

    @property
    def depth(self) -> int:
        if self.element is None:
            return 1
        return 1 + self.element.depth

    @property
    def is_resolved(self) -> bool:
        return self.element is not None and self.element.is_resolved

    def __str__(self) -> str:
        if self.element is None:
            return "[]"
        return f"{self.element}[]"


STRING = PrimitiveTag(PrimitiveType.STRING)
CHAR = PrimitiveTag(PrimitiveType.CHAR)
INT8 = PrimitiveTag(PrimitiveType.INT8)
INT64 = PrimitiveTag(PrimitiveType.INT64)
UINT64 = PrimitiveTag(PrimitiveType.UINT64)
BOOL = PrimitiveTag(PrimitiveType.BOOL)
FLOAT32 = PrimitiveTag(PrimitiveType.FLOAT32)
FLOAT64 = PrimitiveTag(PrimitiveType.FLOAT64)

# Empty-array wildcard
ANY_ARRAY = ArrayTag(None)


def array_of(element: TypeTag) -> ArrayTag:
    """Return the tag for an array of ``element``."""
    return ArrayTag(element)


def tag_matches(declared: TypeTag, actual: TypeTag) -> bool:
    """Check whether a value of type ``actual`` fits a column of type ``declared``.

    Empty arrays (anywhere in the nesting) match any array type.
    """
    if declared == actual:
        return True
    if isinstance(declared, ArrayTag) and isinstance(actual, ArrayTag):
        if actual.element is None:
            return True
        if declared.element is None:
            return False
        return tag_matches(declared.element, actual.element)
    return False


def unify(first: TypeTag, second: TypeTag) -> TypeTag | None:
    """Return the most specific tag compatible with both, or None if they conflict."""
    if first == second:
        return first
    if isinstance(first, ArrayTag) and isinstance(second, ArrayTag):
        if first.element is None:
            return second
        if second.element is None:
            return first
        inner = unify(first.element, second.element)
        if inner is None:
            return None
        return ArrayTag(inner)
    return None


@dataclass(frozen=True)
class Column:
    """Definition of a column within a table (key, declared type, nullability)."""

    key: str
    type_tag: TypeTag
    nullable: bool = False

    def __str__(self) -> str:
        suffix = "?" if self.nullable else ""
        return f"{self.key}: {self.type_tag}{suffix}"
