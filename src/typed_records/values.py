"""Runtime values: a closed tagged union over the supported kinds."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from typing import Any, Iterable

from typed_records.errors import TypeMismatchError
from typed_records.types import (
    ANY_ARRAY,
    INTEGER_RANGES,
    ArrayTag,
    PrimitiveTag,
    PrimitiveType,
    TypeTag,
    unify,
)

_PYTHON_TYPES: dict[PrimitiveType, type | tuple[type, ...]] = {
    PrimitiveType.STRING: str,
    PrimitiveType.CHAR: str,
    PrimitiveType.INT8: int,
    PrimitiveType.INT64: int,
    PrimitiveType.UINT64: int,
    PrimitiveType.BOOL: bool,
    PrimitiveType.FLOAT32: float,
    PrimitiveType.FLOAT64: float,
    PrimitiveType.ARRAY: (list, tuple),
}


@dataclass(frozen=True)
class Value:
    """A typed value.

    Scalars carry the matching Python object (``str`` for strings and chars,
    ``int``, ``bool`` or ``float``). Arrays carry a tuple of ``Value`` whose
    definitions all agree.
    """

    kind: PrimitiveType
    data: Any
    _tag: TypeTag = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        if self.kind is PrimitiveType.ARRAY:
            elements = self._check_array(self.data)
            object.__setattr__(self, "data", elements)
            object.__setattr__(self, "_tag", self._array_tag(elements))
            return
        object.__setattr__(self, "data", self._check_scalar(self.kind, self.data))
        object.__setattr__(self, "_tag", PrimitiveTag(self.kind))

    @staticmethod
    def _check_scalar(kind: PrimitiveType, data: Any) -> Any:
        """Validate scalar data for ``kind`` and return its normalized form."""
        if kind is PrimitiveType.STRING:
            if not isinstance(data, str):
                raise TypeMismatchError(f"string value must be str, got {type(data).__name__}")
            return data
        if kind is PrimitiveType.CHAR:
            if not isinstance(data, str) or len(data) != 1:
                raise TypeMismatchError(f"char value must be a single character, got {data!r}")
            if 0xD800 <= ord(data) <= 0xDFFF:
                raise TypeMismatchError(f"char value must be a Unicode scalar, got {data!r}")
            return data
        if kind is PrimitiveType.BOOL:
            if not isinstance(data, bool):
                raise TypeMismatchError(f"bool value must be bool, got {type(data).__name__}")
            return data
        if kind in INTEGER_RANGES:
            if isinstance(data, bool) or not isinstance(data, int):
                raise TypeMismatchError(
                    f"{kind.type_name} value must be int, got {type(data).__name__}"
                )
            low, high = INTEGER_RANGES[kind]
            if not low <= data <= high:
                raise TypeMismatchError(f"{data} is out of range for {kind.type_name}")
            return data
        if kind in (PrimitiveType.FLOAT32, PrimitiveType.FLOAT64):
            if isinstance(data, bool) or not isinstance(data, (int, float)):
                raise TypeMismatchError(
                    f"{kind.type_name} value must be float, got {type(data).__name__}"
                )
            data = float(data)
            if kind is PrimitiveType.FLOAT32:
                # Round to single precision so the value survives encoding
                try:
                    data = struct.unpack("<f", struct.pack("<f", data))[0]
                except OverflowError:
                    raise TypeMismatchError(f"{data} is out of range for float32") from None
            return data
        raise TypeMismatchError(f"Unsupported kind: {kind}")

    @staticmethod
    def _check_array(data: Any) -> tuple[Value, ...]:
        if not isinstance(data, (list, tuple)):
            raise TypeMismatchError(f"array value must be a list, got {type(data).__name__}")
        for element in data:
            if not isinstance(element, Value):
                raise TypeMismatchError(
                    f"array elements must be Value instances, got {type(element).__name__}"
                )
        return tuple(data)

    @staticmethod
    def _array_tag(elements: tuple[Value, ...]) -> ArrayTag:
        if not elements:
            return ANY_ARRAY
        element_tag = elements[0].definition()
        for i, element in enumerate(elements[1:], start=1):
            merged = unify(element_tag, element.definition())
            if merged is None:
                raise TypeMismatchError(
                    f"array is not homogeneous: element {i} is {element.definition()}, "
                    f"expected {element_tag}"
                )
            element_tag = merged
        return ArrayTag(element_tag)

    # ---- Constructors ----

    @classmethod
    def string(cls, text: str) -> Value:
        return cls(PrimitiveType.STRING, text)

    @classmethod
    def char(cls, codepoint: str | int) -> Value:
        if isinstance(codepoint, int) and not isinstance(codepoint, bool):
            try:
                codepoint = chr(codepoint)
            except (ValueError, OverflowError):
                raise TypeMismatchError(f"{codepoint} is not a valid code point") from None
        return cls(PrimitiveType.CHAR, codepoint)

    @classmethod
    def int8(cls, number: int) -> Value:
        return cls(PrimitiveType.INT8, number)

    @classmethod
    def int64(cls, number: int) -> Value:
        return cls(PrimitiveType.INT64, number)

    @classmethod
    def uint64(cls, number: int) -> Value:
        return cls(PrimitiveType.UINT64, number)

    @classmethod
    def boolean(cls, flag: bool) -> Value:
        return cls(PrimitiveType.BOOL, flag)

    @classmethod
    def float32(cls, number: float) -> Value:
        return cls(PrimitiveType.FLOAT32, number)

    @classmethod
    def float64(cls, number: float) -> Value:
        return cls(PrimitiveType.FLOAT64, number)

    @classmethod
    def array(cls, elements: Iterable[Any]) -> Value:
        """Build an array value; native elements are inferred with ``Value.of``."""
        return cls(
            PrimitiveType.ARRAY,
            tuple(e if isinstance(e, Value) else cls.of(e) for e in elements),
        )

    @classmethod
    def of(cls, obj: Any) -> Value:
        """Infer a value from a native Python object.

        ``str`` becomes a string (use ``Value.char`` for chars), ``int`` an
        int64 and ``float`` a float64.
        """
        if isinstance(obj, Value):
            return obj
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, int):
            return cls.int64(obj)
        if isinstance(obj, float):
            return cls.float64(obj)
        if isinstance(obj, str):
            return cls.string(obj)
        if isinstance(obj, (list, tuple)):
            return cls.array(obj)
        raise TypeMismatchError(f"Cannot convert {type(obj).__name__} to a Value")

    @classmethod
    def coerce(cls, obj: Any, tag: TypeTag) -> Value | None:
        """Convert ``obj`` to a value of type ``tag``.

        Values pass through untouched and ``None`` stays ``None``; checking
        them against the schema is the caller's job. Native objects must
        already have the Python type matching ``tag``; nothing is widened.

        Raises:
            TypeMismatchError: If ``obj`` cannot represent ``tag``.
        """
        if obj is None or isinstance(obj, Value):
            return obj
        return cls._from_native(obj, tag)

    @classmethod
    def _from_native(cls, obj: Any, tag: TypeTag) -> Value:
        kind = tag.kind
        expected = _PYTHON_TYPES[kind]
        if not isinstance(obj, expected) or (isinstance(obj, bool) and kind is not PrimitiveType.BOOL):
            raise TypeMismatchError(f"expected {tag}, got {type(obj).__name__} {obj!r}")
        if isinstance(tag, ArrayTag):
            if tag.element is None:
                return cls.array(obj)
            return cls(PrimitiveType.ARRAY, tuple(cls._coerce_element(e, tag.element) for e in obj))
        return cls(kind, obj)

    @classmethod
    def _coerce_element(cls, obj: Any, tag: TypeTag) -> Value:
        if obj is None:
            raise TypeMismatchError(f"array elements cannot be null (expected {tag})")
        if isinstance(obj, Value):
            return obj
        return cls._from_native(obj, tag)

    # ---- Introspection ----

    def definition(self) -> TypeTag:
        """Return the type tag describing this value."""
        return self._tag

    @property
    def is_array(self) -> bool:
        return self.kind is PrimitiveType.ARRAY

    @property
    def is_empty_array(self) -> bool:
        return self.kind is PrimitiveType.ARRAY and not self.data

    # ---- Accessors ----

    def _expect(self, kind: PrimitiveType) -> Any:
        if self.kind is not kind:
            raise TypeMismatchError(f"Not a {kind.type_name} value: {self.kind.type_name}")
        return self.data

    def as_string(self) -> str:
        return self._expect(PrimitiveType.STRING)

    def as_char(self) -> str:
        return self._expect(PrimitiveType.CHAR)

    def as_int8(self) -> int:
        return self._expect(PrimitiveType.INT8)

    def as_int64(self) -> int:
        return self._expect(PrimitiveType.INT64)

    def as_uint64(self) -> int:
        return self._expect(PrimitiveType.UINT64)

    def as_bool(self) -> bool:
        return self._expect(PrimitiveType.BOOL)

    def as_float32(self) -> float:
        return self._expect(PrimitiveType.FLOAT32)

    def as_float64(self) -> float:
        return self._expect(PrimitiveType.FLOAT64)

    def as_array(self) -> list[Value]:
        return list(self._expect(PrimitiveType.ARRAY))

    def to_python(self) -> Any:
        """Return the value as native Python data (arrays become lists)."""
        if self.kind is PrimitiveType.ARRAY:
            return [element.to_python() for element in self.data]
        return self.data

    # ---- Arithmetic ----

    def incremented(self) -> Value:
        """Return this numeric value plus one unit of its own type.

        Raises:
            TypeMismatchError: If the value is not numeric.
            OverflowError: If the result exceeds the type's maximum.
        """
        if not self.kind.is_numeric:
            raise TypeMismatchError(f"Cannot increment a {self.kind.type_name} value")
        if self.kind.is_integer:
            _, high = INTEGER_RANGES[self.kind]
            if self.data >= high:
                raise OverflowError(f"{self.kind.type_name} overflow: {self.data} + 1 > {high}")
            return Value(self.kind, self.data + 1)
        result = self.data + 1.0
        if self.kind is PrimitiveType.FLOAT32:
            try:
                result = struct.unpack("<f", struct.pack("<f", result))[0]
            except OverflowError:
                result = math.inf
        if math.isinf(result) and not math.isinf(self.data):
            raise OverflowError(f"{self.kind.type_name} overflow: {self.data} + 1")
        return Value(self.kind, result)

    def appended(self, elements: Iterable[Value]) -> Value:
        """Return a new array with ``elements`` added at the end."""
        return Value(PrimitiveType.ARRAY, self._expect(PrimitiveType.ARRAY) + tuple(elements))
