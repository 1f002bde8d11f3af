"""Binary codec for typed values.

The encoding is not self-describing: a reader must supply the type tag it
expects (taken from the table headers) to decode a value.

Layout, all integers little endian:

- string: [1 byte n][n bytes payload length][UTF-8 payload]
- char: 4-byte code point
- int8 / bool: 1 byte; int64 / uint64 / float64: 8 bytes; float32: 4 bytes
- array: 8-byte element count, then each element encoded as the element type
- nullable cell: [1 byte presence][value when presence is 1]
- type tag: scalar S is [code(S), 0]; an array adds one ARRAY code byte per
  nesting level in front of code(S), so T[] is [8, code(T)] and T[][] is
  [8, 8, code(T)]
"""

from __future__ import annotations

import struct

from typed_records.errors import DecodeError, TypeMismatchError
from typed_records.types import ArrayTag, PrimitiveTag, PrimitiveType, TypeTag
from typed_records.values import Value

# Largest value the length-of-length prefix may announce (a uint64 length)
MAX_LENGTH_BYTES = 8

DEFAULT_MAX_NESTING_DEPTH = 32


def _length_bytes(length: int) -> int:
    """Return the minimal number of bytes needed to store ``length``."""
    return (length.bit_length() + 7) // 8


class Encoder:
    """Accumulates encoded values into a byte buffer."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def getvalue(self) -> bytes:
        """Return everything written so far."""
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def write_raw(self, data: bytes) -> None:
        self._buffer += data

    def write_u8(self, number: int) -> None:
        self._buffer += struct.pack("<B", number)

    def write_u64(self, number: int) -> None:
        self._buffer += struct.pack("<Q", number)

    def write_string(self, text: str) -> None:
        payload = text.encode("utf-8")
        length = len(payload)
        width = _length_bytes(length)
        self.write_u8(width)
        self._buffer += length.to_bytes(width, "little")
        self._buffer += payload

    def write_value(self, value: Value) -> None:
        """Encode ``value`` according to its own kind."""
        kind = value.kind
        if kind is PrimitiveType.STRING:
            self.write_string(value.data)
        elif kind is PrimitiveType.ARRAY:
            self.write_u64(len(value.data))
            for element in value.data:
                self.write_value(element)
        elif kind is PrimitiveType.CHAR:
            self._buffer += struct.pack("<I", ord(value.data))
        elif kind is PrimitiveType.BOOL:
            self._buffer += struct.pack("<B", 1 if value.data else 0)
        else:
            self._buffer += struct.pack(kind.struct_format, value.data)  # type: ignore[arg-type]

    def write_cell(self, value: Value | None, nullable: bool = False) -> None:
        """Encode a table cell, with a presence byte for nullable columns."""
        if nullable:
            if value is None:
                self.write_u8(0)
                return
            self.write_u8(1)
        elif value is None:
            raise ValueError("Cannot encode a null cell in a non-nullable column")
        self.write_value(value)

    def write_tag(self, tag: TypeTag) -> None:
        """Encode a type tag (see module docstring for the layout)."""
        if isinstance(tag, PrimitiveTag):
            self.write_u8(tag.primitive.value)
            self.write_u8(0)
            return
        inner: TypeTag | None = tag
        while isinstance(inner, ArrayTag):
            self.write_u8(PrimitiveType.ARRAY.value)
            inner = inner.element
        if inner is None:
            raise ValueError("Cannot encode the tag of an empty array")
        self.write_u8(inner.kind.value)


class Decoder:
    """Reads encoded values from an in-memory buffer."""

    def __init__(self, data: bytes, max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH) -> None:
        self._data = memoryview(data)
        self._offset = 0
        self.max_nesting_depth = max_nesting_depth

    @property
    def position(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def at_end(self) -> bool:
        return self._offset >= len(self._data)

    def read(self, size: int) -> bytes:
        """Read exactly ``size`` bytes."""
        if size > self.remaining:
            raise DecodeError(
                f"Unexpected end of data at offset {self._offset}: "
                f"need {size} bytes, {self.remaining} left"
            )
        chunk = self._data[self._offset : self._offset + size].tobytes()
        self._offset += size
        return chunk

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_u64(self) -> int:
        return struct.unpack("<Q", self.read(8))[0]

    def read_string(self) -> str:
        width = self.read_u8()
        if width > MAX_LENGTH_BYTES:
            raise DecodeError(f"Invalid string length width {width} at offset {self._offset - 1}")
        length = int.from_bytes(self.read(width), "little")
        payload = self.read(length)
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Invalid UTF-8 in string payload: {exc}") from exc

    def read_value(self, tag: TypeTag) -> Value:
        """Decode one value of type ``tag``."""
        if isinstance(tag, ArrayTag):
            if tag.element is None:
                raise DecodeError("Cannot decode an array without an element type")
            count = self.read_u64()
            # Every element takes at least one byte
            if count > self.remaining:
                raise DecodeError(
                    f"Array length {count} exceeds remaining {self.remaining} bytes"
                )
            elements = tuple(self.read_value(tag.element) for _ in range(count))
            return Value(PrimitiveType.ARRAY, elements)

        kind = tag.kind
        if kind is PrimitiveType.STRING:
            return Value(kind, self.read_string())
        if kind is PrimitiveType.BOOL:
            byte = self.read_u8()
            if byte not in (0, 1):
                raise DecodeError(f"Invalid bool byte {byte} at offset {self._offset - 1}")
            return Value(kind, byte == 1)
        raw = struct.unpack(kind.struct_format, self.read(kind.size_bytes))[0]  # type: ignore[arg-type]
        if kind is PrimitiveType.CHAR:
            if raw > 0x10FFFF or 0xD800 <= raw <= 0xDFFF:
                raise DecodeError(f"Invalid char code point {raw:#x}")
            raw = chr(raw)
        try:
            return Value(kind, raw)
        except TypeMismatchError as exc:
            raise DecodeError(str(exc)) from exc

    def read_cell(self, tag: TypeTag, nullable: bool = False) -> Value | None:
        """Decode a table cell written by ``Encoder.write_cell``."""
        if nullable:
            present = self.read_u8()
            if present == 0:
                return None
            if present != 1:
                raise DecodeError(f"Invalid presence byte {present}")
        return self.read_value(tag)

    def read_tag(self) -> TypeTag:
        """Decode a type tag."""
        base = self._read_kind()
        if base is not PrimitiveType.ARRAY:
            second = self.read_u8()
            if second != 0:
                raise DecodeError(f"Invalid inner type byte {second} for {base.type_name}")
            return PrimitiveTag(base)

        depth = 1
        inner = self._read_kind()
        while inner is PrimitiveType.ARRAY:
            depth += 1
            if depth > self.max_nesting_depth:
                raise DecodeError(f"Array nesting deeper than {self.max_nesting_depth}")
            inner = self._read_kind()
        tag: TypeTag = PrimitiveTag(inner)
        for _ in range(depth):
            tag = ArrayTag(tag)
        return tag

    def _read_kind(self) -> PrimitiveType:
        code = self.read_u8()
        try:
            return PrimitiveType(code)
        except ValueError:
            raise DecodeError(f"Unknown type code {code} at offset {self._offset - 1}") from None


def encode_value(value: Value) -> bytes:
    """Encode a single value."""
    encoder = Encoder()
    encoder.write_value(value)
    return encoder.getvalue()


def decode_value(data: bytes, tag: TypeTag) -> Value:
    """Decode a single value of type ``tag`` that must span all of ``data``."""
    decoder = Decoder(data)
    value = decoder.read_value(tag)
    if not decoder.at_end():
        raise DecodeError(f"{decoder.remaining} trailing bytes after value")
    return value


def encode_tag(tag: TypeTag) -> bytes:
    encoder = Encoder()
    encoder.write_tag(tag)
    return encoder.getvalue()


def decode_tag(data: bytes) -> TypeTag:
    decoder = Decoder(data)
    tag = decoder.read_tag()
    if not decoder.at_end():
        raise DecodeError(f"{decoder.remaining} trailing bytes after type tag")
    return tag
