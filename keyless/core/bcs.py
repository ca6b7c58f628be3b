"""Binary canonical serialization (BCS) for keyless types.

Only the subset used by keyless keys, signatures and JWKs is covered:
ULEB128 lengths and enum tags, little-endian fixed-width integers,
length-prefixed byte strings, UTF-8 strings and ``Option<T>``.
"""

from collections.abc import Callable
from typing import Self, TypeVar

T = TypeVar("T")

MAX_U8 = 2**8 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1


class BcsError(ValueError):
    """Raised for malformed or truncated BCS input."""


class Serializer:
    """Accumulates BCS-encoded bytes."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)

    def serialize_uleb128(self, value: int) -> None:
        if value < 0 or value > MAX_U32:
            msg = f"ULEB128 value out of range: {value}"
            raise BcsError(msg)
        while value >= 0x80:
            self._buffer.append((value & 0x7F) | 0x80)
            value >>= 7
        self._buffer.append(value)

    def _serialize_int(self, value: int, length: int, maximum: int) -> None:
        if value < 0 or value > maximum:
            msg = f"Integer {value} does not fit in {length} bytes"
            raise BcsError(msg)
        self._buffer.extend(value.to_bytes(length, "little"))

    def serialize_u8(self, value: int) -> None:
        self._serialize_int(value, 1, MAX_U8)

    def serialize_u32(self, value: int) -> None:
        self._serialize_int(value, 4, MAX_U32)

    def serialize_u64(self, value: int) -> None:
        self._serialize_int(value, 8, MAX_U64)

    def serialize_bool(self, value: bool) -> None:
        self.serialize_u8(1 if value else 0)

    def serialize_fixed_bytes(self, value: bytes) -> None:
        self._buffer.extend(value)

    def serialize_bytes(self, value: bytes) -> None:
        self.serialize_uleb128(len(value))
        self._buffer.extend(value)

    def serialize_str(self, value: str) -> None:
        self.serialize_bytes(value.encode("utf-8"))

    def serialize_option(
        self, value: T | None, serialize_fn: Callable[["Serializer", T], None]
    ) -> None:
        """Write ``0x00`` for absent values, ``0x01`` followed by the value otherwise."""
        if value is None:
            self.serialize_u8(0)
            return
        self.serialize_u8(1)
        serialize_fn(self, value)


class Deserializer:
    """Reads BCS values from a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0

    def remaining(self) -> int:
        return len(self._data) - self._offset

    def assert_finished(self) -> None:
        if self.remaining() != 0:
            msg = f"{self.remaining()} trailing bytes after BCS value"
            raise BcsError(msg)

    def _read(self, length: int) -> bytes:
        if length > self.remaining():
            msg = f"Unexpected end of input: wanted {length}, have {self.remaining()}"
            raise BcsError(msg)
        chunk = self._data[self._offset : self._offset + length]
        self._offset += length
        return chunk

    def deserialize_uleb128(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = self._read(1)[0]
            value |= (byte & 0x7F) << shift
            if value > MAX_U32:
                msg = "ULEB128 value overflows u32"
                raise BcsError(msg)
            if byte & 0x80 == 0:
                return value
            shift += 7

    def deserialize_u8(self) -> int:
        return self._read(1)[0]

    def deserialize_u32(self) -> int:
        return int.from_bytes(self._read(4), "little")

    def deserialize_u64(self) -> int:
        return int.from_bytes(self._read(8), "little")

    def deserialize_bool(self) -> bool:
        value = self.deserialize_u8()
        if value not in (0, 1):
            msg = f"Invalid bool byte: {value}"
            raise BcsError(msg)
        return value == 1

    def deserialize_fixed_bytes(self, length: int) -> bytes:
        return self._read(length)

    def deserialize_bytes(self) -> bytes:
        return self._read(self.deserialize_uleb128())

    def deserialize_str(self) -> str:
        raw = self.deserialize_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise BcsError("String is not valid UTF-8") from e

    def deserialize_option(
        self, deserialize_fn: Callable[["Deserializer"], T]
    ) -> T | None:
        tag = self.deserialize_u8()
        if tag == 0:
            return None
        if tag != 1:
            msg = f"Invalid option tag: {tag}"
            raise BcsError(msg)
        return deserialize_fn(self)


class BcsSerializable:
    """Mixin for types with a canonical BCS encoding."""

    def serialize(self, serializer: Serializer) -> None:
        raise NotImplementedError

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        raise NotImplementedError

    def bcs_to_bytes(self) -> bytes:
        serializer = Serializer()
        self.serialize(serializer)
        return serializer.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """Decode a complete value, rejecting trailing bytes."""
        deserializer = Deserializer(data)
        value = cls.deserialize(deserializer)
        deserializer.assert_finished()
        return value
