#!/usr/bin/env python3

"""Bounds-checked positional reader over DWARF section bytes.

Every read either returns the full value or raises TruncatedDataError; a
cursor never hands back partial data. Offset-valued attributes (string
offsets, references) are followed on a fresh cursor obtained with fork(), so
the position of the cursor walking a unit only moves forward.
"""

from .errors import TruncatedDataError


class ByteCursor:
    """Reader with explicit endianness and an optional end bound.

    Args:
        data: Underlying bytes (typically a whole section)
        offset: Initial read position
        little_endian: Byte order for fixed-width integers
        end: Exclusive upper bound for reads (defaults to len(data))
    """

    def __init__(
        self,
        data: bytes,
        offset: int = 0,
        little_endian: bool = True,
        end: int | None = None,
    ) -> None:
        self._data = data
        self._end = len(data) if end is None else min(end, len(data))
        self._pos = offset
        self.little_endian = little_endian
        self._byteorder = "little" if little_endian else "big"

    @property
    def position(self) -> int:
        """Current absolute read position."""
        return self._pos

    @property
    def end(self) -> int:
        return self._end

    @property
    def remaining(self) -> int:
        return max(0, self._end - self._pos)

    def at_end(self) -> bool:
        return self._pos >= self._end

    def fork(self, offset: int, end: int | None = None) -> "ByteCursor":
        """Return a fresh cursor over the same data positioned at offset."""
        return ByteCursor(self._data, offset, self.little_endian, end)

    def _take(self, size: int, what: str = "read") -> bytes:
        if size < 0 or self._pos < 0 or self._pos + size > self._end:
            raise TruncatedDataError(self._pos, size, self._end, what)
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return bytes(chunk)

    def read_bytes(self, size: int) -> bytes:
        return self._take(size, "byte block read")

    def skip(self, size: int) -> None:
        self._take(size, "skip")

    def peek_u8(self) -> int:
        if self._pos < 0 or self._pos >= self._end:
            raise TruncatedDataError(self._pos, 1, self._end, "peek")
        return self._data[self._pos]

    def read_uint(self, size: int) -> int:
        """Read an unsigned integer of size bytes (1, 2, 3, 4 or 8 in practice)."""
        if size <= 0:
            raise ValueError(f"Unsupported integer size: {size}")
        return int.from_bytes(self._take(size), self._byteorder)

    def read_sint(self, size: int) -> int:
        """Read a signed (two's complement) integer of size bytes."""
        if size <= 0:
            raise ValueError(f"Unsupported integer size: {size}")
        return int.from_bytes(self._take(size), self._byteorder, signed=True)

    def u8(self) -> int:
        return self.read_uint(1)

    def u16(self) -> int:
        return self.read_uint(2)

    def u32(self) -> int:
        return self.read_uint(4)

    def u64(self) -> int:
        return self.read_uint(8)

    def s8(self) -> int:
        return self.read_sint(1)

    def s16(self) -> int:
        return self.read_sint(2)

    def s32(self) -> int:
        return self.read_sint(4)

    def s64(self) -> int:
        return self.read_sint(8)

    def uleb128(self) -> int:
        """Decode an unsigned LEB128 value."""
        start = self._pos
        result = 0
        shift = 0
        while True:
            if self._pos >= self._end:
                raise TruncatedDataError(start, self._pos - start + 1, self._end, "ULEB128 read")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                return result

    def sleb128(self) -> int:
        """Decode a signed LEB128 value, sign-extending from the last group."""
        start = self._pos
        result = 0
        shift = 0
        while True:
            if self._pos >= self._end:
                raise TruncatedDataError(start, self._pos - start + 1, self._end, "SLEB128 read")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                break
        if byte & 0x40:
            result -= 1 << shift
        return result

    def cstring(self) -> bytes:
        """Read a null-terminated string, returning it without the terminator."""
        terminator = self._data.find(b"\x00", self._pos, self._end)
        if self._pos < 0 or terminator < 0:
            raise TruncatedDataError(self._pos, self.remaining + 1, self._end, "string read")
        value = bytes(self._data[self._pos : terminator])
        self._pos = terminator + 1
        return value


def encode_uleb128(value: int) -> bytes:
    """Encode a non-negative integer as minimal-length unsigned LEB128."""
    if value < 0:
        raise ValueError(f"ULEB128 cannot encode negative value {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_sleb128(value: int) -> bytes:
    """Encode an integer as minimal-length signed LEB128."""
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        done = (value == 0 and not byte & 0x40) or (value == -1 and byte & 0x40)
        if done:
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)
