"""SSH wire-format primitives (RFC 4251 section 5).

Only the types the agent protocol needs: byte, uint32, string and mpint.
"""

from __future__ import annotations

import struct


class WireError(ValueError):
    """Raised when a buffer does not hold the expected wire structure."""


def pack_uint32(value: int) -> bytes:
    """Encode an unsigned 32-bit big-endian integer."""
    return struct.pack(">I", value)


def pack_string(data: bytes) -> bytes:
    """Encode a length-prefixed byte string."""
    return struct.pack(">I", len(data)) + data


def pack_mpint(value: int) -> bytes:
    """Encode a non-negative integer as an SSH mpint.

    Zero is the empty string; a leading zero byte is added when the high
    bit of the first byte is set.
    """
    if value < 0:
        raise WireError("negative mpint values are not supported")
    if value == 0:
        return pack_string(b"")
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    if raw[0] & 0x80:
        raw = b"\x00" + raw
    return pack_string(raw)


class WireReader:
    """Sequential reader over an SSH wire buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0

    @property
    def remaining(self) -> int:
        """Number of unread bytes."""
        return len(self._data) - self._offset

    def _take(self, size: int) -> bytes:
        if size > self.remaining:
            raise WireError(
                f"truncated buffer: wanted {size} bytes, {self.remaining} left"
            )
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def read_byte(self) -> int:
        return self._take(1)[0]

    def read_uint32(self) -> int:
        return struct.unpack(">I", self._take(4))[0]

    def read_string(self) -> bytes:
        return self._take(self.read_uint32())

    def read_mpint(self) -> int:
        raw = self.read_string()
        if raw and raw[0] & 0x80:
            raise WireError("negative mpint values are not supported")
        return int.from_bytes(raw, "big")

    def expect_end(self) -> None:
        """Raise WireError if any bytes are left unread."""
        if self.remaining:
            raise WireError(f"{self.remaining} trailing bytes after message")
