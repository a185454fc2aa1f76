"""
Primitive writers for the binary markup stream.

All multi-byte integers are little-endian. Strings are UTF-8 and every length
counts encoded bytes:

- standard string:  u8 length + bytes   (at most 255 bytes)
- long string:      u32 length + bytes  (at most the caller's `max_len`)

When a string is longer than its cap the sink applies its `OverflowPolicy`:
ERROR raises `ValueTooLong`, TRUNCATE cuts at the last whole UTF-8 character
that fits, so a truncated value is always decodable and at most 3 bytes short
of the cap.
"""

from __future__ import annotations

import struct
from typing import BinaryIO, Optional, Protocol, Union

from ..config import OverflowPolicy, U32_MAX
from ..errors import InvalidNode, SinkWriteError, ValueTooLong
from ..logging import get_logger

log = get_logger(__name__)

STRING_MAX = 0xFF

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")


class RawWriter(Protocol):
    """Anything with a binary `write(data)`; files, BytesIO, sub-streams."""

    def write(self, data: bytes) -> Optional[int]: ...


class BinarySink:
    """
    Typed writes over a raw binary writer.

    Every raw write failure (`OSError`) is re-raised as `SinkWriteError` with
    the original exception chained; nothing is retried.
    """

    __slots__ = ("raw", "overflow", "bytes_written", "truncations")

    def __init__(
        self,
        raw: Union[RawWriter, BinaryIO],
        *,
        overflow: OverflowPolicy = OverflowPolicy.ERROR,
    ) -> None:
        self.raw = raw
        self.overflow = OverflowPolicy.parse(overflow)
        self.bytes_written = 0
        self.truncations = 0

    # ---------------- raw ----------------

    def write_bytes(self, data: bytes) -> None:
        if not data:
            return
        try:
            self.raw.write(data)
        except OSError as e:
            raise SinkWriteError(
                "write to underlying stream failed",
                offset=self.bytes_written,
                size=len(data),
                reason=str(e),
            ) from e
        self.bytes_written += len(data)

    # ---------------- integers ----------------

    def write_u8(self, value: int) -> None:
        self.write_bytes(_U8.pack(value))

    def write_bool(self, value: bool) -> None:
        self.write_u8(1 if value else 0)

    def write_u32(self, value: int) -> None:
        if not (0 <= value <= U32_MAX):
            raise InvalidNode("integer does not fit in u32", value=value)
        self.write_bytes(_U32.pack(value))

    # ---------------- strings ----------------

    def write_string(self, value: str, *, what: str = "string") -> None:
        """u8 length prefix; at most 255 encoded bytes."""
        data = self._bounded(value, STRING_MAX, what)
        self.write_bytes(_U8.pack(len(data)) + data)

    def write_long_string(self, max_len: int, value: str, *, what: str = "value") -> None:
        """u32 length prefix; at most `max_len` encoded bytes."""
        data = self._bounded(value, max_len, what)
        self.write_bytes(_U32.pack(len(data)) + data)

    def _bounded(self, value: str, max_len: int, what: str) -> bytes:
        data = value.encode("utf-8")
        if len(data) <= max_len:
            return data
        if self.overflow is OverflowPolicy.ERROR:
            raise ValueTooLong(limit=max_len, observed=len(data), what=what)
        cut = max_len
        # Back off over continuation bytes (0b10xxxxxx) to a character start.
        while cut > 0 and data[cut] & 0xC0 == 0x80:
            cut -= 1
        self.truncations += 1
        log.warning(
            "truncating %s to %d bytes",
            what,
            cut,
            extra={"observed": len(data), "limit": max_len},
        )
        return data[:cut]


__all__ = ["BinarySink", "RawWriter", "STRING_MAX"]
