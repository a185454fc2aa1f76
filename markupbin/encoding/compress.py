"""
Compressing sub-stream layered over a base sink.

When the header's compression flag is set, every byte after the header is raw
DEFLATE (zlib, no zlib header/trailer, 32 KiB window). `DeflateSubStream`
mirrors an attach/write/detach lifecycle:

    sub = DeflateSubStream(level=6)
    sub.attach(base_sink)
    sub.write(b"...")
    sub.detach()          # flushes every pending byte into base_sink

`optional_compression()` scopes that lifecycle so detach runs exactly once on
every exit path.
"""

from __future__ import annotations

import zlib
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import CompressionError, MarkupError
from ..logging import get_logger
from .stream import BinarySink

log = get_logger(__name__)

# Raw DEFLATE stream: negative wbits drops the zlib header and adler32 trailer.
DEFLATE_WBITS = -zlib.MAX_WBITS

# Buffer small writes before handing them to the compressor.
_CHUNK = 64 * 1024


class DeflateSubStream:
    """
    Write-only raw-DEFLATE stream attached to a `BinarySink`.

    Bytes written here are buffered, compressed and forwarded to the base sink.
    Write errors on the base sink surface as `SinkWriteError`.
    """

    def __init__(self, level: int = -1) -> None:
        if not (-1 <= level <= 9):
            raise CompressionError("compression level must be -1 or 0..9", level=level)
        self.level = level
        self._base: Optional[BinarySink] = None
        self._comp = None
        self._pending = bytearray()
        self.raw_bytes = 0

    @property
    def attached(self) -> bool:
        return self._base is not None

    def attach(self, base: BinarySink) -> None:
        if self._base is not None:
            raise CompressionError("sub-stream is already attached")
        self._base = base
        self._comp = zlib.compressobj(self.level, zlib.DEFLATED, DEFLATE_WBITS)
        self._pending.clear()
        self.raw_bytes = 0

    def write(self, data: bytes) -> int:
        if self._base is None:
            raise CompressionError("write on a detached sub-stream")
        self._pending += data
        self.raw_bytes += len(data)
        if len(self._pending) >= _CHUNK:
            self._drain()
        return len(data)

    def detach(self) -> None:
        """Finish the DEFLATE stream and flush it into the base sink."""
        if self._base is None:
            raise CompressionError("sub-stream is not attached")
        base, comp = self._base, self._comp
        self._base = None
        self._comp = None
        try:
            out = comp.compress(bytes(self._pending)) + comp.flush(zlib.Z_FINISH)
        except zlib.error as e:
            raise CompressionError("deflate failed", reason=str(e)) from e
        finally:
            self._pending.clear()
        base.write_bytes(out)

    def _drain(self) -> None:
        try:
            out = self._comp.compress(bytes(self._pending))
        except zlib.error as e:
            raise CompressionError("deflate failed", reason=str(e)) from e
        self._pending.clear()
        self._base.write_bytes(out)


@contextmanager
def optional_compression(
    sink: BinarySink,
    enabled: bool,
    *,
    level: int = -1,
) -> Iterator[BinarySink]:
    """
    Yield the sink element records should be written to.

    Disabled: the base sink itself. Enabled: a sink over a `DeflateSubStream`
    attached to `sink` and detached on every exit. If the body raised, a
    failure while detaching is logged and the body's error propagates.
    The inner sink shares the base sink's overflow policy.
    """
    if not enabled:
        yield sink
        return

    sub = DeflateSubStream(level)
    sub.attach(sink)
    try:
        yield BinarySink(sub, overflow=sink.overflow)
    except BaseException:
        try:
            sub.detach()
        except MarkupError as e:
            log.warning("detach failed after an encode error", extra={"code": e.code.value})
        raise
    sub.detach()


__all__ = ["DeflateSubStream", "optional_compression", "DEFLATE_WBITS"]
