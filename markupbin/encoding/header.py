"""Stream header: signature, format version and compression flag."""

from __future__ import annotations

from .stream import BinarySink

SIGNATURE = "Taml"
DEFAULT_VERSION_ID = 1


def write_header(sink: BinarySink, version_id: int, compressed: bool) -> None:
    sink.write_string(SIGNATURE, what="signature")
    sink.write_u32(version_id)
    sink.write_bool(compressed)


__all__ = ["SIGNATURE", "DEFAULT_VERSION_ID", "write_header"]
