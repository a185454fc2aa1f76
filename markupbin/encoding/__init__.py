"""
markupbin.encoding
==================

Binary encoding surface:

- stream.py:   BinarySink primitives (u8/u32/bool, bounded strings)
- compress.py: raw-DEFLATE sub-stream and its scoped lifecycle
- header.py:   signature/version/compression-flag header
- writer.py:   element, attribute, children and custom-node encoders
"""

from __future__ import annotations

from .compress import DeflateSubStream, optional_compression
from .header import DEFAULT_VERSION_ID, SIGNATURE, write_header
from .stream import STRING_MAX, BinarySink
from .writer import (
    ATTRIBUTE_VALUE_MAX,
    CUSTOM_FIELD_VALUE_MAX,
    BinaryWriter,
    WriteStats,
    encode,
    write,
    write_file,
)

__all__ = [
    "BinarySink",
    "STRING_MAX",
    "DeflateSubStream",
    "optional_compression",
    "SIGNATURE",
    "DEFAULT_VERSION_ID",
    "write_header",
    "ATTRIBUTE_VALUE_MAX",
    "CUSTOM_FIELD_VALUE_MAX",
    "BinaryWriter",
    "WriteStats",
    "write",
    "encode",
    "write_file",
]
