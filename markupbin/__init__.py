"""
markupbin package.

Binary encoder for markup object graphs: objects with named attributes,
ordered children and custom data, where shared objects are written once and
referenced elsewhere through alias records.

    from markupbin import WriteNode, encode

    root = WriteNode("Group", ref_id=1)
    sprite = root.add_child(WriteNode("Sprite", ref_id=2).add_field("x", 10))
    root.add_child(WriteNode.alias_of(sprite))
    blob = encode(root, compressed=True)
"""

from __future__ import annotations

from .version import __version__
from .config import OverflowPolicy, WriterConfig, load_config
from .errors import (
    InvalidNode,
    InvalidReferenceTarget,
    MarkupError,
    SinkWriteError,
    ValueTooLong,
)
from .model import (
    CompositeCustomNode,
    CustomField,
    FieldValuePair,
    ProxyCustomNode,
    WriteNode,
)
from .encoding import BinaryWriter, WriteStats, encode, write, write_file


def get_version() -> str:
    """Return the semantic version string for this package."""
    return __version__


__all__ = [
    "__version__",
    "get_version",
    "OverflowPolicy",
    "WriterConfig",
    "load_config",
    "MarkupError",
    "InvalidNode",
    "InvalidReferenceTarget",
    "SinkWriteError",
    "ValueTooLong",
    "WriteNode",
    "FieldValuePair",
    "CustomField",
    "ProxyCustomNode",
    "CompositeCustomNode",
    "BinaryWriter",
    "WriteStats",
    "encode",
    "write",
    "write_file",
]
