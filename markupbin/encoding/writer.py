"""
Binary writer for markup object graphs.

Layout of one element record (see also `header.py` and `stream.py`):

    className      string
    objectName     string (empty if none)
    refId          u32
    refToId        u32   -- nonzero: alias, the record ends here
    attributeCount u32, then (name string, value long string <= 4096) * count
    childCount     u32, then element records
    customCount    u32, then custom-node records

Custom-node record:

    name     string
    isProxy  bool
    proxy:     one element record
    composite: childCount u32, custom-node records,
               fieldCount u32, (name string, value long string <= 8192) * count

Traversal is pre-order over an explicit work stack, so nesting depth is
bounded by memory rather than the interpreter's recursion limit.
"""

from __future__ import annotations

import io
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from ..config import OverflowPolicy, U32_MAX, WriterConfig
from ..errors import InvalidNode, InvalidReferenceTarget, SinkWriteError, wrap
from ..logging import get_logger
from ..model import (
    CompositeCustomNode,
    CustomField,
    CustomNode,
    FieldValuePair,
    ProxyCustomNode,
    WriteNode,
)
from .compress import optional_compression
from .header import DEFAULT_VERSION_ID, write_header
from .stream import BinarySink, RawWriter

log = get_logger(__name__)

ATTRIBUTE_VALUE_MAX = 4096
CUSTOM_FIELD_VALUE_MAX = 8192

# Work-stack task kinds
_ELEMENT = 0
_FOREST = 1
_CUSTOM = 2
_CUSTOM_FIELDS = 3

_Task = Tuple[int, object]


@dataclass
class WriteStats:
    elements: int = 0
    aliases: int = 0
    custom_nodes: int = 0
    truncations: int = 0
    bytes_written: int = 0
    compressed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class BinaryWriter:
    """
    Encodes a resolved `WriteNode` tree.

    The writer holds settings only; it keeps no state between calls and never
    mutates the tree.
    """

    def __init__(
        self,
        version_id: int = DEFAULT_VERSION_ID,
        *,
        overflow: Union[OverflowPolicy, str] = OverflowPolicy.ERROR,
        compression_level: int = -1,
    ) -> None:
        if not (0 <= version_id <= U32_MAX):
            raise InvalidNode("version id does not fit in u32", version_id=version_id)
        self.version_id = version_id
        self.overflow = OverflowPolicy.parse(overflow)
        self.compression_level = compression_level

    @classmethod
    def from_config(cls, cfg: WriterConfig) -> "BinaryWriter":
        return cls(
            cfg.version_id,
            overflow=cfg.overflow,
            compression_level=cfg.compression_level,
        )

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    def write(
        self,
        stream: Union[RawWriter, BinaryIO],
        node: WriteNode,
        compressed: bool = False,
    ) -> WriteStats:
        """Write header and root element to `stream`."""
        stats = WriteStats(compressed=bool(compressed))
        base = BinarySink(stream, overflow=self.overflow)

        log.debug(
            "encode start",
            extra={"root": node.class_name, "compressed": bool(compressed)},
        )

        write_header(base, self.version_id, bool(compressed))
        with optional_compression(base, compressed, level=self.compression_level) as sink:
            self.write_element(sink, node, stats)
        if sink is not base:
            stats.truncations += sink.truncations
        stats.truncations += base.truncations
        stats.bytes_written = base.bytes_written

        log.debug("encode done", extra=stats.to_dict())
        return stats

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def write_element(
        self, sink: BinarySink, node: WriteNode, stats: Optional[WriteStats] = None
    ) -> None:
        self._run(sink, [(_ELEMENT, node)], stats or WriteStats())

    def write_attributes(self, sink: BinarySink, fields: Sequence[FieldValuePair]) -> None:
        sink.write_u32(len(fields))
        if not fields:
            return
        for pair in fields:
            sink.write_string(pair.name, what="attribute name")
            sink.write_long_string(
                ATTRIBUTE_VALUE_MAX, pair.value, what=f"attribute '{pair.name}'"
            )

    def write_children(
        self,
        sink: BinarySink,
        children: Optional[Sequence[WriteNode]],
        stats: Optional[WriteStats] = None,
    ) -> None:
        stack: List[_Task] = []
        self._push_children(sink, children, stack)
        self._run(sink, stack, stats or WriteStats())

    # ------------------------------------------------------------------
    # Custom nodes
    # ------------------------------------------------------------------

    def write_custom_nodes(
        self,
        sink: BinarySink,
        forest: Sequence[CustomNode],
        stats: Optional[WriteStats] = None,
    ) -> None:
        self._run(sink, [(_FOREST, forest)], stats or WriteStats())

    def write_custom_node(
        self,
        sink: BinarySink,
        node: CustomNode,
        stats: Optional[WriteStats] = None,
    ) -> None:
        self._run(sink, [(_CUSTOM, node)], stats or WriteStats())

    def write_custom_fields(self, sink: BinarySink, fields: Sequence[CustomField]) -> None:
        sink.write_u32(len(fields))
        for f in fields:
            sink.write_string(f.name, what="custom field name")
            sink.write_long_string(
                CUSTOM_FIELD_VALUE_MAX, f.value, what=f"custom field '{f.name}'"
            )

    # ------------------------------------------------------------------
    # Work stack
    # ------------------------------------------------------------------

    def _run(self, sink: BinarySink, stack: List[_Task], stats: WriteStats) -> None:
        while stack:
            kind, item = stack.pop()
            if kind == _ELEMENT:
                self._element(sink, item, stack, stats)  # type: ignore[arg-type]
            elif kind == _FOREST:
                forest: Sequence[CustomNode] = item  # type: ignore[assignment]
                sink.write_u32(len(forest))
                stack.extend((_CUSTOM, c) for c in reversed(forest))
            elif kind == _CUSTOM:
                self._custom(sink, item, stack, stats)  # type: ignore[arg-type]
            else:
                self.write_custom_fields(sink, item)  # type: ignore[arg-type]

    def _element(
        self, sink: BinarySink, node: WriteNode, stack: List[_Task], stats: WriteStats
    ) -> None:
        if not isinstance(node, WriteNode):
            raise InvalidNode("expected a WriteNode", got=type(node).__name__)
        if not node.class_name:
            raise InvalidNode("class name is required", object_name=node.object_name)
        if not (0 <= node.ref_id <= U32_MAX):
            raise InvalidNode(
                "ref id does not fit in u32",
                class_name=node.class_name,
                ref_id=node.ref_id,
            )
        ref_to_id = _alias_target_id(node)

        sink.write_string(node.class_name, what="class name")
        sink.write_string(node.object_name or "", what="object name")
        sink.write_u32(node.ref_id)
        sink.write_u32(ref_to_id)
        stats.elements += 1

        if ref_to_id:
            stats.aliases += 1
            return

        self.write_attributes(sink, node.fields)
        # Custom forest goes after every child record.
        stack.append((_FOREST, node.custom_nodes))
        self._push_children(sink, node.children, stack)

    def _push_children(
        self,
        sink: BinarySink,
        children: Optional[Sequence[WriteNode]],
        stack: List[_Task],
    ) -> None:
        if children is None:
            sink.write_u32(0)
            return
        sink.write_u32(len(children))
        stack.extend((_ELEMENT, c) for c in reversed(children))

    def _custom(
        self, sink: BinarySink, node: CustomNode, stack: List[_Task], stats: WriteStats
    ) -> None:
        if isinstance(node, ProxyCustomNode):
            sink.write_string(node.name, what="custom node name")
            sink.write_bool(True)
            stats.custom_nodes += 1
            stack.append((_ELEMENT, node.element))
            return
        if isinstance(node, CompositeCustomNode):
            sink.write_string(node.name, what="custom node name")
            sink.write_bool(False)
            stats.custom_nodes += 1
            sink.write_u32(len(node.children))
            stack.append((_CUSTOM_FIELDS, node.fields))
            stack.extend((_CUSTOM, c) for c in reversed(node.children))
            return
        raise InvalidNode("unknown custom node type", got=type(node).__name__)


def _alias_target_id(node: WriteNode) -> int:
    if node.ref_to_target is None:
        return 0
    target = node.ref_to_target()
    if target is None:
        raise InvalidReferenceTarget(
            "alias target no longer exists",
            class_name=node.class_name,
            ref_id=node.ref_id,
        )
    if target.ref_id == 0:
        raise InvalidReferenceTarget(
            class_name=node.class_name,
            ref_id=node.ref_id,
            target_class=target.class_name,
        )
    if not (0 < target.ref_id <= U32_MAX):
        raise InvalidNode(
            "alias target ref id does not fit in u32",
            class_name=node.class_name,
            target_ref_id=target.ref_id,
        )
    return target.ref_id


# ----------------------------------------------------------------------
# Convenience entry points
# ----------------------------------------------------------------------


def write(
    stream: Union[RawWriter, BinaryIO],
    node: WriteNode,
    compressed: bool = False,
    **writer_kw,
) -> WriteStats:
    return BinaryWriter(**writer_kw).write(stream, node, compressed)


def encode(node: WriteNode, compressed: bool = False, **writer_kw) -> bytes:
    """Encode `node` into an in-memory byte string."""
    buf = io.BytesIO()
    write(buf, node, compressed, **writer_kw)
    return buf.getvalue()


def write_file(
    path: Union[str, Path],
    node: WriteNode,
    compressed: bool = False,
    **writer_kw,
) -> WriteStats:
    p = Path(path).expanduser()
    try:
        fh = open(p, "wb")
    except OSError as e:
        raise wrap(e, as_=SinkWriteError, path=str(p)) from e
    with fh:
        return write(fh, node, compressed, **writer_kw)


__all__ = [
    "ATTRIBUTE_VALUE_MAX",
    "CUSTOM_FIELD_VALUE_MAX",
    "BinaryWriter",
    "WriteStats",
    "write",
    "encode",
    "write_file",
]
