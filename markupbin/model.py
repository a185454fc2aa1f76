"""
markupbin.model
===============

In-memory write tree consumed by the binary encoder.

A `WriteNode` is one object occurrence. Shared objects are serialized once;
every other occurrence is an *alias* node whose `ref_to_target` weakly points
at the node carrying the identity. Ids and alias links are assigned before
encoding and are only transcribed by the writer.

Custom data hangs off a node as a forest of custom nodes. A custom node is one
of two variants:

- `ProxyCustomNode`: wraps a full embedded `WriteNode`.
- `CompositeCustomNode`: ordered child custom nodes plus ordered fields.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class FieldValuePair:
    name: str
    value: str


@dataclass(frozen=True)
class CustomField:
    name: str
    value: str


@dataclass(eq=False)
class WriteNode:
    """
    One object in the write tree.

    `children` distinguishes "no collection" (None) from "empty collection";
    both encode as a zero count. Equality is identity so nodes can be used as
    dict keys while the tree is built.
    """

    class_name: str
    object_name: Optional[str] = None
    ref_id: int = 0
    ref_to_target: Optional["weakref.ReferenceType[WriteNode]"] = field(default=None, repr=False)
    fields: List[FieldValuePair] = field(default_factory=list)
    children: Optional[List["WriteNode"]] = None
    custom_nodes: List["CustomNode"] = field(default_factory=list)

    @classmethod
    def alias_of(
        cls,
        target: "WriteNode",
        *,
        class_name: Optional[str] = None,
        object_name: Optional[str] = None,
        ref_id: int = 0,
    ) -> "WriteNode":
        """Create an alias node denoting the same object as `target`."""
        return cls(
            class_name=class_name or target.class_name,
            object_name=object_name,
            ref_id=ref_id,
            ref_to_target=weakref.ref(target),
        )

    @property
    def is_alias(self) -> bool:
        return self.ref_to_target is not None

    @property
    def alias_target(self) -> Optional["WriteNode"]:
        """The aliased node, or None when not an alias or the target is gone."""
        return self.ref_to_target() if self.ref_to_target is not None else None

    def add_field(self, name: str, value: object) -> "WriteNode":
        self.fields.append(FieldValuePair(name, str(value)))
        return self

    def add_child(self, child: "WriteNode") -> "WriteNode":
        if self.children is None:
            self.children = []
        self.children.append(child)
        return child

    def add_custom(self, node: "CustomNode") -> "CustomNode":
        self.custom_nodes.append(node)
        return node

    def walk(self) -> Iterator["WriteNode"]:
        """Pre-order iteration over this node, its children and proxy elements."""
        stack: List[WriteNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.is_alias:
                continue
            pending: List[WriteNode] = list(node.children or ())
            for custom in _iter_custom(node.custom_nodes):
                if isinstance(custom, ProxyCustomNode):
                    pending.append(custom.element)
            stack.extend(reversed(pending))


@dataclass(eq=False)
class ProxyCustomNode:
    name: str
    element: WriteNode


@dataclass(eq=False)
class CompositeCustomNode:
    name: str
    children: List["CustomNode"] = field(default_factory=list)
    fields: List[CustomField] = field(default_factory=list)

    def add_field(self, name: str, value: object) -> "CompositeCustomNode":
        self.fields.append(CustomField(name, str(value)))
        return self

    def add_child(self, child: "CustomNode") -> "CustomNode":
        self.children.append(child)
        return child


CustomNode = Union[ProxyCustomNode, CompositeCustomNode]


def _iter_custom(forest: Sequence[CustomNode]) -> Iterator[CustomNode]:
    stack: List[CustomNode] = list(reversed(forest))
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, CompositeCustomNode):
            stack.extend(reversed(node.children))


def field_pairs(pairs: Sequence[Tuple[str, object]]) -> List[FieldValuePair]:
    """Convenience: [('x', 10), ...] -> [FieldValuePair('x', '10'), ...]."""
    return [FieldValuePair(str(n), str(v)) for n, v in pairs]


__all__ = [
    "WriteNode",
    "FieldValuePair",
    "CustomField",
    "ProxyCustomNode",
    "CompositeCustomNode",
    "CustomNode",
    "field_pairs",
]
