"""
markupbin.builder
=================

Build a resolved `WriteNode` tree from a plain document (JSON or YAML).

Element entry::

    class: Group          # required
    name: root            # optional object name
    id: 1                 # optional ref id (default 0)
    alias: 2              # optional; alias of the element whose id is 2
                          # (an alias entry carries no fields, children or custom)
    fields: {x: "10"}     # mapping or list of [name, value]
    children: [...]       # optional; omitted means "no child collection"
    custom:               # optional custom forest
      - name: Shapes
        proxy: {class: Circle}
      - name: Points
        children: [...]
        fields: {count: 3}

Ids and alias links are taken as written; nothing here detects sharing.
Aliases may point forward or backward in document order. The returned root
keeps every node alive, so the weak alias links stay valid while it is held.
"""

from __future__ import annotations

import json
import weakref
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple, Union

import yaml

from .errors import DocumentError
from .logging import get_logger
from .model import (
    CompositeCustomNode,
    CustomField,
    CustomNode,
    FieldValuePair,
    ProxyCustomNode,
    WriteNode,
)

log = get_logger(__name__)

_ELEMENT_KEYS = {"class", "name", "id", "alias", "fields", "children", "custom"}
_CUSTOM_KEYS = {"name", "proxy", "children", "fields"}


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentError("cannot read document", path=str(p), reason=str(e)) from e

    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            doc = yaml.safe_load(text)
        else:
            doc = json.loads(text)
    except (yaml.YAMLError, ValueError) as e:
        raise DocumentError("cannot parse document", path=str(p), reason=str(e)) from e

    if not isinstance(doc, dict):
        raise DocumentError("document root must be an element mapping", path=str(p))
    return doc


class _Builder:
    def __init__(self) -> None:
        self.by_id: Dict[int, WriteNode] = {}
        self.pending: List[Tuple[WriteNode, int, str]] = []

    def element(self, doc: Any, path: str) -> WriteNode:
        if not isinstance(doc, Mapping):
            raise DocumentError("element must be a mapping", at=path)
        unknown = set(doc) - _ELEMENT_KEYS
        if unknown:
            raise DocumentError("unknown element keys", at=path, keys=sorted(unknown))

        class_name = doc.get("class")
        if not isinstance(class_name, str) or not class_name:
            raise DocumentError("'class' must be a non-empty string", at=path)
        name = doc.get("name")
        if name is not None and not isinstance(name, str):
            raise DocumentError("'name' must be a string", at=path)

        ref_id = _int(doc.get("id", 0), f"{path}.id")
        node = WriteNode(class_name=class_name, object_name=name, ref_id=ref_id)

        if ref_id:
            if ref_id in self.by_id:
                raise DocumentError("duplicate id", at=path, id=ref_id)
            self.by_id[ref_id] = node

        if "alias" in doc:
            if any(k in doc for k in ("fields", "children", "custom")):
                raise DocumentError("alias elements carry nothing else", at=path)
            # Linked once every id in the document is known.
            self.pending.append((node, _int(doc["alias"], f"{path}.alias"), path))
            return node

        node.fields = [FieldValuePair(n, v) for n, v in _pairs(doc.get("fields"), f"{path}.fields")]

        children = doc.get("children")
        if children is not None:
            if not isinstance(children, list):
                raise DocumentError("'children' must be a list", at=path)
            node.children = [
                self.element(c, f"{path}.children[{i}]") for i, c in enumerate(children)
            ]

        node.custom_nodes = self.forest(doc.get("custom"), f"{path}.custom")
        return node

    def forest(self, docs: Any, path: str) -> List[CustomNode]:
        if docs is None:
            return []
        if not isinstance(docs, list):
            raise DocumentError("custom data must be a list", at=path)
        return [self.custom(d, f"{path}[{i}]") for i, d in enumerate(docs)]

    def custom(self, doc: Any, path: str) -> CustomNode:
        if not isinstance(doc, Mapping):
            raise DocumentError("custom node must be a mapping", at=path)
        unknown = set(doc) - _CUSTOM_KEYS
        if unknown:
            raise DocumentError("unknown custom node keys", at=path, keys=sorted(unknown))
        name = doc.get("name")
        if not isinstance(name, str):
            raise DocumentError("custom node 'name' must be a string", at=path)

        if "proxy" in doc:
            if "children" in doc or "fields" in doc:
                raise DocumentError("proxy custom nodes carry nothing else", at=path)
            return ProxyCustomNode(name, self.element(doc["proxy"], f"{path}.proxy"))

        return CompositeCustomNode(
            name,
            children=self.forest(doc.get("children"), f"{path}.children"),
            fields=[CustomField(n, v) for n, v in _pairs(doc.get("fields"), f"{path}.fields")],
        )

    def link(self) -> None:
        for node, target_id, path in self.pending:
            target = self.by_id.get(target_id)
            if target is None:
                raise DocumentError("alias to unknown id", at=path, alias=target_id)
            node.ref_to_target = weakref.ref(target)


def build_tree(doc: Mapping[str, Any]) -> WriteNode:
    """Turn a document mapping into a write tree with aliases linked."""
    b = _Builder()
    root = b.element(doc, "$")
    b.link()
    log.debug(
        "built write tree",
        extra={"root": root.class_name, "ids": len(b.by_id), "aliases": len(b.pending)},
    )
    return root


def _int(v: Any, path: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise DocumentError("expected an integer", at=path, value=v)
    if v < 0:
        raise DocumentError("expected a non-negative integer", at=path, value=v)
    return v


def _pairs(v: Any, path: str) -> List[Tuple[str, str]]:
    if v is None:
        return []
    if isinstance(v, Mapping):
        return [(str(k), _stringify(val)) for k, val in v.items()]
    if isinstance(v, list):
        out: List[Tuple[str, str]] = []
        for i, item in enumerate(v):
            if not isinstance(item, (list, tuple)) or len(item) != 2:
                raise DocumentError("field entries must be [name, value]", at=f"{path}[{i}]")
            out.append((str(item[0]), _stringify(item[1])))
        return out
    raise DocumentError("fields must be a mapping or a list of pairs", at=path)


def _stringify(v: Any) -> str:
    if isinstance(v, bool):
        return "1" if v else "0"
    if v is None:
        return ""
    return str(v)


__all__ = ["load_document", "build_tree"]
