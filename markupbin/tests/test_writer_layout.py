from __future__ import annotations

import struct

import pytest

from markupbin.encoding import BinarySink, BinaryWriter, encode, write_file
from markupbin.errors import SinkWriteError
from markupbin.encoding.header import SIGNATURE, write_header
from markupbin.model import (
    CompositeCustomNode,
    CustomField,
    FieldValuePair,
    ProxyCustomNode,
    WriteNode,
)

from ._reader import identity_bytes, read_stream, split_header

HEADER = b"\x04Taml" + struct.pack("<I", 1)


def _body(node: WriteNode) -> bytes:
    return split_header(encode(node))[3]


def test_header_layout(out):
    sink = BinarySink(out)
    write_header(sink, 7, True)
    assert out.getvalue() == b"\x04Taml" + struct.pack("<I", 7) + b"\x01"
    assert SIGNATURE == "Taml"


def test_plain_stream_starts_with_header():
    blob = encode(WriteNode("Empty"))
    assert blob.startswith(HEADER + b"\x00")


def test_empty_node_is_minimal():
    body = _body(WriteNode("Empty"))
    assert body == identity_bytes("Empty", "", 0, 0) + struct.pack("<III", 0, 0, 0)
    assert len(body) == 27


def test_absent_and_empty_children_encode_the_same():
    assert _body(WriteNode("Node", children=None)) == _body(WriteNode("Node", children=[]))


def test_object_name_is_written():
    body = _body(WriteNode("Node", object_name="player", ref_id=9))
    assert body.startswith(identity_bytes("Node", "player", 9, 0))


def test_attributes_keep_order():
    node = WriteNode(
        "Node",
        fields=[FieldValuePair("b", "2"), FieldValuePair("a", "1"), FieldValuePair("c", "")],
    )
    decoded = read_stream(encode(node)).root
    assert decoded["fields"] == [("b", "2"), ("a", "1"), ("c", "")]


def test_attribute_value_uses_u32_length():
    body = _body(WriteNode("N", fields=[FieldValuePair("x", "10")]))
    attrs = body[len(identity_bytes("N", "", 0, 0)):]
    assert attrs[:4] == struct.pack("<I", 1)
    assert attrs[4:6] == b"\x01x"
    assert attrs[6:10] == struct.pack("<I", 2)
    assert attrs[10:12] == b"10"


def test_group_sprite_alias_example(scene):
    decoded = read_stream(encode(scene)).root
    assert decoded["class"] == "Group"
    assert decoded["ref_id"] == 1
    assert len(decoded["children"]) == 2

    sprite, alias = decoded["children"]
    assert sprite == {
        "class": "Sprite",
        "name": "",
        "ref_id": 2,
        "ref_to": 0,
        "fields": [("x", "10")],
        "children": [],
        "custom": [],
    }
    assert alias == {"class": "Sprite", "name": "", "ref_id": 0, "ref_to": 2}


def test_alias_record_is_terminal():
    target = WriteNode("Texture", ref_id=5)
    alias = WriteNode.alias_of(target, object_name="again")
    # Content carried by an alias never reaches the stream.
    alias.fields.append(FieldValuePair("ignored", "1"))
    alias.add_child(WriteNode("Ignored"))
    alias.custom_nodes.append(CompositeCustomNode("ignored"))

    root = WriteNode("Root", children=[target, alias])
    body = _body(root)
    assert body.endswith(identity_bytes("Texture", "again", 0, 5) + struct.pack("<I", 0))


def test_children_before_custom_forest():
    root = WriteNode("Root")
    root.add_child(WriteNode("A"))
    root.add_custom(CompositeCustomNode("meta", fields=[CustomField("k", "v")]))
    decoded = read_stream(encode(root)).root
    assert [c["class"] for c in decoded["children"]] == ["A"]
    assert decoded["custom"] == [{"name": "meta", "children": [], "fields": [("k", "v")]}]


def test_custom_node_layout():
    composite = CompositeCustomNode(
        "Shape",
        children=[CompositeCustomNode("Point", fields=[CustomField("x", "1")])],
        fields=[CustomField("kind", "poly")],
    )
    root = WriteNode("Root", custom_nodes=[composite])
    body = _body(root)
    tail = body[len(identity_bytes("Root", "", 0, 0)) + 8:]
    expected = (
        struct.pack("<I", 1)
        + b"\x05Shape" + b"\x00"
        + struct.pack("<I", 1)
        + b"\x05Point" + b"\x00"
        + struct.pack("<I", 0)
        + struct.pack("<I", 1) + b"\x01x" + struct.pack("<I", 1) + b"1"
        + struct.pack("<I", 1) + b"\x04kind" + struct.pack("<I", 4) + b"poly"
    )
    assert tail == expected


def test_proxy_custom_node_embeds_element():
    embedded = WriteNode("Collision", ref_id=3, fields=[FieldValuePair("r", "2")])
    root = WriteNode("Root", custom_nodes=[ProxyCustomNode("Shapes", embedded)])
    decoded = read_stream(encode(root)).root
    assert decoded["custom"] == [
        {
            "name": "Shapes",
            "proxy": {
                "class": "Collision",
                "name": "",
                "ref_id": 3,
                "ref_to": 0,
                "fields": [("r", "2")],
                "children": [],
                "custom": [],
            },
        }
    ]


def test_stats_count_what_was_written(scene):
    scene.add_custom(ProxyCustomNode("extra", WriteNode("Extra")))
    scene.add_custom(CompositeCustomNode("meta", children=[CompositeCustomNode("inner")]))
    stats = BinaryWriter().write(_Sink(), scene)
    assert stats.elements == 4
    assert stats.aliases == 1
    assert stats.custom_nodes == 3
    assert stats.truncations == 0
    assert stats.compressed is False


def test_bytes_written_matches_stream(out, scene):
    stats = BinaryWriter(version_id=3).write(out, scene)
    assert stats.bytes_written == len(out.getvalue())
    assert read_stream(out.getvalue()).version == 3


def test_writer_does_not_mutate_tree(scene):
    before = repr(scene)
    encode(scene)
    encode(scene, compressed=True)
    assert repr(scene) == before


def test_component_methods_write_standalone(out):
    writer = BinaryWriter()
    sink = BinarySink(out)
    writer.write_children(sink, None)
    writer.write_custom_nodes(sink, [])
    writer.write_attributes(sink, [])
    assert out.getvalue() == b"\x00" * 12


def test_deep_nesting_does_not_recurse():
    depth = 20000
    root = WriteNode("L")
    node = root
    for _ in range(depth):
        node = node.add_child(WriteNode("L"))
    blob = encode(root)
    # Each level: identity (2+1+8) + attrs/children/custom counts (12).
    per_level = 3 + 8 + 12
    assert len(split_header(blob)[3]) == per_level * (depth + 1)


class _Sink:
    def write(self, data: bytes) -> int:
        return len(data)


def test_write_file(tmp_path, scene):
    dst = tmp_path / "scene.baml"
    stats = write_file(dst, scene, compressed=True)
    assert dst.read_bytes() == encode(scene, compressed=True)
    assert stats.bytes_written == dst.stat().st_size


def test_write_file_open_failure_keeps_cause(tmp_path, scene):
    dst = tmp_path / "missing" / "scene.baml"
    with pytest.raises(SinkWriteError) as ei:
        write_file(dst, scene)
    assert isinstance(ei.value.cause, FileNotFoundError)
    assert ei.value.data["path"] == str(dst)
