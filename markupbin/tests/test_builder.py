from __future__ import annotations

import json

import pytest

from markupbin.builder import build_tree, load_document
from markupbin.encoding import encode
from markupbin.errors import DocumentError
from markupbin.model import CompositeCustomNode, ProxyCustomNode

from ._reader import read_stream

SCENE = {
    "class": "Group",
    "name": "root",
    "id": 1,
    "fields": {"visible": True, "layer": 3},
    "children": [
        {"class": "Sprite", "id": 2, "fields": [["x", 10], ["y", "20"]]},
        {"class": "Sprite", "alias": 2},
        {"class": "Sprite", "alias": 4},
    ],
    "custom": [
        {"name": "Shapes", "proxy": {"class": "Circle", "id": 4, "fields": {"r": 1.5}}},
        {
            "name": "Points",
            "children": [{"name": "Point", "fields": {"x": 0}}],
            "fields": {"count": 1},
        },
    ],
}


def test_build_tree_shapes_nodes():
    root = build_tree(SCENE)
    assert root.class_name == "Group"
    assert root.object_name == "root"
    assert [(f.name, f.value) for f in root.fields] == [("visible", "1"), ("layer", "3")]

    sprite, alias, forward = root.children
    assert [(f.name, f.value) for f in sprite.fields] == [("x", "10"), ("y", "20")]
    assert alias.alias_target is sprite
    assert forward.alias_target is root.custom_nodes[0].element

    shapes, points = root.custom_nodes
    assert isinstance(shapes, ProxyCustomNode)
    assert isinstance(points, CompositeCustomNode)
    assert points.children[0].fields[0].value == "0"


def test_built_tree_encodes():
    decoded = read_stream(encode(build_tree(SCENE))).root
    assert [c.get("ref_to") for c in decoded["children"]] == [0, 2, 4]
    assert decoded["custom"][0]["proxy"]["fields"] == [("r", "1.5")]


def test_missing_children_key_means_no_collection():
    assert build_tree({"class": "Leaf"}).children is None
    assert build_tree({"class": "Leaf", "children": []}).children == []


@pytest.mark.parametrize(
    "doc, needle",
    [
        ([], "mapping"),
        ({"class": ""}, "class"),
        ({"class": "A", "bogus": 1}, "unknown element keys"),
        ({"class": "A", "id": -1}, "non-negative"),
        ({"class": "A", "id": "1"}, "integer"),
        ({"class": "A", "children": {}}, "children"),
        ({"class": "A", "fields": [["only-name"]]}, "[name, value]"),
        ({"class": "A", "fields": 3}, "fields"),
        ({"class": "A", "custom": [{"name": "p", "proxy": {"class": "B"}, "fields": {}}]}, "proxy"),
        ({"class": "A", "custom": [{"fields": {}}]}, "name"),
        (
            {"class": "A", "id": 1, "children": [
                {"class": "B", "alias": 1, "children": [{"class": "C"}], "fields": {"x": 1}},
            ]},
            "alias elements carry nothing else",
        ),
        ({"class": "A", "id": 1, "children": [{"class": "B", "alias": 1, "custom": []}]}, "carry nothing else"),
    ],
)
def test_malformed_documents(doc, needle):
    with pytest.raises(DocumentError) as ei:
        build_tree(doc)
    assert needle in ei.value.message


def test_duplicate_id():
    doc = {"class": "A", "id": 1, "children": [{"class": "B", "id": 1}]}
    with pytest.raises(DocumentError) as ei:
        build_tree(doc)
    assert ei.value.data["id"] == 1
    assert ei.value.data["at"] == "$.children[0]"


def test_alias_to_unknown_id():
    with pytest.raises(DocumentError) as ei:
        build_tree({"class": "A", "children": [{"class": "B", "alias": 9}]})
    assert ei.value.data["alias"] == 9


def test_load_json_and_yaml(tmp_path):
    j = tmp_path / "scene.json"
    j.write_text(json.dumps(SCENE), encoding="utf-8")
    y = tmp_path / "scene.yaml"
    y.write_text(
        "class: Group\n"
        "id: 1\n"
        "children:\n"
        "  - {class: Sprite, id: 2, fields: {x: 10}}\n"
        "  - {class: Sprite, alias: 2}\n",
        encoding="utf-8",
    )
    assert load_document(j)["class"] == "Group"
    root = build_tree(load_document(y))
    assert root.children[1].alias_target is root.children[0]


def test_load_errors(tmp_path):
    with pytest.raises(DocumentError):
        load_document(tmp_path / "missing.json")

    bad = tmp_path / "bad.yaml"
    bad.write_text("class: [unclosed\n", encoding="utf-8")
    with pytest.raises(DocumentError):
        load_document(bad)

    scalar = tmp_path / "scalar.json"
    scalar.write_text("42", encoding="utf-8")
    with pytest.raises(DocumentError):
        load_document(scalar)
