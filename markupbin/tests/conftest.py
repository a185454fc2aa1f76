from __future__ import annotations

import io

import pytest

from markupbin.model import FieldValuePair, WriteNode


class FailingWriter:
    """Raw writer that accepts `budget` bytes, then raises OSError."""

    def __init__(self, budget: int) -> None:
        self.budget = budget
        self.buf = bytearray()

    def write(self, data: bytes) -> int:
        if len(self.buf) + len(data) > self.budget:
            raise OSError(28, "No space left on device")
        self.buf += data
        return len(data)


@pytest.fixture
def out() -> io.BytesIO:
    return io.BytesIO()


@pytest.fixture
def scene() -> WriteNode:
    """Group with a full Sprite child and an alias to it."""
    root = WriteNode("Group", ref_id=1)
    sprite = root.add_child(
        WriteNode("Sprite", ref_id=2, fields=[FieldValuePair("x", "10")])
    )
    root.add_child(WriteNode.alias_of(sprite))
    return root
