from __future__ import annotations

from types import SimpleNamespace

import pytest

from backend.app.services.raw_node import RawNode


class _ExplodingInfo:
    @property
    def view_count(self) -> int:
        raise RuntimeError("lazy parse failed")


def test_get_reads_mappings_attributes_and_indices() -> None:
    node = RawNode.wrap(
        {
            "basic_info": SimpleNamespace(title="Hello", thumbnail=[{"url": "a"}, {"url": "b"}]),
        }
    )

    assert node.get("basic_info", "title") == "Hello"
    assert node.get("basic_info", "thumbnail", 1, "url") == "b"
    assert node.get("basic_info", "thumbnail", -1, "url") == "b"
    assert node.get("basic_info", "thumbnail", 5, "url") is None
    assert node.get("missing", "deeper") is None
    assert node.has("basic_info", "title")
    assert not node.has("basic_info", "description")


def test_absent_nodes_are_falsy_and_wrap_is_idempotent() -> None:
    empty = RawNode.empty()
    assert not empty
    assert empty.is_absent
    assert empty.children("anything") == []

    node = RawNode.wrap({"a": 1})
    assert RawNode.wrap(node) is node
    assert RawNode(node).value == {"a": 1}


def test_private_attributes_and_methods_are_not_read() -> None:
    target = SimpleNamespace(_secret="hidden", name="visible", render=lambda: "x")
    node = RawNode.wrap(target)

    assert node.get("_secret") is None
    assert node.get("render") is None
    assert node.string("name") == "visible"


def test_text_handles_plain_strings_and_text_containers() -> None:
    node = RawNode.wrap(
        {
            "plain": "  Title  ",
            "boxed": {"text": "Boxed"},
            "simple": SimpleNamespace(simple_text="Simple"),
            "runs": {"runs": [{"text": "Part "}, {"text": "two"}, {"bold": True}]},
            "blank": "   ",
            "number": 7,
        }
    )

    assert node.text("plain") == "Title"
    assert node.text("boxed") == "Boxed"
    assert node.text("simple") == "Simple"
    assert node.text("runs") == "Part two"
    assert node.text("blank") is None
    assert node.text("number") is None


def test_scalar_coercions() -> None:
    node = RawNode.wrap({"count": "42", "flag": "yes", "bad": "n/a", "truth": True, "ratio": 3.9})

    assert node.integer("count") == 42
    assert node.integer("bad") is None
    assert node.integer("truth") is None
    assert node.integer("ratio") == 3
    assert node.boolean("flag") is True
    assert node.boolean("bad") is None
    assert node.string("count") == "42"
    assert node.string("ratio") is None


def test_children_skips_null_entries() -> None:
    node = RawNode.wrap({"tabs": [{"title": "Home"}, None, {"title": "Videos"}], "name": "abc"})

    assert [child.text("title") for child in node.children("tabs")] == ["Home", "Videos"]
    assert node.children("name") == []


def test_errors_from_underlying_objects_propagate() -> None:
    node = RawNode.wrap({"basic_info": _ExplodingInfo()})

    with pytest.raises(RuntimeError, match="lazy parse failed"):
        node.integer("basic_info", "view_count")
