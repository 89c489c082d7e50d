"""Tests for frame selection and flattening of raw design documents."""

from __future__ import annotations

from designlens.services.models.document import BLACK, ShapeNode, TextNode
from designlens.services.normalizer import (
    collect_frame_ids,
    document_roots,
    find_parent_frame,
    normalize_document,
)

from design_fixtures import document, frame, rect, text, three_screen_document


def test_only_visible_full_size_screens_qualify() -> None:
    hidden = {**frame("2:1", "Hidden draft", text("2:2", "Draft")), "visible": False}
    unbounded = frame("5:1", "Onboarding", text("5:2", "Hello"))
    del unbounded["absoluteBoundingBox"]
    payload = document(
        frame("1:1", "Home", text("1:2", "Welcome")),
        hidden,
        frame("3:1", "Narrow strip", text("3:2", "Tip"), width=80, height=400),
        frame("4:1", "App Icon", text("4:2", "A")),
        frame("6:1", "Avatar large", text("6:2", "JD")),
        frame("7:1", "Secondary button", text("7:2", "Go")),
        unbounded,
    )

    frames = normalize_document(payload)

    assert [item.id for item in frames] == ["1:1", "5:1"]
    assert frames[1].bounding_box is None


def test_node_without_type_is_skipped_but_siblings_survive() -> None:
    payload = document(
        frame(
            "1:1",
            "Home",
            text("1:2", "First"),
            {"id": "1:3", "name": "Broken", "children": [text("1:4", "Orphan")]},
            text("1:5", "Last", y=60),
        )
    )

    (home,) = normalize_document(payload)

    assert [node.text for node in home.text_nodes] == ["First", "Last"]


def test_empty_documents_produce_no_frames() -> None:
    assert normalize_document({}) == []
    assert normalize_document(document()) == []


def test_children_keep_source_order_and_text_defaults() -> None:
    unfilled = text("1:4", "Caption", y=120)
    unfilled["fills"] = []
    sizeless = text("1:5", "Footnote", y=160)
    sizeless["style"] = {"fontFamily": "Inter"}
    payload = document(
        frame(
            "1:1",
            "Home",
            text("1:2", "Title", font_size=32, font_weight=700),
            rect("1:3", "Card", y=80, width=300, height=200, fill=(0.9, 0.9, 0.9)),
            unfilled,
            sizeless,
        )
    )

    (home,) = normalize_document(payload)

    assert [(type(child).__name__, child.id) for child in home.children] == [
        ("TextNode", "1:2"),
        ("ShapeNode", "1:3"),
        ("TextNode", "1:4"),
        ("TextNode", "1:5"),
    ]
    title, card, caption, footnote = home.children
    assert isinstance(title, TextNode) and title.bold
    assert isinstance(card, ShapeNode) and card.fill is not None
    assert caption.color == BLACK
    assert footnote.font_size == 0


def test_collect_frame_ids_marks_themed_frames() -> None:
    payload = document(
        frame("1:1", "Home", text("1:2", "Welcome")),
        frame("2:1", "Checkout", text("2:2", "Pay")),
        frame("3:1", "Hero art", rect("3:2", "Shape", width=200, height=200)),
    )

    ids, themed = collect_frame_ids(document_roots(payload), theme_keywords=("home",))

    assert ids == ["1:1", "2:1"]
    assert themed == ["1:1"]


def test_collect_frame_ids_falls_back_without_text_frames() -> None:
    payload = document(
        frame("1:1", "Blank", rect("1:2", "Shape", width=200, height=200)),
        rect("2:1", "Card", width=300, height=300, node_type="COMPONENT"),
    )

    ids, themed = collect_frame_ids(document_roots(payload), theme_keywords=("home",))

    assert ids == ["1:1", "2:1"]
    assert themed == []


def test_find_parent_frame_walks_up_to_the_screen() -> None:
    roots = document_roots(three_screen_document())

    assert find_parent_frame(roots, "1:5").id == "1:1"
    assert find_parent_frame(roots, "2:1").id == "2:1"
    assert find_parent_frame(roots, "0:1") is None
    assert find_parent_frame(roots, "99:99") is None
