"""Normalize raw design document trees into typed frames."""

from __future__ import annotations

import logging
import re
from typing import Any, Collection, Iterable, Iterator, Mapping

from pydantic import ValidationError

from .models.document import (
    BLACK,
    WHITE,
    Frame,
    FrameChild,
    RGBA,
    RawNode,
    ShapeNode,
    TextNode,
)

LOGGER = logging.getLogger(__name__)

MIN_FRAME_SIZE = 100.0
BOLD_WEIGHT = 700.0
EXCLUDED_FRAME_NAME = re.compile(r"icon|avatar|logo|button|text", re.IGNORECASE)
CONTAINER_TYPES = frozenset({"DOCUMENT", "CANVAS", "SECTION"})
FALLBACK_FRAME_TYPES = frozenset({"FRAME", "COMPONENT", "INSTANCE"})

__all__ = [
    "collect_frame_ids",
    "document_roots",
    "find_parent_frame",
    "frame_background",
    "is_frame_candidate",
    "is_theme_relevant",
    "iter_frame_nodes",
    "normalize_document",
    "normalize_frame",
    "parse_raw_node",
]


def parse_raw_node(payload: Any) -> RawNode | None:
    """Parse an upstream node payload into a :class:`RawNode`.

    Nodes without a ``type`` tag, or whose known fields fail validation, are
    dropped together with their subtree. Malformed children are skipped while
    their valid siblings are kept.
    """

    if not isinstance(payload, Mapping):
        return None
    node_type = payload.get("type")
    if not isinstance(node_type, str) or not node_type:
        LOGGER.debug(
            "normalizer.node_skipped",
            extra={"extra_payload": {"node_id": payload.get("id"), "reason": "missing_type"}},
        )
        return None

    raw_children = payload.get("children")
    children: list[RawNode] = []
    if isinstance(raw_children, list):
        for child_payload in raw_children:
            child = parse_raw_node(child_payload)
            if child is not None:
                children.append(child)

    fields = {key: value for key, value in payload.items() if key != "children"}
    fields.setdefault("id", "")
    fields["children"] = children
    try:
        return RawNode.model_validate(fields)
    except ValidationError as exc:
        LOGGER.debug(
            "normalizer.node_skipped",
            extra={
                "extra_payload": {
                    "node_id": payload.get("id"),
                    "reason": "invalid_fields",
                    "errors": exc.error_count(),
                }
            },
        )
        return None


def document_roots(payload: Mapping[str, Any]) -> list[RawNode]:
    """Return the parsed roots of a file or node-subtree response.

    Accepts a file response (``{"document": ...}``), a node response
    (``{"nodes": {id: {"document": ...}}}``), or a bare node.
    """

    candidates: list[Any] = []
    nodes = payload.get("nodes")
    if isinstance(nodes, Mapping):
        for entry in nodes.values():
            if isinstance(entry, Mapping):
                candidates.append(entry.get("document"))
    elif "document" in payload:
        candidates.append(payload.get("document"))
    else:
        candidates.append(payload)

    roots: list[RawNode] = []
    for candidate in candidates:
        root = parse_raw_node(candidate)
        if root is not None:
            roots.append(root)
    return roots


def is_frame_candidate(node: RawNode) -> bool:
    """Return whether ``node`` qualifies as a top-level frame."""

    if node.type != "FRAME" or not node.visible:
        return False
    box = node.bounding_box
    if box is not None and (box.width < MIN_FRAME_SIZE or box.height < MIN_FRAME_SIZE):
        return False
    return not EXCLUDED_FRAME_NAME.search(node.name or "")


def is_theme_relevant(name: str, theme_keywords: Collection[str]) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in theme_keywords)


def iter_frame_nodes(roots: Iterable[RawNode]) -> Iterator[RawNode]:
    """Yield qualifying frames in depth-first document order.

    Traversal descends through document, canvas, and section containers only;
    a qualifying frame is not searched for nested frames.
    """

    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        if is_frame_candidate(node):
            yield node
            continue
        if node.type in CONTAINER_TYPES:
            stack.extend(reversed(node.children))


def _has_text_descendant(node: RawNode) -> bool:
    return any(child.type == "TEXT" for child in node.iter_descendants())


def collect_frame_ids(
    roots: Iterable[RawNode],
    *,
    theme_keywords: Collection[str] = (),
) -> tuple[list[str], list[str]]:
    """Return ids of frames worth evaluating and the subset that is theme-relevant.

    Frames must contain at least one text node. When nothing qualifies, the
    selection broadens to every frame, component, or instance reachable
    through containers.
    """

    root_list = list(roots)
    selected = [node for node in iter_frame_nodes(root_list) if _has_text_descendant(node)]
    if not selected:
        selected = list(_iter_fallback_nodes(root_list))
        LOGGER.info(
            "normalizer.frame_fallback",
            extra={"extra_payload": {"fallback_count": len(selected)}},
        )
    ids = [node.id for node in selected]
    themed = [node.id for node in selected if is_theme_relevant(node.name, theme_keywords)]
    return ids, themed


def _iter_fallback_nodes(roots: Iterable[RawNode]) -> Iterator[RawNode]:
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        if node.type in FALLBACK_FRAME_TYPES and node.visible:
            yield node
            continue
        if node.type in CONTAINER_TYPES:
            stack.extend(reversed(node.children))


def find_parent_frame(roots: Iterable[RawNode], node_id: str) -> RawNode | None:
    """Return the nearest FRAME ancestor of ``node_id`` (or the node itself)."""

    def _search(node: RawNode, frame: RawNode | None) -> RawNode | None:
        current = node if node.type == "FRAME" else frame
        if node.id == node_id:
            return current
        for child in node.children:
            found = _search(child, current)
            if found is not None:
                return found
        return None

    for root in roots:
        match = _search(root, None)
        if match is not None:
            return match
    return None


def _first_solid(paints: Iterable[Any]) -> RGBA | None:
    for paint in paints:
        if paint.visible and paint.type == "SOLID" and paint.color is not None:
            return paint.color
    return None


def frame_background(node: RawNode) -> RGBA:
    """Resolve a frame's own background: fills, then background colour, then background paints."""

    return (
        _first_solid(node.fills)
        or node.background_color
        or _first_solid(node.background)
        or WHITE
    )


def _text_node(node: RawNode) -> TextNode | None:
    if not node.characters or node.style is None:
        return None
    style = node.style
    weight = style.font_weight if style.font_weight is not None else 400.0
    return TextNode(
        id=node.id,
        name=node.name,
        text=node.characters,
        font_size=style.font_size if style.font_size is not None else 0.0,
        font_weight=weight,
        font_family=style.font_family,
        bold=weight >= BOLD_WEIGHT,
        color=node.solid_fill() or BLACK,
        bounding_box=node.bounding_box,
    )


def _flatten(node: RawNode, depth: int) -> Iterator[FrameChild]:
    for child in node.children:
        if not child.visible:
            continue
        if child.type == "TEXT":
            text = _text_node(child)
            if text is not None:
                yield text
            continue
        if child.bounding_box is not None:
            yield ShapeNode(
                id=child.id,
                name=child.name,
                node_type=child.type,
                depth=depth,
                bounding_box=child.bounding_box,
                fill=child.solid_fill(),
            )
        yield from _flatten(child, depth + 1)


def normalize_frame(node: RawNode, *, theme_keywords: Collection[str] = ()) -> Frame:
    """Flatten a frame subtree into ordered text and shape children."""

    return Frame(
        id=node.id,
        name=node.name,
        bounding_box=node.bounding_box,
        background=frame_background(node),
        children=list(_flatten(node, 1)),
        themed=is_theme_relevant(node.name, theme_keywords),
    )


def normalize_document(
    payload: Mapping[str, Any] | RawNode,
    *,
    theme_keywords: Collection[str] = (),
) -> list[Frame]:
    """Normalize a design document into its qualifying frames."""

    roots = [payload] if isinstance(payload, RawNode) else document_roots(payload)
    frames = [
        normalize_frame(node, theme_keywords=theme_keywords) for node in iter_frame_nodes(roots)
    ]
    LOGGER.debug(
        "normalizer.completed",
        extra={"extra_payload": {"frame_count": len(frames)}},
    )
    return frames
