"""Accordion detection over the raw document tree."""

from __future__ import annotations

import re
from typing import Collection, Iterable

from ..models.detection import DetectedAccordion
from ..models.document import RawNode

ACCORDION_PATTERN = re.compile(r"accordion", re.IGNORECASE)

__all__ = ["accordion_label", "detect_accordions", "is_accordion"]


def is_accordion(node: RawNode) -> bool:
    if ACCORDION_PATTERN.search(node.name or ""):
        return True
    return node.component is not None and node.component.component_types == "Accordion"


def accordion_label(node: RawNode) -> str:
    """First direct text child with content, else the node name."""

    for child in node.children:
        if child.type == "TEXT" and child.characters and child.characters.strip():
            return child.characters.strip()
    return node.name


def detect_accordions(
    roots: Iterable[RawNode],
    *,
    frame_ids: Collection[str] = (),
) -> list[DetectedAccordion]:
    """Find accordions anywhere in the tree, in document order.

    Each element records the id of the enclosing candidate frame when one of
    ``frame_ids`` is an ancestor.
    """

    found: list[DetectedAccordion] = []
    frame_set = set(frame_ids)

    def _visit(node: RawNode, frame_id: str | None) -> None:
        if node.id in frame_set:
            frame_id = node.id
        if is_accordion(node):
            found.append(
                DetectedAccordion(
                    id=f"accordion-{node.id}",
                    label=accordion_label(node),
                    node_id=node.id,
                    node_name=node.name,
                    node_type=node.type,
                    frame_id=frame_id,
                )
            )
        for child in node.children:
            _visit(child, frame_id)

    for root in roots:
        _visit(root, None)
    return found
