"""Button detection, fanned out one worker per frame."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Sequence

from ..contrast import contrast_ratio
from ..models.detection import DetectedButton, StyleVariant
from ..models.document import RawNode
from .labels import has_button_like_name, normalize_label

LOGGER = logging.getLogger(__name__)

SHAPE_TYPES = frozenset({"FRAME", "RECTANGLE", "COMPONENT", "INSTANCE"})
ICON_TYPES = frozenset({"VECTOR", "ICON"})
OPAQUE_ALPHA = 0.5

__all__ = [
    "WorkerResult",
    "detect_buttons",
    "detect_buttons_in_frame",
    "infer_style_variant",
]


@dataclass(frozen=True)
class WorkerResult:
    """Outcome of one frame worker: its buttons, or the error it raised."""

    frame_id: str
    index: int
    elements: tuple[DetectedButton, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _text_descendants(node: RawNode) -> list[RawNode]:
    nodes = [node] if node.type == "TEXT" else []
    nodes.extend(
        child for child in node.iter_descendants() if child.type == "TEXT"
    )
    return [text for text in nodes if text.characters and text.characters.strip()]


def _has_icon(node: RawNode) -> bool:
    return node.type in ICON_TYPES or any(child.type in ICON_TYPES for child in node.iter_descendants())


def _has_opaque_fill(node: RawNode) -> bool:
    return any(
        paint.type == "SOLID" and paint.color is not None and paint.color.a > OPAQUE_ALPHA
        for paint in node.fills
    )


def infer_style_variant(node: RawNode, texts: Sequence[RawNode]) -> StyleVariant | None:
    has_fill = _has_opaque_fill(node)
    has_stroke = any(
        paint.type == "SOLID" and paint.color is not None and paint.color.a > OPAQUE_ALPHA
        for paint in node.strokes
    )
    if not texts and _has_icon(node):
        return "icon"
    if has_fill:
        return "solid"
    if has_stroke:
        return "outline"
    if any(paint.type == "SOLID" and paint.color is not None for paint in node.fills):
        return "ghost"
    if texts:
        return "text"
    return None


def _qualifies(node: RawNode, texts: Sequence[RawNode]) -> bool:
    if node.type == "TEXT":
        return False
    if node.component is not None and node.component.component_types == "Button":
        return True
    if node.accessibility is not None and node.accessibility.role == "button":
        return True
    if node.interaction is not None and node.interaction.is_interactive:
        return True
    if node.type in SHAPE_TYPES and len(texts) == 1 and _has_opaque_fill(node):
        return True
    return bool(texts) and has_button_like_name(normalize_label(node.name))


def _build_button(node: RawNode, texts: Sequence[RawNode], frame_id: str) -> DetectedButton:
    first_text = texts[0] if texts else None
    label = normalize_label(first_text.characters or "") if first_text else ""
    background = next(
        (paint.color for paint in node.fills if paint.type == "SOLID" and paint.color is not None),
        None,
    )
    text_color = first_text.solid_fill() if first_text else None
    ratio = contrast_ratio(text_color, background) if background and text_color else None
    return DetectedButton(
        id=f"button-{node.id}",
        label=label or normalize_label(node.name),
        node_id=node.id,
        node_name=node.name,
        node_type=node.type,
        frame_id=frame_id,
        background_color=background,
        text_color=text_color,
        contrast_ratio=ratio,
        style_variant=infer_style_variant(node, texts),
        has_icon=_has_icon(node),
        has_visible_boundary=bool(node.strokes or node.effects),
    )


def detect_buttons_in_frame(frame: RawNode) -> list[DetectedButton]:
    """Traverse one frame subtree and return its buttons in document order.

    The frame itself is never reported; nested buttons inside a detected
    button are still visited.
    """

    buttons: list[DetectedButton] = []
    stack = list(reversed(frame.children))
    while stack:
        node = stack.pop()
        if node.visible:
            texts = _text_descendants(node)
            if _qualifies(node, texts):
                buttons.append(_build_button(node, texts, frame.id))
        stack.extend(reversed(node.children))
    return buttons


def _run_worker(
    index: int,
    frame: RawNode,
    detector: Callable[[RawNode], list[DetectedButton]],
) -> WorkerResult:
    try:
        elements = detector(frame)
    except Exception as exc:  # noqa: BLE001 - isolate worker failures
        LOGGER.warning(
            "detector.worker_failed",
            extra={"extra_payload": {"frame_id": frame.id, "error": str(exc)}},
        )
        return WorkerResult(frame_id=frame.id, index=index, error=f"{type(exc).__name__}: {exc}")
    return WorkerResult(frame_id=frame.id, index=index, elements=tuple(elements))


def detect_buttons(
    frames: Sequence[RawNode],
    *,
    max_workers: int = 8,
    detector: Callable[[RawNode], list[DetectedButton]] = detect_buttons_in_frame,
) -> list[WorkerResult]:
    """Run one detection task per frame and join results by submission index.

    The pool never exceeds the number of frames. A failing task yields a
    :class:`WorkerResult` carrying its error while the other tasks complete.
    """

    if not frames:
        return []
    pool_size = max(1, min(len(frames), max_workers))
    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="detector") as executor:
        futures = [
            executor.submit(_run_worker, index, frame, detector)
            for index, frame in enumerate(frames)
        ]
        # Collected in submission order regardless of completion order.
        return [future.result() for future in futures]
