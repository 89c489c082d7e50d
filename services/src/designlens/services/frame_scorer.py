"""Deterministic category scores for a scored frame."""

from __future__ import annotations

from collections import Counter
from statistics import median
from typing import Final, Iterable, Mapping

from .contrast import average_score
from .models.document import Frame
from .models.evaluation import CategoryJustifications, FrameScores
from .rounding import round_half_up

MIN_BODY_FONT_SIZE: Final[float] = 16.0
MIN_TAP_TARGET: Final[float] = 44.0
GRID_UNIT: Final[int] = 8
TAP_TARGET_TYPES: Final[frozenset[str]] = frozenset(
    {"RECTANGLE", "ELLIPSE", "FRAME", "COMPONENT", "INSTANCE", "VECTOR"}
)
CATEGORY_WEIGHTS: Final[dict[str, float]] = {
    "color": 0.30,
    "typography": 0.20,
    "usability": 0.20,
    "layout": 0.15,
    "hierarchy": 0.15,
}

__all__ = ["CATEGORY_WEIGHTS", "heuristic_context", "score_categories"]


def _percentage(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100)


def _color(frame: Frame) -> tuple[int, str]:
    texts = frame.text_nodes
    if not texts:
        return 100, "No text to evaluate for contrast."
    score = average_score(texts)
    failing = sum(1 for text in texts if (text.contrast_score or 0) < 90)
    return score, f"{failing} of {len(texts)} text layers fall below WCAG AA contrast."


def _typography(frame: Frame) -> tuple[int, str]:
    texts = frame.text_nodes
    if not texts:
        return 100, "No text layers found."
    readable = sum(1 for text in texts if text.font_size >= MIN_BODY_FONT_SIZE)
    return (
        _percentage(readable, len(texts)),
        f"{readable} of {len(texts)} text layers are at least {MIN_BODY_FONT_SIZE:g}px.",
    )


def _usability(frame: Frame) -> tuple[int, str]:
    targets = [
        shape
        for shape in frame.shape_nodes
        if shape.depth == 1 and shape.node_type in TAP_TARGET_TYPES
    ]
    if not targets:
        return 100, "No direct interactive shapes found."
    sized = sum(
        1
        for shape in targets
        if shape.bounding_box.width >= MIN_TAP_TARGET and shape.bounding_box.height >= MIN_TAP_TARGET
    )
    return (
        _percentage(sized, len(targets)),
        f"{sized} of {len(targets)} direct elements meet the {MIN_TAP_TARGET:g}x{MIN_TAP_TARGET:g} tap target.",
    )


def _layout(frame: Frame) -> tuple[int, str]:
    positions = [text.bounding_box.x for text in frame.text_nodes if text.bounding_box is not None]
    if len(positions) < 2:
        return 100, "Too few text layers to judge alignment."
    buckets = Counter(round_half_up(x / GRID_UNIT) for x in positions)
    aligned = buckets.most_common(1)[0][1]
    return (
        _percentage(aligned, len(positions)),
        f"{aligned} of {len(positions)} text layers share the dominant {GRID_UNIT}px column.",
    )


def _hierarchy(frame: Frame) -> tuple[int, str]:
    sizes = sorted({text.font_size for text in frame.text_nodes})
    if not sizes:
        return 100, "No text layers found."
    if len(sizes) == 1:
        return 40, "A single font size gives no typographic hierarchy."
    ratio = min(3.0, max(sizes) / median(sizes))
    score = max(50, round_half_up(ratio / 3 * 100))
    return score, f"{len(sizes)} distinct font sizes; largest is {ratio:.2f}x the median."


def score_categories(frame: Frame) -> FrameScores:
    """Compute category scores for a frame whose text nodes are already scored."""

    color, color_note = _color(frame)
    typography, typography_note = _typography(frame)
    usability, usability_note = _usability(frame)
    layout, layout_note = _layout(frame)
    hierarchy, hierarchy_note = _hierarchy(frame)
    values = {
        "color": color,
        "typography": typography,
        "usability": usability,
        "layout": layout,
        "hierarchy": hierarchy,
    }
    overall = round_half_up(sum(values[name] * weight for name, weight in CATEGORY_WEIGHTS.items()))
    return FrameScores(
        frame_id=frame.id,
        overall=overall,
        justifications=CategoryJustifications(
            color=color_note,
            typography=typography_note,
            usability=usability_note,
            layout=layout_note,
            hierarchy=hierarchy_note,
        ),
        **values,
    )


def heuristic_context(
    scores: Iterable[FrameScores],
    accessibility: Mapping[str, int],
) -> dict[str, int]:
    """Average category scores over frames for the critique prompt."""

    collected = list(scores)
    if not collected:
        return {}
    context: dict[str, int] = {}
    for name in (*CATEGORY_WEIGHTS, "overall"):
        context[name] = round_half_up(sum(getattr(item, name) for item in collected) / len(collected))
    if accessibility:
        context["accessibility"] = round_half_up(sum(accessibility.values()) / len(accessibility))
    return context
