"""WCAG contrast scoring for normalized frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Sequence

from .models.document import RGBA, WHITE, Frame, FrameChild, ShapeNode, TextNode
from .rounding import round_half_up

LOGGER = logging.getLogger(__name__)

LARGE_TEXT_SIZE: Final[float] = 18.0
LARGE_BOLD_TEXT_SIZE: Final[float] = 14.0

__all__ = [
    "ContrastGrade",
    "average_score",
    "classify_contrast",
    "contrast_ratio",
    "is_large_text",
    "relative_luminance",
    "resolve_background",
    "score_frame",
    "score_text",
]


@dataclass(frozen=True)
class ContrastGrade:
    score: int
    level: str


def _linearize(channel: float) -> float:
    channel = max(0.0, min(1.0, channel))
    if channel <= 0.03928:
        return channel / 12.92
    return ((channel + 0.055) / 1.055) ** 2.4


def relative_luminance(color: RGBA) -> float:
    """Return the WCAG relative luminance of an sRGB colour."""

    return (
        0.2126 * _linearize(color.r)
        + 0.7152 * _linearize(color.g)
        + 0.0722 * _linearize(color.b)
    )


def contrast_ratio(foreground: RGBA, background: RGBA) -> float:
    """Return the WCAG contrast ratio, rounded to two decimals."""

    first = relative_luminance(foreground)
    second = relative_luminance(background)
    lighter, darker = max(first, second), min(first, second)
    return round((lighter + 0.05) / (darker + 0.05), 2)


def is_large_text(font_size: float, bold: bool) -> bool:
    return font_size >= LARGE_TEXT_SIZE or (bold and font_size >= LARGE_BOLD_TEXT_SIZE)


def classify_contrast(ratio: float, large_text: bool) -> ContrastGrade:
    """Map a contrast ratio onto the compliance table."""

    if ratio >= 7.0:
        return ContrastGrade(100, "AAA")
    if ratio >= 4.5:
        return ContrastGrade(90, "AA")
    if ratio >= 3.0 and large_text:
        return ContrastGrade(70, "AA-Large")
    if ratio >= 1.5:
        return ContrastGrade(50, "Low-Contrast")
    return ContrastGrade(0, "Fail")


def resolve_background(frame: Frame, index: int) -> RGBA:
    """Resolve the effective background of the text child at ``index``.

    Shapes painted before the text are scanned topmost first; the first one
    with a fill whose box contains the text centre wins. This is a sibling
    order heuristic, not a geometric z-order composite.
    """

    text = frame.children[index]
    if not isinstance(text, TextNode) or text.bounding_box is None:
        return frame.background or WHITE
    cx, cy = text.bounding_box.center
    for candidate in reversed(frame.children[:index]):
        if not isinstance(candidate, ShapeNode) or candidate.fill is None:
            continue
        if candidate.bounding_box.contains(cx, cy):
            return candidate.fill
    return frame.background or WHITE


def score_text(text: TextNode, background: RGBA) -> TextNode:
    """Return a scored copy of ``text`` against ``background``."""

    ratio = contrast_ratio(text.color, background)
    grade = classify_contrast(ratio, is_large_text(text.font_size, text.bold))
    return text.model_copy(
        update={
            "contrast_ratio": ratio,
            "contrast_score": grade.score,
            "wcag_level": grade.level,
        }
    )


def average_score(texts: Sequence[TextNode]) -> int:
    """Return the rounded mean contrast score, or 0 for a frame without text."""

    scores = [text.contrast_score for text in texts if text.contrast_score is not None]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def score_frame(frame: Frame) -> Frame:
    """Return a copy of ``frame`` with every text node scored."""

    children: list[FrameChild] = []
    for index, child in enumerate(frame.children):
        if isinstance(child, TextNode):
            children.append(score_text(child, resolve_background(frame, index)))
        else:
            children.append(child)
    texts = [child for child in children if isinstance(child, TextNode)]
    scored = frame.model_copy(
        update={"children": children, "average_contrast_score": average_score(texts)}
    )
    LOGGER.debug(
        "contrast.frame_scored",
        extra={
            "extra_payload": {
                "frame_id": frame.id,
                "text_count": len(texts),
                "average_score": scored.average_contrast_score,
            }
        },
    )
    return scored
