"""Interactive element detection: accordions and buttons."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, Sequence

from ..models.detection import DetectedAccordion, DetectedButton, DetectedElement
from ..models.document import RawNode
from ..normalizer import is_theme_relevant
from .accordions import detect_accordions
from .buttons import WorkerResult, detect_buttons, detect_buttons_in_frame
from .labels import COMMON_BUTTON_LABELS, normalize_label

LOGGER = logging.getLogger(__name__)

__all__ = [
    "COMMON_BUTTON_LABELS",
    "DetectionReport",
    "WorkerResult",
    "detect_accordions",
    "detect_buttons",
    "detect_buttons_in_frame",
    "detect_interactive_elements",
    "normalize_label",
]


@dataclass(frozen=True)
class DetectionReport:
    """Detected elements plus the per-worker failures that occurred."""

    buttons: tuple[DetectedButton, ...] = ()
    accordions: tuple[DetectedAccordion, ...] = ()
    failures: dict[str, str] = field(default_factory=dict)
    themed_frame_ids: tuple[str, ...] = ()

    @property
    def elements(self) -> list[DetectedElement]:
        return [*self.buttons, *self.accordions]

    def for_frame(self, frame_id: str) -> list[DetectedElement]:
        return [element for element in self.elements if element.frame_id == frame_id]


def detect_interactive_elements(
    roots: Sequence[RawNode],
    frames: Sequence[RawNode],
    *,
    theme_keywords: Collection[str] = (),
    max_workers: int = 8,
) -> DetectionReport:
    """Detect accordions across ``roots`` and buttons within each of ``frames``."""

    accordions = detect_accordions(roots, frame_ids=[frame.id for frame in frames])
    results = detect_buttons(frames, max_workers=max_workers)
    buttons: list[DetectedButton] = []
    failures: dict[str, str] = {}
    for result in results:
        if result.ok:
            buttons.extend(result.elements)
        else:
            failures[result.frame_id] = result.error or "unknown error"
    themed = tuple(
        frame.id for frame in frames if is_theme_relevant(frame.name, theme_keywords)
    )
    LOGGER.info(
        "detector.completed",
        extra={
            "extra_payload": {
                "frames": len(frames),
                "buttons": len(buttons),
                "accordions": len(accordions),
                "failed_workers": len(failures),
            }
        },
    )
    return DetectionReport(
        buttons=tuple(buttons),
        accordions=tuple(accordions),
        failures=failures,
        themed_frame_ids=themed,
    )
