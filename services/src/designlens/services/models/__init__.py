"""Pydantic models for service IO."""

from .critique import CategoryScores, CritiqueIssue, CritiqueResource, CritiqueResult
from .detection import DetectedAccordion, DetectedButton, DetectedElement
from .document import RGBA, BoundingBox, Frame, RawNode, ShapeNode, TextNode
from .errors import ErrorResponse
from .evaluation import (
    EvaluationRequest,
    EvaluationStarted,
    FrameAccessibility,
    FrameEvaluation,
    FrameScores,
    PersonaSnapshot,
)
from .ledger import Design, DesignVersion, EvaluationJob

__all__ = [
    "BoundingBox",
    "CategoryScores",
    "CritiqueIssue",
    "CritiqueResource",
    "CritiqueResult",
    "Design",
    "DesignVersion",
    "DetectedAccordion",
    "DetectedButton",
    "DetectedElement",
    "ErrorResponse",
    "EvaluationJob",
    "EvaluationRequest",
    "EvaluationStarted",
    "Frame",
    "FrameAccessibility",
    "FrameEvaluation",
    "FrameScores",
    "PersonaSnapshot",
    "RGBA",
    "RawNode",
    "ShapeNode",
    "TextNode",
]
