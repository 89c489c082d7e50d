"""Evaluation request and result models."""

from __future__ import annotations

import re
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .critique import CritiqueResult
from .detection import DetectedElement
from .document import TextNode

__all__ = [
    "CategoryJustifications",
    "EvaluationRequest",
    "EvaluationStarted",
    "FrameAccessibility",
    "FrameEvaluation",
    "FrameScores",
    "FrameStatus",
    "ParseRequest",
    "PersonaSnapshot",
]

FrameStatus = Literal["done", "skipped"]


class CategoryJustifications(BaseModel):
    model_config = ConfigDict(frozen=True)

    color: str = ""
    typography: str = ""
    usability: str = ""
    layout: str = ""
    hierarchy: str = ""


class FrameScores(BaseModel):
    """Deterministic per-frame category scores."""

    model_config = ConfigDict(frozen=True)

    frame_id: str
    color: int
    typography: int
    usability: int
    layout: int
    hierarchy: int
    overall: int
    justifications: CategoryJustifications = Field(default_factory=CategoryJustifications)


class FrameAccessibility(BaseModel):
    model_config = ConfigDict(frozen=True)

    average_score: int = 0
    texts: list[TextNode] = Field(default_factory=list)


class PersonaSnapshot(BaseModel):
    """Caller-supplied context stored with a version and passed to the critique."""

    model_config = ConfigDict(extra="allow")

    age: str | int | None = None
    occupation: str | None = None


class FrameEvaluation(BaseModel):
    """Deterministic metrics joined with the critique of one frame."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    design_id: str
    version_id: str
    node_id: str
    frame_name: str
    frame_index: int
    status: FrameStatus
    thumbnail_url: str | None = None
    critique: CritiqueResult | None = None
    ai_error: str | None = None
    accessibility: FrameAccessibility = Field(default_factory=FrameAccessibility)
    frame_scores: FrameScores | None = None
    elements: list[DetectedElement] = Field(default_factory=list)
    snapshot: dict[str, Any] = Field(default_factory=dict)
    created_at: str = ""


class EvaluationRequest(BaseModel):
    """Request payload submitted to start an evaluation run."""

    model_config = ConfigDict(extra="forbid")

    design_id: str = Field(min_length=1, max_length=128)
    file_key: str | None = Field(default=None, max_length=128)
    node_id: str | None = Field(default=None, max_length=128)
    frame_ids: list[str] | None = None
    snapshot: PersonaSnapshot = Field(default_factory=PersonaSnapshot)
    created_by: str | None = Field(default=None, max_length=128)

    _ID_PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_-]+$")

    @field_validator("design_id")
    @classmethod
    def _validate_design_id(cls, value: str) -> str:
        if not cls._ID_PATTERN.fullmatch(value):
            raise ValueError("design_id may only include letters, digits, '_' or '-'.")
        return value

    @field_validator("frame_ids")
    @classmethod
    def _dedupe_frames(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        seen: set[str] = set()
        cleaned: list[str] = []
        for entry in value:
            candidate = entry.strip().replace("-", ":")
            if candidate and candidate not in seen:
                seen.add(candidate)
                cleaned.append(candidate)
        return cleaned or None


class EvaluationStarted(BaseModel):
    job_id: str
    design_id: str
    version_id: str
    version: int
    status: str


class ParseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1, max_length=2048)
