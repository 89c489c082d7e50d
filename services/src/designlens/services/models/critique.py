"""Pydantic models for critique model output.

The critique model is an untrusted producer: every field is optional and
validators coerce values into range instead of rejecting the whole payload.
"""

from __future__ import annotations

import logging
import re
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..rounding import round_half_up

LOGGER = logging.getLogger(__name__)

Severity = Literal["low", "medium", "high"]

__all__ = [
    "CategoryScores",
    "CritiqueIssue",
    "CritiqueResource",
    "CritiqueResult",
    "REQUIRED_CRITIQUE_KEYS",
    "Severity",
]

REQUIRED_CRITIQUE_KEYS: tuple[str, ...] = ("overall_score", "summary", "issues")


def _clamp_score(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return round_half_up(max(0.0, min(100.0, number)))


def _coerce_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return []


class CritiqueIssue(BaseModel):
    """A single heuristic violation reported by the critique model."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    heuristic: str | None = None
    severity: Severity = "medium"
    message: str = ""
    suggestion: str | None = None

    _HEURISTIC_PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"(\d{1,2})")

    @model_validator(mode="before")
    @classmethod
    def _merge_suggestions(cls, data: Any) -> Any:
        """Fold the alternate ``suggestions`` field into ``suggestion``."""

        if not isinstance(data, dict):
            return data
        payload = dict(data)
        alternate = payload.pop("suggestions", None)
        if payload.get("suggestion") in (None, "", []) and alternate is not None:
            payload["suggestion"] = alternate
        suggestion = payload.get("suggestion")
        if isinstance(suggestion, (list, tuple)):
            payload["suggestion"] = "; ".join(str(item) for item in suggestion if item)
        return payload

    @field_validator("id", "message", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("heuristic", mode="before")
    @classmethod
    def _normalise_heuristic(cls, value: Any) -> str | None:
        if value is None:
            return None
        match = cls._HEURISTIC_PATTERN.search(str(value))
        if match is None:
            return None
        number = int(match.group(1))
        if not 1 <= number <= 10:
            return None
        return f"{number:02d}"

    @field_validator("severity", mode="before")
    @classmethod
    def _normalise_severity(cls, value: Any) -> str:
        candidate = str(value or "").strip().lower()
        if candidate in {"low", "medium", "high"}:
            return candidate
        return "medium"

    @field_validator("suggestion", mode="before")
    @classmethod
    def _stringify_suggestion(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class CategoryScores(BaseModel):
    model_config = ConfigDict(extra="ignore")

    accessibility: int | None = None
    typography: int | None = None
    color: int | None = None
    layout: int | None = None
    hierarchy: int | None = None
    usability: int | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int | None:
        return _clamp_score(value)


class CritiqueResource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    issue_id: str | None = None
    title: str = ""
    url: str | None = None
    description: str | None = None

    @field_validator("issue_id", "url", "description", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)


class CritiqueResult(BaseModel):
    """Canonical critique of one frame."""

    model_config = ConfigDict(extra="ignore")

    overall_score: int | None = None
    summary: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    issues: list[CritiqueIssue] = Field(default_factory=list)
    category_scores: CategoryScores = Field(default_factory=CategoryScores)
    resources: list[CritiqueResource] = Field(default_factory=list)

    @field_validator("overall_score", mode="before")
    @classmethod
    def _clamp_overall(cls, value: Any) -> int | None:
        return _clamp_score(value)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("strengths", "weaknesses", mode="before")
    @classmethod
    def _text_lists(cls, value: Any) -> list[str]:
        return _coerce_text_list(value)

    @field_validator("issues", "resources", mode="before")
    @classmethod
    def _object_lists(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        kept = [item for item in value if isinstance(item, dict)]
        if len(kept) != len(value):
            LOGGER.debug(
                "critique.entries_dropped",
                extra={"extra_payload": {"dropped": len(value) - len(kept)}},
            )
        return kept

    @field_validator("category_scores", mode="before")
    @classmethod
    def _scores_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}
