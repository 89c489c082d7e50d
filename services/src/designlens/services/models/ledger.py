"""Design, version, and job records persisted by the ledger."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "Design",
    "DesignCreateRequest",
    "DesignVersion",
    "EvaluationJob",
    "JobStatus",
    "RevertRequest",
    "VersionStatus",
]

VersionStatus = Literal["pending", "ongoing", "done", "error"]
JobStatus = Literal["started", "ongoing", "done", "error"]


class Design(BaseModel):
    """Mutable pointer to the active version of a design."""

    id: str
    title: str
    owner_id: str | None = None
    file_key: str | None = None
    node_id: str | None = None
    figma_url: str | None = None
    current_version_id: str | None = None
    created_at: str
    updated_at: str


class DesignVersion(BaseModel):
    """Append-only snapshot of one evaluation run."""

    id: str
    design_id: str
    version: int = Field(ge=1)
    file_key: str | None = None
    node_id: str | None = None
    thumbnail_url: str | None = None
    total_score: int | None = None
    summary: str | None = None
    snapshot: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    created_at: str
    updated_at: str
    status: VersionStatus = "pending"


class EvaluationJob(BaseModel):
    job_id: str
    progress: int = Field(default=0, ge=0, le=100)
    status: JobStatus = "started"
    updated_at: str | None = None


class DesignCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    owner_id: str | None = Field(default=None, max_length=128)
    figma_url: str | None = Field(default=None, max_length=2048)
    file_key: str | None = Field(default=None, max_length=128)
    node_id: str | None = Field(default=None, max_length=128)


class RevertRequest(BaseModel):
    """Target of a revert, by version id or by per-design version number."""

    model_config = ConfigDict(extra="forbid")

    version_id: str | None = Field(default=None, min_length=1, max_length=128)
    version: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _require_target(self) -> "RevertRequest":
        if self.version_id is None and self.version is None:
            raise ValueError("Provide either version_id or version.")
        return self
