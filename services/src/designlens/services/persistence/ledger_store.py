"""JSON-file store for designs, versions, frame evaluations, and jobs."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from ..config import ServiceSettings
from ..models.evaluation import FrameEvaluation
from ..models.ledger import Design, DesignVersion, EvaluationJob
from .atomic import locked_path, read_json, write_json_atomic

LOGGER = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]{1,160}$")
ModelT = TypeVar("ModelT", bound=BaseModel)

__all__ = ["LedgerPersistence", "PersistenceError", "VersionConflictError"]


class PersistenceError(RuntimeError):
    """Raised when a ledger record cannot be written or read back."""


class VersionConflictError(PersistenceError):
    """Raised when a version number is already taken for a design."""


def _check_id(value: str, *, kind: str) -> str:
    if not _SAFE_ID.fullmatch(value) or value in {".", ".."}:
        raise PersistenceError(f"Invalid {kind} identifier: {value!r}")
    return value


class LedgerPersistence:
    """Persist ledger records beneath ``settings.data_dir``.

    Layout::

        designs/<design_id>/design.json
        designs/<design_id>/versions/<number>.json
        designs/<design_id>/evaluations/<version_id>/<seq>.json
        jobs/<job_id>.json
    """

    def __init__(self, *, settings: ServiceSettings) -> None:
        self._designs_root = settings.designs_dir
        self._jobs_root = settings.jobs_dir

    # designs -----------------------------------------------------------------

    def _design_dir(self, design_id: str) -> Path:
        return self._designs_root / _check_id(design_id, kind="design")

    def save_design(self, design: Design) -> None:
        self._write(self._design_dir(design.id) / "design.json", design)

    def load_design(self, design_id: str) -> Design | None:
        if not _SAFE_ID.fullmatch(design_id):
            return None
        path = self._design_dir(design_id) / "design.json"
        return self._read(path, Design)

    def list_design_ids(self) -> list[str]:
        if not self._designs_root.exists():
            return []
        return sorted(path.name for path in self._designs_root.iterdir() if path.is_dir())

    def update_design(self, design_id: str, mutate: Callable[[Design], Design]) -> Design:
        """Read-modify-write a design record as one locked step."""

        path = self._design_dir(design_id) / "design.json"
        with locked_path(path):
            current = self._read(path, Design)
            if current is None:
                raise PersistenceError(f"Design {design_id} does not exist")
            updated = mutate(current)
            self._write(path, updated)
        return updated

    # versions ----------------------------------------------------------------

    def _versions_dir(self, design_id: str) -> Path:
        return self._design_dir(design_id) / "versions"

    def versions_lock_path(self, design_id: str) -> Path:
        return self._versions_dir(design_id)

    def max_version(self, design_id: str) -> int:
        directory = self._versions_dir(design_id)
        if not directory.exists():
            return 0
        numbers = [int(path.stem) for path in directory.glob("*.json") if path.stem.isdigit()]
        return max(numbers, default=0)

    def insert_version(self, version: DesignVersion) -> str:
        """Insert a new version row and return its id."""

        path = self._versions_dir(version.design_id) / f"{version.version:06d}.json"
        with locked_path(path):
            if path.exists():
                raise VersionConflictError(
                    f"Version {version.version} already exists for design {version.design_id}"
                )
            self._write(path, version)
        LOGGER.info(
            "ledger.version_created",
            extra={
                "extra_payload": {
                    "design_id": version.design_id,
                    "version_id": version.id,
                    "version": version.version,
                }
            },
        )
        return version.id

    def update_version(
        self,
        design_id: str,
        version_id: str,
        mutate: Callable[[DesignVersion], DesignVersion],
    ) -> DesignVersion:
        current = self.find_version(design_id, version_id=version_id)
        if current is None:
            raise PersistenceError(f"Version {version_id} does not exist for design {design_id}")
        path = self._versions_dir(design_id) / f"{current.version:06d}.json"
        with locked_path(path):
            fresh = self._read(path, DesignVersion) or current
            updated = mutate(fresh)
            self._write(path, updated)
        return updated

    def list_versions(self, design_id: str) -> list[DesignVersion]:
        directory = self._versions_dir(design_id)
        if not directory.exists():
            return []
        versions: list[DesignVersion] = []
        for path in sorted(directory.glob("*.json")):
            record = self._read(path, DesignVersion)
            if record is not None:
                versions.append(record)
        return sorted(versions, key=lambda item: item.version)

    def find_version(
        self,
        design_id: str,
        *,
        version_id: str | None = None,
        number: int | None = None,
    ) -> DesignVersion | None:
        """Point query by version number or by version id within one design."""

        if number is not None:
            path = self._versions_dir(design_id) / f"{number:06d}.json"
            record = self._read(path, DesignVersion)
            if record is not None and (version_id is None or record.id == version_id):
                return record
            return None
        for record in self.list_versions(design_id):
            if record.id == version_id:
                return record
        return None

    # frame evaluations -------------------------------------------------------

    def _evaluations_dir(self, design_id: str, version_id: str) -> Path:
        return self._design_dir(design_id) / "evaluations" / _check_id(version_id, kind="version")

    def insert_frame_evaluation(self, evaluation: FrameEvaluation) -> str:
        """Append a frame evaluation row and return its id."""

        directory = self._evaluations_dir(evaluation.design_id, evaluation.version_id)
        with locked_path(directory):
            sequence = len(list(directory.glob("*.json"))) if directory.exists() else 0
            record_id = evaluation.id or uuid4().hex
            stored = evaluation.model_copy(update={"id": record_id})
            self._write(directory / f"{sequence:04d}.json", stored)
        return record_id

    def list_frame_evaluations(
        self, design_id: str, version_id: str | None = None
    ) -> list[FrameEvaluation]:
        """Return evaluations in insertion order, optionally for one version."""

        root = self._design_dir(design_id) / "evaluations"
        if version_id is not None:
            directories = [self._evaluations_dir(design_id, version_id)]
        else:
            order = {version.id: version.version for version in self.list_versions(design_id)}
            directories = sorted(
                (path for path in root.glob("*") if path.is_dir()),
                key=lambda path: order.get(path.name, 0),
            ) if root.exists() else []
        rows: list[FrameEvaluation] = []
        for directory in directories:
            if not directory.exists():
                continue
            for path in sorted(directory.glob("*.json")):
                record = self._read(path, FrameEvaluation)
                if record is not None:
                    rows.append(record)
        return rows

    # jobs --------------------------------------------------------------------

    def _job_path(self, job_id: str) -> Path:
        return self._jobs_root / f"{_check_id(job_id, kind='job')}.json"

    def save_job(self, job: EvaluationJob) -> None:
        self._write(self._job_path(job.job_id), job, durable=False)

    def update_job(
        self, job_id: str, mutate: Callable[[EvaluationJob | None], EvaluationJob]
    ) -> EvaluationJob:
        path = self._job_path(job_id)
        with locked_path(path):
            updated = mutate(self._read(path, EvaluationJob))
            self._write(path, updated, durable=False)
        return updated

    def load_job(self, job_id: str) -> EvaluationJob | None:
        if not _SAFE_ID.fullmatch(job_id):
            return None
        return self._read(self._job_path(job_id), EvaluationJob)

    # helpers -----------------------------------------------------------------

    def _write(self, path: Path, record: BaseModel, *, durable: bool = True) -> None:
        payload: dict[str, Any] = record.model_dump(mode="json")
        try:
            write_json_atomic(path, payload, durable=durable)
        except OSError as exc:
            raise PersistenceError(f"Failed to write {path.name}: {exc}") from exc

    def _read(self, path: Path, model: type[ModelT]) -> ModelT | None:
        if not path.exists():
            return None
        try:
            return model.model_validate(read_json(path))
        except (OSError, ValueError, ValidationError) as exc:
            raise PersistenceError(f"Failed to read {path.name}: {exc}") from exc
