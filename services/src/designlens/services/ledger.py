"""Version and progress ledger for evaluation runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Final
from uuid import uuid4

from .models.evaluation import FrameEvaluation
from .models.ledger import Design, DesignVersion, EvaluationJob, JobStatus, VersionStatus
from .persistence import LedgerPersistence, PersistenceError, locked_path

LOGGER = logging.getLogger(__name__)

_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    "pending": frozenset({"ongoing", "done", "error"}),
    "ongoing": frozenset({"ongoing", "done", "error"}),
    "done": frozenset(),
    "error": frozenset(),
}

__all__ = [
    "DesignLedger",
    "DesignNotFoundError",
    "InvalidRevertError",
    "InvalidTransitionError",
    "LedgerError",
    "VersionNotFoundError",
    "job_id_for",
    "utc_timestamp",
]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp with ``Z`` suffix."""

    return datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z")


def job_id_for(design_id: str, version_id: str | None) -> str:
    return f"{design_id}-{version_id or 'latest'}"


class LedgerError(RuntimeError):
    """Base error for ledger operations."""


class DesignNotFoundError(LedgerError):
    def __init__(self, design_id: str) -> None:
        super().__init__(f"Design {design_id} was not found.")
        self.design_id = design_id


class VersionNotFoundError(LedgerError):
    def __init__(self, design_id: str, target: str) -> None:
        super().__init__(f"Version {target} was not found for design {design_id}.")
        self.design_id = design_id
        self.target = target


class InvalidRevertError(LedgerError):
    """Raised when a revert targets a version of another design."""

    def __init__(self, design_id: str, version_id: str, owner_design_id: str) -> None:
        super().__init__(
            f"Version {version_id} belongs to design {owner_design_id}, not {design_id}."
        )
        self.design_id = design_id
        self.version_id = version_id
        self.owner_design_id = owner_design_id


class InvalidTransitionError(LedgerError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move a version from {current} to {target}.")
        self.current = current
        self.target = target


class DesignLedger:
    """Append-only version history with a mutable current-version pointer."""

    def __init__(self, persistence: LedgerPersistence) -> None:
        self._store = persistence

    # designs -----------------------------------------------------------------

    def create_design(
        self,
        *,
        title: str,
        owner_id: str | None = None,
        file_key: str | None = None,
        node_id: str | None = None,
        figma_url: str | None = None,
    ) -> Design:
        now = utc_timestamp()
        design = Design(
            id=uuid4().hex,
            title=title,
            owner_id=owner_id,
            file_key=file_key,
            node_id=node_id,
            figma_url=figma_url,
            created_at=now,
            updated_at=now,
        )
        self._store.save_design(design)
        return design

    def get_design(self, design_id: str) -> Design:
        design = self._store.load_design(design_id)
        if design is None:
            raise DesignNotFoundError(design_id)
        return design

    # versions ----------------------------------------------------------------

    def create_version(
        self,
        design_id: str,
        *,
        file_key: str | None,
        node_id: str | None,
        snapshot: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> DesignVersion:
        """Append a ``pending`` version numbered one past the current maximum."""

        self.get_design(design_id)
        with locked_path(self._store.versions_lock_path(design_id)):
            number = self._store.max_version(design_id) + 1
            now = utc_timestamp()
            version = DesignVersion(
                id=uuid4().hex,
                design_id=design_id,
                version=number,
                file_key=file_key,
                node_id=node_id,
                snapshot=dict(snapshot or {}),
                created_by=created_by,
                created_at=now,
                updated_at=now,
                status="pending",
            )
            self._store.insert_version(version)
        return version

    def transition(
        self,
        design_id: str,
        version_id: str,
        status: VersionStatus,
        **fields: Any,
    ) -> DesignVersion:
        """Move a version along ``pending -> ongoing -> done`` or to ``error``.

        Extra ``fields`` (aggregate score, summary, thumbnail) may only be set
        together with a status change.
        """

        def _apply(current: DesignVersion) -> DesignVersion:
            if status not in _TRANSITIONS[current.status]:
                raise InvalidTransitionError(current.status, status)
            return current.model_copy(
                update={"status": status, "updated_at": utc_timestamp(), **fields}
            )

        if self._store.find_version(design_id, version_id=version_id) is None:
            raise VersionNotFoundError(design_id, version_id)
        return self._store.update_version(design_id, version_id, _apply)

    def list_versions(self, design_id: str) -> list[DesignVersion]:
        self.get_design(design_id)
        return self._store.list_versions(design_id)

    def get_version(
        self,
        design_id: str,
        *,
        version_id: str | None = None,
        number: int | None = None,
    ) -> DesignVersion:
        record = self._store.find_version(design_id, version_id=version_id, number=number)
        if record is None:
            raise VersionNotFoundError(design_id, str(version_id or number))
        return record

    def set_current_version(self, design_id: str, version_id: str) -> Design:
        """Point the design at ``version_id`` with a single atomic write."""

        def _apply(design: Design) -> Design:
            return design.model_copy(
                update={"current_version_id": version_id, "updated_at": utc_timestamp()}
            )

        return self._store.update_design(design_id, _apply)

    def revert(
        self,
        design_id: str,
        *,
        version_id: str | None = None,
        number: int | None = None,
    ) -> Design:
        """Move the current-version pointer to an existing version of this design."""

        self.get_design(design_id)
        if version_id is not None:
            target = self._store.find_version(design_id, version_id=version_id)
            if target is None:
                owner = self._owner_of(version_id)
                if owner is not None:
                    raise InvalidRevertError(design_id, version_id, owner)
                raise VersionNotFoundError(design_id, version_id)
            if number is not None and target.version != number:
                raise VersionNotFoundError(design_id, f"{version_id}@{number}")
        else:
            target = self.get_version(design_id, number=number)
        design = self.set_current_version(design_id, target.id)
        LOGGER.info(
            "ledger.reverted",
            extra={
                "extra_payload": {
                    "design_id": design_id,
                    "version_id": target.id,
                    "version": target.version,
                }
            },
        )
        return design

    def _owner_of(self, version_id: str) -> str | None:
        for design_id in self._store.list_design_ids():
            if self._store.find_version(design_id, version_id=version_id) is not None:
                return design_id
        return None

    # frame evaluations -------------------------------------------------------

    def record_frame(self, evaluation: FrameEvaluation) -> str:
        return self._store.insert_frame_evaluation(evaluation)

    def list_evaluations(
        self, design_id: str, *, number: int | None = None
    ) -> list[FrameEvaluation]:
        """Evaluations that carry critique data, in insertion order."""

        self.get_design(design_id)
        version_id = None
        if number is not None:
            version_id = self.get_version(design_id, number=number).id
        rows = self._store.list_frame_evaluations(design_id, version_id)
        return [row for row in rows if row.critique is not None]

    # jobs --------------------------------------------------------------------

    def start_job(self, job_id: str) -> EvaluationJob:
        job = EvaluationJob(job_id=job_id, progress=0, status="started", updated_at=utc_timestamp())
        self._store.save_job(job)
        return job

    def update_job(self, job_id: str, *, progress: int, status: JobStatus) -> EvaluationJob:
        """Record progress; the stored value never decreases."""

        bounded = max(0, min(100, int(progress)))

        def _apply(current: EvaluationJob | None) -> EvaluationJob:
            previous = current.progress if current is not None else 0
            return EvaluationJob(
                job_id=job_id,
                progress=max(previous, bounded),
                status=status,
                updated_at=utc_timestamp(),
            )

        return self._store.update_job(job_id, _apply)

    def get_progress(self, job_id: str) -> EvaluationJob:
        """Return the last known progress, or ``0``/``started`` for an unknown job."""

        try:
            job = self._store.load_job(job_id)
        except PersistenceError as exc:
            LOGGER.warning(
                "ledger.job_unreadable",
                extra={"extra_payload": {"job_id": job_id, "error": str(exc)}},
            )
            job = None
        return job or EvaluationJob(job_id=job_id)
