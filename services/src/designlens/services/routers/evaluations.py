"""Evaluation run endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from ..http import raise_validation_error
from ..ledger import DesignLedger, LedgerError
from ..models.evaluation import EvaluationRequest, EvaluationStarted
from ..orchestrator import EvaluationHandle, EvaluationInputError, EvaluationOrchestrator
from ..persistence import PersistenceError
from .dependencies import get_ledger, get_orchestrator
from .shared import raise_ledger_error, raise_persistence_error

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/evaluations", tags=["evaluations"])


async def _run_in_background(orchestrator: EvaluationOrchestrator, handle: EvaluationHandle) -> None:
    try:
        await orchestrator.run(handle)
    except Exception:  # noqa: BLE001 - background runs report through the ledger
        LOGGER.exception(
            "evaluation.background_failed",
            extra={"extra_payload": {"job_id": handle.job_id}},
        )


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def start_evaluation(
    payload: EvaluationRequest,
    background_tasks: BackgroundTasks,
    orchestrator: EvaluationOrchestrator = Depends(get_orchestrator),
) -> EvaluationStarted:
    """Create a pending version and continue the run after responding."""

    try:
        handle = await orchestrator.start(payload)
    except EvaluationInputError as exc:
        raise_validation_error(message=str(exc), details=exc.details)
    except LedgerError as exc:
        raise_ledger_error(exc)
    except PersistenceError as exc:
        raise_persistence_error(exc, details={"design_id": payload.design_id})

    background_tasks.add_task(_run_in_background, orchestrator, handle)
    return EvaluationStarted(
        job_id=handle.job_id,
        design_id=handle.design_id,
        version_id=handle.version_id,
        version=handle.version.version,
        status=handle.version.status,
    )


@router.get("/progress")
async def evaluation_progress(
    job_id: str = Query(..., alias="jobId", min_length=1, max_length=300),
    ledger: DesignLedger = Depends(get_ledger),
) -> dict[str, Any]:
    """Return the last recorded progress; unknown jobs report ``0``/``started``."""

    job = await asyncio.to_thread(ledger.get_progress, job_id)
    return {"job_id": job.job_id, "progress": job.progress, "status": job.status}


__all__ = ["router"]
