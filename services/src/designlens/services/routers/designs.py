"""Design, version history, and preview endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from ..cache import ParseCache, make_cache_key
from ..figma_client import (
    DesignSourceError,
    DesignSourceRateLimited,
    FigmaClient,
    parse_figma_url,
)
from ..http import raise_service_error, raise_validation_error
from ..ledger import DesignLedger, LedgerError
from ..models.ledger import Design, DesignCreateRequest, DesignVersion, RevertRequest
from ..models.evaluation import ParseRequest
from ..orchestrator import EvaluationOrchestrator
from ..persistence import PersistenceError
from ..resilience import CircuitOpenError, ServiceResilienceExecutor
from .dependencies import (
    get_design_source_resilience,
    get_figma_client,
    get_ledger,
    get_orchestrator,
    get_parse_cache,
)
from .shared import raise_ledger_error, raise_persistence_error

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/designs", tags=["designs"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_design(
    payload: DesignCreateRequest,
    ledger: DesignLedger = Depends(get_ledger),
) -> Design:
    """Register a design, deriving the file key from its share URL when needed."""

    file_key = payload.file_key
    node_id = payload.node_id
    if payload.figma_url and not file_key:
        try:
            reference = parse_figma_url(payload.figma_url)
        except ValueError as exc:
            raise_validation_error(message=str(exc), details={"figma_url": payload.figma_url})
        file_key = reference.file_key
        node_id = node_id or reference.node_id

    try:
        return await asyncio.to_thread(
            lambda: ledger.create_design(
                title=payload.title,
                owner_id=payload.owner_id,
                file_key=file_key,
                node_id=node_id,
                figma_url=payload.figma_url,
            )
        )
    except PersistenceError as exc:
        raise_persistence_error(exc, details={"title": payload.title})


@router.post("/parse")
async def parse_design(
    payload: ParseRequest,
    client: FigmaClient = Depends(get_figma_client),
    cache: ParseCache = Depends(get_parse_cache),
    executor: ServiceResilienceExecutor = Depends(get_design_source_resilience),
    orchestrator: EvaluationOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Preview the deterministic analysis of a design URL.

    Results are cached per file and node. When the design source is rate
    limited, a stale cached preview is served instead of an error.
    """

    try:
        reference = parse_figma_url(payload.url)
    except ValueError as exc:
        raise_validation_error(message=str(exc), details={"url": payload.url})

    key = make_cache_key(file_key=reference.file_key, node_id=reference.node_id)
    cached = cache.get(key)
    if cached is not None:
        return {**cached, "cached": True}

    try:
        document = await executor.run(
            label="design_source.parse",
            operation=lambda: client.fetch_document(reference.file_key, reference.node_id),
        )
    except DesignSourceRateLimited as exc:
        stale = cache.get(key, allow_stale=True)
        if stale is not None:
            LOGGER.info(
                "designs.parse_stale_served",
                extra={"extra_payload": {"file_key": reference.file_key}},
            )
            return {**stale, "cached": True, "stale": True}
        raise_service_error(
            code="RATE_LIMIT",
            message=str(exc),
            details={"file_key": reference.file_key, "retry_after": exc.retry_after},
        )
    except TimeoutError:
        raise_service_error(
            code="TIMEOUT",
            message="Design source request timed out.",
            details={"file_key": reference.file_key},
        )
    except (DesignSourceError, CircuitOpenError) as exc:
        raise_service_error(
            code="UPSTREAM_ERROR",
            message=str(exc),
            details={"file_key": reference.file_key},
        )

    analysis = await orchestrator.analyse_payload(document)
    preview = {
        "file_key": reference.file_key,
        "node_id": reference.node_id,
        **analysis.preview(),
    }
    cache.store(key, preview)
    return {**preview, "cached": False}


@router.get("/{design_id}")
async def get_design(design_id: str, ledger: DesignLedger = Depends(get_ledger)) -> Design:
    try:
        return await asyncio.to_thread(ledger.get_design, design_id)
    except LedgerError as exc:
        raise_ledger_error(exc)


@router.get("/{design_id}/versions")
async def list_versions(
    design_id: str,
    ledger: DesignLedger = Depends(get_ledger),
) -> dict[str, Any]:
    """Return the version history of a design in ascending order."""

    try:
        versions: list[DesignVersion] = await asyncio.to_thread(ledger.list_versions, design_id)
        design = await asyncio.to_thread(ledger.get_design, design_id)
    except LedgerError as exc:
        raise_ledger_error(exc)
    return {
        "design_id": design_id,
        "current_version_id": design.current_version_id,
        "versions": [version.model_dump(mode="json") for version in versions],
    }


@router.post("/{design_id}/revert")
async def revert_design(
    design_id: str,
    payload: RevertRequest,
    ledger: DesignLedger = Depends(get_ledger),
) -> Design:
    """Point the design at an earlier version without creating a new one."""

    try:
        return await asyncio.to_thread(
            lambda: ledger.revert(design_id, version_id=payload.version_id, number=payload.version)
        )
    except LedgerError as exc:
        raise_ledger_error(exc)
    except PersistenceError as exc:
        raise_persistence_error(exc, details={"design_id": design_id})


@router.get("/{design_id}/evaluations")
async def list_evaluations(
    design_id: str,
    version: int | None = Query(default=None, ge=1),
    ledger: DesignLedger = Depends(get_ledger),
) -> dict[str, Any]:
    try:
        rows = await asyncio.to_thread(lambda: ledger.list_evaluations(design_id, number=version))
    except LedgerError as exc:
        raise_ledger_error(exc)
    return {"results": [row.model_dump(mode="json") for row in rows]}


__all__ = ["router"]
