"""Evaluation runs: fetch, normalize, score, detect, critique, and record."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from . import metrics
from .config import ServiceSettings
from .contrast import score_frame
from .critique import CritiqueOutcome, FrameCritic
from .detection import DetectionReport, detect_interactive_elements
from .figma_client import DesignSourceError, FigmaClient
from .frame_scorer import heuristic_context, score_categories
from .ledger import DesignLedger, job_id_for, utc_timestamp
from .models.detection import DetectedButton, DetectedElement
from .models.document import Frame, RawNode
from .models.evaluation import (
    EvaluationRequest,
    FrameAccessibility,
    FrameEvaluation,
    FrameScores,
)
from .models.ledger import DesignVersion
from .normalizer import (
    FALLBACK_FRAME_TYPES,
    collect_frame_ids,
    document_roots,
    find_parent_frame,
    normalize_frame,
)
from .persistence import PersistenceError
from .resilience import CircuitOpenError, ServiceResilienceRegistry
from .rounding import round_half_up

LOGGER = logging.getLogger(__name__)

SUMMARY_PREFIX = "Aggregate summary: "

__all__ = [
    "DocumentAnalysis",
    "EvaluationHandle",
    "EvaluationInputError",
    "EvaluationOrchestrator",
    "aggregate_summary",
    "aggregate_total_score",
    "prompt_element",
]


class EvaluationInputError(ValueError):
    """Raised when a run cannot start because the request is incomplete."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class EvaluationHandle:
    """Identifiers of a started run, returned before any frame is processed."""

    job_id: str
    request: EvaluationRequest
    version: DesignVersion
    file_key: str
    node_id: str | None = None

    @property
    def design_id(self) -> str:
        return self.version.design_id

    @property
    def version_id(self) -> str:
        return self.version.id


def aggregate_total_score(evaluations: Sequence[FrameEvaluation]) -> int:
    """Rounded mean of critique overall scores; ``0`` when no frame has one."""

    scores = [
        evaluation.critique.overall_score
        for evaluation in evaluations
        if evaluation.critique is not None and evaluation.critique.overall_score is not None
    ]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def aggregate_summary(evaluations: Sequence[FrameEvaluation]) -> str:
    summaries = [
        evaluation.critique.summary.strip()
        for evaluation in evaluations
        if evaluation.critique is not None and evaluation.critique.summary.strip()
    ]
    return SUMMARY_PREFIX + " | ".join(summaries)


def _index_nodes(roots: Sequence[RawNode]) -> dict[str, RawNode]:
    index: dict[str, RawNode] = {}
    for root in roots:
        index.setdefault(root.id, root)
        for node in root.iter_descendants():
            index.setdefault(node.id, node)
    return index


def prompt_element(element: DetectedElement) -> dict[str, Any]:
    """Serialize a detected element for the critique prompt with hex colours."""

    data = element.model_dump(mode="json")
    if isinstance(element, DetectedButton):
        for field in ("background_color", "text_color"):
            color = getattr(element, field)
            if color is not None:
                data[field] = color.to_hex()
    return data


@dataclass(frozen=True)
class DocumentAnalysis:
    """Normalized frames with their deterministic scores and detected elements."""

    frames: list[Frame]
    scores: list[FrameScores]
    report: DetectionReport

    def preview(self) -> dict[str, Any]:
        return {
            "frames": [
                {
                    "frame": frame.model_dump(mode="json"),
                    "accessibility": {
                        "average_score": frame.average_contrast_score or 0,
                        "texts": [text.model_dump(mode="json") for text in frame.text_nodes],
                    },
                    "frame_scores": scores.model_dump(mode="json"),
                    "elements": [
                        element.model_dump(mode="json")
                        for element in self.report.for_frame(frame.id)
                    ],
                }
                for frame, scores in zip(self.frames, self.scores)
            ],
            "themed_frame_ids": list(self.report.themed_frame_ids),
            "detector_failures": dict(self.report.failures),
        }


class EvaluationOrchestrator:
    """Drive one evaluation run per request and keep the ledger current."""

    def __init__(
        self,
        *,
        settings: ServiceSettings,
        ledger: DesignLedger,
        design_source: FigmaClient,
        critic: FrameCritic,
        resilience: ServiceResilienceRegistry,
    ) -> None:
        self._settings = settings
        self._ledger = ledger
        self._design_source = design_source
        self._critic = critic
        self._resilience = resilience

    async def evaluate(self, request: EvaluationRequest) -> DesignVersion:
        """Start and run an evaluation to completion."""

        handle = await self.start(request)
        return await self.run(handle)

    async def start(self, request: EvaluationRequest) -> EvaluationHandle:
        """Validate the request, create a ``pending`` version, and open a job."""

        design = await asyncio.to_thread(self._ledger.get_design, request.design_id)
        file_key = request.file_key or design.file_key
        if not file_key:
            raise EvaluationInputError(
                "A design file key is required to start an evaluation.",
                details={"design_id": request.design_id},
            )
        node_id = request.node_id or design.node_id
        version = await asyncio.to_thread(
            lambda: self._ledger.create_version(
                request.design_id,
                file_key=file_key,
                node_id=node_id,
                snapshot=request.snapshot.model_dump(mode="json", exclude_none=True),
                created_by=request.created_by,
            )
        )
        job_id = job_id_for(request.design_id, version.id)
        await asyncio.to_thread(self._ledger.start_job, job_id)
        LOGGER.info(
            "evaluation.start",
            extra={
                "extra_payload": {
                    "job_id": job_id,
                    "design_id": request.design_id,
                    "version_id": version.id,
                    "version": version.version,
                }
            },
        )
        return EvaluationHandle(
            job_id=job_id,
            request=request,
            version=version,
            file_key=file_key,
            node_id=node_id,
        )

    async def run(self, handle: EvaluationHandle) -> DesignVersion:
        """Process every selected frame and finalize the version.

        Upstream and selection failures end the run in ``error``. Any other
        failure also ends it in ``error`` and is re-raised.
        """

        try:
            return await self._run(handle)
        except PersistenceError as exc:
            LOGGER.error(
                "evaluation.persistence_failed",
                extra={"extra_payload": {"job_id": handle.job_id, "error": str(exc)}},
            )
            await self._mark_failed(handle, str(exc))
            raise
        except Exception as exc:
            LOGGER.exception(
                "evaluation.run_failed",
                extra={"extra_payload": {"job_id": handle.job_id}},
            )
            await self._mark_failed(handle, f"Evaluation failed: {exc}")
            raise

    async def _run(self, handle: EvaluationHandle) -> DesignVersion:
        try:
            payload = await self._resilience.design_source.run(
                label="design_source.document",
                operation=lambda: self._design_source.fetch_document(
                    handle.file_key, handle.node_id
                ),
            )
        except (DesignSourceError, CircuitOpenError, TimeoutError) as exc:
            LOGGER.warning(
                "evaluation.document_unavailable",
                extra={"extra_payload": {"job_id": handle.job_id, "error": str(exc)}},
            )
            return await self._mark_failed(handle, f"Design document unavailable: {exc}")

        roots = document_roots(payload)
        frame_nodes = self._select_frames(roots, handle.request.frame_ids)
        if not frame_nodes:
            LOGGER.warning(
                "evaluation.no_frames",
                extra={"extra_payload": {"job_id": handle.job_id}},
            )
            return await self._mark_failed(handle, "No frames qualified for evaluation.")

        analysis = await self._analyse(roots, frame_nodes)
        images = await self._design_source.fetch_image_urls(
            handle.file_key, [frame.id for frame in analysis.frames]
        )
        await asyncio.to_thread(
            self._ledger.transition, handle.design_id, handle.version_id, "ongoing"
        )

        evaluations: list[FrameEvaluation] = []
        total = len(analysis.frames)
        for position, (frame, scores) in enumerate(zip(analysis.frames, analysis.scores), start=1):
            evaluation = await self._evaluate_frame(
                handle,
                frame=frame,
                scores=scores,
                report=analysis.report,
                position=position,
                total=total,
                image_url=images.get(frame.id),
            )
            await asyncio.to_thread(self._ledger.record_frame, evaluation)
            metrics.record_frame(evaluation.status)
            evaluations.append(evaluation)
            await asyncio.to_thread(
                lambda: self._ledger.update_job(
                    handle.job_id, progress=round_half_up(position / total * 100), status="ongoing"
                )
            )

        return await self._finalize(handle, evaluations, thumbnail=images.get(analysis.frames[0].id))

    async def analyse_payload(
        self,
        payload: dict[str, Any],
        frame_ids: Sequence[str] | None = None,
    ) -> DocumentAnalysis:
        """Run the deterministic steps only, without critique or ledger writes."""

        roots = document_roots(payload)
        return await self._analyse(roots, self._select_frames(roots, frame_ids))

    def _select_frames(
        self, roots: Sequence[RawNode], requested: Sequence[str] | None
    ) -> list[RawNode]:
        index = _index_nodes(roots)
        if not requested:
            ids, _themed = collect_frame_ids(roots, theme_keywords=self._settings.theme_keywords)
            return [index[frame_id] for frame_id in ids if frame_id in index]

        selected: dict[str, RawNode] = {}
        for frame_id in requested:
            node = index.get(frame_id)
            if node is not None and node.type not in FALLBACK_FRAME_TYPES:
                node = find_parent_frame(roots, frame_id)
            if node is None:
                LOGGER.info(
                    "evaluation.frame_missing",
                    extra={"extra_payload": {"frame_id": frame_id}},
                )
                continue
            selected.setdefault(node.id, node)
        return list(selected.values())

    async def _analyse(self, roots: Sequence[RawNode], frame_nodes: Sequence[RawNode]) -> DocumentAnalysis:
        keywords = self._settings.theme_keywords

        def _score() -> tuple[list[Frame], list[FrameScores]]:
            frames = [
                score_frame(normalize_frame(node, theme_keywords=keywords)) for node in frame_nodes
            ]
            return frames, [score_categories(frame) for frame in frames]

        (frames, scores), report = await asyncio.gather(
            asyncio.to_thread(_score),
            asyncio.to_thread(
                detect_interactive_elements,
                roots,
                frame_nodes,
                theme_keywords=keywords,
                max_workers=self._settings.detector_max_workers,
            ),
        )
        return DocumentAnalysis(frames=frames, scores=scores, report=report)

    async def _evaluate_frame(
        self,
        handle: EvaluationHandle,
        *,
        frame: Frame,
        scores: FrameScores,
        report: DetectionReport,
        position: int,
        total: int,
        image_url: str | None,
    ) -> FrameEvaluation:
        accessibility = FrameAccessibility(
            average_score=frame.average_contrast_score or 0,
            texts=frame.text_nodes,
        )
        elements = report.for_frame(frame.id)
        outcome: CritiqueOutcome = await self._critic.critique(
            frame_name=frame.name,
            frame_index=position,
            frame_count=total,
            heuristic_data=heuristic_context([scores], {frame.id: accessibility.average_score}),
            persona=handle.version.snapshot,
            elements=[prompt_element(element) for element in elements],
            image_url=image_url,
        )
        if not outcome.ok:
            LOGGER.warning(
                "evaluation.frame_skipped",
                extra={
                    "extra_payload": {
                        "job_id": handle.job_id,
                        "frame_id": frame.id,
                        "error": (outcome.ai_error or "")[:200],
                    }
                },
            )
        return FrameEvaluation(
            design_id=handle.design_id,
            version_id=handle.version_id,
            node_id=frame.id,
            frame_name=frame.name,
            frame_index=position,
            status="done" if outcome.ok else "skipped",
            thumbnail_url=image_url,
            critique=outcome.critique,
            ai_error=outcome.ai_error,
            accessibility=accessibility,
            frame_scores=scores,
            elements=elements,
            snapshot=handle.version.snapshot,
            created_at=utc_timestamp(),
        )

    async def _finalize(
        self,
        handle: EvaluationHandle,
        evaluations: Sequence[FrameEvaluation],
        *,
        thumbnail: str | None,
    ) -> DesignVersion:
        total_score = aggregate_total_score(evaluations)
        version = await asyncio.to_thread(
            lambda: self._ledger.transition(
                handle.design_id,
                handle.version_id,
                "done",
                total_score=total_score,
                summary=aggregate_summary(evaluations),
                thumbnail_url=thumbnail,
            )
        )
        await asyncio.to_thread(self._ledger.set_current_version, handle.design_id, handle.version_id)
        await asyncio.to_thread(
            lambda: self._ledger.update_job(handle.job_id, progress=100, status="done")
        )
        LOGGER.info(
            "evaluation.completed",
            extra={
                "extra_payload": {
                    "job_id": handle.job_id,
                    "frames": len(evaluations),
                    "skipped": sum(1 for item in evaluations if item.status == "skipped"),
                    "total_score": total_score,
                }
            },
        )
        return version

    async def _mark_failed(self, handle: EvaluationHandle, reason: str) -> DesignVersion:
        def _apply() -> DesignVersion:
            current = self._ledger.get_version(handle.design_id, version_id=handle.version_id)
            if current.status not in {"done", "error"}:
                current = self._ledger.transition(
                    handle.design_id, handle.version_id, "error", summary=reason
                )
            job = self._ledger.get_progress(handle.job_id)
            self._ledger.update_job(handle.job_id, progress=job.progress, status="error")
            return current

        try:
            return await asyncio.to_thread(_apply)
        except PersistenceError:
            LOGGER.exception(
                "evaluation.error_state_unrecorded",
                extra={"extra_payload": {"job_id": handle.job_id}},
            )
            return handle.version
