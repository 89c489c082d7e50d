"""Critique model response handling.

The model is asked for strict JSON but is treated as an untrusted producer:
replies may arrive wrapped in code fences, prefixed with prose, or with fields
renamed. Parsing is tolerant where the schema allows and strict only on the
top-level keys every critique must carry.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from .model_client import CritiqueModelClient, CritiqueModelError, CritiqueModelUnavailable
from .models.critique import REQUIRED_CRITIQUE_KEYS, CritiqueResult
from .prompts import PromptCatalog, build_prompt
from .resilience import CircuitOpenError, ServiceResilienceExecutor

LOGGER = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json|JSON)?\s*|\s*```$")
_TRAILING_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)

__all__ = [
    "CritiqueOutcome",
    "CritiqueParseError",
    "FrameCritic",
    "parse_critique_response",
    "rekey_issues",
]


class CritiqueParseError(ValueError):
    """Raised when a model reply cannot be turned into a critique."""

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


def _strip_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text.strip()).strip()


def _load_object(text: str) -> dict[str, Any]:
    cleaned = _strip_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _TRAILING_OBJECT_PATTERN.search(cleaned)
        if match is None:
            raise CritiqueParseError("Critique reply is not valid JSON.", raw=text) from None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise CritiqueParseError("Critique reply is not valid JSON.", raw=text) from exc
    if not isinstance(data, dict):
        raise CritiqueParseError("Critique reply is not a JSON object.", raw=text)
    return data


def rekey_issues(result: CritiqueResult, frame_index: int) -> CritiqueResult:
    """Give issues stable ``frame{i}-issue{j}`` ids and follow them in resources."""

    renamed: dict[str, str] = {}
    issues = []
    for position, issue in enumerate(result.issues):
        new_id = f"frame{frame_index}-issue{position}"
        if issue.id:
            renamed.setdefault(issue.id, new_id)
        issues.append(issue.model_copy(update={"id": new_id}))
    resources = [
        resource.model_copy(update={"issue_id": renamed[resource.issue_id]})
        if resource.issue_id in renamed
        else resource
        for resource in result.resources
    ]
    return result.model_copy(update={"issues": issues, "resources": resources})


def parse_critique_response(raw: str, *, frame_index: int = 1) -> CritiqueResult:
    """Normalise one model reply into a :class:`CritiqueResult`.

    ``frame_index`` is the 1-based position of the frame in the run and is
    used to re-key issue ids.
    """

    if not isinstance(raw, str) or not raw.strip():
        raise CritiqueParseError("Critique reply is empty.", raw=raw if isinstance(raw, str) else None)
    data = _load_object(raw)
    missing = [key for key in REQUIRED_CRITIQUE_KEYS if key not in data]
    if missing:
        raise CritiqueParseError(
            f"Critique reply is missing required keys: {', '.join(missing)}.", raw=raw
        )
    try:
        result = CritiqueResult.model_validate(data)
    except ValidationError as exc:
        raise CritiqueParseError(f"Critique reply failed validation: {exc}", raw=raw) from exc
    return rekey_issues(result, frame_index)


@dataclass(frozen=True)
class CritiqueOutcome:
    critique: CritiqueResult | None = None
    ai_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.critique is not None


class FrameCritic:
    """Run one critique call per frame and capture failures as outcomes."""

    def __init__(
        self,
        *,
        client: CritiqueModelClient,
        executor: ServiceResilienceExecutor[Any],
        catalog: PromptCatalog | None = None,
    ) -> None:
        self._client = client
        self._executor = executor
        self._catalog = catalog

    async def critique(
        self,
        *,
        frame_name: str,
        frame_index: int,
        frame_count: int,
        heuristic_data: Mapping[str, Any],
        persona: Mapping[str, Any],
        elements: Sequence[Mapping[str, Any]] = (),
        image_url: str | None = None,
    ) -> CritiqueOutcome:
        prompt = build_prompt(
            frame_name=frame_name,
            frame_index=frame_index,
            frame_count=frame_count,
            heuristic_data=heuristic_data,
            persona=persona,
            elements=elements,
            image_url=image_url,
            catalog=self._catalog,
        )
        if not self._client.configured:
            return CritiqueOutcome(ai_error="critique_model_unconfigured")
        try:
            raw = await self._executor.run(
                label=f"critique:{frame_index}",
                operation=lambda: self._client.complete(prompt),
            )
        except CritiqueModelUnavailable:
            return CritiqueOutcome(ai_error="critique_model_unconfigured")
        except TimeoutError:
            return CritiqueOutcome(ai_error="critique_timeout")
        except (CritiqueModelError, CircuitOpenError) as exc:
            return CritiqueOutcome(ai_error=str(exc))

        try:
            result = parse_critique_response(raw, frame_index=frame_index)
        except CritiqueParseError as exc:
            LOGGER.warning(
                "critique.parse_failed",
                extra={"extra_payload": {"frame_index": frame_index, "error": str(exc)}},
            )
            return CritiqueOutcome(ai_error=f"{exc} Raw reply: {raw[:2000]}")
        return CritiqueOutcome(critique=result)
