"""Critique prompt construction."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Any, Final, Mapping, Sequence

import yaml

_CATALOG_PACKAGE: Final[str] = "designlens.services.resources"
_CATALOG_NAME: Final[str] = "critique_prompt.yaml"

__all__ = ["CritiquePrompt", "PromptCatalog", "build_prompt", "load_catalog"]


@dataclass(frozen=True)
class PromptCatalog:
    intro: str
    heuristics: dict[str, str]
    wcag_criteria: tuple[str, ...]
    return_format: str
    resources: tuple[dict[str, str], ...]


@dataclass(frozen=True)
class CritiquePrompt:
    system: str
    user: str
    image_url: str | None = None


@lru_cache(maxsize=4)
def load_catalog(package: str = _CATALOG_PACKAGE, name: str = _CATALOG_NAME) -> PromptCatalog:
    """Load the prompt catalogue shipped as package data."""

    raw = resources.files(package).joinpath(name).read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    heuristics = {f"{int(code):02d}": str(label) for code, label in (data.get("heuristics") or {}).items()}
    return PromptCatalog(
        intro=str(data.get("intro", "")).strip(),
        heuristics=heuristics,
        wcag_criteria=tuple(str(item) for item in data.get("wcag_criteria") or ()),
        return_format=str(data.get("return_format", "")).strip(),
        resources=tuple(dict(item) for item in data.get("resources") or ()),
    )


def _system_instruction(catalog: PromptCatalog) -> str:
    heuristic_lines = "\n".join(f'- "{code}" {label}' for code, label in sorted(catalog.heuristics.items()))
    wcag_lines = "\n".join(f"- {criterion}" for criterion in catalog.wcag_criteria)
    resource_lines = "\n".join(f"- {item.get('title')}: {item.get('url')}" for item in catalog.resources)
    return (
        f"{catalog.intro}\n\n"
        f"Heuristics (use these codes):\n{heuristic_lines}\n\n"
        f"WCAG criteria to check:\n{wcag_lines}\n\n"
        f"Recommended resources:\n{resource_lines}\n\n"
        f"{catalog.return_format}"
    )


def build_prompt(
    *,
    frame_name: str,
    frame_index: int,
    frame_count: int,
    heuristic_data: Mapping[str, Any],
    persona: Mapping[str, Any],
    elements: Sequence[Mapping[str, Any]] = (),
    image_url: str | None = None,
    catalog: PromptCatalog | None = None,
) -> CritiquePrompt:
    """Assemble the instruction set for one frame."""

    active = catalog or load_catalog()
    persona_lines = [
        f"- Age: {persona.get('age') or 'unspecified'}",
        f"- Occupation: {persona.get('occupation') or 'unspecified'}",
    ]
    extra = {key: value for key, value in persona.items() if key not in {"age", "occupation"}}
    if extra:
        persona_lines.append(f"- Additional context: {json.dumps(extra, sort_keys=True, default=str)}")
    user = "\n".join(
        [
            f'Evaluate frame {frame_index} of {frame_count}: "{frame_name}".',
            "",
            "Persona:",
            *persona_lines,
            "",
            "Deterministic heuristic measurements (0-100):",
            json.dumps(dict(heuristic_data), indent=2, sort_keys=True, default=str),
            "",
            "Detected interactive elements:",
            json.dumps(list(elements), indent=2, default=str) if elements else "none",
        ]
    )
    return CritiquePrompt(system=_system_instruction(active), user=user, image_url=image_url)
