"""Client for an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import ServiceSettings
from .prompts import CritiquePrompt

LOGGER = logging.getLogger(__name__)

__all__ = ["CritiqueModelClient", "CritiqueModelError", "CritiqueModelUnavailable"]


class CritiqueModelError(RuntimeError):
    """Raised when the critique model call fails."""


class CritiqueModelUnavailable(CritiqueModelError):
    """Raised when no API key is configured for the critique model."""


class CritiqueModelClient:
    """Send a system instruction plus frame image and return the raw reply text."""

    def __init__(
        self,
        *,
        settings: ServiceSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = settings.critique_model
        self._temperature = settings.critique_temperature
        self._api_key = settings.critique_api_key
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        self._client = httpx.AsyncClient(
            base_url=settings.critique_api_base,
            headers=headers,
            timeout=settings.critique_timeout_seconds,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _payload(self, prompt: CritiquePrompt) -> dict[str, Any]:
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt.user}]
        if prompt.image_url:
            content.append({"type": "image_url", "image_url": {"url": prompt.image_url}})
        return {
            "model": self._model,
            "temperature": self._temperature,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": content},
            ],
        }

    async def complete(self, prompt: CritiquePrompt) -> str:
        """Return the assistant message text for ``prompt``."""

        if not self._api_key:
            raise CritiqueModelUnavailable("critique_model_unconfigured")
        try:
            response = await self._client.post("/chat/completions", json=self._payload(prompt))
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise CritiqueModelError(
                f"Critique model returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise TimeoutError(f"Critique model request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise CritiqueModelError(f"Critique model request failed: {exc}") from exc
        except ValueError as exc:
            raise CritiqueModelError("Critique model returned a non-JSON envelope") from exc
        return _message_text(data)


def _message_text(data: Any) -> str:
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise CritiqueModelError("Critique model response has no choices") from exc
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") in {"text", "output_text"}
        ]
        if parts:
            return "".join(parts)
    raise CritiqueModelError("Critique model response has no text content")
