"""HTTP client for the design document source."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import parse_qs, urlparse

import httpx

from .config import ServiceSettings

LOGGER = logging.getLogger(__name__)

_FILE_PATH_KINDS = frozenset({"file", "design", "proto"})

__all__ = [
    "DesignReference",
    "DesignSourceError",
    "DesignSourceRateLimited",
    "FigmaClient",
    "parse_figma_url",
]


class DesignSourceError(RuntimeError):
    """Raised when the design document source cannot serve a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DesignSourceRateLimited(DesignSourceError):
    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


@dataclass(frozen=True)
class DesignReference:
    file_key: str
    node_id: str | None = None


def parse_figma_url(url: str) -> DesignReference:
    """Extract the file key and optional node id from a design share URL.

    Supports ``/file/<key>``, ``/design/<key>``, and ``/proto/<key>`` paths;
    the ``node-id`` query value uses ``-`` where the API expects ``:``.
    """

    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Not a design URL: {url!r}")
    segments = [segment for segment in parsed.path.split("/") if segment]
    file_key: str | None = None
    for index, segment in enumerate(segments[:-1]):
        if segment in _FILE_PATH_KINDS:
            file_key = segments[index + 1]
            break
    if not file_key:
        raise ValueError(f"Design URL does not contain a file key: {url!r}")
    query = parse_qs(parsed.query)
    raw_node = (query.get("node-id") or query.get("node_id") or [None])[0]
    node_id = raw_node.replace("-", ":") if raw_node else None
    return DesignReference(file_key=file_key, node_id=node_id)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class FigmaClient:
    """Read-only access to design files and rendered frame images."""

    def __init__(
        self,
        *,
        settings: ServiceSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        headers = {"Accept": "application/json"}
        token = settings.figma_access_token
        if token and token.startswith("Bearer "):
            headers["Authorization"] = token
        elif token:
            headers["X-Figma-Token"] = token
        self._client = httpx.AsyncClient(
            base_url=settings.figma_api_base,
            headers=headers,
            timeout=settings.design_source_timeout_seconds,
            transport=transport,
        )

    @property
    def placeholder_image_url(self) -> str:
        return self._settings.placeholder_image_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise DesignSourceError(f"Design source request failed: {exc}") from exc
        if response.status_code == 429:
            raise DesignSourceRateLimited(
                "Design source rate limit reached.", retry_after=_retry_after(response)
            )
        if response.status_code >= 400:
            raise DesignSourceError(
                f"Design source returned HTTP {response.status_code}.",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DesignSourceError("Design source returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise DesignSourceError("Design source returned an unexpected payload.")
        if payload.get("err"):
            raise DesignSourceError(str(payload["err"]), status_code=payload.get("status"))
        return payload

    async def fetch_document(self, file_key: str, node_id: str | None = None) -> dict[str, Any]:
        """Return the file tree, or the subtree of ``node_id`` when given."""

        if node_id:
            return await self._get_json(f"/v1/files/{file_key}/nodes", {"ids": node_id})
        return await self._get_json(f"/v1/files/{file_key}")

    async def fetch_image_urls(
        self,
        file_key: str,
        node_ids: Iterable[str],
        *,
        scale: float | None = None,
    ) -> dict[str, str]:
        """Return rendered PNG URLs per node, degrading to the placeholder.

        Never raises: any upstream failure yields the placeholder for every
        requested node.
        """

        ids = list(dict.fromkeys(node_ids))
        if not ids:
            return {}
        placeholder = self._settings.placeholder_image_url
        params = {
            "ids": ",".join(ids),
            "format": "png",
            "scale": scale or self._settings.figma_image_scale,
        }
        try:
            payload = await self._get_json(f"/v1/images/{file_key}", params)
        except DesignSourceError as exc:
            LOGGER.warning(
                "design_source.images_degraded",
                extra={"extra_payload": {"file_key": file_key, "error": str(exc)}},
            )
            return {node_id: placeholder for node_id in ids}
        images = payload.get("images")
        images = images if isinstance(images, dict) else {}
        return {
            node_id: images.get(node_id) if isinstance(images.get(node_id), str) else placeholder
            for node_id in ids
        }
