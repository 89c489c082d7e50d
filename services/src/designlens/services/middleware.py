"""ASGI middleware components used by the DesignLens service."""

from __future__ import annotations

import json

from fastapi import status
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .http import TRACE_ID_HEADER, build_error_payload, ensure_trace_id

HTTP_STATUS_PAYLOAD_TOO_LARGE = getattr(status, "HTTP_413_CONTENT_TOO_LARGE", 413)


class BodySizeLimitMiddleware:
    """Reject requests whose bodies exceed a configured byte threshold."""

    def __init__(self, app: ASGIApp, *, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be greater than zero.")
        self.app = app
        self._limit = limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = self._declared_length(scope)
        if declared is not None and declared > self._limit:
            await self._reject(send)
            return

        consumed = 0
        rejected = False

        async def limited_receive() -> Message:
            nonlocal consumed, rejected
            message = await receive()
            if message["type"] == "http.request":
                consumed += len(message.get("body", b""))
                if consumed > self._limit and not rejected:
                    rejected = True
                    await self._reject(send)
                    return {"type": "http.disconnect"}
            return message

        async def guarded_send(message: Message) -> None:
            if rejected:
                return
            await send(message)

        await self.app(scope, limited_receive, guarded_send)

    @staticmethod
    def _declared_length(scope: Scope) -> int | None:
        for key, value in scope.get("headers", []):
            if key.lower() == b"content-length":
                try:
                    return int(value.decode("latin-1"))
                except ValueError:
                    return None
        return None

    async def _reject(self, send: Send) -> None:
        trace_id = ensure_trace_id()
        payload = build_error_payload(
            code="PAYLOAD_TOO_LARGE",
            message="Request payload exceeds allowed size.",
            details={"limit_bytes": self._limit},
            trace_id=trace_id,
        )
        body = json.dumps(payload.model_dump(), ensure_ascii=False).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": HTTP_STATUS_PAYLOAD_TOO_LARGE,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode("latin-1")),
                    (TRACE_ID_HEADER.encode("latin-1"), trace_id.encode("latin-1")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body, "more_body": False})


__all__ = ["BodySizeLimitMiddleware", "HTTP_STATUS_PAYLOAD_TOO_LARGE"]
