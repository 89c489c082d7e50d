"""Builders for design document payloads used across the test suite."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable

import httpx

Color = tuple[float, float, float]

WHITE: Color = (1.0, 1.0, 1.0)
BLACK: Color = (0.0, 0.0, 0.0)
GRAY: Color = (0.6, 0.6, 0.6)
BLUE: Color = (0.1, 0.3, 0.9)


def solid(color: Color, alpha: float = 1.0) -> dict[str, Any]:
    r, g, b = color
    return {"type": "SOLID", "visible": True, "color": {"r": r, "g": g, "b": b, "a": alpha}}


def box(x: float, y: float, width: float, height: float) -> dict[str, float]:
    return {"x": x, "y": y, "width": width, "height": height}


def text(
    node_id: str,
    characters: str,
    *,
    x: float = 16,
    y: float = 16,
    width: float = 200,
    height: float = 24,
    font_size: float = 16,
    font_weight: float = 400,
    color: Color = BLACK,
    name: str | None = None,
) -> dict[str, Any]:
    return {
        "id": node_id,
        "name": name or characters,
        "type": "TEXT",
        "characters": characters,
        "absoluteBoundingBox": box(x, y, width, height),
        "fills": [solid(color)],
        "style": {"fontSize": font_size, "fontWeight": font_weight, "fontFamily": "Inter"},
    }


def rect(
    node_id: str,
    name: str,
    *,
    x: float = 0,
    y: float = 0,
    width: float = 100,
    height: float = 48,
    fill: Color | None = None,
    node_type: str = "RECTANGLE",
    children: Iterable[dict[str, Any]] = (),
    **extra: Any,
) -> dict[str, Any]:
    node: dict[str, Any] = {
        "id": node_id,
        "name": name,
        "type": node_type,
        "absoluteBoundingBox": box(x, y, width, height),
        "fills": [solid(fill)] if fill is not None else [],
        "children": list(children),
    }
    node.update(extra)
    return node


def frame(
    node_id: str,
    name: str,
    *children: dict[str, Any],
    width: float = 375,
    height: float = 812,
    fill: Color = WHITE,
) -> dict[str, Any]:
    return {
        "id": node_id,
        "name": name,
        "type": "FRAME",
        "absoluteBoundingBox": box(0, 0, width, height),
        "fills": [solid(fill)],
        "children": list(children),
    }


def document(*frames: dict[str, Any], name: str = "Sample file") -> dict[str, Any]:
    return {
        "name": name,
        "document": {
            "id": "0:0",
            "name": "Document",
            "type": "DOCUMENT",
            "children": [
                {"id": "0:1", "name": "Page 1", "type": "CANVAS", "children": list(frames)},
            ],
        },
    }


def three_screen_document() -> dict[str, Any]:
    """Login, dashboard, and settings screens with a mix of buttons and text."""

    return document(
        frame(
            "1:1",
            "Login Screen",
            text("1:2", "Welcome back", y=80, font_size=28, font_weight=700),
            text("1:3", "Use your work email", y=130, color=GRAY),
            rect(
                "1:4",
                "Primary Button",
                x=16,
                y=600,
                width=343,
                height=48,
                fill=BLUE,
                children=[text("1:5", "Sign in", x=140, y=612, color=WHITE)],
            ),
        ),
        frame(
            "2:1",
            "Dashboard",
            text("2:2", "Overview", y=40, font_size=24, font_weight=700),
            text("2:3", "Revenue is up", y=90),
            rect(
                "2:4",
                "FAQ Accordion",
                y=200,
                width=343,
                height=64,
                fill=WHITE,
                children=[text("2:5", "Shipping questions", y=220)],
            ),
        ),
        frame(
            "3:1",
            "Settings",
            text("3:2", "Settings", y=40, font_size=24, font_weight=700),
            text("3:3", "Notifications", y=100, font_size=14),
        ),
    )


def critique_reply(summary: str, overall: int, *, issues: list[dict[str, Any]] | None = None) -> str:
    return json.dumps(
        {
            "overall_score": overall,
            "summary": summary,
            "strengths": ["Clear layout"],
            "weaknesses": ["Low contrast helper text"],
            "issues": issues
            if issues is not None
            else [
                {
                    "id": "contrast",
                    "heuristic": 4,
                    "severity": "HIGH",
                    "message": "Helper text is hard to read.",
                    "suggestions": ["Darken the text", "Increase size"],
                }
            ],
            "category_scores": {"color": 60, "typography": 80},
            "resources": [{"issue_id": "contrast", "title": "WCAG 1.4.3", "url": "https://www.w3.org/"}],
        }
    )


def chat_completion(content: str) -> dict[str, Any]:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def figma_handler(
    payload: dict[str, Any],
    *,
    images: dict[str, str] | None = None,
    status_code: int = 200,
) -> Callable[[httpx.Request], httpx.Response]:
    """Serve ``payload`` for file/node requests and ``images`` for render requests."""

    def handler(request: httpx.Request) -> httpx.Response:
        if status_code != 200:
            return httpx.Response(status_code, json={"status": status_code, "err": "upstream"})
        if request.url.path.startswith("/v1/images/"):
            return httpx.Response(200, json={"err": None, "images": images or {}})
        return httpx.Response(200, json=payload)

    return handler


def figma_transport(
    payload: dict[str, Any],
    *,
    images: dict[str, str] | None = None,
    status_code: int = 200,
) -> httpx.MockTransport:
    return httpx.MockTransport(figma_handler(payload, images=images, status_code=status_code))


def model_transport(replies: Callable[[dict[str, Any]], str]) -> httpx.MockTransport:
    """Answer chat completion requests with ``replies(request_body)``."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json=chat_completion(replies(body)))

    return httpx.MockTransport(handler)
