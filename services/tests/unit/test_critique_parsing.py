"""Tests for tolerant critique reply parsing and the per-frame critic."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from designlens.services.app import _resilience_registry
from designlens.services.config import ServiceSettings
from designlens.services.critique import (
    CritiqueParseError,
    FrameCritic,
    parse_critique_response,
)
from designlens.services.model_client import CritiqueModelClient
from designlens.services.resilience import ResiliencePolicy, ServiceResilienceExecutor

from design_fixtures import chat_completion, critique_reply, model_transport


def _reply(**fields) -> str:
    payload = {"overall_score": 70, "summary": "Fine", "issues": []}
    payload.update(fields)
    return json.dumps(payload)


def test_fenced_reply_is_unwrapped() -> None:
    result = parse_critique_response("```json\n" + critique_reply("Clean", 82) + "\n```")
    assert result.overall_score == 82
    assert result.summary == "Clean"


def test_prose_around_json_is_ignored() -> None:
    raw = "Here is my evaluation:\n" + critique_reply("Busy", 55) + "\nLet me know!"
    assert parse_critique_response(raw).summary == "Busy"


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "no json at all",
        "[1, 2, 3]",
        json.dumps({"summary": "no score", "issues": []}),
        json.dumps({"overall_score": 50, "summary": "no issues key"}),
    ],
)
def test_unusable_replies_raise(raw: str) -> None:
    with pytest.raises(CritiqueParseError):
        parse_critique_response(raw)


def test_scores_are_clamped() -> None:
    high = parse_critique_response(_reply(overall_score=150, category_scores={"color": -5}))
    assert high.overall_score == 100
    assert high.category_scores.color == 0
    assert parse_critique_response(_reply(overall_score="72.6")).overall_score == 73


def test_issue_fields_are_normalised() -> None:
    result = parse_critique_response(
        _reply(
            issues=[
                {"id": "a", "heuristic": "H3", "severity": "critical", "message": "Undo is hidden"},
                {"id": "b", "heuristic": 12, "severity": "Low", "suggestions": ["One", "Two"]},
                "not an object",
            ]
        ),
        frame_index=2,
    )
    first, second = result.issues
    assert first.heuristic == "03"
    assert first.severity == "medium"
    assert second.heuristic is None
    assert second.severity == "low"
    assert second.suggestion == "One; Two"
    assert [issue.id for issue in result.issues] == ["frame2-issue0", "frame2-issue1"]


def test_resources_follow_renamed_issues() -> None:
    result = parse_critique_response(
        _reply(
            issues=[{"id": "contrast"}],
            resources=[
                {"issue_id": "contrast", "title": "WCAG"},
                {"issue_id": "other", "title": "Unrelated"},
            ],
        ),
        frame_index=4,
    )
    assert [resource.issue_id for resource in result.resources] == ["frame4-issue0", "other"]


def test_single_string_strengths_become_a_list() -> None:
    result = parse_critique_response(_reply(strengths="Clear call to action", weaknesses=None))
    assert result.strengths == ["Clear call to action"]
    assert result.weaknesses == []


def _settings(tmp_path, **overrides) -> ServiceSettings:
    values = {"data_dir": tmp_path / "data", "critique_api_key": "sk-test"}
    values.update(overrides)
    return ServiceSettings(**values)


def _critic(client: CritiqueModelClient, *, timeout: float = 5.0) -> FrameCritic:
    executor = ServiceResilienceExecutor(
        ResiliencePolicy(name="critique", timeout_seconds=timeout, circuit_failure_threshold=None)
    )
    return FrameCritic(client=client, executor=executor)


async def _run(critic: FrameCritic):
    return await critic.critique(
        frame_name="Login",
        frame_index=1,
        frame_count=1,
        heuristic_data={"overall": 80},
        persona={},
        image_url="https://images.example/login.png",
    )


def test_critic_returns_parsed_critique(tmp_path) -> None:
    client = CritiqueModelClient(
        settings=_settings(tmp_path),
        transport=model_transport(lambda body: critique_reply("Clear", 77)),
    )
    outcome = asyncio.run(_run(_critic(client)))
    assert outcome.ok
    assert outcome.critique.overall_score == 77
    assert outcome.critique.issues[0].id == "frame1-issue0"


def test_critic_without_key_reports_unconfigured(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("DESIGNLENS_CRITIQUE_API_KEY", raising=False)
    client = CritiqueModelClient(settings=_settings(tmp_path, critique_api_key=None))
    outcome = asyncio.run(_run(_critic(client)))
    assert not outcome.ok
    assert outcome.ai_error == "critique_model_unconfigured"


def test_critic_reports_timeout(tmp_path) -> None:
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.5)
        return httpx.Response(200, json=chat_completion(critique_reply("Late", 50)))

    client = CritiqueModelClient(settings=_settings(tmp_path), transport=httpx.MockTransport(slow))
    outcome = asyncio.run(_run(_critic(client, timeout=0.01)))
    assert outcome.ai_error == "critique_timeout"


def test_client_timeout_is_reported_as_critique_timeout(tmp_path) -> None:
    def stalled(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    client = CritiqueModelClient(settings=_settings(tmp_path), transport=httpx.MockTransport(stalled))
    outcome = asyncio.run(_run(_critic(client)))
    assert outcome.ai_error == "critique_timeout"


def test_repeated_timeouts_still_send_every_frame(tmp_path) -> None:
    calls: list[int] = []

    async def hanging(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        await asyncio.sleep(0.5)
        return httpx.Response(200, json=chat_completion(critique_reply("Late", 50)))

    settings = _settings(tmp_path, critique_timeout_seconds=0.01)
    client = CritiqueModelClient(settings=settings, transport=httpx.MockTransport(hanging))
    critic = FrameCritic(client=client, executor=_resilience_registry(settings).critique)

    async def run_frames() -> list[str | None]:
        errors = []
        for index in range(1, 6):
            outcome = await critic.critique(
                frame_name=f"Frame {index}",
                frame_index=index,
                frame_count=5,
                heuristic_data={},
                persona={},
            )
            errors.append(outcome.ai_error)
        return errors

    assert asyncio.run(run_frames()) == ["critique_timeout"] * 5
    assert len(calls) == 5


def test_critic_reports_http_failure(tmp_path) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
    client = CritiqueModelClient(settings=_settings(tmp_path), transport=transport)
    outcome = asyncio.run(_run(_critic(client)))
    assert outcome.ai_error == "Critique model returned HTTP 500"


def test_critic_keeps_raw_reply_on_parse_failure(tmp_path) -> None:
    client = CritiqueModelClient(
        settings=_settings(tmp_path),
        transport=model_transport(lambda body: "Sorry, I cannot help with that."),
    )
    outcome = asyncio.run(_run(_critic(client)))
    assert outcome.critique is None
    assert outcome.ai_error.endswith("Raw reply: Sorry, I cannot help with that.")


def test_request_carries_prompt_and_image(tmp_path) -> None:
    seen: list[dict] = []

    def record(body: dict) -> str:
        seen.append(body)
        return critique_reply("Ok", 60)

    client = CritiqueModelClient(settings=_settings(tmp_path), transport=model_transport(record))
    asyncio.run(_run(_critic(client)))

    body = seen[0]
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"][0]["role"] == "system"
    user_parts = body["messages"][1]["content"]
    assert 'Evaluate frame 1 of 1: "Login".' in user_parts[0]["text"]
    assert user_parts[1]["image_url"]["url"] == "https://images.example/login.png"
