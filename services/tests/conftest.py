"""Pytest configuration for the services test suite."""

from __future__ import annotations

import sys
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient


def _ensure_paths() -> None:
    """Add the services src directory and this directory to ``sys.path``."""

    tests_dir = Path(__file__).resolve().parent
    for candidate in (tests_dir.parent / "src", tests_dir):
        candidate_str = str(candidate)
        if candidate.is_dir() and candidate_str not in sys.path:
            sys.path.insert(0, candidate_str)


_ensure_paths()

from designlens.services.config import ServiceSettings  # noqa: E402


@pytest.fixture()
def service_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ServiceSettings:
    """Settings rooted in a temporary data directory with no upstream credentials."""

    for name in (
        "FIGMA_ACCESS_TOKEN",
        "OPENAI_API_KEY",
        "DESIGNLENS_FIGMA_ACCESS_TOKEN",
        "DESIGNLENS_CRITIQUE_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DESIGNLENS_DATA_DIR", str(tmp_path / "data"))
    return ServiceSettings()


@pytest.fixture()
def service_app(service_settings: ServiceSettings) -> Iterator[FastAPI]:
    """Provide the FastAPI application with a temporary data directory."""

    from designlens.services.app import create_app

    app = create_app(service_settings)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def test_client(service_app: FastAPI) -> Iterator[TestClient]:
    """Yield a test client bound to the shared FastAPI application."""

    with TestClient(service_app) as client:
        client.app = service_app  # type: ignore[attr-defined]
        yield client


@pytest.fixture()
async def async_client(service_app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Provide an HTTPX async client bound to the FastAPI application."""

    transport = httpx.ASGITransport(app=service_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
