"""HTTP tests for design records, version history, revert, and preview parsing."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from designlens.services.app import create_app
from designlens.services.config import ServiceSettings
from designlens.services.figma_client import FigmaClient
from designlens.services.ledger import DesignLedger

from design_fixtures import figma_handler, figma_transport, three_screen_document
from test_app import API_PREFIX, _read_error


def _create_design(client: TestClient, **overrides: Any) -> dict[str, Any]:
    payload = {"title": "Checkout flow", "file_key": "FILEKEY"}
    payload.update(overrides)
    response = client.post(f"{API_PREFIX}/designs", json=payload)
    assert response.status_code == 201, response.json()
    return response.json()


def _ledger(client: TestClient) -> DesignLedger:
    return client.app.state.ledger  # type: ignore[attr-defined]


def test_create_design_derives_file_key_from_url(test_client: TestClient) -> None:
    design = _create_design(
        test_client,
        file_key=None,
        figma_url="https://www.figma.com/design/AbC123/Checkout?node-id=12-34",
    )
    assert design["file_key"] == "AbC123"
    assert design["node_id"] == "12:34"
    assert design["current_version_id"] is None

    fetched = test_client.get(f"{API_PREFIX}/designs/{design['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == design


def test_create_design_rejects_unparseable_url(test_client: TestClient) -> None:
    response = test_client.post(
        f"{API_PREFIX}/designs",
        json={"title": "Broken", "figma_url": "https://example.com/nothing-here"},
    )
    assert response.status_code == 400
    assert _read_error(response)["code"] == "VALIDATION"


def test_versions_are_listed_in_ascending_order(test_client: TestClient) -> None:
    design = _create_design(test_client)
    ledger = _ledger(test_client)
    for _ in range(3):
        ledger.create_version(design["id"], file_key="FILEKEY", node_id=None)

    response = test_client.get(f"{API_PREFIX}/designs/{design['id']}/versions")
    assert response.status_code == 200
    numbers = [version["version"] for version in response.json()["versions"]]
    assert numbers == [1, 2, 3]


def test_revert_by_number_moves_pointer_only(test_client: TestClient) -> None:
    design = _create_design(test_client)
    ledger = _ledger(test_client)
    versions = [ledger.create_version(design["id"], file_key="FILEKEY", node_id=None) for _ in range(3)]

    response = test_client.post(f"{API_PREFIX}/designs/{design['id']}/revert", json={"version": 1})
    assert response.status_code == 200
    assert response.json()["current_version_id"] == versions[0].id

    listing = test_client.get(f"{API_PREFIX}/designs/{design['id']}/versions").json()
    assert len(listing["versions"]) == 3
    assert listing["current_version_id"] == versions[0].id

    ledger.create_version(design["id"], file_key="FILEKEY", node_id=None)
    assert ledger.list_versions(design["id"])[-1].version == 4


def test_revert_rejects_version_of_another_design(test_client: TestClient) -> None:
    first = _create_design(test_client)
    second = _create_design(test_client, title="Other design")
    ledger = _ledger(test_client)
    ledger.create_version(first["id"], file_key="FILEKEY", node_id=None)
    foreign = ledger.create_version(second["id"], file_key="FILEKEY", node_id=None)

    response = test_client.post(
        f"{API_PREFIX}/designs/{first['id']}/revert", json={"version_id": foreign.id}
    )
    assert response.status_code == 400
    assert _read_error(response)["code"] == "VALIDATION"
    assert ledger.get_design(first["id"]).current_version_id is None


def test_revert_to_missing_version_is_not_found(test_client: TestClient) -> None:
    design = _create_design(test_client)
    response = test_client.post(f"{API_PREFIX}/designs/{design['id']}/revert", json={"version": 9})
    assert response.status_code == 404


def test_revert_requires_a_target(test_client: TestClient) -> None:
    design = _create_design(test_client)
    response = test_client.post(f"{API_PREFIX}/designs/{design['id']}/revert", json={})
    assert response.status_code == 400


def test_evaluations_listing_is_empty_for_new_design(test_client: TestClient) -> None:
    design = _create_design(test_client)
    response = test_client.get(f"{API_PREFIX}/designs/{design['id']}/evaluations")
    assert response.status_code == 200
    assert response.json() == {"results": []}


def _parse_client(settings: ServiceSettings, transport: httpx.MockTransport) -> TestClient:
    app = create_app(settings, figma_client=FigmaClient(settings=settings, transport=transport))
    return TestClient(app)


def test_parse_returns_preview_and_caches(service_settings: ServiceSettings) -> None:
    calls: list[str] = []
    inner = figma_handler(three_screen_document())

    def counting(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return inner(request)

    with _parse_client(service_settings, httpx.MockTransport(counting)) as client:
        url = "https://www.figma.com/file/FILEKEY/Sample"
        first = client.post(f"{API_PREFIX}/designs/parse", json={"url": url})
        assert first.status_code == 200, first.json()
        payload = first.json()
        assert payload["cached"] is False
        assert [item["frame"]["name"] for item in payload["frames"]] == [
            "Login Screen",
            "Dashboard",
            "Settings",
        ]
        login = payload["frames"][0]
        assert any(element["kind"] == "button" for element in login["elements"])
        assert 0 <= login["accessibility"]["average_score"] <= 100
        assert "overall" in login["frame_scores"]

        second = client.post(f"{API_PREFIX}/designs/parse", json={"url": url})
        assert second.json()["cached"] is True
    assert calls == ["/v1/files/FILEKEY"]


def test_parse_serves_stale_preview_when_rate_limited(service_settings: ServiceSettings) -> None:
    service_settings.parse_cache_ttl_seconds = 0.0
    state = {"limited": False}
    inner = figma_handler(three_screen_document())

    def handler(request: httpx.Request) -> httpx.Response:
        if state["limited"]:
            return httpx.Response(429, headers={"retry-after": "30"})
        return inner(request)

    with _parse_client(service_settings, httpx.MockTransport(handler)) as client:
        url = "https://www.figma.com/file/FILEKEY/Sample"
        assert client.post(f"{API_PREFIX}/designs/parse", json={"url": url}).status_code == 200
        state["limited"] = True
        response = client.post(f"{API_PREFIX}/designs/parse", json={"url": url})
        assert response.status_code == 200
        assert response.json()["stale"] is True


def test_parse_reports_rate_limit_without_cache(service_settings: ServiceSettings) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(429))
    with _parse_client(service_settings, transport) as client:
        response = client.post(
            f"{API_PREFIX}/designs/parse", json={"url": "https://www.figma.com/file/KEY/x"}
        )
    assert response.status_code == 429
    assert _read_error(response)["code"] == "RATE_LIMIT"


@pytest.mark.parametrize("status_code", [403, 500])
def test_parse_maps_upstream_failures(service_settings: ServiceSettings, status_code: int) -> None:
    with _parse_client(service_settings, figma_transport({}, status_code=status_code)) as client:
        response = client.post(
            f"{API_PREFIX}/designs/parse", json={"url": "https://www.figma.com/file/KEY/x"}
        )
    assert response.status_code == 502
    assert _read_error(response)["code"] == "UPSTREAM_ERROR"
