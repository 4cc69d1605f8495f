from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

from crewlink.core.config import get_settings
from crewlink.main import app
from crewlink.services.repository import get_repository


@pytest.fixture
def gated_client(store) -> TestClient:
    os.environ["CREWLINK_GATEWAY_API_KEY"] = "gateway-secret"
    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: store

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    os.environ.pop("CREWLINK_GATEWAY_API_KEY", None)
    get_settings.cache_clear()


def test_missing_actor_headers_are_unauthorized(gated_client: TestClient) -> None:
    response = gated_client.get("/projects", headers={"X-API-Key": "gateway-secret"})
    assert response.status_code == 401


def test_unknown_role_is_unauthorized(gated_client: TestClient) -> None:
    response = gated_client.get(
        "/projects",
        headers={"X-API-Key": "gateway-secret", "X-Actor-Role": "admin", "X-Actor-Id": "root"},
    )
    assert response.status_code == 401


def test_gateway_key_is_required_when_configured(gated_client: TestClient) -> None:
    headers = {"X-Actor-Role": "company", "X-Actor-Id": "acme"}

    assert gated_client.get("/projects", headers=headers).status_code == 401
    assert gated_client.get("/projects", headers={**headers, "X-API-Key": "wrong"}).status_code == 401
    assert gated_client.get("/projects", headers={**headers, "X-API-Key": "gateway-secret"}).status_code == 200


def test_workers_cannot_list_company_projects(gated_client: TestClient) -> None:
    response = gated_client.get(
        "/projects",
        headers={"X-API-Key": "gateway-secret", "X-Actor-Role": "worker", "X-Actor-Id": "ana"},
    )
    assert response.status_code == 403
