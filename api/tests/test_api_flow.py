from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from crewlink.core.clock import get_clock
from crewlink.core.config import get_settings
from crewlink.main import app
from crewlink.services.events import EventBus
from crewlink.services.notifications import build_event_bus
from crewlink.services.repository import get_repository
from crewlink.services.skills import SkillCatalogCache

COMPANY = {"X-Actor-Role": "company", "X-Actor-Id": "acme"}
ANA = {"X-Actor-Role": "worker", "X-Actor-Id": "ana"}
BOB = {"X-Actor-Role": "worker", "X-Actor-Id": "bob"}

PROJECT_BODY = {
    "name": "Warehouse racking",
    "address": "12 Dock Road",
    "required_workers": 2,
    "payment_type": "hourly",
    "amount": "50",
    "start_date": "2026-03-10",
    "end_date": "2026-03-12",
    "skills": ["carpentry"],
}


@pytest.fixture
def api_client(store, clock) -> TestClient:
    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as client:
        app.state.event_bus = build_event_bus(store, get_settings())
        app.state.skill_cache = SkillCatalogCache(store.list_skills)
        yield client

    app.dependency_overrides.clear()
    get_settings.cache_clear()


def _create_project(client: TestClient) -> dict:
    response = client.post("/projects", json=PROJECT_BODY, headers=COMPANY)
    assert response.status_code == 201
    return response.json()


def test_end_to_end_engagement(api_client: TestClient, store) -> None:
    project = _create_project(api_client)
    assert project["daily_wage"] == "400.00"
    assert project["wage_unit"] == "hour"
    assert project["skill_ids"] == [2]

    batch = api_client.post(
        f"/projects/{project['id']}/invitations",
        json={"worker_ids": ["ana", "bob", "ana"], "message": "Three days of racking"},
        headers=COMPANY,
    )
    assert batch.status_code == 200
    body = batch.json()
    assert [row["worker_id"] for row in body["created"]] == ["ana", "bob"]
    assert body["skipped"] == ["ana"]
    assert body["failed"] == []
    ana_invitation = body["created"][0]
    assert ana_invitation["wage_amount"] == "400.00"

    accepted = api_client.post(
        f"/invitations/{ana_invitation['id']}/respond",
        json={"decision": "accepted", "note": "On my way"},
        headers=ANA,
    )
    assert accepted.status_code == 200
    job = accepted.json()["job_record"]
    assert job["status"] == "active"
    assert job["wage_amount"] == "400.00"

    for path in ("check-in", "start"):
        response = api_client.post(f"/jobs/{job['id']}/{path}", headers=ANA)
        assert response.status_code == 200
    completed = api_client.post(
        f"/jobs/{job['id']}/complete",
        json={"photos": ["https://img.example/rack.jpg"], "notes": "All bays done"},
        headers=ANA,
    )
    assert completed.json()["status"] == "completed"

    confirmed = api_client.post(f"/jobs/{job['id']}/confirm", json={"quality_rating": 5}, headers=COMPANY)
    assert confirmed.json()["status"] == "confirmed"

    paid = api_client.post(
        f"/jobs/{job['id']}/pay",
        json={"payment_method": "wechat", "transaction_reference": "WX-42"},
        headers=COMPANY,
    )
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["paid_amount"] == "400.00"

    summary = api_client.get(f"/projects/{project['id']}", headers=COMPANY)
    assert summary.status_code == 200
    assert summary.json()["invitation_counts"]["accepted"] == 1
    assert summary.json()["invitation_counts"]["pending"] == 1
    assert summary.json()["project"]["status"] == "draft"

    unread = api_client.get("/notifications/unread-count", headers=COMPANY)
    assert unread.json() == {"unread": 4}
    inbox = api_client.get("/notifications", headers=ANA)
    assert [row["type"] for row in inbox.json()].count("job_paid") == 1
    assert len(store.jobs) == 1


def test_error_taxonomy_maps_to_http_status(api_client: TestClient) -> None:
    project = _create_project(api_client)

    invalid = api_client.post(
        "/projects",
        json={**PROJECT_BODY, "end_date": "2026-03-01"},
        headers=COMPANY,
    )
    assert invalid.status_code == 422
    assert invalid.json()["detail"]["field"] == "end_date"

    forbidden = api_client.post(f"/projects/{project['id']}/status", json={"status": "in_progress"}, headers=ANA)
    assert forbidden.status_code == 403

    illegal = api_client.post(f"/projects/{project['id']}/status", json={"status": "completed"}, headers=COMPANY)
    assert illegal.status_code == 409
    assert illegal.json()["detail"]["code"] == "invalid_state"
    assert illegal.json()["detail"]["current_state"] == "draft"

    created = api_client.post("/invitations", json={"project_id": project["id"], "worker_id": "ana"}, headers=COMPANY)
    assert created.status_code == 201
    duplicate = api_client.post("/invitations", json={"project_id": project["id"], "worker_id": "ana"}, headers=COMPANY)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "conflict"

    missing = api_client.get("/invitations/does-not-exist", headers=ANA)
    assert missing.status_code == 404


def test_expired_invitation_returns_gone(api_client: TestClient, clock) -> None:
    project = _create_project(api_client)
    expires_at = (clock.now() + timedelta(hours=1)).isoformat()
    created = api_client.post(
        "/invitations",
        json={"project_id": project["id"], "worker_id": "bob", "expires_at": expires_at},
        headers=COMPANY,
    )
    assert created.status_code == 201
    invitation_id = created.json()["id"]

    clock.advance(hours=2)
    listed = api_client.get("/invitations", params={"status": "expired"}, headers=BOB)
    assert [row["id"] for row in listed.json()] == [invitation_id]
    assert listed.json()[0]["effective_status"] == "expired"

    response = api_client.post(f"/invitations/{invitation_id}/respond", json={"decision": "accepted"}, headers=BOB)
    assert response.status_code == 410
    assert response.json()["detail"]["code"] == "expired"


def test_pay_rejects_amount_override(api_client: TestClient, store) -> None:
    project = _create_project(api_client)
    invitation = api_client.post(
        "/invitations", json={"project_id": project["id"], "worker_id": "ana"}, headers=COMPANY
    ).json()
    job = api_client.post(
        f"/invitations/{invitation['id']}/respond", json={"decision": "accepted"}, headers=ANA
    ).json()["job_record"]

    early = api_client.post(f"/jobs/{job['id']}/pay", json={"payment_method": "cash"}, headers=COMPANY)
    assert early.status_code == 409

    override = api_client.post(
        f"/jobs/{job['id']}/pay",
        json={"payment_method": "cash", "paid_amount": "1"},
        headers=COMPANY,
    )
    assert override.status_code == 422
    assert store.jobs[job["id"]].status == "active"


def test_worker_cannot_confirm_over_http(api_client: TestClient) -> None:
    project = _create_project(api_client)
    invitation = api_client.post(
        "/invitations", json={"project_id": project["id"], "worker_id": "ana"}, headers=COMPANY
    ).json()
    job = api_client.post(
        f"/invitations/{invitation['id']}/respond", json={"decision": "accepted"}, headers=ANA
    ).json()["job_record"]

    response = api_client.post(f"/jobs/{job['id']}/confirm", json={"quality_rating": 5}, headers=ANA)

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "forbidden"


def test_notifications_can_be_marked_read(api_client: TestClient) -> None:
    project = _create_project(api_client)
    api_client.post("/invitations", json={"project_id": project["id"], "worker_id": "ana"}, headers=COMPANY)

    inbox = api_client.get("/notifications", params={"unread_only": True}, headers=ANA).json()
    assert [row["type"] for row in inbox] == ["invitation_received"]

    read = api_client.post(f"/notifications/{inbox[0]['id']}/read", headers=ANA)
    assert read.status_code == 200
    assert read.json()["read"] is True

    other = api_client.post(f"/notifications/{inbox[0]['id']}/read", headers=BOB)
    assert other.status_code == 404

    assert api_client.post("/notifications/read-all", headers=ANA).json() == {"marked": 0}
    assert api_client.get("/notifications/unread-count", headers=ANA).json() == {"unread": 0}


def test_skill_catalog_is_loaded_once_per_application(api_client: TestClient, store) -> None:
    _create_project(api_client)
    _create_project(api_client)

    assert store.skill_loads == 1


def test_shutdown_waits_for_pending_notifications(store, clock) -> None:
    delivered: list[str] = []

    class _SlowGateway:
        async def notify(self, event) -> None:
            await asyncio.sleep(0.05)
            delivered.append(event.type)

    app.dependency_overrides[get_repository] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        with TestClient(app) as client:
            app.state.event_bus = EventBus([_SlowGateway()])
            app.state.skill_cache = SkillCatalogCache(store.list_skills)
            project = _create_project(client)
            invited = client.post(
                "/invitations", json={"project_id": project["id"], "worker_id": "ana"}, headers=COMPANY
            )
            assert invited.status_code == 201
    finally:
        app.dependency_overrides.clear()

    assert delivered == ["invitation_received"]
