from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from crewlink.core.auth import company, worker
from crewlink.services.errors import AuthorizationError, ConflictError, NotFoundError, StateError, ValidationError
from crewlink.services.invitations import InvitationDispatcher
from crewlink.services.projects import ProjectRegistry

ACME = company("acme")
PROJECT_PAYLOAD = {
    "name": "Office fit-out",
    "address": "3 Quay Street",
    "required_workers": 2,
    "payment_type": "hourly",
    "amount": "50",
    "start_date": "2026-03-10",
    "end_date": "2026-03-12",
}


def _services(store, clock, bus):
    return ProjectRegistry(store, clock=clock), InvitationDispatcher(store, events=bus, clock=clock)


def test_batch_invite_reports_created_skipped_and_failed(store, clock, bus, gateway) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        await dispatcher.invite_worker(project.id, "w-1", ACME)
        result = await dispatcher.invite_workers(project.id, ["w-1", "w-2", "w-2", "", "w-3"], ACME)
        await bus.drain()
        return result

    result = asyncio.run(scenario())

    assert [row.worker_id for row in result.created] == ["w-2", "w-3"]
    assert result.skipped == ["w-1", "w-2"]
    assert result.failed == [{"worker_id": "", "error": "invalid worker id"}]
    assert gateway.types_for("w-2") == ["invitation_received"]
    assert gateway.types_for("w-1") == ["invitation_received"]


def test_invitation_snapshots_project_wage_terms(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        return await dispatcher.invite_worker(project.id, "w-1", ACME, message="Bring boots")

    invitation = asyncio.run(scenario())

    assert invitation.status == "pending"
    assert invitation.wage_amount == Decimal("400.00")
    assert invitation.original_wage == Decimal("50")
    assert invitation.wage_unit == "hour"
    assert invitation.message == "Bring boots"


def test_single_invite_conflicts_on_existing_pair(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        await dispatcher.invite_worker(project.id, "w-1", ACME)
        await dispatcher.invite_worker(project.id, "w-1", ACME)

    with pytest.raises(ConflictError):
        asyncio.run(scenario())
    assert len(store.invitations) == 1


def test_pair_stays_unique_after_cancellation(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        first = await dispatcher.invite_worker(project.id, "w-1", ACME)
        await dispatcher.cancel_invitation(first.id, ACME)
        return await dispatcher.invite_workers(project.id, ["w-1"], ACME)

    result = asyncio.run(scenario())

    assert result.created == []
    assert result.skipped == ["w-1"]


def test_concurrent_batches_create_one_invitation_per_pair(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        return await asyncio.gather(
            dispatcher.invite_workers(project.id, ["w-1", "w-2"], ACME),
            dispatcher.invite_workers(project.id, ["w-2", "w-1"], ACME),
        )

    first, second = asyncio.run(scenario())

    assert len(first.created) + len(second.created) == 2
    assert len(store.invitations) == 2


def test_invite_requires_owner_and_open_project(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        with pytest.raises(AuthorizationError):
            await dispatcher.invite_workers(project.id, ["w-1"], company("globex"))
        await registry.transition_status(project.id, "cancelled", ACME)
        with pytest.raises(StateError):
            await dispatcher.invite_workers(project.id, ["w-1"], ACME)
        with pytest.raises(NotFoundError):
            await dispatcher.invite_workers("missing", ["w-1"], ACME)

    asyncio.run(scenario())
    assert store.invitations == {}


def test_expiry_must_be_in_the_future(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        await dispatcher.invite_workers(project.id, ["w-1"], ACME, expires_at=clock.now())

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.field == "expires_at"


def test_naive_expiry_is_treated_as_utc(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)
    naive = datetime(2026, 3, 3, 9, 0)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        return await dispatcher.invite_worker(project.id, "w-1", ACME, expires_at=naive)

    invitation = asyncio.run(scenario())

    assert invitation.expires_at == clock.now() + timedelta(days=1)


def test_cancel_invitation_only_from_pending_and_by_owner(store, clock, bus, gateway) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        invitation = await dispatcher.invite_worker(project.id, "w-1", ACME)
        with pytest.raises(AuthorizationError):
            await dispatcher.cancel_invitation(invitation.id, worker("w-1"))
        cancelled = await dispatcher.cancel_invitation(invitation.id, ACME)
        with pytest.raises(StateError):
            await dispatcher.cancel_invitation(invitation.id, ACME)
        await bus.drain()
        return cancelled

    cancelled = asyncio.run(scenario())

    assert cancelled.status == "cancelled"
    assert gateway.types_for("w-1") == ["invitation_received", "invitation_cancelled"]


def test_list_invitations_derives_expired_status(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        await dispatcher.invite_worker(project.id, "w-1", ACME, expires_at=clock.now() + timedelta(hours=2))
        await dispatcher.invite_worker(project.id, "w-2", ACME)
        clock.advance(hours=3)
        expired = await dispatcher.list_invitations(ACME, status="expired")
        pending = await dispatcher.list_invitations(ACME, status="pending")
        mine = await dispatcher.list_invitations(worker("w-1"))
        summary = await registry.get_project(project.id)
        return expired, pending, mine, summary

    expired, pending, mine, summary = asyncio.run(scenario())

    assert [row.worker_id for row in expired] == ["w-1"]
    assert [row.worker_id for row in pending] == ["w-2"]
    assert [row.worker_id for row in mine] == ["w-1"]
    assert mine[0].status == "pending"
    assert summary.invitation_counts["expired"] == 1
    assert summary.invitation_counts["pending"] == 1


def test_get_invitation_hides_other_parties(store, clock, bus) -> None:
    registry, dispatcher = _services(store, clock, bus)

    async def scenario():
        project = await registry.create_project(ACME, PROJECT_PAYLOAD)
        invitation = await dispatcher.invite_worker(project.id, "w-1", ACME)
        await dispatcher.get_invitation(invitation.id, worker("w-2"))

    with pytest.raises(NotFoundError):
        asyncio.run(scenario())
