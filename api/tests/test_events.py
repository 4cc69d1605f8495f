from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from crewlink.core.config import Settings
from crewlink.services import notifications
from crewlink.services.events import EngagementEvent, EventBus
from crewlink.services.notifications import (
    InboxNotificationGateway,
    WebhookNotificationGateway,
    build_event_bus,
)


class _FailingGateway:
    async def notify(self, event: EngagementEvent) -> None:
        raise RuntimeError("push provider down")


def _event(**overrides) -> EngagementEvent:
    values = {
        "type": "invitation_received",
        "recipient_id": "w-1",
        "recipient_role": "worker",
        "payload": {"invitation_id": "inv-1"},
    }
    values.update(overrides)
    return EngagementEvent(**values)


def test_publish_returns_before_delivery_and_drain_waits(gateway) -> None:
    bus = EventBus([gateway])

    async def scenario():
        bus.publish(_event())
        before = list(gateway.events)
        await bus.drain()
        return before

    before = asyncio.run(scenario())

    assert before == []
    assert [event.type for event in gateway.events] == ["invitation_received"]


def test_failing_gateway_is_logged_and_isolated(gateway, caplog: pytest.LogCaptureFixture) -> None:
    bus = EventBus([_FailingGateway(), gateway])

    async def scenario():
        bus.publish(_event())
        await bus.drain()

    with caplog.at_level(logging.ERROR, logger="crewlink.services.events"):
        asyncio.run(scenario())

    assert len(gateway.events) == 1
    assert "notification delivery failed" in caplog.text


def test_publish_without_running_loop_is_dropped(gateway) -> None:
    bus = EventBus([gateway])

    bus.publish(_event())

    assert gateway.events == []


def test_inbox_gateway_persists_unread_notification(store) -> None:
    inbox = InboxNotificationGateway(store)

    async def scenario():
        await inbox.notify(_event())
        await inbox.notify(_event(type="invitation_cancelled"))
        unread = await store.count_unread_notifications(recipient_id="w-1", recipient_role="worker")
        rows = await store.list_notifications(recipient_id="w-1", recipient_role="worker")
        await store.mark_notification_read(notification_id=rows[0].id, recipient_id="w-1", recipient_role="worker")
        after_one = await store.count_unread_notifications(recipient_id="w-1", recipient_role="worker")
        marked = await store.mark_all_notifications_read(recipient_id="w-1", recipient_role="worker")
        return unread, rows, after_one, marked

    unread, rows, after_one, marked = asyncio.run(scenario())

    assert unread == 2
    assert {row.title for row in rows} == {"New job invitation", "Invitation cancelled"}
    assert after_one == 1
    assert marked == 1


def test_inbox_is_scoped_by_recipient_role(store) -> None:
    inbox = InboxNotificationGateway(store)

    async def scenario():
        await inbox.notify(_event(recipient_id="same-id", recipient_role="company"))
        return await store.list_notifications(recipient_id="same-id", recipient_role="worker")

    assert asyncio.run(scenario()) == []


def test_webhook_gateway_posts_event_json(monkeypatch: pytest.MonkeyPatch) -> None:
    received: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(202)

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        notifications.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    gateway = WebhookNotificationGateway("https://push.example/hooks", timeout=2.0)

    asyncio.run(gateway.notify(_event()))

    assert received == [
        {
            "type": "invitation_received",
            "recipient_id": "w-1",
            "recipient_role": "worker",
            "payload": {"invitation_id": "inv-1"},
            "occurred_at": None,
        }
    ]


def test_build_event_bus_adds_webhook_only_when_configured(store, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    async def fake_notify(self, event: EngagementEvent) -> None:
        calls.append(self.url)

    monkeypatch.setattr(WebhookNotificationGateway, "notify", fake_notify)

    async def scenario(settings: Settings):
        bus = build_event_bus(store, settings)
        bus.publish(_event())
        await bus.drain()

    asyncio.run(scenario(Settings(notification_webhook_url=None)))
    asyncio.run(scenario(Settings(notification_webhook_url="https://push.example/hooks")))

    assert calls == ["https://push.example/hooks"]
    assert len(store.notifications) == 2
