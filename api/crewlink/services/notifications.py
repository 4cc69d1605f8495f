from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

from crewlink.core.config import Settings
from crewlink.services import events
from crewlink.services.events import EngagementEvent, EventBus
from crewlink.services.models import NotificationRecord
from crewlink.services.repository import EngagementRepository

logger = logging.getLogger(__name__)

EVENT_TITLES: dict[str, str] = {
    events.INVITATION_RECEIVED: "New job invitation",
    events.INVITATION_CANCELLED: "Invitation cancelled",
    events.INVITATION_ACCEPTED: "Invitation accepted",
    events.INVITATION_REJECTED: "Invitation declined",
    events.JOB_CHECKED_IN: "Worker checked in",
    events.JOB_STARTED: "Work started",
    events.JOB_COMPLETED: "Work completed",
    events.JOB_CONFIRMED: "Work confirmed",
    events.JOB_PAID: "Payment recorded",
}


class InboxNotificationGateway:
    """Persists each event as an unread inbox entry for its recipient."""

    def __init__(self, repository: EngagementRepository) -> None:
        self.repository = repository

    async def notify(self, event: EngagementEvent) -> None:
        notification = NotificationRecord(
            id=str(uuid.uuid4()),
            recipient_id=event.recipient_id,
            recipient_role=event.recipient_role,
            type=event.type,
            title=EVENT_TITLES.get(event.type, event.type),
            payload=_json_ready(event.payload),
            created_at=event.occurred_at or datetime.now(timezone.utc),
        )
        await self.repository.insert_notification(notification)


class WebhookNotificationGateway:
    """Hands events to an external push service over HTTP."""

    def __init__(self, url: str, timeout: float) -> None:
        self.url = url
        self.timeout = timeout

    async def notify(self, event: EngagementEvent) -> None:
        body = {
            "type": event.type,
            "recipient_id": event.recipient_id,
            "recipient_role": event.recipient_role,
            "payload": _json_ready(event.payload),
            "occurred_at": event.occurred_at.isoformat() if event.occurred_at else None,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=body)
            response.raise_for_status()
        logger.info("webhook delivered type=%s recipient=%s", event.type, event.recipient_id)


def build_event_bus(repository: EngagementRepository, settings: Settings) -> EventBus:
    bus = EventBus([InboxNotificationGateway(repository)])
    if settings.notification_webhook_url:
        bus.subscribe(
            WebhookNotificationGateway(
                url=settings.notification_webhook_url,
                timeout=settings.notification_timeout_seconds,
            )
        )
    return bus


def _json_ready(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _json_ready(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_ready(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
