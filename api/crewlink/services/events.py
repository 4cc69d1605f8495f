"""Engagement events and their fire-and-forget dispatch.

Core services publish events without awaiting delivery; subscribed gateways
run as background tasks and a failing gateway never affects the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)

INVITATION_RECEIVED = "invitation_received"
INVITATION_CANCELLED = "invitation_cancelled"
INVITATION_ACCEPTED = "invitation_accepted"
INVITATION_REJECTED = "invitation_rejected"
JOB_CHECKED_IN = "job_checked_in"
JOB_STARTED = "job_started"
JOB_COMPLETED = "job_completed"
JOB_CONFIRMED = "job_confirmed"
JOB_PAID = "job_paid"

@dataclass(slots=True, frozen=True)
class EngagementEvent:
    type: str
    recipient_id: str
    recipient_role: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime | None = None


class NotificationGateway(Protocol):
    async def notify(self, event: EngagementEvent) -> None: ...


class EventBus:
    """Fans events out to gateways; one instance lives for the whole application."""

    def __init__(self, gateways: list[NotificationGateway] | None = None) -> None:
        self._gateways: list[NotificationGateway] = list(gateways or [])
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, gateway: NotificationGateway) -> None:
        self._gateways.append(gateway)

    def publish(self, event: EngagementEvent) -> None:
        """Schedule delivery to every gateway and return immediately."""
        if not self._gateways:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("event dropped outside an event loop type=%s", event.type)
            return
        for gateway in self._gateways:
            task = loop.create_task(self._deliver(gateway, event))
            self._pending.add(task)
            task.add_done_callback(self._forget)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _forget(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)

    @staticmethod
    async def _deliver(gateway: NotificationGateway, event: EngagementEvent) -> None:
        try:
            await gateway.notify(event)
        except Exception:
            logger.exception(
                "notification delivery failed gateway=%s type=%s recipient=%s",
                type(gateway).__name__,
                event.type,
                event.recipient_id,
            )

