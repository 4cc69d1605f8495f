from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("CREWLINK_OTEL_ENABLED", "false")
os.environ.pop("CREWLINK_DATABASE_URL", None)

from crewlink.services.events import EngagementEvent, EventBus  # noqa: E402
from crewlink.services.repository import DEFAULT_SKILLS  # noqa: E402
from crewlink.services.store import InMemoryStore  # noqa: E402

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class ManualClock:
    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


class RecordingGateway:
    def __init__(self) -> None:
        self.events: list[EngagementEvent] = []

    async def notify(self, event: EngagementEvent) -> None:
        self.events.append(event)

    def types_for(self, recipient_id: str) -> list[str]:
        return [event.type for event in self.events if event.recipient_id == recipient_id]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(skills=DEFAULT_SKILLS)


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def bus(gateway: RecordingGateway) -> EventBus:
    return EventBus([gateway])
