"""Canonical records for the engagement core.

Persistence adapters translate storage rows into these records and back;
nothing above the adapters sees column names or legacy aliases.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

PROJECT_STATUSES = ("draft", "in_progress", "completed", "cancelled")
INVITATION_STATUSES = ("pending", "accepted", "rejected", "cancelled")
INVITATION_VIEW_STATUSES = INVITATION_STATUSES + ("expired",)
JOB_STATUSES = ("active", "checked_in", "in_progress", "completed", "confirmed", "paid")


@dataclass(slots=True)
class ProjectRecord:
    id: str
    company_id: str
    name: str
    address: str
    required_workers: int
    payment_type: str
    amount: Decimal
    daily_wage: Decimal
    original_wage: Decimal
    wage_unit: str
    start_date: date
    end_date: date
    status: str
    created_at: datetime
    updated_at: datetime
    start_time: time | None = None
    end_time: time | None = None
    estimated_duration_days: int | None = None
    description: str | None = None
    skill_ids: list[int] = field(default_factory=list)


@dataclass(slots=True)
class InvitationRecord:
    id: str
    project_id: str
    company_id: str
    worker_id: str
    wage_amount: Decimal
    original_wage: Decimal
    wage_unit: str
    payment_type: str
    start_date: date
    end_date: date
    status: str
    invited_at: datetime
    updated_at: datetime
    message: str | None = None
    expires_at: datetime | None = None
    response_note: str | None = None
    responded_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def effective_status(self, now: datetime) -> str:
        if self.status == "pending" and self.is_expired(now):
            return "expired"
        return self.status


@dataclass(slots=True)
class JobRecord:
    id: str
    invitation_id: str
    project_id: str
    company_id: str
    worker_id: str
    wage_amount: Decimal
    original_wage: Decimal
    wage_unit: str
    start_date: date
    status: str
    created_at: datetime
    updated_at: datetime
    check_in_time: datetime | None = None
    start_work_time: datetime | None = None
    complete_time: datetime | None = None
    complete_notes: str | None = None
    photos: list[str] = field(default_factory=list)
    quality_rating: int | None = None
    confirmation_notes: str | None = None
    confirmed_at: datetime | None = None
    payment_method: str | None = None
    transaction_reference: str | None = None
    payment_notes: str | None = None
    paid_amount: Decimal | None = None
    paid_at: datetime | None = None


@dataclass(slots=True)
class NotificationRecord:
    id: str
    recipient_id: str
    recipient_role: str
    type: str
    title: str
    payload: dict[str, Any]
    created_at: datetime
    read: bool = False


@dataclass(slots=True)
class SkillRecord:
    id: int
    name: str
    category: str | None = None


@dataclass(slots=True)
class ProjectSummary:
    project: ProjectRecord
    invitation_counts: dict[str, int]


@dataclass(slots=True)
class BatchInviteResult:
    created: list[InvitationRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)


@dataclass(slots=True)
class ResponseOutcome:
    invitation: InvitationRecord
    job_record: JobRecord | None = None
