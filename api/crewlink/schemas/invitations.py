from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from crewlink.schemas.jobs import JobOut
from crewlink.services.models import InvitationRecord

InvitationStatus = Literal["pending", "accepted", "rejected", "cancelled", "expired"]


class BatchInviteRequest(BaseModel):
    worker_ids: list[str] = Field(min_length=1, max_length=200)
    message: str | None = None
    expires_at: datetime | None = None


class InviteRequest(BaseModel):
    project_id: str
    worker_id: str
    message: str | None = None
    expires_at: datetime | None = None


class RespondRequest(BaseModel):
    decision: str
    note: str | None = None


class InvitationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    company_id: str
    worker_id: str
    message: str | None = None
    wage_amount: Decimal
    original_wage: Decimal
    wage_unit: str
    payment_type: str
    start_date: date
    end_date: date
    status: str
    effective_status: InvitationStatus
    expires_at: datetime | None = None
    response_note: str | None = None
    invited_at: datetime
    responded_at: datetime | None = None
    updated_at: datetime

    @classmethod
    def from_record(cls, record: InvitationRecord, now: datetime) -> "InvitationOut":
        return cls.model_validate(
            {
                "id": record.id,
                "project_id": record.project_id,
                "company_id": record.company_id,
                "worker_id": record.worker_id,
                "message": record.message,
                "wage_amount": record.wage_amount,
                "original_wage": record.original_wage,
                "wage_unit": record.wage_unit,
                "payment_type": record.payment_type,
                "start_date": record.start_date,
                "end_date": record.end_date,
                "status": record.status,
                "effective_status": record.effective_status(now),
                "expires_at": record.expires_at,
                "response_note": record.response_note,
                "invited_at": record.invited_at,
                "responded_at": record.responded_at,
                "updated_at": record.updated_at,
            }
        )


class InviteFailureOut(BaseModel):
    worker_id: str
    error: str


class BatchInviteOut(BaseModel):
    created: list[InvitationOut]
    skipped: list[str]
    failed: list[InviteFailureOut]


class RespondOut(BaseModel):
    invitation: InvitationOut
    job_record: JobOut | None = None
