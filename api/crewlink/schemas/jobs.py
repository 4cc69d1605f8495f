from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class JobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
    check_in_time: datetime | None = None
    start_work_time: datetime | None = None
    complete_time: datetime | None = None
    complete_notes: str | None = None
    photos: list[str] = Field(default_factory=list)
    quality_rating: int | None = None
    confirmation_notes: str | None = None
    confirmed_at: datetime | None = None
    payment_method: str | None = None
    transaction_reference: str | None = None
    payment_notes: str | None = None
    paid_amount: Decimal | None = None
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CompleteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    photos: list[str] = Field(default_factory=list)
    notes: str | None = None


class ConfirmRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quality_rating: int
    notes: str | None = None


class PayRequest(BaseModel):
    # The amount is fixed at acceptance time; any amount field is rejected.
    model_config = ConfigDict(extra="forbid")

    payment_method: Literal["wechat", "alipay", "transfer", "cash"]
    transaction_reference: str | None = None
    notes: str | None = None
