from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PaymentType = Literal["hourly", "daily", "fixed"]
ProjectStatus = Literal["draft", "in_progress", "completed", "cancelled"]


class ProjectCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    address: str
    description: str | None = None
    required_workers: int = Field(ge=1)
    payment_type: PaymentType
    amount: Decimal
    start_date: date
    end_date: date
    start_time: time | None = None
    end_time: time | None = None
    estimated_duration_days: int | None = None
    skills: list[str] = Field(default_factory=list)


class ProjectUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    address: str | None = None
    description: str | None = None
    required_workers: int | None = Field(default=None, ge=1)
    payment_type: PaymentType | None = None
    amount: Decimal | None = None
    start_date: date | None = None
    end_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    estimated_duration_days: int | None = None
    skills: list[str] | None = None


class ProjectStatusRequest(BaseModel):
    status: ProjectStatus


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    name: str
    address: str
    description: str | None = None
    required_workers: int
    payment_type: PaymentType
    amount: Decimal
    daily_wage: Decimal
    original_wage: Decimal
    wage_unit: str
    start_date: date
    end_date: date
    start_time: time | None = None
    end_time: time | None = None
    estimated_duration_days: int | None = None
    skill_ids: list[int] = Field(default_factory=list)
    status: ProjectStatus
    created_at: datetime
    updated_at: datetime


class ProjectSummaryOut(BaseModel):
    project: ProjectOut
    invitation_counts: dict[str, int]
