from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    title: str
    payload: dict[str, Any] = Field(default_factory=dict)
    read: bool
    created_at: datetime


class UnreadCountOut(BaseModel):
    unread: int


class MarkAllReadOut(BaseModel):
    marked: int
