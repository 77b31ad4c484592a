from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

TicketStatus = Literal["open", "in_progress", "resolved", "closed"]


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    issue: str | None = None
    description: str | None = None
    status: str
    priority: str
    assigned_to: int | None = None
    assigned_user_name: str | None = None
    created_by: int
    creator_phone: str
    creator_department: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TicketMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    message: str
    sender_type: str
    phone_number: str
    department_name: str
    created_at: datetime | None = None


class TicketStatusUpdate(BaseModel):
    status: TicketStatus
    changed_by: int | None = None


class TicketAssign(BaseModel):
    user_id: int


class TicketStatsOut(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0
