from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Protocol

from ticketbot.services.ticket_resolver import TicketSummary
from ticketbot.utils.time import utc_now


class FlowState(str, Enum):
    AWAITING_DEPARTMENT = "awaiting_department"
    AWAITING_ISSUE_TITLE = "awaiting_issue_title"
    AWAITING_TICKET_DECISION = "awaiting_ticket_decision"
    AWAITING_TICKET_SELECTION = "awaiting_ticket_selection"
    AWAITING_TICKET_UPDATE = "awaiting_ticket_update"


@dataclass(frozen=True)
class Session:
    """One user's position in the intake flow. Replace, never mutate."""

    phone_number: str
    state: FlowState
    pending_first_message: str | None = None
    selected_department_id: int | None = None
    selected_department_name: str | None = None
    candidate_tickets: tuple[TicketSummary, ...] = ()
    selected_ticket_id: int | None = None
    last_activity_at: datetime | None = None


class SessionStore(Protocol):
    async def get(self, phone_number: str) -> Session | None: ...

    async def put(self, phone_number: str, session: Session) -> None: ...

    async def delete(self, phone_number: str) -> None: ...

    async def sweep_expired(self, now: datetime | None = None) -> int: ...


class InMemorySessionStore:
    def __init__(self, timeout: timedelta = timedelta(minutes=30)) -> None:
        self.timeout = timeout
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, phone_number: str) -> Session | None:
        return self._sessions.get(phone_number)

    async def put(self, phone_number: str, session: Session) -> None:
        if session.phone_number != phone_number:
            raise ValueError("Session phone number does not match its key")
        self._sessions[phone_number] = session

    async def delete(self, phone_number: str) -> None:
        self._sessions.pop(phone_number, None)

    async def sweep_expired(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        expired = [
            phone
            for phone, session in self._sessions.items()
            if session.last_activity_at is None
            or now - session.last_activity_at >= self.timeout
        ]
        for phone in expired:
            del self._sessions[phone]
        return len(expired)
