from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Awaitable, Callable

import structlog

from ticketbot.core.config import IntakeConfig
from ticketbot.services.responder import (
    ISSUE_TITLE_MAX,
    ISSUE_TITLE_MIN,
    UPDATE_TEXT_MAX,
    UPDATE_TEXT_MIN,
    Responder,
)
from ticketbot.services.session_store import FlowState, Session, SessionStore
from ticketbot.services.ticket_resolver import ResolverError, TicketResolver
from ticketbot.utils.time import utc_now

logger = structlog.get_logger(__name__)

CONTINUE_CHOICES = {"1", "continue_existing"}
NEW_TICKET_CHOICES = {"2", "create_new"}


class FlowInvariantError(Exception):
    """A session is missing data its state depends on."""


@dataclass(frozen=True)
class Turn:
    phone_number: str
    text: str
    reply_to: str
    now: datetime


def parse_choice(text: str, upper: int) -> int | None:
    try:
        value = int(text.strip())
    except ValueError:
        return None
    if 1 <= value <= upper:
        return value
    return None


class ConversationEngine:
    """Routes one inbound text to the handler for the sender's flow state."""

    def __init__(
        self,
        resolver: TicketResolver,
        responder: Responder,
        sessions: SessionStore,
        config: IntakeConfig,
    ) -> None:
        self.resolver = resolver
        self.responder = responder
        self.sessions = sessions
        self.config = config
        self._handlers: dict[FlowState, Callable[[Session, Turn], Awaitable[None]]] = {
            FlowState.AWAITING_DEPARTMENT: self._on_department,
            FlowState.AWAITING_ISSUE_TITLE: self._on_issue_title,
            FlowState.AWAITING_TICKET_DECISION: self._on_ticket_decision,
            FlowState.AWAITING_TICKET_SELECTION: self._on_ticket_selection,
            FlowState.AWAITING_TICKET_UPDATE: self._on_ticket_update,
        }
        missing = set(FlowState) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for states: {sorted(s.value for s in missing)}")

    async def handle_text(
        self,
        phone_number: str,
        text: str | None,
        reply_to: str | None = None,
        now: datetime | None = None,
    ) -> None:
        cleaned = (text or "").strip()
        if not cleaned:
            return
        turn = Turn(
            phone_number=phone_number,
            text=cleaned,
            reply_to=reply_to or phone_number,
            now=now or utc_now(),
        )
        session = await self.sessions.get(phone_number)
        state = session.state.value if session else "none"
        try:
            if session is None:
                await self._start(turn)
            else:
                await self._handlers[session.state](session, turn)
        except ResolverError as exc:
            logger.error(
                "errors",
                stage="conversation",
                phone_number=phone_number,
                state=state,
                error=str(exc),
            )
            await self.sessions.delete(phone_number)
            await self.responder.apology(turn.reply_to)
        except FlowInvariantError as exc:
            logger.error(
                "flow_invariant_violated",
                phone_number=phone_number,
                state=state,
                error=str(exc),
            )

    async def _call(self, operation: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(operation, timeout=self.config.resolver_timeout_sec)
        except asyncio.TimeoutError as exc:
            raise ResolverError("Resolver call timed out") from exc

    async def _save(self, session: Session, turn: Turn) -> None:
        await self.sessions.put(
            session.phone_number, replace(session, last_activity_at=turn.now)
        )

    async def _start(self, turn: Turn) -> None:
        tickets = await self._call(
            self.resolver.list_open_tickets_for_phone(turn.phone_number)
        )
        if tickets:
            session = Session(
                phone_number=turn.phone_number,
                state=FlowState.AWAITING_TICKET_DECISION,
                pending_first_message=turn.text,
                candidate_tickets=tuple(tickets),
            )
            await self._save(session, turn)
            await self.responder.ticket_decision(turn.reply_to, session.candidate_tickets)
            return
        await self._start_new_ticket(turn, turn.text)

    async def _start_new_ticket(self, turn: Turn, first_message: str) -> None:
        department_id = await self._call(self.resolver.department_for_phone(turn.phone_number))
        if department_id is None:
            session = Session(
                phone_number=turn.phone_number,
                state=FlowState.AWAITING_DEPARTMENT,
                pending_first_message=first_message,
            )
            await self._save(session, turn)
            await self.responder.department_menu(turn.reply_to, self.config.departments)
            return

        department_name = await self._call(self.resolver.department_name(department_id))
        session = Session(
            phone_number=turn.phone_number,
            state=FlowState.AWAITING_ISSUE_TITLE,
            pending_first_message=first_message,
            selected_department_id=department_id,
            selected_department_name=department_name,
        )
        await self._save(session, turn)
        await self.responder.ask_issue_title(turn.reply_to, department_name, returning=True)

    async def _on_department(self, session: Session, turn: Turn) -> None:
        catalog = self.config.departments
        choice = parse_choice(turn.text, len(catalog))
        if choice is None:
            await self._save(session, turn)
            await self.responder.department_menu(turn.reply_to, catalog, invalid=True)
            return

        department_name = catalog[choice - 1]
        department_id = await self._call(self.resolver.department_id_by_name(department_name))
        if department_id is None:
            raise ResolverError(f"Department '{department_name}' not found")
        await self._call(
            self.resolver.bind_phone_to_department(turn.phone_number, department_id)
        )
        await self._save(
            replace(
                session,
                state=FlowState.AWAITING_ISSUE_TITLE,
                selected_department_id=department_id,
                selected_department_name=department_name,
            ),
            turn,
        )
        await self.responder.ask_issue_title(turn.reply_to, department_name)

    async def _on_issue_title(self, session: Session, turn: Turn) -> None:
        if session.selected_department_id is None:
            raise FlowInvariantError("issue title received without a department")
        length = len(turn.text)
        if length < ISSUE_TITLE_MIN or length > ISSUE_TITLE_MAX:
            await self._save(session, turn)
            await self.responder.issue_title_invalid(turn.reply_to, length)
            return

        description = session.pending_first_message or turn.text
        ticket_id = await self._call(
            self.resolver.create_ticket_for_phone(
                turn.phone_number,
                turn.text,
                description,
                department_id=session.selected_department_id,
            )
        )
        await self.sessions.delete(turn.phone_number)
        await self.responder.ticket_created(
            turn.reply_to, ticket_id, turn.text, session.selected_department_name
        )

    async def _on_ticket_decision(self, session: Session, turn: Turn) -> None:
        tickets = session.candidate_tickets
        if not tickets:
            raise FlowInvariantError("ticket decision without candidate tickets")
        choice = turn.text.lower()

        if choice in CONTINUE_CHOICES:
            if len(tickets) > 1:
                await self._save(
                    replace(session, state=FlowState.AWAITING_TICKET_SELECTION), turn
                )
                await self.responder.ticket_selection(turn.reply_to, tickets)
                return
            await self._save(
                replace(
                    session,
                    state=FlowState.AWAITING_TICKET_UPDATE,
                    selected_ticket_id=tickets[0].id,
                ),
                turn,
            )
            await self.responder.ask_update(turn.reply_to, tickets[0].id)
            return

        if choice in NEW_TICKET_CHOICES:
            await self.sessions.delete(turn.phone_number)
            await self._start_new_ticket(turn, session.pending_first_message or turn.text)
            return

        await self._save(session, turn)
        await self.responder.ticket_decision(turn.reply_to, tickets, invalid=True)

    async def _on_ticket_selection(self, session: Session, turn: Turn) -> None:
        tickets = session.candidate_tickets
        if not tickets:
            raise FlowInvariantError("ticket selection without candidate tickets")
        choice = parse_choice(turn.text, len(tickets))
        if choice is None:
            await self._save(session, turn)
            await self.responder.ticket_selection(turn.reply_to, tickets, invalid=True)
            return

        ticket_id = tickets[choice - 1].id
        await self._save(
            replace(
                session,
                state=FlowState.AWAITING_TICKET_UPDATE,
                selected_ticket_id=ticket_id,
            ),
            turn,
        )
        await self.responder.ask_update(turn.reply_to, ticket_id)

    async def _on_ticket_update(self, session: Session, turn: Turn) -> None:
        if session.selected_ticket_id is None:
            raise FlowInvariantError("ticket update without a selected ticket")
        length = len(turn.text)
        if length < UPDATE_TEXT_MIN or length > UPDATE_TEXT_MAX:
            await self._save(session, turn)
            await self.responder.update_invalid(turn.reply_to, length)
            return

        await self._call(
            self.resolver.append_message_for_phone(
                session.selected_ticket_id, turn.phone_number, turn.text
            )
        )
        await self.sessions.delete(turn.phone_number)
        await self.responder.update_appended(turn.reply_to, session.selected_ticket_id)
