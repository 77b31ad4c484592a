from __future__ import annotations

from typing import Sequence

import structlog

from ticketbot.services.ticket_resolver import TicketSummary
from ticketbot.services.transport import Transport, TransportError

logger = structlog.get_logger(__name__)

ISSUE_TITLE_MIN = 5
ISSUE_TITLE_MAX = 100
UPDATE_TEXT_MIN = 5
UPDATE_TEXT_MAX = 500


def _ticket_line(ticket: TicketSummary) -> str:
    title = ticket.issue or "(no title)"
    line = f"#{ticket.id} - {title} ({ticket.status.replace('_', ' ')})"
    if ticket.department_name:
        line = f"{line} [{ticket.department_name}]"
    return line


def format_department_menu(departments: Sequence[str], invalid: bool = False) -> str:
    lines = []
    if invalid:
        lines.append("Sorry, that is not a valid option.")
    lines.append("Please choose your department by replying with its number:")
    lines.extend(f"{index}. {name}" for index, name in enumerate(departments, start=1))
    return "\n".join(lines)


def format_issue_title_prompt(department_name: str | None, returning: bool = False) -> str:
    lines = []
    if returning:
        lines.append("Welcome back!")
    if department_name:
        lines.append(f"Department: {department_name}")
    lines.append(
        f"Please send a short title for your issue ({ISSUE_TITLE_MIN}-{ISSUE_TITLE_MAX} characters)."
    )
    return "\n".join(lines)


def format_issue_title_error(length: int) -> str:
    reason = "too short" if length < ISSUE_TITLE_MIN else "too long"
    return (
        f"Your issue title is {reason} ({length} characters). "
        f"Please send a title between {ISSUE_TITLE_MIN} and {ISSUE_TITLE_MAX} characters."
    )


def format_ticket_created(ticket_id: int, issue: str, department_name: str | None) -> str:
    lines = [
        f"✅ Ticket #{ticket_id} has been created.",
        f"Issue: {issue}",
    ]
    if department_name:
        lines.append(f"Department: {department_name}")
    lines.append("Status: open")
    lines.append("Our team will get back to you soon.")
    return "\n".join(lines)


def format_ticket_decision(tickets: Sequence[TicketSummary], invalid: bool = False) -> str:
    lines = []
    if invalid:
        lines.append("Sorry, please reply with 1 or 2.")
    else:
        count = len(tickets)
        noun = "ticket" if count == 1 else "tickets"
        lines.append(f"You have {count} open {noun}:")
        lines.extend(_ticket_line(ticket) for ticket in tickets)
    lines.append("Reply 1 to continue with an existing ticket.")
    lines.append("Reply 2 to create a new ticket.")
    return "\n".join(lines)


def format_ticket_selection(tickets: Sequence[TicketSummary], invalid: bool = False) -> str:
    lines = []
    if invalid:
        lines.append(f"Sorry, please reply with a number between 1 and {len(tickets)}.")
    lines.append("Which ticket would you like to update?")
    lines.extend(
        f"{index}. {_ticket_line(ticket)}" for index, ticket in enumerate(tickets, start=1)
    )
    return "\n".join(lines)


def format_update_prompt(ticket_id: int) -> str:
    return (
        f"Please send your update for ticket #{ticket_id} "
        f"({UPDATE_TEXT_MIN}-{UPDATE_TEXT_MAX} characters)."
    )


def format_update_error(length: int) -> str:
    reason = "too short" if length < UPDATE_TEXT_MIN else "too long"
    return (
        f"Your update is {reason} ({length} characters). "
        f"Please send between {UPDATE_TEXT_MIN} and {UPDATE_TEXT_MAX} characters."
    )


def format_update_appended(ticket_id: int) -> str:
    return f"✅ Your message has been added to ticket #{ticket_id}. Thank you!"


def format_apology() -> str:
    return "Sorry, something went wrong on our side. Please send your message again in a few minutes."


class Responder:
    """Sends flow prompts; delivery failures are logged, never raised."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    async def send(self, receiver_id: str, text: str) -> bool:
        try:
            await self.transport.send_text(receiver_id, text)
        except TransportError as exc:
            logger.error("errors", stage="reply_send", receiver_id=receiver_id, error=str(exc))
            return False
        return True

    async def department_menu(
        self, receiver_id: str, departments: Sequence[str], invalid: bool = False
    ) -> bool:
        return await self.send(receiver_id, format_department_menu(departments, invalid))

    async def ask_issue_title(
        self, receiver_id: str, department_name: str | None, returning: bool = False
    ) -> bool:
        return await self.send(receiver_id, format_issue_title_prompt(department_name, returning))

    async def issue_title_invalid(self, receiver_id: str, length: int) -> bool:
        return await self.send(receiver_id, format_issue_title_error(length))

    async def ticket_created(
        self, receiver_id: str, ticket_id: int, issue: str, department_name: str | None
    ) -> bool:
        return await self.send(
            receiver_id, format_ticket_created(ticket_id, issue, department_name)
        )

    async def ticket_decision(
        self, receiver_id: str, tickets: Sequence[TicketSummary], invalid: bool = False
    ) -> bool:
        return await self.send(receiver_id, format_ticket_decision(tickets, invalid))

    async def ticket_selection(
        self, receiver_id: str, tickets: Sequence[TicketSummary], invalid: bool = False
    ) -> bool:
        return await self.send(receiver_id, format_ticket_selection(tickets, invalid))

    async def ask_update(self, receiver_id: str, ticket_id: int) -> bool:
        return await self.send(receiver_id, format_update_prompt(ticket_id))

    async def update_invalid(self, receiver_id: str, length: int) -> bool:
        return await self.send(receiver_id, format_update_error(length))

    async def update_appended(self, receiver_id: str, ticket_id: int) -> bool:
        return await self.send(receiver_id, format_update_appended(ticket_id))

    async def apology(self, receiver_id: str) -> bool:
        return await self.send(receiver_id, format_apology())
