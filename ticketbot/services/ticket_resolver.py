from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Protocol

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketbot.models import (
    Department,
    Sender,
    StaffUser,
    Ticket,
    TicketMessage,
    TicketStatusLog,
)
from ticketbot.models.ticket import OPEN_STATUSES, TICKET_PRIORITIES, TICKET_STATUSES
from ticketbot.models.ticket_message import SENDER_TYPES
from ticketbot.utils.time import utc_now

logger = structlog.get_logger(__name__)


class ResolverError(Exception):
    pass


class NotFoundError(ResolverError):
    entity = "record"

    def __init__(self, entity_id: int) -> None:
        super().__init__(f"{self.entity.capitalize()} {entity_id} not found")
        self.entity_id = entity_id


class TicketNotFoundError(NotFoundError):
    entity = "ticket"


class StaffUserNotFoundError(NotFoundError):
    entity = "user"


@dataclass(frozen=True)
class TicketSummary:
    id: int
    issue: str | None
    status: str
    department_name: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class TicketDetail:
    id: int
    issue: str | None
    description: str | None
    status: str
    priority: str
    assigned_to: int | None
    assigned_user_name: str | None
    created_by: int
    creator_phone: str
    creator_department: str
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class TicketMessageView:
    id: int
    ticket_id: int
    message: str
    sender_type: str
    phone_number: str
    department_name: str
    created_at: datetime | None


@dataclass(frozen=True)
class DepartmentRef:
    id: int
    name: str


class TicketResolver(Protocol):
    """What the conversation flow needs from persistence."""

    async def list_open_tickets_for_phone(self, phone_number: str) -> list[TicketSummary]: ...

    async def department_for_phone(self, phone_number: str) -> int | None: ...

    async def department_name(self, department_id: int) -> str | None: ...

    async def department_id_by_name(self, name: str) -> int | None: ...

    async def ensure_sender(self, phone_number: str, department_id: int) -> int: ...

    async def bind_phone_to_department(self, phone_number: str, department_id: int) -> int: ...

    async def create_ticket(
        self, issue: str, description: str, sender_id: int, priority: str = "medium"
    ) -> int: ...

    async def create_ticket_for_phone(
        self,
        phone_number: str,
        issue: str,
        description: str,
        department_id: int | None = None,
        priority: str = "medium",
    ) -> int: ...

    async def append_message(
        self, ticket_id: int, sender_id: int, text: str, sender_type: str = "user"
    ) -> int: ...

    async def append_message_for_phone(
        self, ticket_id: int, phone_number: str, text: str
    ) -> int: ...


def _first_message_text(issue: str, description: str | None) -> str:
    if not description:
        return issue
    return f"{issue}\n\n{description}"


def _ticket_detail_query():
    return (
        select(
            Ticket,
            StaffUser.name.label("assigned_user_name"),
            Sender.phone_number.label("creator_phone"),
            Department.name.label("creator_department"),
        )
        .join(Sender, Ticket.created_by == Sender.id)
        .join(Department, Sender.department_id == Department.id)
        .outerjoin(StaffUser, Ticket.assigned_to == StaffUser.id)
    )


def _to_detail(row) -> TicketDetail:
    ticket = row[0]
    return TicketDetail(
        id=ticket.id,
        issue=ticket.issue,
        description=ticket.description,
        status=ticket.status,
        priority=ticket.priority,
        assigned_to=ticket.assigned_to,
        assigned_user_name=row.assigned_user_name,
        created_by=ticket.created_by,
        creator_phone=row.creator_phone,
        creator_department=row.creator_department,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
    )


class SqlTicketResolver:
    """Department, sender and ticket access; one transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, stage: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            # asyncpg connect failures reach us unwrapped
            logger.error("errors", stage=stage, error_type=type(exc).__name__, error=str(exc))
            raise ResolverError(f"{stage} failed") from exc

    async def list_open_tickets_for_phone(self, phone_number: str) -> list[TicketSummary]:
        query = (
            select(
                Ticket.id,
                Ticket.issue,
                Ticket.status,
                Department.name,
                Ticket.created_at,
            )
            .join(Sender, Ticket.created_by == Sender.id)
            .join(Department, Sender.department_id == Department.id)
            .where(Sender.phone_number == phone_number)
            .where(Ticket.status.in_(OPEN_STATUSES))
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        )
        async with self._transaction("list_open_tickets") as session:
            rows = (await session.execute(query)).all()
        return [
            TicketSummary(
                id=row[0],
                issue=row[1],
                status=row[2],
                department_name=row[3],
                created_at=row[4],
            )
            for row in rows
        ]

    async def department_for_phone(self, phone_number: str) -> int | None:
        query = (
            select(Sender.department_id)
            .where(Sender.phone_number == phone_number)
            .order_by(Sender.updated_at.desc(), Sender.id.desc())
            .limit(1)
        )
        async with self._transaction("department_for_phone") as session:
            return await session.scalar(query)

    async def department_name(self, department_id: int) -> str | None:
        async with self._transaction("department_name") as session:
            return await session.scalar(
                select(Department.name).where(Department.id == department_id)
            )

    async def department_id_by_name(self, name: str) -> int | None:
        query = select(Department.id).where(
            func.lower(Department.name) == name.strip().lower()
        )
        async with self._transaction("department_by_name") as session:
            return await session.scalar(query)

    async def list_departments(self) -> list[DepartmentRef]:
        async with self._transaction("list_departments") as session:
            result = await session.execute(select(Department).order_by(Department.name))
            return [DepartmentRef(id=item.id, name=item.name) for item in result.scalars()]

    async def ensure_sender(self, phone_number: str, department_id: int) -> int:
        async with self._transaction("ensure_sender") as session:
            return await self._ensure_sender(session, phone_number, department_id)

    async def bind_phone_to_department(self, phone_number: str, department_id: int) -> int:
        async with self._transaction("bind_department") as session:
            sender_id = await self._ensure_sender(
                session, phone_number, department_id, touch=True
            )
        logger.info(
            "department_bound",
            phone_number=phone_number,
            department_id=department_id,
            sender_id=sender_id,
        )
        return sender_id

    async def create_ticket(
        self, issue: str, description: str, sender_id: int, priority: str = "medium"
    ) -> int:
        async with self._transaction("create_ticket") as session:
            return await self._insert_ticket(session, issue, description, sender_id, priority)

    async def create_ticket_for_phone(
        self,
        phone_number: str,
        issue: str,
        description: str,
        department_id: int | None = None,
        priority: str = "medium",
    ) -> int:
        async with self._transaction("create_ticket") as session:
            if department_id is not None:
                sender_id = await self._ensure_sender(session, phone_number, department_id)
            else:
                sender_id = await self._latest_sender_id(session, phone_number)
                if sender_id is None:
                    raise ResolverError(f"No department known for {phone_number}")
            ticket_id = await self._insert_ticket(
                session, issue, description, sender_id, priority
            )
        logger.info("ticket_created", ticket_id=ticket_id, sender_id=sender_id)
        return ticket_id

    async def append_message(
        self, ticket_id: int, sender_id: int, text: str, sender_type: str = "user"
    ) -> int:
        async with self._transaction("append_message") as session:
            return await self._insert_message(session, ticket_id, sender_id, text, sender_type)

    async def append_message_for_phone(
        self, ticket_id: int, phone_number: str, text: str
    ) -> int:
        async with self._transaction("append_message") as session:
            sender_id = await self._latest_sender_id(session, phone_number)
            if sender_id is None:
                raise ResolverError(f"No sender known for {phone_number}")
            message_id = await self._insert_message(session, ticket_id, sender_id, text, "user")
        logger.info("ticket_message_added", ticket_id=ticket_id, sender_id=sender_id)
        return message_id

    async def get_ticket(self, ticket_id: int) -> TicketDetail | None:
        async with self._transaction("get_ticket") as session:
            row = (await session.execute(_ticket_detail_query().where(Ticket.id == ticket_id))).first()
        return _to_detail(row) if row else None

    async def list_tickets(
        self,
        status: str | None = None,
        phone_number: str | None = None,
        skip: int = 0,
        limit: int = 25,
    ) -> tuple[list[TicketDetail], int]:
        query = _ticket_detail_query()
        if status:
            query = query.where(Ticket.status == status)
        if phone_number:
            query = query.where(Sender.phone_number == phone_number)
        async with self._transaction("list_tickets") as session:
            total = await session.scalar(select(func.count()).select_from(query.subquery()))
            result = await session.execute(
                query.order_by(Ticket.created_at.desc(), Ticket.id.desc())
                .offset(skip)
                .limit(limit)
            )
            rows = result.all()
        return [_to_detail(row) for row in rows], total or 0

    async def update_ticket_status(
        self, ticket_id: int, new_status: str, changed_by: int | None = None
    ) -> str:
        """Set the status and log the change; returns the previous status."""
        if new_status not in TICKET_STATUSES:
            raise ValueError(f"Unknown ticket status: {new_status}")
        async with self._transaction("update_ticket_status") as session:
            ticket = await session.get(Ticket, ticket_id, with_for_update=True)
            if ticket is None:
                raise TicketNotFoundError(ticket_id)
            if changed_by is not None and await session.get(StaffUser, changed_by) is None:
                raise StaffUserNotFoundError(changed_by)
            old_status = ticket.status
            ticket.status = new_status
            ticket.updated_at = utc_now()
            if old_status != new_status:
                session.add(
                    TicketStatusLog(
                        ticket_id=ticket_id,
                        old_status=old_status,
                        new_status=new_status,
                        changed_by=changed_by,
                    )
                )
        logger.info(
            "ticket_status_updated",
            ticket_id=ticket_id,
            old_status=old_status,
            new_status=new_status,
        )
        return old_status

    async def assign_ticket(self, ticket_id: int, user_id: int) -> None:
        async with self._transaction("assign_ticket") as session:
            ticket = await session.get(Ticket, ticket_id, with_for_update=True)
            if ticket is None:
                raise TicketNotFoundError(ticket_id)
            if await session.get(StaffUser, user_id) is None:
                raise StaffUserNotFoundError(user_id)
            ticket.assigned_to = user_id
            ticket.updated_at = utc_now()
        logger.info("ticket_assigned", ticket_id=ticket_id, user_id=user_id)

    async def list_ticket_messages(self, ticket_id: int) -> list[TicketMessageView]:
        query = (
            select(TicketMessage, Sender.phone_number, Department.name)
            .join(Sender, TicketMessage.sender_id == Sender.id)
            .join(Department, Sender.department_id == Department.id)
            .where(TicketMessage.ticket_id == ticket_id)
            .order_by(TicketMessage.created_at.asc(), TicketMessage.id.asc())
        )
        async with self._transaction("list_ticket_messages") as session:
            rows = (await session.execute(query)).all()
        return [
            TicketMessageView(
                id=message.id,
                ticket_id=message.ticket_id,
                message=message.message,
                sender_type=message.sender_type,
                phone_number=phone_number,
                department_name=department_name,
                created_at=message.created_at,
            )
            for message, phone_number, department_name in rows
        ]

    async def ticket_stats_for_phone(self, phone_number: str) -> dict[str, int]:
        columns = [func.count(Ticket.id).label("total")] + [
            func.count(case((Ticket.status == status, 1))).label(status)
            for status in TICKET_STATUSES
        ]
        query = (
            select(*columns)
            .join(Sender, Ticket.created_by == Sender.id)
            .where(Sender.phone_number == phone_number)
        )
        async with self._transaction("ticket_stats") as session:
            row = (await session.execute(query)).one()
        return {key: int(value or 0) for key, value in row._mapping.items()}

    async def _ensure_sender(
        self,
        session: AsyncSession,
        phone_number: str,
        department_id: int,
        touch: bool = False,
    ) -> int:
        result = await session.execute(
            select(Sender)
            .where(Sender.phone_number == phone_number)
            .where(Sender.department_id == department_id)
            .limit(1)
        )
        sender = result.scalars().first()
        if sender:
            if touch:
                sender.updated_at = utc_now()
            return sender.id
        sender = Sender(phone_number=phone_number, department_id=department_id)
        session.add(sender)
        await session.flush()
        return sender.id

    async def _latest_sender_id(self, session: AsyncSession, phone_number: str) -> int | None:
        return await session.scalar(
            select(Sender.id)
            .where(Sender.phone_number == phone_number)
            .order_by(Sender.updated_at.desc(), Sender.id.desc())
            .limit(1)
        )

    async def _insert_ticket(
        self,
        session: AsyncSession,
        issue: str,
        description: str,
        sender_id: int,
        priority: str,
    ) -> int:
        if priority not in TICKET_PRIORITIES:
            raise ValueError(f"Unknown ticket priority: {priority}")
        ticket = Ticket(
            issue=issue,
            description=description,
            status="open",
            priority=priority,
            created_by=sender_id,
        )
        session.add(ticket)
        await session.flush()
        session.add(
            TicketMessage(
                ticket_id=ticket.id,
                message=_first_message_text(issue, description),
                sender_id=sender_id,
                sender_type="user",
            )
        )
        await session.flush()
        return ticket.id

    async def _insert_message(
        self,
        session: AsyncSession,
        ticket_id: int,
        sender_id: int,
        text: str,
        sender_type: str,
    ) -> int:
        if sender_type not in SENDER_TYPES:
            raise ValueError(f"Unknown sender type: {sender_type}")
        ticket = await session.get(Ticket, ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        message = TicketMessage(
            ticket_id=ticket_id,
            message=text,
            sender_id=sender_id,
            sender_type=sender_type,
        )
        session.add(message)
        ticket.updated_at = utc_now()
        await session.flush()
        return message.id
