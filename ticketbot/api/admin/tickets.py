from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from ticketbot.api.admin.utils import list_response
from ticketbot.api.deps import get_resolver, require_admin_key
from ticketbot.schemas.admin.ticket import (
    TicketAssign,
    TicketMessageOut,
    TicketOut,
    TicketStatsOut,
    TicketStatusUpdate,
)
from ticketbot.services.ticket_resolver import NotFoundError, SqlTicketResolver

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/tickets", response_model=dict)
async def list_tickets(
    status: str | None = None,
    phone: str | None = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=25, ge=1, le=200),
    resolver: SqlTicketResolver = Depends(get_resolver),
) -> dict:
    tickets, total = await resolver.list_tickets(
        status=status, phone_number=phone, skip=skip, limit=limit
    )
    items = [TicketOut.model_validate(ticket) for ticket in tickets]
    return list_response(items, total)


@router.get("/tickets/{ticket_id}", response_model=TicketOut)
async def get_ticket(
    ticket_id: int,
    resolver: SqlTicketResolver = Depends(get_resolver),
) -> TicketOut:
    ticket = await resolver.get_ticket(ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return TicketOut.model_validate(ticket)


@router.patch("/tickets/{ticket_id}/status", response_model=TicketOut)
async def update_ticket_status(
    ticket_id: int,
    payload: TicketStatusUpdate,
    resolver: SqlTicketResolver = Depends(get_resolver),
) -> TicketOut:
    try:
        await resolver.update_ticket_status(ticket_id, payload.status, payload.changed_by)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return await get_ticket(ticket_id, resolver)


@router.patch("/tickets/{ticket_id}/assign", response_model=TicketOut)
async def assign_ticket(
    ticket_id: int,
    payload: TicketAssign,
    resolver: SqlTicketResolver = Depends(get_resolver),
) -> TicketOut:
    try:
        await resolver.assign_ticket(ticket_id, payload.user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return await get_ticket(ticket_id, resolver)


@router.get("/tickets/{ticket_id}/messages", response_model=list[TicketMessageOut])
async def list_ticket_messages(
    ticket_id: int,
    resolver: SqlTicketResolver = Depends(get_resolver),
) -> list[TicketMessageOut]:
    if not await resolver.get_ticket(ticket_id):
        raise HTTPException(status_code=404, detail="Ticket not found")
    messages = await resolver.list_ticket_messages(ticket_id)
    return [TicketMessageOut.model_validate(message) for message in messages]


@router.get("/senders/{phone}/stats", response_model=TicketStatsOut)
async def sender_stats(
    phone: str,
    resolver: SqlTicketResolver = Depends(get_resolver),
) -> TicketStatsOut:
    return TicketStatsOut(**await resolver.ticket_stats_for_phone(phone))
