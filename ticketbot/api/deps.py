from __future__ import annotations

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketbot.core.config import settings
from ticketbot.services.processor import MessageProcessor
from ticketbot.services.ticket_resolver import SqlTicketResolver
from ticketbot.utils.security import constant_time_equals


def require_admin_key(x_api_key: str | None = Header(default=None)) -> None:
    if not constant_time_equals(x_api_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key"
        )


def get_resolver(request: Request) -> SqlTicketResolver:
    return request.app.state.resolver


def get_processor(request: Request) -> MessageProcessor:
    return request.app.state.processor


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory
