from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketbot.core.config import IntakeConfig
from ticketbot.models.inbound_message import InboundMessage as InboundMessageRow
from ticketbot.schemas.webhook import InboundMessage
from ticketbot.services.conversation import ConversationEngine
from ticketbot.services.media_store import MediaStore
from ticketbot.services.message_filter import MessageFilter
from ticketbot.services.session_store import SessionStore
from ticketbot.utils.time import parse_timestamp, to_epoch_ms, utc_now

logger = structlog.get_logger(__name__)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no", ""}:
            return False
    return bool(value)


def phone_from_conversation_id(conversation_id: str) -> str:
    """``15551234567:12@s.whatsapp.net`` -> ``15551234567``."""
    user_part = conversation_id.split("@", 1)[0]
    return user_part.split(":", 1)[0]


def normalize_webhook(payload: dict[str, Any]) -> InboundMessage:
    conversation_id = payload.get("conversation_id") or payload.get("jid")
    message_id = payload.get("message_id") or payload.get("id")
    if not conversation_id or not message_id:
        raise ValueError("Missing conversation_id or message_id")
    phone_number = phone_from_conversation_id(str(conversation_id))
    if not phone_number:
        raise ValueError("Missing phone number in conversation_id")

    message_type = str(payload.get("message_type") or "conversation").strip()
    text = payload.get("text")
    if text is None:
        text = payload.get("body")

    media = payload.get("media")
    media_url = payload.get("media_url")
    caption = payload.get("caption")
    if isinstance(media, dict):
        media_url = media_url or media.get("url")
        caption = caption or media.get("caption")

    return InboundMessage(
        conversation_id=str(conversation_id),
        phone_number=phone_number,
        message_id=str(message_id),
        message_type=message_type,
        text=str(text) if text is not None else "",
        caption=str(caption) if caption is not None else None,
        media_url=str(media_url) if media_url else None,
        timestamp=parse_timestamp(payload.get("timestamp")),
        from_self=_coerce_bool(payload.get("from_me", payload.get("from_self", False))),
        raw_payload=payload,
    )


class PhoneLocks:
    """One asyncio lock per phone number, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, phone_number: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(phone_number, asyncio.Lock())
        self._users[phone_number] = self._users.get(phone_number, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[phone_number] -= 1
            if self._users[phone_number] == 0:
                del self._users[phone_number]
                del self._locks[phone_number]


class MessageProcessor:
    def __init__(
        self,
        config: IntakeConfig,
        message_filter: MessageFilter,
        sessions: SessionStore,
        engine: ConversationEngine,
        media_store: MediaStore | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.config = config
        self.message_filter = message_filter
        self.sessions = sessions
        self.engine = engine
        self.media_store = media_store
        self.session_factory = session_factory
        self.locks = PhoneLocks()

    def update_config(self, config: IntakeConfig) -> None:
        self.config = config
        if self.media_store is not None:
            self.media_store.storage_path = Path(config.media_storage_path)

    async def handle_webhook(self, payload: dict[str, Any]) -> None:
        try:
            message = normalize_webhook(payload)
        except ValueError as exc:
            logger.warning("webhook_invalid", error=str(exc))
            return
        try:
            await self.handle(message)
        except Exception as exc:
            logger.exception(
                "errors",
                stage="processor",
                message_id=message.message_id,
                error=str(exc),
            )

    async def handle(self, message: InboundMessage) -> bool:
        """Process one normalized message; returns False when it was filtered out."""
        if not self.message_filter.admit(message):
            logger.debug("message_rejected", message_id=message.message_id)
            return False

        logger.info(
            "message_received",
            phone_number=message.phone_number,
            message_type=message.message_type,
            has_text=bool(message.text.strip()),
        )
        if self.config.enable_text_logging and message.text:
            logger.info("message_text", phone_number=message.phone_number, text=message.text)

        with structlog.contextvars.bound_contextvars(
            phone_number=message.phone_number, message_id=message.message_id
        ):
            async with self.locks.hold(message.phone_number):
                await self.sessions.sweep_expired(utc_now())
                if message.is_text:
                    await self._handle_text(message)
                elif message.is_image:
                    await self._handle_image(message)
                else:
                    logger.info("message_type_ignored", message_type=message.message_type)
        return True

    async def _handle_text(self, message: InboundMessage) -> None:
        if not message.text.strip():
            return
        if not self.config.enable_database_storage:
            logger.info("ticket_flow_disabled", phone_number=message.phone_number)
            return
        await self._record(message)
        await self.engine.handle_text(
            message.phone_number,
            message.text,
            reply_to=message.conversation_id,
        )

    async def _handle_image(self, message: InboundMessage) -> None:
        if not self.config.enable_image_download or self.media_store is None:
            logger.info("image_download_disabled", message_id=message.message_id)
            return
        path = await self.media_store.save_image(message)
        if path is None:
            return
        if message.caption and self.config.enable_text_logging:
            logger.info("image_caption", message_id=message.message_id, caption=message.caption)
        if self.config.enable_database_storage:
            await self._record(message, media_path=str(path))

    async def _record(self, message: InboundMessage, media_path: str | None = None) -> None:
        if self.session_factory is None:
            return
        row = InboundMessageRow(
            jid=message.conversation_id,
            message_type=message.message_type,
            content=message.text or None,
            media_path=media_path,
            caption=message.caption,
            timestamp=to_epoch_ms(message.timestamp or utc_now()),
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "errors",
                stage="inbound_log",
                message_id=message.message_id,
                error=str(exc),
            )
