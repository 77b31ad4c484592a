from __future__ import annotations

import json

import structlog
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request

from ticketbot.api.admin import router as admin_router
from ticketbot.api.deps import get_processor
from ticketbot.core.config import IntakeConfig, settings
from ticketbot.core.database import AsyncSessionLocal, dispose_db, init_db
from ticketbot.core.logging import setup_logging
from ticketbot.services.bot_config import load_bot_config
from ticketbot.services.conversation import ConversationEngine
from ticketbot.services.media_crypto import MediaCipher
from ticketbot.services.media_store import MediaStore
from ticketbot.services.message_filter import MessageFilter
from ticketbot.services.processor import MessageProcessor
from ticketbot.services.responder import Responder
from ticketbot.services.session_store import InMemorySessionStore
from ticketbot.services.ticket_resolver import SqlTicketResolver
from ticketbot.services.transport import TransportClient
from ticketbot.utils.security import verify_signature

logger = structlog.get_logger(__name__)

app = FastAPI(title="Ticket Intake Bot")


def build_processor(config: IntakeConfig, resolver: SqlTicketResolver) -> MessageProcessor:
    sessions = InMemorySessionStore(timeout=config.session_timeout)
    transport = TransportClient(
        settings.TRANSPORT_BASE_URL,
        settings.TRANSPORT_API_KEY,
        timeout=settings.REQUEST_TIMEOUT_SEC,
    )
    engine = ConversationEngine(resolver, Responder(transport), sessions, config)
    media_store = MediaStore(
        MediaCipher(settings.MEDIA_ENCRYPTION_KEY),
        config.media_storage_path,
        timeout=settings.REQUEST_TIMEOUT_SEC,
    )
    message_filter = MessageFilter(
        staleness_window=config.staleness_window,
        high_water=config.dedup_high_water,
        low_water=config.dedup_low_water,
    )
    return MessageProcessor(
        config,
        message_filter,
        sessions,
        engine,
        media_store=media_store,
        session_factory=AsyncSessionLocal,
    )


@app.on_event("startup")
async def on_startup() -> None:
    setup_logging()
    if settings.APP_ENV.lower() != "development":
        if settings.ADMIN_API_KEY == "change-me":
            raise RuntimeError("ADMIN_API_KEY must be set in non-development environments")
        if settings.MEDIA_ENCRYPTION_KEY == "change-me":
            raise RuntimeError("MEDIA_ENCRYPTION_KEY must be set in non-development environments")
    defaults = IntakeConfig.from_settings(settings)
    await init_db(defaults.departments)
    config = await load_bot_config(AsyncSessionLocal, defaults)
    resolver = SqlTicketResolver(AsyncSessionLocal)
    app.state.session_factory = AsyncSessionLocal
    app.state.resolver = resolver
    app.state.processor = build_processor(config, resolver)
    logger.info(
        "intake_started",
        departments=list(config.departments),
        database_storage=config.enable_database_storage,
        image_download=config.enable_image_download,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await dispose_db()


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/webhook")
async def webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    processor: MessageProcessor = Depends(get_processor),
) -> dict:
    body = await request.body()

    if settings.WEBHOOK_SECRET:
        signature = request.headers.get("x-webhook-signature")
        if not verify_signature(settings.WEBHOOK_SECRET, body, signature):
            raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    background_tasks.add_task(processor.handle_webhook, payload)
    return {"status": "accepted"}


app.include_router(admin_router)
