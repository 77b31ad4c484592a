from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketbot.api.deps import get_processor, get_session_factory, require_admin_key
from ticketbot.schemas.admin.config import BotConfigOut, BotConfigValue
from ticketbot.services.bot_config import (
    KNOWN_KEYS,
    apply_overrides,
    to_bot_config_values,
    update_bot_config,
)
from ticketbot.services.processor import MessageProcessor

router = APIRouter(
    prefix="/admin/config",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("", response_model=BotConfigOut)
async def get_config(
    processor: MessageProcessor = Depends(get_processor),
) -> BotConfigOut:
    return BotConfigOut(**to_bot_config_values(processor.config))


@router.put("/{key}", response_model=BotConfigOut)
async def put_config(
    key: str,
    payload: BotConfigValue,
    processor: MessageProcessor = Depends(get_processor),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> BotConfigOut:
    if key not in KNOWN_KEYS:
        raise HTTPException(status_code=404, detail="Unknown config key")
    stored = await update_bot_config(session_factory, key, payload.value)
    processor.update_config(apply_overrides(processor.config, {key: stored}))
    return BotConfigOut(**to_bot_config_values(processor.config))
