from __future__ import annotations

from dataclasses import replace
from typing import Mapping

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketbot.core.config import IntakeConfig
from ticketbot.models.bot_config import BotConfig

logger = structlog.get_logger(__name__)

BOOLEAN_KEYS = {
    "enableTextLogging": "enable_text_logging",
    "enableImageDownload": "enable_image_download",
    "enableDatabaseStorage": "enable_database_storage",
}
TEXT_KEYS = {
    "mediaStoragePath": "media_storage_path",
}
KNOWN_KEYS = {**BOOLEAN_KEYS, **TEXT_KEYS}


def apply_overrides(config: IntakeConfig, values: Mapping[str, str]) -> IntakeConfig:
    changes: dict[str, object] = {}
    for key, raw in values.items():
        if key in BOOLEAN_KEYS:
            changes[BOOLEAN_KEYS[key]] = str(raw).strip().lower() == "true"
        elif key in TEXT_KEYS:
            changes[TEXT_KEYS[key]] = str(raw)
        else:
            logger.warning("bot_config_unknown_key", key=key)
    return replace(config, **changes) if changes else config


def to_bot_config_values(config: IntakeConfig) -> dict[str, str]:
    values: dict[str, str] = {}
    for key, attr in KNOWN_KEYS.items():
        value = getattr(config, attr)
        values[key] = str(value).lower() if isinstance(value, bool) else str(value)
    return values


async def read_bot_config(
    session_factory: async_sessionmaker[AsyncSession],
) -> dict[str, str]:
    async with session_factory() as session:
        result = await session.execute(select(BotConfig.key, BotConfig.value))
        return {key: value for key, value in result.all()}


async def load_bot_config(
    session_factory: async_sessionmaker[AsyncSession],
    defaults: IntakeConfig,
) -> IntakeConfig:
    try:
        values = await read_bot_config(session_factory)
    except SQLAlchemyError as exc:
        logger.warning("bot_config_load_failed", error=str(exc))
        return defaults
    logger.info("bot_config_loaded", keys=sorted(values))
    return apply_overrides(defaults, values)


async def update_bot_config(
    session_factory: async_sessionmaker[AsyncSession],
    key: str,
    value: str | bool,
) -> str:
    if key not in KNOWN_KEYS:
        raise ValueError(f"Unknown config key: {key}")
    stored = str(value).lower() if isinstance(value, bool) else str(value)
    statement = insert(BotConfig).values(key=key, value=stored)
    statement = statement.on_conflict_do_update(
        index_elements=[BotConfig.key],
        set_={"value": stored, "updated_at": func.now()},
    )
    async with session_factory() as session:
        await session.execute(statement)
        await session.commit()
    logger.info("bot_config_updated", key=key, value=stored)
    return stored
