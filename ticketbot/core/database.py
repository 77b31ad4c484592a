from __future__ import annotations

from typing import AsyncIterator, Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ticketbot.core.config import settings
from ticketbot.models import Base, Department

logger = structlog.get_logger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def seed_departments(
    session_factory: async_sessionmaker[AsyncSession], names: Iterable[str]
) -> list[str]:
    """Insert catalog departments that are missing; returns the names added."""
    async with session_factory() as session:
        async with session.begin():
            existing = set((await session.execute(select(Department.name))).scalars())
            missing = [name for name in names if name not in existing]
            session.add_all(Department(name=name) for name in missing)
    if missing:
        logger.info("departments_seeded", names=missing)
    return missing


async def init_db(departments: Iterable[str] = ()) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_departments(AsyncSessionLocal, departments)


async def dispose_db() -> None:
    await engine.dispose()
    logger.info("database_disposed")


async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session
