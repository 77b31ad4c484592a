import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ticketbot.services.session_store import FlowState, InMemorySessionStore, Session

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _session(phone: str, minutes_ago: int | None) -> Session:
    last = NOW - timedelta(minutes=minutes_ago) if minutes_ago is not None else None
    return Session(
        phone_number=phone,
        state=FlowState.AWAITING_DEPARTMENT,
        last_activity_at=last,
    )


def test_put_get_delete() -> None:
    store = InMemorySessionStore()

    async def _run() -> None:
        await store.put("111", _session("111", 1))
        assert (await store.get("111")).state is FlowState.AWAITING_DEPARTMENT
        await store.delete("111")
        assert await store.get("111") is None
        await store.delete("111")

    asyncio.run(_run())


def test_put_rejects_mismatched_key() -> None:
    store = InMemorySessionStore()
    with pytest.raises(ValueError):
        asyncio.run(store.put("111", _session("222", 1)))


def test_sweep_removes_idle_sessions() -> None:
    store = InMemorySessionStore(timeout=timedelta(minutes=30))

    async def _run() -> int:
        await store.put("fresh", _session("fresh", 29))
        await store.put("edge", _session("edge", 30))
        await store.put("old", _session("old", 45))
        await store.put("unknown", _session("unknown", None))
        return await store.sweep_expired(NOW)

    assert asyncio.run(_run()) == 3
    assert len(store) == 1
    assert asyncio.run(store.get("fresh")) is not None
