import asyncio

from ticketbot import main
from ticketbot.core import database


class RecordingEngine:
    def __init__(self) -> None:
        self.disposed = False

    async def dispose(self) -> None:
        self.disposed = True


def test_dispose_db_releases_engine_pool(monkeypatch) -> None:
    engine = RecordingEngine()
    monkeypatch.setattr(database, "engine", engine)
    asyncio.run(database.dispose_db())
    assert engine.disposed


def test_shutdown_hook_disposes_database(monkeypatch) -> None:
    calls: list[str] = []

    async def _dispose() -> None:
        calls.append("dispose")

    monkeypatch.setattr(main, "dispose_db", _dispose)
    asyncio.run(main.on_shutdown())
    assert calls == ["dispose"]