import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from ticketbot.api.deps import get_processor, get_resolver, get_session_factory
from ticketbot.core.config import IntakeConfig, settings
from ticketbot.main import app
from ticketbot.services.ticket_resolver import (
    DepartmentRef,
    StaffUserNotFoundError,
    TicketDetail,
    TicketMessageView,
    TicketNotFoundError,
)
from ticketbot.utils.security import sign_body

CREATED = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _detail(status: str = "open", assigned_to: int | None = None) -> TicketDetail:
    return TicketDetail(
        id=1,
        issue="Laptop broken",
        description="It will not boot",
        status=status,
        priority="medium",
        assigned_to=assigned_to,
        assigned_user_name=None,
        created_by=3,
        creator_phone="15551234567",
        creator_department="Finance",
        created_at=CREATED,
        updated_at=CREATED,
    )


class AdminResolver:
    def __init__(self) -> None:
        self.status = "open"
        self.assigned_to: int | None = None
        self.list_args: dict = {}

    async def list_tickets(self, **kwargs):
        self.list_args = kwargs
        return [_detail(self.status)], 1

    async def get_ticket(self, ticket_id: int):
        return _detail(self.status, self.assigned_to) if ticket_id == 1 else None

    async def update_ticket_status(self, ticket_id: int, status: str, changed_by=None) -> str:
        if ticket_id != 1:
            raise TicketNotFoundError(ticket_id)
        if changed_by == 99:
            raise StaffUserNotFoundError(changed_by)
        previous, self.status = self.status, status
        return previous

    async def assign_ticket(self, ticket_id: int, user_id: int) -> None:
        if ticket_id != 1:
            raise TicketNotFoundError(ticket_id)
        if user_id == 99:
            raise StaffUserNotFoundError(user_id)
        self.assigned_to = user_id

    async def list_ticket_messages(self, ticket_id: int):
        return [
            TicketMessageView(
                id=10,
                ticket_id=1,
                message="Laptop broken\n\nIt will not boot",
                sender_type="user",
                phone_number="15551234567",
                department_name="Finance",
                created_at=CREATED,
            )
        ]

    async def ticket_stats_for_phone(self, phone_number: str) -> dict:
        return {"total": 3, "open": 1, "in_progress": 1, "resolved": 0, "closed": 1}

    async def list_departments(self):
        return [DepartmentRef(id=2, name="Finance"), DepartmentRef(id=1, name="Human Resources")]


class RecordingProcessor:
    def __init__(self) -> None:
        self.payloads: list[dict] = []
        self.config = IntakeConfig()

    async def handle_webhook(self, payload: dict) -> None:
        self.payloads.append(payload)

    def update_config(self, config: IntakeConfig) -> None:
        self.config = config


class ConfigSession:
    def __init__(self) -> None:
        self.statements: list = []
        self.committed = False

    async def __aenter__(self) -> "ConfigSession":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    async def execute(self, statement) -> None:
        self.statements.append(statement)

    async def commit(self) -> None:
        self.committed = True


@pytest.fixture
def admin_resolver() -> AdminResolver:
    return AdminResolver()


@pytest.fixture
def processor() -> RecordingProcessor:
    return RecordingProcessor()


@pytest.fixture
def config_session() -> ConfigSession:
    return ConfigSession()


@pytest.fixture
def client(admin_resolver, processor, config_session):
    app.dependency_overrides[get_resolver] = lambda: admin_resolver
    app.dependency_overrides[get_processor] = lambda: processor
    app.dependency_overrides[get_session_factory] = lambda: (lambda: config_session)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _admin() -> dict:
    return {"x-api-key": settings.ADMIN_API_KEY}


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_admin_requires_api_key(client) -> None:
    assert client.get("/admin/tickets").status_code == 401
    assert client.get("/admin/tickets", headers={"x-api-key": "wrong"}).status_code == 401


def test_list_tickets_passes_filters(client, admin_resolver) -> None:
    response = client.get(
        "/admin/tickets",
        params={"status": "open", "phone": "15551234567", "skip": 5, "limit": 10},
        headers=_admin(),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["data"][0]["creator_department"] == "Finance"
    assert admin_resolver.list_args == {
        "status": "open",
        "phone_number": "15551234567",
        "skip": 5,
        "limit": 10,
    }


def test_get_ticket_and_missing_ticket(client) -> None:
    assert client.get("/admin/tickets/1", headers=_admin()).json()["issue"] == "Laptop broken"
    assert client.get("/admin/tickets/2", headers=_admin()).status_code == 404


def test_status_update(client) -> None:
    response = client.patch(
        "/admin/tickets/1/status",
        json={"status": "in_progress", "changed_by": 4},
        headers=_admin(),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"


def test_status_update_rejects_unknown_status(client) -> None:
    response = client.patch(
        "/admin/tickets/1/status", json={"status": "archived"}, headers=_admin()
    )
    assert response.status_code == 422


def test_status_update_missing_ticket(client) -> None:
    response = client.patch(
        "/admin/tickets/8/status", json={"status": "closed"}, headers=_admin()
    )
    assert response.status_code == 404


def test_status_update_by_unknown_user_is_not_found(client, admin_resolver) -> None:
    response = client.patch(
        "/admin/tickets/1/status",
        json={"status": "closed", "changed_by": 99},
        headers=_admin(),
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "User 99 not found"
    assert admin_resolver.status == "open"


def test_assign_ticket(client) -> None:
    response = client.patch("/admin/tickets/1/assign", json={"user_id": 4}, headers=_admin())
    assert response.json()["assigned_to"] == 4
    response = client.patch("/admin/tickets/1/assign", json={"user_id": 99}, headers=_admin())
    assert response.status_code == 404
    assert response.json()["detail"] == "User 99 not found"


def test_ticket_messages(client) -> None:
    response = client.get("/admin/tickets/1/messages", headers=_admin())
    assert response.json()[0]["phone_number"] == "15551234567"
    assert client.get("/admin/tickets/5/messages", headers=_admin()).status_code == 404


def test_sender_stats(client) -> None:
    response = client.get("/admin/senders/15551234567/stats", headers=_admin())
    assert response.json() == {
        "total": 3,
        "open": 1,
        "in_progress": 1,
        "resolved": 0,
        "closed": 1,
    }


def test_departments(client) -> None:
    response = client.get("/admin/departments", headers=_admin())
    assert [item["name"] for item in response.json()] == ["Finance", "Human Resources"]


def test_config_read_and_update(client, processor, config_session) -> None:
    response = client.get("/admin/config", headers=_admin())
    assert response.json()["enableTextLogging"] is True

    response = client.put(
        "/admin/config/enableTextLogging", json={"value": False}, headers=_admin()
    )
    assert response.status_code == 200
    assert response.json()["enableTextLogging"] is False
    assert processor.config.enable_text_logging is False
    assert config_session.committed

    response = client.put("/admin/config/unknownKey", json={"value": "x"}, headers=_admin())
    assert response.status_code == 404


def test_webhook_accepts_and_queues_payload(client, processor, monkeypatch) -> None:
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", None)
    payload = {"conversation_id": "1@s.whatsapp.net", "message_id": "m1", "text": "hello"}
    response = client.post("/webhook", json=payload)
    assert response.json() == {"status": "accepted"}
    assert processor.payloads == [payload]


def test_webhook_rejects_bad_json(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", None)
    response = client.post("/webhook", content=b"{not json")
    assert response.status_code == 400


def test_webhook_checks_signature(client, processor, monkeypatch) -> None:
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", "hook-secret")
    body = json.dumps({"conversation_id": "1@s.whatsapp.net", "message_id": "m1"}).encode()

    response = client.post("/webhook", content=body, headers={"x-webhook-signature": "sha256=bad"})
    assert response.status_code == 401

    response = client.post(
        "/webhook",
        content=body,
        headers={"x-webhook-signature": sign_body("hook-secret", body)},
    )
    assert response.status_code == 200
    assert len(processor.payloads) == 1
