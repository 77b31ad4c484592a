import asyncio
import json

import httpx
import pytest

from ticketbot.services import transport as transport_module
from ticketbot.services.transport import TransportClient, TransportError


def _patch_client(monkeypatch, handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []
    real_client = httpx.AsyncClient

    def _recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def _factory(**kwargs) -> httpx.AsyncClient:
        return real_client(transport=httpx.MockTransport(_recording), **kwargs)

    monkeypatch.setattr(transport_module.httpx, "AsyncClient", _factory)
    return seen


def test_missing_configuration_raises() -> None:
    with pytest.raises(TransportError):
        asyncio.run(TransportClient("", "key").send_text("1@s.whatsapp.net", "hi"))
    with pytest.raises(TransportError):
        asyncio.run(TransportClient("http://bridge", "").send_text("1@s.whatsapp.net", "hi"))


def test_send_text_posts_receiver_and_text(monkeypatch) -> None:
    seen = _patch_client(monkeypatch, lambda request: httpx.Response(200, json={"success": True}))
    client = TransportClient("http://bridge/", "bridge-key")
    result = asyncio.run(client.send_text("1@s.whatsapp.net", "hello"))

    assert result == {"success": True}
    [request] = seen
    assert str(request.url) == "http://bridge/send/text"
    assert request.headers["api-key"] == "bridge-key"
    assert json.loads(request.read()) == {"receiver_id": "1@s.whatsapp.net", "text": "hello"}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"success": False, "error": "offline"}),
    ],
)
def test_send_text_failures_raise(monkeypatch, response) -> None:
    _patch_client(monkeypatch, lambda request: response)
    client = TransportClient("http://bridge", "bridge-key")
    with pytest.raises(TransportError):
        asyncio.run(client.send_text("1@s.whatsapp.net", "hello"))
