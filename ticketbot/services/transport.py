from __future__ import annotations

from typing import Protocol

import httpx
import structlog

logger = structlog.get_logger(__name__)


class TransportError(Exception):
    pass


class Transport(Protocol):
    async def send_text(self, receiver_id: str, text: str) -> dict: ...


class TransportClient:
    """HTTP client for the chat bridge that owns the messaging socket."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 20.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.headers = {"api-key": api_key}

    async def send_text(self, receiver_id: str, text: str) -> dict:
        return await self._post("/send/text", {"receiver_id": receiver_id, "text": text})

    async def _post(self, path: str, payload: dict) -> dict:
        if not self.base_url:
            raise TransportError("TRANSPORT_BASE_URL is not configured")
        if not self.api_key:
            raise TransportError("TRANSPORT_API_KEY is not configured")
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=self.headers)
        except httpx.HTTPError as exc:
            logger.error("errors", stage="transport_http", path=path, error=str(exc))
            raise TransportError(f"Send failed: {exc}") from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = response.text
            logger.error(
                "errors",
                stage="transport_http",
                path=path,
                status_code=response.status_code,
                response=body,
            )
            raise TransportError(f"Send failed: {response.status_code} {body}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError("Send failed: invalid JSON response") from exc

        if not isinstance(data, dict) or data.get("success") is not True:
            raise TransportError(f"Send failed: {data}")

        return data
