from __future__ import annotations

import re
from pathlib import Path

import httpx
import structlog

from ticketbot.schemas.webhook import InboundMessage
from ticketbot.services.media_crypto import MediaCipher
from ticketbot.utils.time import to_epoch_ms, utc_now

logger = structlog.get_logger(__name__)

MAX_MEDIA_BYTES = 20 * 1024 * 1024


class MediaDownloadError(Exception):
    pass


def encrypted_file_name(conversation_id: str, timestamp_ms: int) -> str:
    sanitized = re.sub(r"[@:]", "_", conversation_id)
    return f"{sanitized}-{timestamp_ms}.enc"


class MediaStore:
    """Downloads inbound images and keeps them encrypted on disk."""

    def __init__(
        self,
        cipher: MediaCipher,
        storage_path: str | Path,
        timeout: float = 20.0,
        max_bytes: int = MAX_MEDIA_BYTES,
    ) -> None:
        self.cipher = cipher
        self.storage_path = Path(storage_path)
        self.timeout = timeout
        self.max_bytes = max_bytes

    def ensure_directory(self) -> None:
        self.storage_path.mkdir(parents=True, exist_ok=True)

    async def download(self, url: str) -> bytes:
        buffer = bytearray()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code >= 400:
                        raise MediaDownloadError(f"Upstream returned {response.status_code}")
                    async for chunk in response.aiter_bytes():
                        buffer.extend(chunk)
                        if len(buffer) > self.max_bytes:
                            raise MediaDownloadError("Media too large")
        except httpx.HTTPError as exc:
            raise MediaDownloadError(f"Download failed: {exc}") from exc
        return bytes(buffer)

    def write_encrypted(self, conversation_id: str, timestamp_ms: int, data: bytes) -> Path:
        self.ensure_directory()
        path = self.storage_path / encrypted_file_name(conversation_id, timestamp_ms)
        path.write_bytes(self.cipher.encrypt(data))
        return path

    def read_decrypted(self, path: str | Path) -> bytes:
        return self.cipher.decrypt(Path(path).read_bytes())

    async def save_image(self, message: InboundMessage) -> Path | None:
        if not message.media_url:
            logger.info("image_without_url", message_id=message.message_id)
            return None
        timestamp_ms = to_epoch_ms(message.timestamp or utc_now())
        try:
            data = await self.download(message.media_url)
            path = self.write_encrypted(message.conversation_id, timestamp_ms, data)
        except (MediaDownloadError, OSError) as exc:
            logger.error(
                "errors",
                stage="media_store",
                message_id=message.message_id,
                error=str(exc),
            )
            return None
        logger.info("image_saved", message_id=message.message_id, path=str(path))
        return path
