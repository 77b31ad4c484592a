from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

TEXT_MESSAGE_TYPES = {"conversation", "extendedTextMessage", "text"}
IMAGE_MESSAGE_TYPES = {"imageMessage", "image"}


class InboundMessage(BaseModel):
    conversation_id: str
    phone_number: str
    message_id: str
    message_type: str
    text: str = ""
    caption: str | None = None
    media_url: str | None = None
    timestamp: datetime | None = None
    from_self: bool = False
    raw_payload: dict[str, Any]

    @property
    def is_text(self) -> bool:
        return self.message_type in TEXT_MESSAGE_TYPES

    @property
    def is_image(self) -> bool:
        return self.message_type in IMAGE_MESSAGE_TYPES

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        stamp = self.timestamp.isoformat() if self.timestamp else ""
        return (self.conversation_id, self.message_id, stamp)
