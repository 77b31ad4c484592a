from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta

import structlog

from ticketbot.schemas.webhook import InboundMessage
from ticketbot.utils.time import utc_now

logger = structlog.get_logger(__name__)


class MessageFilter:
    """Drops echoes of our own messages, replays and backlog.

    The record of admitted keys is bounded: past ``high_water`` entries it is
    trimmed down to the newest ``low_water``. Anything evicted can be admitted
    again.
    """

    def __init__(
        self,
        staleness_window: timedelta = timedelta(minutes=5),
        high_water: int = 1000,
        low_water: int = 500,
    ) -> None:
        if low_water > high_water:
            raise ValueError("low_water must not exceed high_water")
        self.staleness_window = staleness_window
        self.high_water = high_water
        self.low_water = low_water
        self._seen: OrderedDict[tuple[str, str, str], None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: tuple[str, str, str]) -> bool:
        return key in self._seen

    def admit(self, message: InboundMessage, now: datetime | None = None) -> bool:
        if message.from_self:
            return False
        key = message.dedup_key
        if key in self._seen:
            logger.debug("message_duplicate", message_id=message.message_id)
            return False
        now = now or utc_now()
        if message.timestamp is not None and message.timestamp < now - self.staleness_window:
            logger.debug(
                "message_stale",
                message_id=message.message_id,
                timestamp=message.timestamp.isoformat(),
            )
            return False
        self._seen[key] = None
        if len(self._seen) > self.high_water:
            self._trim()
        return True

    def _trim(self) -> None:
        while len(self._seen) > self.low_water:
            self._seen.popitem(last=False)
