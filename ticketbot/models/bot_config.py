from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ticketbot.models.base import Base, TimestampMixin


class BotConfig(TimestampMixin, Base):
    __tablename__ = "bot_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(255), unique=True)
    value: Mapped[str] = mapped_column(Text)
