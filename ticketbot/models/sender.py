from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ticketbot.models.base import Base, TimestampMixin


class Sender(TimestampMixin, Base):
    __tablename__ = "senders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    phone_number: Mapped[str] = mapped_column(String(32), index=True)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), index=True)

    department = relationship("Department", back_populates="senders")
    tickets = relationship("Ticket", back_populates="creator")
