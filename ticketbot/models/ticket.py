from __future__ import annotations

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ticketbot.models.base import Base, TimestampMixin

TICKET_STATUSES = ("open", "in_progress", "resolved", "closed")
OPEN_STATUSES = ("open", "in_progress")
TICKET_PRIORITIES = ("low", "medium", "high")


class Ticket(TimestampMixin, Base):
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'in_progress', 'resolved', 'closed')",
            name="tickets_status_check",
        ),
        CheckConstraint(
            "priority IN ('low', 'medium', 'high')", name="tickets_priority_check"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issue: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="open", index=True)
    priority: Mapped[str] = mapped_column(String(10), default="medium", index=True)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    created_by: Mapped[int] = mapped_column(ForeignKey("senders.id"), index=True)

    creator = relationship("Sender", back_populates="tickets")
    messages = relationship(
        "TicketMessage", back_populates="ticket", cascade="all, delete-orphan"
    )
    status_logs = relationship(
        "TicketStatusLog", back_populates="ticket", cascade="all, delete-orphan"
    )
