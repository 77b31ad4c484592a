from ticketbot.models.base import Base, TimestampMixin
from ticketbot.models.bot_config import BotConfig
from ticketbot.models.department import Department
from ticketbot.models.inbound_message import InboundMessage
from ticketbot.models.sender import Sender
from ticketbot.models.staff_user import StaffUser
from ticketbot.models.ticket import Ticket
from ticketbot.models.ticket_message import TicketMessage
from ticketbot.models.ticket_status_log import TicketStatusLog

__all__ = [
    "Base",
    "TimestampMixin",
    "BotConfig",
    "Department",
    "InboundMessage",
    "Sender",
    "StaffUser",
    "Ticket",
    "TicketMessage",
    "TicketStatusLog",
]
