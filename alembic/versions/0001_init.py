"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

DEPARTMENTS = ["Human Resources", "Finance", "Marketing", "Post Production", "Editing"]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    departments = op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "senders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_senders_phone_number", "senders", ["phone_number"])
    op.create_index("ix_senders_department_id", "senders", ["department_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=150)),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("role", sa.String(length=20)),
        sa.Column("password_hash", sa.Text()),
        sa.Column("status", sa.Integer(), server_default="1"),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('admin', 'manager', 'creator', 'worker')", name="users_role_check"
        ),
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("issue", sa.String(length=255)),
        sa.Column("description", sa.Text()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("senders.id"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('open', 'in_progress', 'resolved', 'closed')",
            name="tickets_status_check",
        ),
        sa.CheckConstraint(
            "priority IN ('low', 'medium', 'high')", name="tickets_priority_check"
        ),
    )
    op.create_index("ix_tickets_status", "tickets", ["status"])
    op.create_index("ix_tickets_priority", "tickets", ["priority"])
    op.create_index("ix_tickets_assigned_to", "tickets", ["assigned_to"])
    op.create_index("ix_tickets_created_by", "tickets", ["created_by"])

    op.create_table(
        "ticket_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "ticket_id",
            sa.Integer(),
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("senders.id"), nullable=False),
        sa.Column("sender_type", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "sender_type IN ('user', 'employee', 'system')",
            name="ticket_messages_sender_type_check",
        ),
    )
    op.create_index("ix_ticket_messages_ticket_id", "ticket_messages", ["ticket_id"])
    op.create_index("ix_ticket_messages_sender_id", "ticket_messages", ["sender_id"])

    op.create_table(
        "ticket_status_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "ticket_id",
            sa.Integer(),
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", sa.String(length=20)),
        sa.Column("new_status", sa.String(length=20)),
        sa.Column("changed_by", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ticket_status_logs_ticket_id", "ticket_status_logs", ["ticket_id"])

    op.create_table(
        "bot_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=255), nullable=False, unique=True),
        sa.Column("value", sa.Text(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "inbound_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("jid", sa.String(length=128), nullable=False),
        sa.Column("message_type", sa.String(length=50), nullable=False),
        sa.Column("content", sa.Text()),
        sa.Column("media_path", sa.Text()),
        sa.Column("caption", sa.Text()),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_inbound_messages_jid", "inbound_messages", ["jid"])

    op.bulk_insert(departments, [{"name": name} for name in DEPARTMENTS])


def downgrade() -> None:
    op.drop_index("ix_inbound_messages_jid", table_name="inbound_messages")
    op.drop_table("inbound_messages")
    op.drop_table("bot_config")
    op.drop_index("ix_ticket_status_logs_ticket_id", table_name="ticket_status_logs")
    op.drop_table("ticket_status_logs")
    op.drop_index("ix_ticket_messages_sender_id", table_name="ticket_messages")
    op.drop_index("ix_ticket_messages_ticket_id", table_name="ticket_messages")
    op.drop_table("ticket_messages")
    op.drop_index("ix_tickets_created_by", table_name="tickets")
    op.drop_index("ix_tickets_assigned_to", table_name="tickets")
    op.drop_index("ix_tickets_priority", table_name="tickets")
    op.drop_index("ix_tickets_status", table_name="tickets")
    op.drop_table("tickets")
    op.drop_table("users")
    op.drop_index("ix_senders_department_id", table_name="senders")
    op.drop_index("ix_senders_phone_number", table_name="senders")
    op.drop_table("senders")
    op.drop_table("departments")
