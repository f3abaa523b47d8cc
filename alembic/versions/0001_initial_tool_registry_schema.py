"""Initial tool registry schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration adds:
- bots, conversations: owners of tool installations and pause state
- credentials, integrations: encrypted third-party auth per user/bot
- tools, bot_tools: tool records and per-bot installations
- tool_usage_metrics, tool_execution_errors: execution telemetry
- appointments, leads: records written by built-in tools
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _id_column(length: int = 36) -> sa.Column:
    return sa.Column("id", sa.String(length=length), nullable=False, comment="Unique identifier")


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this record was created (UTC)",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this record was last updated (UTC)",
        ),
    ]


def _bot_fk(table: str, ondelete: str = "CASCADE") -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["bot_id"], ["bots.id"], name=f"fk_{table}_bot_id", ondelete=ondelete)


def upgrade() -> None:
    op.create_table(
        "bots",
        _id_column(),
        sa.Column("name", sa.String(length=200), nullable=False, comment="Display name"),
        sa.Column("user_id", sa.String(length=36), nullable=False, comment="Owning user"),
        sa.Column("organization_id", sa.String(length=36), nullable=True, comment="Owning organization"),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bots_user_id"), "bots", ["user_id"])
    op.create_index(op.f("ix_bots_organization_id"), "bots", ["organization_id"])

    op.create_table(
        "conversations",
        _id_column(),
        sa.Column("bot_id", sa.String(length=36), nullable=False, comment="Bot handling this conversation"),
        sa.Column(
            "is_paused",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
            comment="Whether automated replies are paused",
        ),
        sa.Column("metadata", JSON, nullable=True, comment="Pause bookkeeping and channel details"),
        *_timestamp_columns(),
        _bot_fk("conversations"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_conversations_bot_id"), "conversations", ["bot_id"])

    op.create_table(
        "credentials",
        _id_column(),
        sa.Column("user_id", sa.String(length=36), nullable=False, comment="User who connected the credential"),
        sa.Column("bot_id", sa.String(length=36), nullable=True, comment="Optional bot scope"),
        sa.Column("provider", sa.String(length=50), nullable=False, comment="Provider (google, gohighlevel, ...)"),
        sa.Column("name", sa.String(length=200), nullable=False, comment="Human-readable label"),
        sa.Column(
            "credentials",
            JSON,
            nullable=False,
            comment="Encrypted envelope {__encrypted, iv, data} or legacy cleartext",
        ),
        *_timestamp_columns(),
        _bot_fk("credentials"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_credentials_user_id"), "credentials", ["user_id"])
    op.create_index(op.f("ix_credentials_bot_id"), "credentials", ["bot_id"])
    op.create_index(op.f("ix_credentials_provider"), "credentials", ["provider"])

    op.create_table(
        "integrations",
        _id_column(),
        sa.Column("bot_id", sa.String(length=36), nullable=False, comment="Bot the integration belongs to"),
        sa.Column("provider", sa.String(length=50), nullable=False, comment="Provider (google, gohighlevel, ...)"),
        sa.Column("config", JSON, nullable=True, comment="Provider specific settings (location id, channel, ...)"),
        sa.Column("credential_id", sa.String(length=36), nullable=True, comment="Linked credential"),
        *_timestamp_columns(),
        _bot_fk("integrations"),
        sa.ForeignKeyConstraint(
            ["credential_id"],
            ["credentials.id"],
            name="fk_integrations_credential_id",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_integrations_bot_id"), "integrations", ["bot_id"])
    op.create_index(op.f("ix_integrations_credential_id"), "integrations", ["credential_id"])

    op.create_table(
        "tools",
        _id_column(100),
        sa.Column("name", sa.String(length=200), nullable=False, comment="Tool name"),
        sa.Column("description", sa.Text(), nullable=True, comment="What this tool does"),
        sa.Column(
            "type",
            sa.String(length=50),
            nullable=False,
            comment="Category (CALENDAR_BOOKING, CONTACT_FORM, CUSTOM, ...)",
        ),
        sa.Column(
            "integration_type",
            sa.String(length=50),
            nullable=True,
            comment="Credential provider this tool needs (google, gohighlevel)",
        ),
        sa.Column("version", sa.String(length=20), nullable=False, comment="Tool version"),
        sa.Column(
            "is_active",
            sa.Boolean(),
            server_default=sa.true(),
            nullable=False,
            comment="Global activation flag",
        ),
        sa.Column(
            "functions",
            JSON,
            nullable=True,
            comment="Function descriptions (custom tools: single 'execute' entry)",
        ),
        sa.Column(
            "functions_schema",
            JSON,
            nullable=True,
            comment="JSON Schema mirror of functions for LLM function calling",
        ),
        sa.Column(
            "required_configs",
            JSON,
            nullable=True,
            comment="Custom tool HTTP config (serverUrl, secretToken, timeout, ...)",
        ),
        sa.Column(
            "created_by_bot_id",
            sa.String(length=36),
            nullable=True,
            comment="Owning bot for bot-scoped custom tools, NULL if public",
        ),
        *_timestamp_columns(),
        sa.ForeignKeyConstraint(
            ["created_by_bot_id"],
            ["bots.id"],
            name="fk_tools_created_by_bot_id",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tools_created_by_bot_id"), "tools", ["created_by_bot_id"])

    op.create_table(
        "bot_tools",
        _id_column(),
        sa.Column("bot_id", sa.String(length=36), nullable=False, comment="Bot the tool is installed on"),
        sa.Column("tool_id", sa.String(length=100), nullable=False, comment="Installed tool"),
        sa.Column(
            "is_enabled",
            sa.Boolean(),
            server_default=sa.true(),
            nullable=False,
            comment="Whether the bot may invoke this tool",
        ),
        sa.Column(
            "config",
            JSON,
            nullable=True,
            comment="Per-bot configuration validated against the tool config schema",
        ),
        sa.Column("credential_id", sa.String(length=36), nullable=True, comment="Linked third-party credential"),
        *_timestamp_columns(),
        _bot_fk("bot_tools"),
        sa.ForeignKeyConstraint(["tool_id"], ["tools.id"], name="fk_bot_tools_tool_id", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["credential_id"],
            ["credentials.id"],
            name="fk_bot_tools_credential_id",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bot_id", "tool_id", name="uq_bot_tools_bot_tool"),
    )
    op.create_index(op.f("ix_bot_tools_bot_id"), "bot_tools", ["bot_id"])
    op.create_index(op.f("ix_bot_tools_tool_id"), "bot_tools", ["tool_id"])
    op.create_index(op.f("ix_bot_tools_credential_id"), "bot_tools", ["credential_id"])

    op.create_table(
        "tool_usage_metrics",
        _id_column(),
        sa.Column("tool_id", sa.String(length=100), nullable=False),
        sa.Column("bot_id", sa.String(length=36), nullable=False),
        sa.Column("function_id", sa.String(length=100), nullable=False, comment="Function name within the tool"),
        sa.Column("count", sa.Integer(), nullable=False, comment="Number of invocations"),
        sa.Column(
            "last_used",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="Most recent invocation (UTC)",
        ),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tool_id", "bot_id", "function_id", name="uq_tool_usage_metrics_key"),
    )
    op.create_index(op.f("ix_tool_usage_metrics_tool_id"), "tool_usage_metrics", ["tool_id"])
    op.create_index(op.f("ix_tool_usage_metrics_bot_id"), "tool_usage_metrics", ["bot_id"])

    op.create_table(
        "tool_execution_errors",
        _id_column(),
        sa.Column("tool_id", sa.String(length=100), nullable=False),
        sa.Column("bot_id", sa.String(length=36), nullable=True),
        sa.Column("function_name", sa.String(length=100), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=False, comment="Exception message"),
        sa.Column("error_stack", sa.Text(), nullable=True, comment="Formatted traceback"),
        sa.Column("params", JSON, nullable=True, comment="Parameters the function was called with"),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tool_execution_errors_tool_id"), "tool_execution_errors", ["tool_id"])
    op.create_index(op.f("ix_tool_execution_errors_bot_id"), "tool_execution_errors", ["bot_id"])

    op.create_table(
        "appointments",
        _id_column(),
        sa.Column("bot_id", sa.String(length=36), nullable=False, comment="Bot that booked the appointment"),
        sa.Column(
            "conversation_id",
            sa.String(length=36),
            nullable=True,
            comment="Conversation the booking came from",
        ),
        sa.Column("calendar_id", sa.String(length=200), nullable=True),
        sa.Column(
            "external_event_id",
            sa.String(length=200),
            nullable=True,
            comment="Event id at the calendar provider",
        ),
        sa.Column("calendar_provider", sa.String(length=50), nullable=False, comment="Provider (google, gohighlevel)"),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, comment="confirmed, cancelled, ..."),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time_zone", sa.String(length=64), nullable=True),
        sa.Column("organizer", JSON, nullable=True),
        sa.Column("attendees", JSON, nullable=True),
        sa.Column("recurring_pattern", JSON, nullable=True),
        sa.Column("meeting_link", sa.String(length=1000), nullable=True),
        sa.Column("source", sa.String(length=50), nullable=False, comment="Where the booking originated"),
        sa.Column(
            "properties",
            JSON,
            nullable=True,
            comment="Provider specific details (event id, buffer, reschedule info)",
        ),
        sa.Column("metadata", JSON, nullable=True, comment="Bookkeeping (source tool, timestamps)"),
        *_timestamp_columns(),
        _bot_fk("appointments"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_bot_id"), "appointments", ["bot_id"])
    op.create_index("idx_appointments_external", "appointments", ["external_event_id", "calendar_provider"])

    op.create_table(
        "leads",
        _id_column(),
        sa.Column("bot_id", sa.String(length=36), nullable=False, comment="Bot that captured the lead"),
        sa.Column("conversation_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("company", sa.String(length=200), nullable=True),
        sa.Column("source", sa.String(length=50), nullable=False, comment="Channel the lead came from"),
        sa.Column("status", sa.String(length=30), nullable=False, comment="Pipeline status"),
        sa.Column(
            "trigger_keyword",
            sa.String(length=200),
            nullable=True,
            comment="Keyword that triggered the capture",
        ),
        sa.Column(
            "properties",
            JSON,
            nullable=True,
            comment="Additional fields (message, website, budget, ...)",
        ),
        sa.Column(
            "metadata",
            JSON,
            nullable=True,
            comment="Capture context (user, organization, timestamps)",
        ),
        *_timestamp_columns(),
        _bot_fk("leads"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_leads_bot_id"), "leads", ["bot_id"])
    op.create_index(op.f("ix_leads_email"), "leads", ["email"])


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("leads")
    op.drop_table("appointments")
    op.drop_table("tool_execution_errors")
    op.drop_table("tool_usage_metrics")
    op.drop_table("bot_tools")
    op.drop_table("tools")
    op.drop_table("integrations")
    op.drop_table("credentials")
    op.drop_table("conversations")
    op.drop_table("bots")
