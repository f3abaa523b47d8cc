"""
botstack.models.tool - Tool Installation & Telemetry Models

Persisted side of the tool subsystem:
- Tool: Tool record (activation flag for built-ins, full source row for custom tools)
- BotTool: Per-bot installation (enable flag, config, linked credential)
- ToolUsageMetric: Invocation counter per (tool, bot, function)
- ToolExecutionError: Error log for failed tool function bodies
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from botstack.models.base import IdentifiedModel, JSONType, new_id, utcnow


class Tool(IdentifiedModel):
    """
    Persisted tool record.

    Built-in tools get a thin row (id, name, type, is_active) so operators can
    deactivate them globally. Custom tools store their full description here
    and are materialized into runtime definitions on demand.

    Example:
        >>> tool = Tool(
        ...     name="order_status",
        ...     type="CUSTOM",
        ...     functions={"execute": {"name": "order_status", "parameters": [...]}},
        ...     required_configs={"serverUrl": "https://example.com/hook"},
        ...     created_by_bot_id=bot.id,
        ... )
    """

    __tablename__ = "tools"

    # Built-in ids are readable slugs ("google-calendar"), custom ids are UUIDs
    id: Mapped[str] = mapped_column(
        String(100),
        primary_key=True,
        default=new_id,
        comment="Tool identifier",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Tool name",
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="What this tool does",
    )

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Category (CALENDAR_BOOKING, CONTACT_FORM, CUSTOM, ...)",
    )

    integration_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Credential provider this tool needs (google, gohighlevel)",
    )

    version: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1.0.0",
        comment="Tool version",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        comment="Global activation flag",
    )

    functions: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Function descriptions (custom tools: single 'execute' entry)",
    )

    functions_schema: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="JSON Schema mirror of functions for LLM function calling",
    )

    required_configs: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Custom tool HTTP config (serverUrl, secretToken, timeout, ...)",
    )

    created_by_bot_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Owning bot for bot-scoped custom tools, NULL if public",
    )


class BotTool(IdentifiedModel):
    """
    Installation of a tool on a bot.

    One row per (bot, tool). Execution is refused while ``is_enabled`` is False.
    """

    __tablename__ = "bot_tools"
    __table_args__ = (UniqueConstraint("bot_id", "tool_id", name="uq_bot_tools_bot_tool"),)

    bot_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Bot the tool is installed on",
    )

    tool_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("tools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Installed tool",
    )

    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        comment="Whether the bot may invoke this tool",
    )

    config: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Per-bot configuration validated against the tool config schema",
    )

    credential_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("credentials.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Linked third-party credential",
    )


class ToolUsageMetric(IdentifiedModel):
    """Invocation counter keyed by (tool, bot, function)."""

    __tablename__ = "tool_usage_metrics"
    __table_args__ = (
        UniqueConstraint(
            "tool_id", "bot_id", "function_id", name="uq_tool_usage_metrics_key"
        ),
    )

    tool_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    bot_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    function_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Function name within the tool",
    )

    count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of invocations",
    )

    last_used: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Most recent invocation (UTC)",
    )


class ToolExecutionError(IdentifiedModel):
    """
    Error log entry for a failed tool function body.

    Written best-effort by the execution service; never read on the hot path.
    """

    __tablename__ = "tool_execution_errors"

    tool_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    bot_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    function_name: Mapped[str] = mapped_column(String(100), nullable=False)

    error_message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Exception message",
    )

    error_stack: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Formatted traceback",
    )

    params: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Parameters the function was called with",
    )
