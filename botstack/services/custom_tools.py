"""
botstack.services.custom_tools - Custom Tool Management

Create, update and delete customer-defined HTTP tools, keeping the
persisted Tool row, the owning bot's BotTool installation and the
in-process ToolRegistry in sync.

Public custom tools (no owning bot) are loaded into the registry at startup.
Bot-scoped tools are registered when created or updated in this process and
otherwise resolved lazily by the execution service via ``load_custom_tool``.
"""

import logging
from typing import Any, Literal

from pydantic import Field, HttpUrl
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from botstack.core.tools.base import CamelModel, ToolDefinition, ToolType
from botstack.core.tools.registry import ToolRegistry
from botstack.models.tool import BotTool, Tool
from botstack.settings import get_settings
from botstack.tools.custom import (
    EXECUTE_FUNCTION,
    create_custom_tool_definition,
    parameters_to_json_schema,
    parse_parameter_specs,
)

logger = logging.getLogger(__name__)


class CustomToolError(Exception):
    """Base exception for custom tool management."""


class CustomToolNotFoundError(CustomToolError):
    """Custom tool does not exist."""


class CustomParameter(CamelModel):
    """One parameter as entered by a bot admin."""

    name: str = Field(min_length=1, max_length=100)
    type: Literal["string", "number", "integer", "boolean", "object", "array"] = "string"
    description: str = ""
    required: bool = False
    enum_values: list[str] | None = None
    items_type: str | None = None


class CustomHeader(CamelModel):
    name: str = Field(min_length=1)
    value: str


class CustomToolSpec(CamelModel):
    """
    Input for creating or updating a custom tool.

    Example:
        >>> spec = CustomToolSpec(
        ...     name="order_status",
        ...     description="Look up the status of an order",
        ...     parameters=[{"name": "orderId", "type": "string", "required": True}],
        ...     server_url="https://example.com/hooks/order-status",
        ...     secret_token="s3cret",
        ... )
    """

    name: str = Field(min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str = Field(min_length=1, max_length=500)
    parameters: list[CustomParameter] = Field(default_factory=list)
    server_url: HttpUrl
    secret_token: str | None = None
    timeout: int = Field(default_factory=lambda: get_settings().custom_tool_default_timeout, ge=1, le=300)
    is_async: bool = Field(default=False, alias="async")
    strict: bool = False
    http_headers: list[CustomHeader] = Field(default_factory=list)

    def tool_config(self) -> dict[str, Any]:
        """HTTP configuration stored on the tool and its bot installation."""
        config: dict[str, Any] = {
            "serverUrl": str(self.server_url),
            "timeout": self.timeout,
            "async": self.is_async,
            "strict": self.strict,
            "httpHeaders": [header.model_dump(by_alias=True) for header in self.http_headers],
        }
        if self.secret_token:
            config["secretToken"] = self.secret_token
        return config

    def function_config(self) -> dict[str, Any]:
        """Stored description of the single ``execute`` function."""
        parameters = [p.model_dump(by_alias=True, exclude_none=True) for p in self.parameters]
        schema = parameters_to_json_schema(parse_parameter_specs({"parameters": parameters}))
        return {
            "name": self.name,
            "description": self.description,
            "parameters": parameters,
            "schema": schema,
        }


def _visible_custom_tool_query(tool_id: str, bot_id: str):
    return select(Tool).where(
        Tool.id == tool_id,
        Tool.type == ToolType.CUSTOM.value,
        Tool.is_active.is_(True),
        or_(Tool.created_by_bot_id == bot_id, Tool.created_by_bot_id.is_(None)),
    )


async def load_custom_tool(session: AsyncSession, tool_id: str, bot_id: str) -> ToolDefinition | None:
    """
    Resolve a custom tool visible to a bot (its own or public).

    Returns:
        Materialized definition, or None if no active custom tool matches
    """
    result = await session.execute(_visible_custom_tool_query(tool_id, bot_id))
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return create_custom_tool_definition(row)


class CustomToolService:
    """
    Manages custom tools for bots.

    Example:
        >>> service = CustomToolService(session, registry)
        >>> tool = await service.create_custom_tool(bot.id, spec)
        >>> registry.get(tool.id) is not None
        True
    """

    def __init__(self, session: AsyncSession, registry: ToolRegistry) -> None:
        self.session = session
        self.registry = registry

    async def create_custom_tool(self, bot_id: str, spec: CustomToolSpec) -> Tool:
        """
        Persist a custom tool, install it on the bot and register it.

        Returns:
            Created Tool record
        """
        tool_config = spec.tool_config()
        function_config = spec.function_config()

        tool = Tool(
            name=spec.name,
            description=spec.description,
            type=ToolType.CUSTOM.value,
            is_active=True,
            version="1.0.0",
            functions={EXECUTE_FUNCTION: function_config},
            functions_schema={EXECUTE_FUNCTION: function_config["schema"]},
            required_configs=tool_config,
            created_by_bot_id=bot_id,
        )
        self.session.add(tool)
        await self.session.flush()

        self.session.add(
            BotTool(
                bot_id=bot_id,
                tool_id=tool.id,
                is_enabled=True,
                config=tool_config,
            )
        )
        await self.session.commit()

        self.registry.register(create_custom_tool_definition(tool))

        logger.info(
            f"Created custom tool {spec.name}",
            extra={"tool_id": tool.id, "bot_id": bot_id},
        )
        return tool

    async def update_custom_tool(self, tool_id: str, spec: CustomToolSpec) -> Tool:
        """
        Rewrite a custom tool and re-register it.

        Every bot installation gets the new HTTP config.

        Raises:
            CustomToolNotFoundError: If no custom tool has this id
        """
        tool = await self._get_custom_tool(tool_id)
        tool_config = spec.tool_config()
        function_config = spec.function_config()

        tool.name = spec.name
        tool.description = spec.description
        tool.functions = {EXECUTE_FUNCTION: function_config}
        tool.functions_schema = {EXECUTE_FUNCTION: function_config["schema"]}
        tool.required_configs = tool_config

        result = await self.session.execute(select(BotTool).where(BotTool.tool_id == tool_id))
        for bot_tool in result.scalars().all():
            bot_tool.config = tool_config

        await self.session.commit()

        self.registry.register(create_custom_tool_definition(tool))

        logger.info(f"Updated custom tool {spec.name}", extra={"tool_id": tool_id})
        return tool

    async def delete_custom_tool(self, tool_id: str) -> None:
        """
        Delete a custom tool, its installations, and its registry entry.

        Raises:
            CustomToolNotFoundError: If no custom tool has this id
        """
        tool = await self._get_custom_tool(tool_id)

        result = await self.session.execute(select(BotTool).where(BotTool.tool_id == tool_id))
        for bot_tool in result.scalars().all():
            await self.session.delete(bot_tool)
        await self.session.delete(tool)
        await self.session.commit()

        self.registry.remove(tool_id)

        logger.info(f"Deleted custom tool {tool_id}", extra={"tool_id": tool_id})

    async def load_public_custom_tools(self) -> int:
        """
        Register every active public custom tool.

        Returns:
            Number of tools registered
        """
        result = await self.session.execute(
            select(Tool).where(
                Tool.type == ToolType.CUSTOM.value,
                Tool.is_active.is_(True),
                Tool.created_by_bot_id.is_(None),
            )
        )
        rows = list(result.scalars().all())
        for row in rows:
            self.registry.register(create_custom_tool_definition(row))

        logger.info(f"Loaded {len(rows)} public custom tools")
        return len(rows)

    async def load_custom_tool(self, tool_id: str, bot_id: str) -> ToolDefinition | None:
        """Resolve a custom tool visible to a bot without registering it."""
        return await load_custom_tool(self.session, tool_id, bot_id)

    async def list_custom_tools(self, bot_id: str) -> list[Tool]:
        """Custom tools owned by a bot."""
        result = await self.session.execute(
            select(Tool)
            .where(Tool.type == ToolType.CUSTOM.value, Tool.created_by_bot_id == bot_id)
            .order_by(Tool.created_at)
        )
        return list(result.scalars().all())

    async def _get_custom_tool(self, tool_id: str) -> Tool:
        tool = await self.session.get(Tool, tool_id)
        if tool is None or tool.type != ToolType.CUSTOM.value:
            raise CustomToolNotFoundError(f"Custom tool not found: {tool_id}")
        return tool
