"""
botstack.services.bot_tools - Bot Tool Installation

Lifecycle of a tool on a bot: install with a validated config, enable or
disable, link credentials, uninstall. Also persists a thin Tool row for each
registered built-in so operators can deactivate it globally.
"""

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from botstack.core.tools.base import ToolDefinition
from botstack.core.tools.registry import ToolRegistry
from botstack.models.tool import BotTool, Tool
from botstack.services.custom_tools import load_custom_tool

logger = logging.getLogger(__name__)


class BotToolError(Exception):
    """Base exception for bot tool operations."""


class UnknownToolError(BotToolError):
    """Tool is neither registered nor a custom tool visible to the bot."""


class ToolNotInstalledError(BotToolError):
    """Tool is not installed on the bot."""


class ConfigValidationError(BotToolError):
    """Per-bot config does not match the tool's config schema."""

    def __init__(self, tool_id: str, error: ValidationError):
        self.tool_id = tool_id
        self.errors = error.errors()
        super().__init__(f"Invalid config for tool {tool_id}: {error}")


class BotToolService:
    """
    Manages tool installations on bots.

    Example:
        >>> service = BotToolService(session, registry)
        >>> bot_tool = await service.install_tool(
        ...     bot.id, "lead-capture", config={"requiredFields": ["name", "email"]}
        ... )
        >>> await service.set_enabled(bot.id, "lead-capture", False)
    """

    def __init__(self, session: AsyncSession, registry: ToolRegistry) -> None:
        self.session = session
        self.registry = registry

    async def install_tool(
        self,
        bot_id: str,
        tool_id: str,
        config: dict[str, Any] | None = None,
        credential_id: str | None = None,
    ) -> BotTool:
        """
        Install a tool on a bot, or update an existing installation.

        The config is validated against the tool's config schema; with no
        config the tool's default config is validated and stored.

        Raises:
            UnknownToolError: If the tool cannot be resolved
            ConfigValidationError: If the config is invalid
        """
        validated = await self._validate_config(bot_id, tool_id, config)

        builtin = self.registry.get(tool_id)
        if builtin is not None:
            await self._add_tool_record(builtin)

        bot_tool = await self.get_bot_tool(bot_id, tool_id)
        if bot_tool is None:
            bot_tool = BotTool(bot_id=bot_id, tool_id=tool_id, is_enabled=True)
            self.session.add(bot_tool)
        bot_tool.config = validated
        if credential_id is not None:
            bot_tool.credential_id = credential_id

        await self.session.commit()
        logger.info(f"Installed tool {tool_id}", extra={"bot_id": bot_id, "tool_id": tool_id})
        return bot_tool

    async def update_config(self, bot_id: str, tool_id: str, config: dict[str, Any]) -> BotTool:
        """
        Replace an installation's config.

        Raises:
            ToolNotInstalledError: If the tool is not installed
            ConfigValidationError: If the config is invalid
        """
        bot_tool = await self._require_bot_tool(bot_id, tool_id)
        bot_tool.config = await self._validate_config(bot_id, tool_id, config)
        await self.session.commit()
        return bot_tool

    async def set_enabled(self, bot_id: str, tool_id: str, enabled: bool) -> BotTool:
        """Enable or disable an installed tool."""
        bot_tool = await self._require_bot_tool(bot_id, tool_id)
        bot_tool.is_enabled = enabled
        await self.session.commit()
        logger.info(
            f"{'Enabled' if enabled else 'Disabled'} tool {tool_id}",
            extra={"bot_id": bot_id, "tool_id": tool_id},
        )
        return bot_tool

    async def attach_credential(self, bot_id: str, tool_id: str, credential_id: str | None) -> BotTool:
        """Link (or with None, unlink) a credential."""
        bot_tool = await self._require_bot_tool(bot_id, tool_id)
        bot_tool.credential_id = credential_id
        await self.session.commit()
        return bot_tool

    async def uninstall_tool(self, bot_id: str, tool_id: str) -> bool:
        """
        Remove a tool from a bot.

        Returns:
            True if an installation was removed
        """
        bot_tool = await self.get_bot_tool(bot_id, tool_id)
        if bot_tool is None:
            return False
        await self.session.delete(bot_tool)
        await self.session.commit()
        logger.info(f"Uninstalled tool {tool_id}", extra={"bot_id": bot_id, "tool_id": tool_id})
        return True

    async def get_bot_tool(self, bot_id: str, tool_id: str) -> BotTool | None:
        result = await self.session.execute(
            select(BotTool).where(BotTool.bot_id == bot_id, BotTool.tool_id == tool_id)
        )
        return result.scalar_one_or_none()

    async def list_bot_tools(self, bot_id: str, enabled_only: bool = False) -> list[BotTool]:
        query = select(BotTool).where(BotTool.bot_id == bot_id)
        if enabled_only:
            query = query.where(BotTool.is_enabled.is_(True))
        result = await self.session.execute(query.order_by(BotTool.created_at))
        return list(result.scalars().all())

    async def ensure_tool_records(self) -> int:
        """
        Persist a Tool row for every registered built-in that lacks one.

        Existing rows keep their ``is_active`` flag.

        Returns:
            Number of rows created
        """
        created = 0
        for tool in self.registry.get_all():
            if await self._add_tool_record(tool):
                created += 1

        await self.session.commit()
        if created:
            logger.info(f"Created {created} tool records")
        return created

    async def _add_tool_record(self, tool: ToolDefinition) -> bool:
        if await self.session.get(Tool, tool.id) is not None:
            return False
        self.session.add(
            Tool(
                id=tool.id,
                name=tool.name,
                description=tool.description,
                type=tool.type.value,
                integration_type=tool.integration_type,
                version=tool.version,
                is_active=True,
                functions={
                    name: {"description": function.description} for name, function in tool.functions.items()
                },
                functions_schema={
                    name: function.parameters_schema() for name, function in tool.functions.items()
                },
            )
        )
        return True

    async def _validate_config(
        self, bot_id: str, tool_id: str, config: dict[str, Any] | None
    ) -> dict[str, Any]:
        tool = self.registry.get(tool_id)
        if tool is None:
            tool = await load_custom_tool(self.session, tool_id, bot_id)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {tool_id}")
        try:
            return tool.validate_config(config)
        except ValidationError as e:
            raise ConfigValidationError(tool_id, e) from e

    async def _require_bot_tool(self, bot_id: str, tool_id: str) -> BotTool:
        bot_tool = await self.get_bot_tool(bot_id, tool_id)
        if bot_tool is None:
            raise ToolNotInstalledError(f"Tool {tool_id} is not installed on bot {bot_id}")
        return bot_tool
