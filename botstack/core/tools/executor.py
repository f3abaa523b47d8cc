"""
botstack.core.tools.executor - Tool Execution Service

Single entry point for invoking a tool function on behalf of a bot:
resolves the tool, checks activation and per-bot enablement, resolves
configuration and credentials, records usage and logs failures.
"""

import logging
import traceback
from collections.abc import Awaitable, Callable
from time import time
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from botstack.models.base import utcnow
from botstack.models.tool import BotTool, Tool, ToolExecutionError, ToolUsageMetric
from botstack.services.credentials.cipher import CredentialCipher, get_cipher
from botstack.services.credentials.store import CredentialStore

from .base import (
    ExecutionResult,
    ToolContext,
    ToolDefinition,
    ToolErrorCode,
    error_result,
    skipped_result,
)
from .effects import non_critical
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

CustomToolLoader = Callable[[AsyncSession, str, str], Awaitable[ToolDefinition | None]]


async def _default_custom_tool_loader(
    session: AsyncSession, tool_id: str, bot_id: str
) -> ToolDefinition | None:
    """Resolve a bot-scoped or public custom tool from the database."""
    from botstack.services.custom_tools import load_custom_tool

    return await load_custom_tool(session, tool_id, bot_id)


class ToolExecutionService:
    """
    Dispatches tool function calls.

    Resolution order (first failure wins):
    1. Registry lookup, falling back to a custom tool visible to the bot
    2. Global activation flag on the persisted tool record
    3. Function lookup
    4. Per-bot installation: disabled installs are a soft skip
    5. Credential requirement for tools with an integration type
    6. Credential fetch and decryption
    7. Usage metric (non-critical)
    8. Function body with resolved config and credentials
    9. Body failures logged (non-critical) and returned as EXECUTION_FAILED

    ``execute_tool`` NEVER raises for anything a tool body or provider does;
    every outcome is a result dict. Only misuse of this method itself
    (missing tool id or function name) raises ValueError.

    Example:
        >>> service = ToolExecutionService(sessionmaker, registry)
        >>> result = await service.execute_tool(
        ...     "lead-capture",
        ...     "saveLead",
        ...     {"name": "Ann", "phone": "555-0100"},
        ...     ToolContext(user_id=user.id, bot_id=bot.id),
        ... )
        >>> if result.get("skipped"):
        ...     pass  # tool disabled for this bot, not an error
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ToolRegistry,
        cipher: CredentialCipher | None = None,
        custom_tool_loader: CustomToolLoader | None = None,
    ) -> None:
        """
        Initialize execution service.

        Args:
            session_factory: Creates the sessions used for lookups, tool bodies
                and telemetry (telemetry uses its own short sessions)
            registry: Tool registry to resolve tools from
            cipher: Credential cipher (uses default if None)
            custom_tool_loader: Resolver for tools missing from the registry
        """
        self.session_factory = session_factory
        self.registry = registry
        self.cipher = cipher or get_cipher()
        self.custom_tool_loader = custom_tool_loader or _default_custom_tool_loader

    async def execute_tool(
        self,
        tool_id: str,
        function_name: str,
        params: dict[str, Any] | None,
        context: ToolContext,
    ) -> ExecutionResult:
        """
        Execute a tool function.

        Args:
            tool_id: Tool identifier
            function_name: Function within the tool
            params: Raw parameters, validated by the function body
            context: Caller identity (user, bot, organization, conversation)

        Returns:
            The function body's result, or a structured failure/skip result

        Raises:
            ValueError: If tool_id or function_name is empty
        """
        if not tool_id or not function_name:
            raise ValueError("tool_id and function_name are required")

        params = params or {}
        log_extra = {
            "tool_id": tool_id,
            "function_name": function_name,
            "bot_id": context.bot_id,
        }

        async with self.session_factory() as session:
            tool = self.registry.get(tool_id)
            if tool is None and context.bot_id:
                tool = await self.custom_tool_loader(session, tool_id, context.bot_id)
            if tool is None:
                return self._fail(ToolErrorCode.TOOL_NOT_FOUND, f"Tool not found: {tool_id}", log_extra)

            record = await session.get(Tool, tool_id)
            if record is not None and not record.is_active:
                return self._fail(ToolErrorCode.TOOL_INACTIVE, f"Tool is not active: {tool_id}", log_extra)

            function = tool.get_function(function_name)
            if function is None:
                return self._fail(
                    ToolErrorCode.FUNCTION_NOT_FOUND,
                    f"Function not found: {function_name}",
                    log_extra,
                )

            bot_tool = None
            if context.bot_id:
                bot_tool = await self._get_bot_tool(session, context.bot_id, tool_id)
                if bot_tool is not None and not bot_tool.is_enabled:
                    logger.debug(f"Skipping disabled tool {tool_id}", extra=log_extra)
                    return skipped_result(
                        ToolErrorCode.TOOL_DISABLED,
                        f"Tool is disabled for this bot: {tool_id}",
                    )

            credential_id = bot_tool.credential_id if bot_tool is not None else None
            if tool.integration_type and not credential_id:
                return self._fail(
                    ToolErrorCode.AUTH_REQUIRED,
                    f"Tool requires {tool.integration_type} authentication: {tool_id}",
                    log_extra,
                )

            credentials = None
            if credential_id:
                credential = await CredentialStore(session, self.cipher).get_credential(credential_id)
                if credential is None:
                    return self._fail(
                        ToolErrorCode.CREDENTIAL_NOT_FOUND,
                        f"Credentials not found: {credential_id}",
                        log_extra,
                    )
                credentials = credential.credentials

            if context.bot_id:
                await non_critical(
                    self._record_usage(tool_id, context.bot_id, function_name),
                    "record usage metric",
                    **log_extra,
                )

            config = (bot_tool.config if bot_tool is not None else None) or tool.default_config or {}
            call_context = context.resolved(
                config=dict(config),
                credentials=credentials,
                credential_id=credential_id,
                session=session,
                cipher=self.cipher,
            )

            start_time = time()
            try:
                result = await function.execute(params, call_context)
            except Exception as e:
                await session.rollback()
                message = str(e) or type(e).__name__
                logger.error(
                    f"Tool {tool_id}.{function_name} failed: {message}",
                    exc_info=True,
                    extra=log_extra,
                )
                await non_critical(
                    self._log_error(
                        tool_id,
                        context.bot_id,
                        function_name,
                        message,
                        traceback.format_exc(),
                        params,
                    ),
                    "log execution error",
                    **log_extra,
                )
                return error_result(ToolErrorCode.EXECUTION_FAILED, message)

            logger.info(
                f"Tool {tool_id}.{function_name} executed",
                extra={**log_extra, "duration_ms": (time() - start_time) * 1000},
            )
            return result

    async def available_functions(self, bot_id: str) -> list[dict[str, Any]]:
        """
        Describe every function the bot's LLM may call.

        Includes functions of tools that are installed and enabled on the bot,
        globally active, and have a credential linked when they need one.

        Returns:
            List of {name, description, parameters_schema, tool_id, function_name}
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(BotTool).where(BotTool.bot_id == bot_id, BotTool.is_enabled.is_(True))
            )
            bot_tools = list(result.scalars().all())

            inactive = set(
                (await session.execute(select(Tool.id).where(Tool.is_active.is_(False))))
                .scalars()
                .all()
            )

            specs: list[dict[str, Any]] = []
            for bot_tool in bot_tools:
                if bot_tool.tool_id in inactive:
                    continue
                tool = self.registry.get(bot_tool.tool_id)
                if tool is None:
                    tool = await self.custom_tool_loader(session, bot_tool.tool_id, bot_id)
                if tool is None:
                    continue
                if tool.integration_type and not bot_tool.credential_id:
                    continue
                specs.extend(tool.function_specs(bot_tool.config or tool.default_config))

        return specs

    async def _get_bot_tool(self, session: AsyncSession, bot_id: str, tool_id: str) -> BotTool | None:
        result = await session.execute(
            select(BotTool).where(BotTool.bot_id == bot_id, BotTool.tool_id == tool_id)
        )
        return result.scalar_one_or_none()

    async def _record_usage(self, tool_id: str, bot_id: str, function_name: str) -> None:
        """Increment the (tool, bot, function) usage counter."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ToolUsageMetric).where(
                    ToolUsageMetric.tool_id == tool_id,
                    ToolUsageMetric.bot_id == bot_id,
                    ToolUsageMetric.function_id == function_name,
                )
            )
            metric = result.scalar_one_or_none()
            if metric is None:
                session.add(
                    ToolUsageMetric(
                        tool_id=tool_id,
                        bot_id=bot_id,
                        function_id=function_name,
                        count=1,
                        last_used=utcnow(),
                    )
                )
            else:
                metric.count += 1
                metric.last_used = utcnow()
            await session.commit()

    async def _log_error(
        self,
        tool_id: str,
        bot_id: str | None,
        function_name: str,
        message: str,
        stack: str,
        params: dict[str, Any],
    ) -> None:
        """Persist an execution error record."""
        async with self.session_factory() as session:
            session.add(
                ToolExecutionError(
                    tool_id=tool_id,
                    bot_id=bot_id,
                    function_name=function_name,
                    error_message=message,
                    error_stack=stack,
                    params=params,
                )
            )
            await session.commit()

    @staticmethod
    def _fail(code: ToolErrorCode, message: str, log_extra: dict[str, Any]) -> ExecutionResult:
        logger.warning(message, extra={**log_extra, "error_code": code.value})
        return error_result(code, message)
