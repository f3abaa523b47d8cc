"""
Unit tests for botstack.services.bot_tools - Bot Tool Installation

Tests cover:
- Installing built-in and custom tools with validated config
- Config validation errors
- Enabling, disabling, credential linking and uninstalling
- Tool records for registered built-ins
"""

import pytest
from sqlalchemy import select

from botstack.models import Tool
from botstack.services.bot_tools import (
    BotToolService,
    ConfigValidationError,
    ToolNotInstalledError,
    UnknownToolError,
)
from botstack.services.custom_tools import CustomToolService, CustomToolSpec
from botstack.tools import initialize_tools


@pytest.fixture
def service(session, registry):
    initialize_tools(registry)
    return BotToolService(session, registry)


class TestInstallTool:
    """Test installation."""

    @pytest.mark.asyncio
    async def test_install_with_default_config(self, service, session, bot):
        bot_tool = await service.install_tool(bot.id, "lead-capture")

        assert bot_tool.is_enabled is True
        assert bot_tool.config["requiredFields"] == ["name", "email"]
        assert bot_tool.config["leadNotifications"] is True

    @pytest.mark.asyncio
    async def test_install_creates_tool_record(self, service, session, bot):
        await service.install_tool(bot.id, "pause-conversation")

        record = await session.get(Tool, "pause-conversation")
        assert record is not None
        assert record.is_active is True
        assert record.type == "DATA_QUERY"
        assert set(record.functions) == {"checkPauseCondition", "pauseConversation"}

    @pytest.mark.asyncio
    async def test_install_normalizes_config(self, service, bot):
        bot_tool = await service.install_tool(
            bot.id, "pause-conversation", config={"pause_condition_prompt": "Refund requests"}
        )

        assert bot_tool.config == {"pauseConditionPrompt": "Refund requests"}

    @pytest.mark.asyncio
    async def test_reinstall_updates_existing(self, service, session, bot):
        first = await service.install_tool(bot.id, "lead-capture")
        second = await service.install_tool(bot.id, "lead-capture", config={"requiredFields": ["phone"]})

        assert first.id == second.id
        assert second.config["requiredFields"] == ["phone"]
        assert len(await service.list_bot_tools(bot.id)) == 1

    @pytest.mark.asyncio
    async def test_invalid_config(self, service, bot):
        with pytest.raises(ConfigValidationError) as exc_info:
            await service.install_tool(bot.id, "lead-capture", config={"notificationEmail": "not-an-email"})

        assert exc_info.value.tool_id == "lead-capture"
        assert exc_info.value.errors

    @pytest.mark.asyncio
    async def test_invalid_calendar_time_zone(self, service, bot):
        with pytest.raises(ConfigValidationError):
            await service.install_tool(bot.id, "google-calendar", config={"timeZone": "Nowhere/Land"})

    @pytest.mark.asyncio
    async def test_unknown_tool(self, service, bot):
        with pytest.raises(UnknownToolError):
            await service.install_tool(bot.id, "does-not-exist")

    @pytest.mark.asyncio
    async def test_install_custom_tool_on_same_bot(self, service, session, registry, bot):
        tool = await CustomToolService(session, registry).create_custom_tool(
            bot.id,
            CustomToolSpec.model_validate(
                {"name": "order_status", "description": "Orders", "serverUrl": "https://example.com/hook"}
            ),
        )
        registry.remove(tool.id)

        bot_tool = await service.install_tool(bot.id, tool.id, config={"serverUrl": "https://example.com/v2"})

        assert bot_tool.config["serverUrl"] == "https://example.com/v2"


class TestInstallationLifecycle:
    """Test enable/disable, credentials and uninstall."""

    @pytest.mark.asyncio
    async def test_disable_and_enable(self, service, bot):
        await service.install_tool(bot.id, "lead-capture")

        disabled = await service.set_enabled(bot.id, "lead-capture", False)
        assert disabled.is_enabled is False
        assert await service.list_bot_tools(bot.id, enabled_only=True) == []

        enabled = await service.set_enabled(bot.id, "lead-capture", True)
        assert enabled.is_enabled is True

    @pytest.mark.asyncio
    async def test_update_config(self, service, bot):
        await service.install_tool(bot.id, "lead-capture")

        bot_tool = await service.update_config(bot.id, "lead-capture", {"customTriggerPhrases": ["sign me up"]})

        assert bot_tool.config["customTriggerPhrases"] == ["sign me up"]

    @pytest.mark.asyncio
    async def test_attach_credential(self, service, bot):
        await service.install_tool(bot.id, "google-calendar")

        bot_tool = await service.attach_credential(bot.id, "google-calendar", "cred-1")
        assert bot_tool.credential_id == "cred-1"

        bot_tool = await service.attach_credential(bot.id, "google-calendar", None)
        assert bot_tool.credential_id is None

    @pytest.mark.asyncio
    async def test_not_installed(self, service, bot):
        with pytest.raises(ToolNotInstalledError):
            await service.set_enabled(bot.id, "lead-capture", False)

    @pytest.mark.asyncio
    async def test_uninstall(self, service, bot):
        await service.install_tool(bot.id, "lead-capture")

        assert await service.uninstall_tool(bot.id, "lead-capture") is True
        assert await service.uninstall_tool(bot.id, "lead-capture") is False
        assert await service.get_bot_tool(bot.id, "lead-capture") is None


class TestToolRecords:
    """Test persisted records for built-ins."""

    @pytest.mark.asyncio
    async def test_ensure_tool_records(self, service, session):
        created = await service.ensure_tool_records()

        assert created == 4
        ids = set((await session.execute(select(Tool.id))).scalars().all())
        assert ids == {"google-calendar", "gohighlevel-calendar", "lead-capture", "pause-conversation"}

    @pytest.mark.asyncio
    async def test_existing_records_keep_activation_flag(self, service, session):
        session.add(Tool(id="lead-capture", name="Lead Info Collector", type="CONTACT_FORM", is_active=False))
        await session.commit()

        created = await service.ensure_tool_records()

        assert created == 3
        assert (await session.get(Tool, "lead-capture")).is_active is False
