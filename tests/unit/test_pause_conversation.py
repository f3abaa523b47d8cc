"""
Unit tests for botstack.tools.pause_conversation - Conversation Pause Tool

Tests cover:
- Pause condition checks and the condition-carrying description
- Pausing a conversation, with and without a pause message
- Missing conversation, session and unknown conversations
- Pausing through the execution service
"""

import pytest

from botstack.core.tools import ToolContext, ToolExecutionService
from botstack.models import Conversation
from botstack.tools import initialize_tools
from botstack.tools.pause_conversation import (
    DEFAULT_PAUSE_CONDITION,
    PAUSED_BY,
    describe_check_pause_condition,
    pause_conversation_tool,
)


def _call(function_name: str):
    return pause_conversation_tool.get_function(function_name).execute


@pytest.fixture
def context(session, bot, conversation):
    return ToolContext(
        bot_id=bot.id,
        conversation_id=conversation.id,
        config={"pauseConditionPrompt": "User asks for a refund"},
        session=session,
    )


class TestCheckPauseCondition:
    """Test checkPauseCondition."""

    @pytest.mark.asyncio
    async def test_detected(self, context):
        result = await _call("checkPauseCondition")(
            {"message": "I want my money back", "detectedPauseCondition": True}, context
        )

        assert result["success"] is True
        assert result["detected"] is True
        assert result["data"] == {
            "shouldPause": True,
            "reason": "Pause condition met",
            "triggerMessage": "I want my money back",
            "pauseCondition": "User asks for a refund",
        }

    @pytest.mark.asyncio
    async def test_not_detected_with_reason(self, context):
        result = await _call("checkPauseCondition")(
            {"message": "Hi", "detectedPauseCondition": False, "pauseConditionReason": "Just a greeting"},
            context,
        )

        assert result["detected"] is False
        assert result["data"]["reason"] == "Just a greeting"

    @pytest.mark.asyncio
    async def test_invalid_params(self, context):
        result = await _call("checkPauseCondition")({"message": "Hi"}, context)

        assert result["success"] is False
        assert result["detected"] is False
        assert result["error"]["code"] == "PAUSE_CONDITION_CHECK_FAILED"

    def test_description_carries_condition(self):
        assert 'Pause condition: "Refund requests"' in describe_check_pause_condition(
            {"pauseConditionPrompt": "Refund requests"}
        )
        assert DEFAULT_PAUSE_CONDITION in describe_check_pause_condition({})


class TestPauseConversation:
    """Test pauseConversation."""

    @pytest.mark.asyncio
    async def test_pauses_silently_without_message(self, context, session, conversation):
        result = await _call("pauseConversation")(
            {"reason": "Refund request", "triggerMessage": "Refund please"}, context
        )

        assert result["success"] is True
        assert result["skipResponse"] is True
        assert result["message"] == ""
        assert result["data"]["conversationId"] == conversation.id
        assert result["data"]["shouldSendResponse"] is False

        stored = await session.get(Conversation, conversation.id)
        assert stored.is_paused is True
        assert stored.extra_metadata["pausedBy"] == PAUSED_BY
        assert stored.extra_metadata["pausedReason"] == "Refund request"
        assert stored.extra_metadata["triggerMessage"] == "Refund please"

    @pytest.mark.asyncio
    async def test_pause_message_is_returned(self, context):
        context.config = {"pauseMessage": "  A human will take over shortly.  "}

        result = await _call("pauseConversation")({"reason": "Escalation"}, context)

        assert result["message"] == "A human will take over shortly."
        assert result["data"]["shouldSendResponse"] is True
        assert "skipResponse" not in result

    @pytest.mark.asyncio
    async def test_no_conversation_id(self, context):
        context.conversation_id = None

        result = await _call("pauseConversation")({"reason": "Escalation"}, context)

        assert result["error"]["code"] == "NO_CONVERSATION_ID"

    @pytest.mark.asyncio
    async def test_no_session(self, conversation):
        context = ToolContext(conversation_id=conversation.id)

        result = await _call("pauseConversation")({"reason": "Escalation"}, context)

        assert result["error"]["code"] == "PAUSE_CONVERSATION_FAILED"

    @pytest.mark.asyncio
    async def test_unknown_conversation(self, context):
        context.conversation_id = "missing"

        result = await _call("pauseConversation")({"reason": "Escalation"}, context)

        assert result["error"]["code"] == "PAUSE_CONVERSATION_FAILED"
        assert "Conversation not found" in result["error"]["details"]


class TestPauseThroughExecutionService:
    """Test pausing via the execution service's own session."""

    @pytest.mark.asyncio
    async def test_execute_tool_pauses(self, session_factory, registry, cipher, bot, conversation):
        initialize_tools(registry)
        service = ToolExecutionService(session_factory, registry, cipher)

        result = await service.execute_tool(
            "pause-conversation",
            "pauseConversation",
            {"reason": "Refund request"},
            ToolContext(bot_id=bot.id, conversation_id=conversation.id),
        )

        assert result["success"] is True
        async with session_factory() as fresh:
            stored = await fresh.get(Conversation, conversation.id)
            assert stored.is_paused is True
