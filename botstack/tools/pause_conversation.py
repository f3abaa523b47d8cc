"""
botstack.tools.pause_conversation - Conversation Pause Tool

Lets the assistant hand a conversation over to a human. The LLM decides
whether a message meets the bot's configured pause condition
(``checkPauseCondition``, whose description embeds that condition) and then
calls ``pauseConversation``, which flags the conversation so the bot stops
answering.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from botstack.core.tools.base import (
    CamelModel,
    ExecutionResult,
    ToolContext,
    ToolDefinition,
    ToolFunction,
    ToolType,
    error_result,
)
from botstack.models.bot import Conversation

logger = logging.getLogger(__name__)

TOOL_ID = "pause-conversation"
PAUSED_BY = "pause-conversation-tool"
DEFAULT_PAUSE_CONDITION = "The user wants to end the conversation or talk to a human"


class PauseConversationConfig(CamelModel):
    pause_condition_prompt: str = Field(
        default=DEFAULT_PAUSE_CONDITION,
        min_length=1,
        description=(
            "Condition that determines when to pause the conversation. Be specific about "
            "what phrases or situations should trigger a pause."
        ),
    )
    pause_message: str | None = Field(
        default=None,
        description="Message sent to the user when the conversation is paused; empty sends nothing",
    )


class CheckPauseConditionParams(CamelModel):
    message: str = Field(description="User message to check against pause conditions")
    detected_pause_condition: bool = Field(
        description="Whether the pause condition has been detected in the user message"
    )
    pause_condition_reason: str | None = Field(
        default=None, description="Explanation of why the pause condition was or was not detected"
    )


class PauseConversationParams(CamelModel):
    reason: str = Field(description="Reason why the conversation is being paused")
    trigger_message: str | None = Field(default=None, description="The user message that triggered the pause")


class PauseConversationCredentials(BaseModel):
    """Pausing needs no third-party credentials."""


def _pause_condition(config: dict[str, Any] | None) -> str:
    return PauseConversationConfig.model_validate(config or {}).pause_condition_prompt


def describe_check_pause_condition(config: dict[str, Any]) -> str:
    """Function description carrying the bot's own pause condition."""
    return (
        "Analyze the user message to determine if it matches the pause condition. "
        f'Pause condition: "{_pause_condition(config)}". You must determine if the user message '
        "indicates that the conversation should be paused based on this specific condition."
    )


async def check_pause_condition(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    """Echo the LLM's pause decision back in a structured form."""
    try:
        args = CheckPauseConditionParams.model_validate(params)
        pause_condition = _pause_condition(context.config)

        logger.debug(
            f"Pause condition check: detected={args.detected_pause_condition}",
            extra={"bot_id": context.bot_id, "conversation_id": context.conversation_id},
        )

        detected = args.detected_pause_condition
        return {
            "success": True,
            "detected": detected,
            "data": {
                "shouldPause": detected,
                "reason": args.pause_condition_reason
                or ("Pause condition met" if detected else "No pause condition detected"),
                "triggerMessage": args.message,
                "pauseCondition": pause_condition,
            },
        }
    except Exception as e:
        logger.error(f"Error checking pause condition: {e}", exc_info=True, extra={"bot_id": context.bot_id})
        result = error_result("PAUSE_CONDITION_CHECK_FAILED", "Failed to check pause condition", details=str(e))
        result["detected"] = False
        return result


async def pause_conversation(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = PauseConversationParams.model_validate(params)

        if not context.conversation_id:
            return error_result("NO_CONVERSATION_ID", "No conversation ID provided")
        if context.session is None:
            raise RuntimeError("pauseConversation requires a database session")

        config = PauseConversationConfig.model_validate(context.config or {})
        pause_message = (config.pause_message or "").strip()

        conversation = await context.session.get(Conversation, context.conversation_id)
        if conversation is None:
            raise LookupError(f"Conversation not found: {context.conversation_id}")

        paused_at = datetime.now(UTC).isoformat()
        conversation.is_paused = True
        conversation.extra_metadata = {
            "pausedAt": paused_at,
            "pausedReason": args.reason,
            "pausedBy": PAUSED_BY,
            "triggerMessage": args.trigger_message,
            "shouldSendResponse": bool(pause_message),
        }
        await context.session.commit()

        logger.info(
            f"Paused conversation {conversation.id}",
            extra={"bot_id": context.bot_id, "reason": args.reason},
        )

        result: ExecutionResult = {
            "success": True,
            "message": pause_message,
            "data": {
                "conversationId": conversation.id,
                "pausedAt": paused_at,
                "reason": args.reason,
                "pauseMessage": pause_message,
                "shouldSendResponse": bool(pause_message),
            },
        }
        if not pause_message:
            result["skipResponse"] = True
        return result
    except Exception as e:
        logger.error(f"Error pausing conversation: {e}", exc_info=True, extra={"bot_id": context.bot_id})
        return error_result("PAUSE_CONVERSATION_FAILED", "Failed to pause conversation", details=str(e))


pause_conversation_tool = ToolDefinition(
    id=TOOL_ID,
    name="Conversation Pause",
    description="Automatically pause conversations when specific conditions are met",
    type=ToolType.DATA_QUERY,
    config_schema=PauseConversationConfig,
    credential_schema=PauseConversationCredentials,
    functions={
        "checkPauseCondition": ToolFunction(
            description="Check if the user message matches conditions that should pause the conversation",
            parameters=CheckPauseConditionParams,
            execute=check_pause_condition,
            describe=describe_check_pause_condition,
        ),
        "pauseConversation": ToolFunction(
            description="Pause the current conversation and prevent further bot responses",
            parameters=PauseConversationParams,
            execute=pause_conversation,
        ),
    },
    default_config={"pauseConditionPrompt": DEFAULT_PAUSE_CONDITION},
)
