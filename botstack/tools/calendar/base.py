"""
botstack.tools.calendar.base - Shared Calendar Tool Plumbing

Helpers used by every calendar provider's function bodies: the uniform
failure result, best-effort appointment persistence, and provider response
error extraction.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from botstack.core.tools.base import ExecutionResult, ToolContext, error_result
from botstack.core.tools.effects import non_critical
from botstack.services.appointments import AppointmentStore
from botstack.services.integrations.errors import ProviderAPIError

logger = logging.getLogger(__name__)


def raise_for_provider_error(response: httpx.Response, provider: str) -> None:
    """
    Raise ProviderAPIError for a non-success provider response.

    Error messages are taken from the usual JSON shapes
    (``{"error": {"message", "errors": [...]}}``, ``{"message": ...}``).
    """
    if response.status_code < 400:
        return

    try:
        body: Any = response.json()
    except ValueError:
        body = response.text

    message = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            details = [e.get("message") for e in error.get("errors") or [] if isinstance(e, dict)]
            message = ", ".join(m for m in details if m) or error.get("message")
        elif isinstance(error, str):
            message = error
        message = message or body.get("message")
        if isinstance(message, list):
            message = ", ".join(str(m) for m in message)
    message = message or f"HTTP {response.status_code}: {response.reason_phrase}"

    raise ProviderAPIError(f"{provider} API error: {message}", response.status_code, body)


def failure(code: str, action: str, error: Exception, context: ToolContext) -> ExecutionResult:
    """Log a failed calendar operation and build its result."""
    logger.error(
        f"Calendar {action} failed: {error}",
        exc_info=True,
        extra={"bot_id": context.bot_id, "error_code": code},
    )
    result = error_result(code, f"Failed to {action}: {error}")
    if isinstance(error, ProviderAPIError) and error.body is not None:
        result["error"]["details"] = error.body
    return result


async def persist_appointment(
    context: ToolContext,
    write: Callable[[AppointmentStore], Awaitable[Any]],
    description: str,
) -> None:
    """
    Run an appointment store write without letting it fail the tool call.

    Skipped when the call has no database session or bot.
    """
    if context.session is None or not context.bot_id:
        return
    await non_critical(write(AppointmentStore(context.session)), description, bot_id=context.bot_id)
