"""
botstack.core.tools.effects - Non-critical Side Effects

Best-effort side effects (usage metrics, error logs, appointment cache
writes) run through ``non_critical`` so a telemetry or cache failure is
logged and never changes the caller's result.
"""

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def non_critical(
    effect: Awaitable[T],
    description: str,
    **context: Any,
) -> T | None:
    """
    Await a side effect, logging and discarding any failure.

    Args:
        effect: Awaitable performing the side effect
        description: Short label used in the warning ("record usage metric")
        **context: Extra fields attached to the log record

    Returns:
        The effect's result, or None if it failed

    Example:
        >>> await non_critical(
        ...     store.record_booking(...),
        ...     "store appointment",
        ...     bot_id=context.bot_id,
        ... )
    """
    try:
        return await effect
    except Exception as e:
        logger.warning(
            f"Non-critical effect failed ({description}): {e}",
            exc_info=True,
            extra={"effect": description, **context},
        )
        return None
