"""
botstack.tools - Built-in Tools

Concrete tool definitions shipped with botstack and the registration pass
that puts them into a registry.
"""

import logging

from botstack.core.tools.base import ToolDefinition
from botstack.core.tools.registry import ToolRegistry

from .calendar import gohighlevel_calendar_tool, google_calendar_tool
from .lead_capture import lead_capture_tool
from .pause_conversation import pause_conversation_tool

logger = logging.getLogger(__name__)

BUILTIN_TOOLS: tuple[ToolDefinition, ...] = (
    google_calendar_tool,
    gohighlevel_calendar_tool,
    lead_capture_tool,
    pause_conversation_tool,
)


def initialize_tools(registry: ToolRegistry) -> ToolRegistry:
    """
    Register every built-in tool once.

    Calling again on an initialized registry does nothing, so custom tools
    registered in between are never overwritten.

    Example:
        >>> registry = initialize_tools(ToolRegistry())
        >>> "lead-capture" in registry
        True
    """
    if registry.is_initialized():
        return registry

    for tool in BUILTIN_TOOLS:
        registry.register(tool)
    registry.set_initialized()

    logger.info(f"Initialized {len(BUILTIN_TOOLS)} built-in tools")
    return registry


__all__ = ["BUILTIN_TOOLS", "initialize_tools"]
