"""
botstack.core.tools.registry - Tool Registry

In-process catalog of tool definitions keyed by tool id.
"""

import logging
import threading

from .base import ToolDefinition, ToolType

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry of available tool definitions.

    Features:
    - Insert-or-replace registration keyed by tool id (last write wins)
    - Lookup by id and by tool type
    - Removal for deleted custom tools
    - One-time initialization flag for the built-in registration pass

    Design: a dict guarded by a lock. Readers get whole definitions or
    nothing; replacing an entry is a single assignment under the lock, so a
    concurrent ``get`` never observes a half-registered tool. Definitions are
    frozen dataclasses and are never mutated after registration.

    The registry is an explicit object handed to the execution service,
    so tests build their own instead of sharing process state.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(lead_capture_tool)
        >>> registry.get("lead-capture").name
        'Lead Info Collector'
    """

    def __init__(self) -> None:
        """Initialize empty tool registry."""
        self._tools: dict[str, ToolDefinition] = {}
        self._lock = threading.Lock()
        self._initialized = False

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool, replacing any existing tool with the same id.

        Args:
            tool: Tool definition to register

        Raises:
            TypeError: If tool is not a ToolDefinition
        """
        if not isinstance(tool, ToolDefinition):
            raise TypeError(
                f"Expected ToolDefinition, got {type(tool).__name__}"
            )

        with self._lock:
            replaced = tool.id in self._tools
            self._tools[tool.id] = tool

        logger.info(
            f"{'Replaced' if replaced else 'Registered'} tool: {tool.id}",
            extra={
                "tool_id": tool.id,
                "tool_type": tool.type.value,
                "functions": list(tool.functions),
            },
        )

    def get(self, tool_id: str) -> ToolDefinition | None:
        """
        Get tool by id.

        Returns:
            ToolDefinition if registered, None otherwise
        """
        with self._lock:
            return self._tools.get(tool_id)

    def get_all(self) -> list[ToolDefinition]:
        """Snapshot of all registered tools in insertion order."""
        with self._lock:
            return list(self._tools.values())

    def get_all_by_type(self, tool_type: ToolType | str) -> list[ToolDefinition]:
        """Snapshot of registered tools of one type."""
        wanted = tool_type.value if isinstance(tool_type, ToolType) else str(tool_type)
        return [tool for tool in self.get_all() if tool.type.value == wanted]

    def remove(self, tool_id: str) -> bool:
        """
        Remove a tool.

        Returns:
            True if an entry existed and was removed
        """
        with self._lock:
            removed = self._tools.pop(tool_id, None) is not None

        if removed:
            logger.info(f"Removed tool: {tool_id}", extra={"tool_id": tool_id})
        return removed

    def is_initialized(self) -> bool:
        """Whether the built-in registration pass has run."""
        return self._initialized

    def set_initialized(self, value: bool = True) -> None:
        """Mark the built-in registration pass as done (or not)."""
        self._initialized = value

    def clear(self) -> None:
        """Remove all tools and reset the initialization flag."""
        with self._lock:
            self._tools.clear()
        self._initialized = False

    def __len__(self) -> int:
        """Get number of registered tools."""
        with self._lock:
            return len(self._tools)

    def __contains__(self, tool_id: object) -> bool:
        """Check if a tool id is registered."""
        with self._lock:
            return tool_id in self._tools

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<ToolRegistry(tools={len(self)}, initialized={self._initialized})>"
