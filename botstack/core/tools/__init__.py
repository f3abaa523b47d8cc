"""
botstack.core.tools - Tool Registry & Execution

Tool definition contract, the in-process registry, and the execution
service that dispatches LLM function calls to tool bodies.
"""

from .base import (
    CamelModel,
    ExecutionResult,
    ToolAuth,
    ToolContext,
    ToolDefinition,
    ToolErrorCode,
    ToolFunction,
    ToolType,
    error_result,
    llm_function_name,
    skipped_result,
)
from .effects import non_critical
from .executor import ToolExecutionService
from .registry import ToolRegistry

__all__ = [
    "CamelModel",
    "ExecutionResult",
    "ToolAuth",
    "ToolContext",
    "ToolDefinition",
    "ToolErrorCode",
    "ToolExecutionService",
    "ToolFunction",
    "ToolRegistry",
    "ToolType",
    "error_result",
    "llm_function_name",
    "non_critical",
    "skipped_result",
]
