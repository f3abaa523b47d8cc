"""
botstack.tools.custom - Customer-defined HTTP tools.
"""

from .factory import (
    CUSTOM_TOOL_TEMPLATE,
    EXECUTE_FUNCTION,
    CustomToolConfig,
    CustomToolConfigurationError,
    create_custom_tool_definition,
)
from .schema import ParameterKind, ParameterSpec, parameters_to_json_schema, parse_parameter_specs

__all__ = [
    "CUSTOM_TOOL_TEMPLATE",
    "EXECUTE_FUNCTION",
    "CustomToolConfig",
    "CustomToolConfigurationError",
    "ParameterKind",
    "ParameterSpec",
    "create_custom_tool_definition",
    "parameters_to_json_schema",
    "parse_parameter_specs",
]
