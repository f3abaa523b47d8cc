"""
Unit tests for the tool definition contract and the tool registry.

Tests cover:
- Registration, replacement and removal
- Lookup by id and by type
- Initialization flag and the built-in registration pass
- Config validation and LLM function specs
- Structured error results
"""

from dataclasses import replace

import pytest
from pydantic import BaseModel, ValidationError

from botstack.core.tools import (
    CamelModel,
    ToolDefinition,
    ToolErrorCode,
    ToolFunction,
    ToolRegistry,
    ToolType,
    error_result,
    llm_function_name,
    skipped_result,
)
from botstack.tools import BUILTIN_TOOLS, initialize_tools


class EchoParams(CamelModel):
    text: str


class EchoConfig(CamelModel):
    greeting_prefix: str = "Hi"
    max_length: int = 100


async def _echo(params, context):
    return {"success": True, "text": params.get("text")}


def make_tool(tool_id: str = "echo", tool_type: ToolType = ToolType.DATA_QUERY) -> ToolDefinition:
    return ToolDefinition(
        id=tool_id,
        name="Echo",
        description="Echo text back",
        type=tool_type,
        config_schema=EchoConfig,
        functions={"echo": ToolFunction(description="Echo text", parameters=EchoParams, execute=_echo)},
        default_config={"greetingPrefix": "Hello"},
    )


# ============================================================================
# Registry
# ============================================================================


class TestToolRegistry:
    """Test registry operations."""

    def test_register_and_get(self):
        registry = ToolRegistry()
        tool = make_tool()

        registry.register(tool)

        assert registry.get("echo") is tool
        assert "echo" in registry
        assert len(registry) == 1

    def test_get_unknown_returns_none(self):
        assert ToolRegistry().get("missing") is None

    def test_register_replaces_same_id(self):
        registry = ToolRegistry()
        registry.register(make_tool())
        replacement = replace(make_tool(), name="Echo v2")

        registry.register(replacement)

        assert len(registry) == 1
        assert registry.get("echo").name == "Echo v2"

    def test_register_rejects_non_definitions(self):
        with pytest.raises(TypeError, match="Expected ToolDefinition"):
            ToolRegistry().register({"id": "echo"})

    def test_get_all_by_type(self):
        registry = ToolRegistry()
        registry.register(make_tool("a", ToolType.CUSTOM))
        registry.register(make_tool("b", ToolType.DATA_QUERY))
        registry.register(make_tool("c", ToolType.CUSTOM))

        custom = registry.get_all_by_type(ToolType.CUSTOM)

        assert [tool.id for tool in custom] == ["a", "c"]
        assert [tool.id for tool in registry.get_all_by_type("DATA_QUERY")] == ["b"]

    def test_get_all_by_type_unknown_type_is_empty(self):
        registry = ToolRegistry()
        registry.register(make_tool("a", ToolType.CUSTOM))

        assert registry.get_all_by_type("CONTACT_TAG") == []
        assert registry.get_all_by_type("custom") == []

    def test_remove(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        assert registry.remove("echo") is True
        assert registry.remove("echo") is False
        assert registry.get("echo") is None

    def test_get_all_is_a_snapshot(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        snapshot = registry.get_all()
        registry.register(make_tool("other"))

        assert len(snapshot) == 1

    def test_clear_resets_initialized(self):
        registry = ToolRegistry()
        registry.register(make_tool())
        registry.set_initialized()

        registry.clear()

        assert len(registry) == 0
        assert registry.is_initialized() is False


class TestInitializeTools:
    """Test the built-in registration pass."""

    def test_registers_all_builtins(self):
        registry = initialize_tools(ToolRegistry())

        assert registry.is_initialized()
        assert {tool.id for tool in registry.get_all()} == {
            "google-calendar",
            "gohighlevel-calendar",
            "lead-capture",
            "pause-conversation",
        }
        assert len(registry) == len(BUILTIN_TOOLS)

    def test_second_call_does_not_overwrite(self):
        registry = initialize_tools(ToolRegistry())
        custom = replace(make_tool("lead-capture", ToolType.CUSTOM))
        registry.register(custom)

        initialize_tools(registry)

        assert registry.get("lead-capture") is custom


# ============================================================================
# Tool Definition
# ============================================================================


class TestToolDefinition:
    """Test config validation and function specs."""

    def test_validate_config_uses_default(self):
        config = make_tool().validate_config(None)

        assert config == {"greetingPrefix": "Hello", "maxLength": 100}

    def test_validate_config_accepts_snake_case(self):
        config = make_tool().validate_config({"max_length": 5})

        assert config["maxLength"] == 5

    def test_validate_config_rejects_bad_types(self):
        with pytest.raises(ValidationError):
            make_tool().validate_config({"maxLength": "lots"})

    def test_function_specs(self):
        specs = make_tool().function_specs()

        assert len(specs) == 1
        spec = specs[0]
        assert spec["name"] == "echo__echo"
        assert spec["description"] == "Echo text"
        assert spec["tool_id"] == "echo"
        assert spec["function_name"] == "echo"
        assert spec["parameters_schema"]["required"] == ["text"]

    def test_describe_hook_uses_config(self):
        function = ToolFunction(
            description="static",
            parameters=EchoParams,
            execute=_echo,
            describe=lambda config: f"Greets with {config.get('greetingPrefix', '?')}",
        )

        assert function.description_for({"greetingPrefix": "Yo"}) == "Greets with Yo"
        assert function.description_for() == "Greets with ?"

    def test_json_schema_override(self):
        schema = {"type": "object", "properties": {}}
        function = ToolFunction(description="x", parameters=BaseModel, execute=_echo, json_schema=schema)

        assert function.parameters_schema() is schema

    def test_llm_function_name_sanitizes(self):
        assert llm_function_name("my tool.v2", "run") == "my_tool_v2__run"
        assert len(llm_function_name("x" * 80, "run")) == 64


# ============================================================================
# Results
# ============================================================================


class TestResults:
    def test_error_result_with_details(self):
        result = error_result(ToolErrorCode.TOOL_NOT_FOUND, "Tool not found: x", details={"a": 1})

        assert result == {
            "success": False,
            "error": {"code": "TOOL_NOT_FOUND", "message": "Tool not found: x", "details": {"a": 1}},
        }

    def test_skipped_result(self):
        result = skipped_result(ToolErrorCode.TOOL_DISABLED, "off")

        assert result["success"] is False
        assert result["skipped"] is True
        assert result["error"]["code"] == "TOOL_DISABLED"
