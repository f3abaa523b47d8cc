"""
Unit tests for customer-defined HTTP tools.

Tests cover:
- Parameter parsing from both stored forms and JSON Schema generation
- Generated parameter models
- Outbound request contract (URL, headers, payload)
- Response handling: success, 4xx, 5xx, transport errors
- CustomToolService CRUD with registry sync
- Lazy resolution of bot-scoped tools through the execution service
"""

import json
from unittest.mock import patch

import httpx
import pytest
from pydantic import ValidationError
from sqlalchemy import select

from botstack.core.tools import ToolContext, ToolExecutionService, ToolRegistry, ToolType
from botstack.models import Bot, BotTool, Tool
from botstack.services.custom_tools import (
    CustomToolNotFoundError,
    CustomToolService,
    CustomToolSpec,
    load_custom_tool,
)
from botstack.settings import clear_settings_cache
from botstack.tools.custom import (
    EXECUTE_FUNCTION,
    CustomToolConfigurationError,
    ParameterKind,
    create_custom_tool_definition,
    parameters_to_json_schema,
    parse_parameter_specs,
)
from botstack.tools.custom.schema import build_parameters_model

_RealAsyncClient = httpx.AsyncClient

SERVER_URL = "https://hooks.example.com/order-status"


def mock_http(handler):
    """Patch httpx.AsyncClient so every client routes through ``handler``."""

    def factory(*args, **kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return patch("httpx.AsyncClient", side_effect=factory)


def order_status_row(**overrides):
    row = {
        "id": "tool-1",
        "name": "order_status",
        "description": "Look up an order",
        "functions": {
            EXECUTE_FUNCTION: {
                "description": "Look up the status of an order",
                "parameters": [{"name": "orderId", "type": "string", "required": True}],
            }
        },
        "required_configs": {
            "serverUrl": SERVER_URL,
            "secretToken": "s3cret",
            "timeout": 5,
            "httpHeaders": [{"name": "X-Shop", "value": "acme"}],
        },
    }
    row.update(overrides)
    return row


def spec_payload(**overrides):
    payload = {
        "name": "order_status",
        "description": "Look up the status of an order",
        "parameters": [{"name": "orderId", "type": "string", "required": True}],
        "serverUrl": SERVER_URL,
        "secretToken": "s3cret",
        "timeout": 10,
    }
    payload.update(overrides)
    return payload


# ============================================================================
# Parameter Schemas
# ============================================================================


class TestParameterSpecs:
    """Test parsing of stored parameter descriptions."""

    def test_parse_parameter_list(self):
        specs = parse_parameter_specs(
            {
                "parameters": [
                    {"name": "units", "type": "string", "enumValues": ["c", "f"]},
                    {"name": "count", "type": "integer", "required": True},
                    {"name": "tags", "type": "array", "itemsType": "string"},
                    {"name": "blob", "type": "mystery"},
                    {"type": "string"},
                ]
            }
        )

        assert [s.name for s in specs] == ["units", "count", "tags", "blob"]
        assert specs[0].enum_values == ("c", "f")
        assert specs[1].kind is ParameterKind.NUMBER
        assert specs[1].required is True
        assert specs[2].items_kind is ParameterKind.STRING
        assert specs[3].kind is ParameterKind.ANY

    def test_json_schema_form_wins(self):
        specs = parse_parameter_specs(
            {
                "schema": {
                    "type": "object",
                    "properties": {"city": {"type": "string", "description": "City name"}},
                    "required": ["city"],
                },
                "parameters": [{"name": "ignored", "type": "string"}],
            }
        )

        assert len(specs) == 1
        assert specs[0].name == "city"
        assert specs[0].required is True
        assert specs[0].description == "City name"

    def test_missing_config(self):
        assert parse_parameter_specs(None) == []
        assert parse_parameter_specs({}) == []

    def test_json_schema_output(self):
        specs = parse_parameter_specs(
            {
                "parameters": [
                    {"name": "units", "type": "string", "enumValues": ["c", "f"], "description": "Units"},
                    {"name": "tags", "type": "array", "itemsType": "number", "required": True},
                    {"name": "blob", "type": "mystery"},
                ]
            }
        )

        assert parameters_to_json_schema(specs) == {
            "type": "object",
            "properties": {
                "units": {"type": "string", "description": "Units", "enum": ["c", "f"]},
                "tags": {"type": "array", "items": {"type": "number"}},
                "blob": {},
            },
            "required": ["tags"],
        }


class TestParametersModel:
    """Test generated validation models."""

    def test_required_and_enum(self):
        specs = parse_parameter_specs(
            {
                "parameters": [
                    {"name": "orderId", "type": "string", "required": True},
                    {"name": "units", "type": "string", "enumValues": ["c", "f"]},
                ]
            }
        )
        model = build_parameters_model("order_status", specs)

        assert model.__name__ == "OrderStatusParameters"
        validated = model.model_validate({"orderId": "A-1", "units": "c"})
        assert validated.model_dump(by_alias=True, exclude_none=True) == {"orderId": "A-1", "units": "c"}

        with pytest.raises(ValidationError):
            model.model_validate({"units": "c"})
        with pytest.raises(ValidationError):
            model.model_validate({"orderId": "A-1", "units": "k"})

    def test_extra_keys_pass_through(self):
        model = build_parameters_model("x", [])

        assert model.model_validate({"free": 1}).model_dump() == {"free": 1}


# ============================================================================
# Factory & HTTP Contract
# ============================================================================


class TestCustomToolFactory:
    """Test materialized definitions and the outbound request."""

    def test_definition_shape(self):
        tool = create_custom_tool_definition(order_status_row())

        assert tool.id == "tool-1"
        assert tool.type is ToolType.CUSTOM
        assert list(tool.functions) == [EXECUTE_FUNCTION]
        function = tool.get_function(EXECUTE_FUNCTION)
        assert function.description == "Look up the status of an order"
        assert function.parameters_schema()["required"] == ["orderId"]
        assert tool.default_config["serverUrl"] == SERVER_URL

    def test_falls_back_to_stored_schema(self):
        row = order_status_row(
            functions={EXECUTE_FUNCTION: {"description": "d"}},
            functions_schema={
                EXECUTE_FUNCTION: {"type": "object", "properties": {"sku": {"type": "string"}}, "required": []}
            },
        )

        tool = create_custom_tool_definition(row)

        assert "sku" in tool.get_function(EXECUTE_FUNCTION).parameters_schema()["properties"]

    @pytest.mark.asyncio
    async def test_success_request_contract(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json={"status": "shipped"})

        tool = create_custom_tool_definition(order_status_row())
        context = ToolContext(
            user_id="user-1",
            bot_id="bot-1",
            conversation_id="conv-1",
            config=order_status_row()["required_configs"],
        )

        with mock_http(handler):
            result = await tool.get_function(EXECUTE_FUNCTION).execute({"orderId": "A-1"}, context)

        assert result["success"] is True
        assert result["data"] == {"status": "shipped"}
        assert result["metadata"]["httpStatus"] == 200
        assert isinstance(result["metadata"]["executionTime"], int)

        request = captured["request"]
        assert request.method == "POST"
        assert str(request.url) == SERVER_URL
        assert request.headers["Authorization"] == "Bearer s3cret"
        assert request.headers["User-Agent"] == "ChatBot-CustomTool/1.0"
        assert request.headers["X-Shop"] == "acme"
        body = json.loads(request.content)
        assert body["parameters"] == {"orderId": "A-1"}
        assert body["context"]["botId"] == "bot-1"
        assert body["context"]["conversationId"] == "conv-1"
        assert "timestamp" in body["metadata"]

    @pytest.mark.asyncio
    async def test_stored_headers_override_defaults(self):
        captured = {}

        def handler(request):
            captured["ua"] = request.headers["User-Agent"]
            return httpx.Response(200, json={})

        config = {**order_status_row()["required_configs"], "httpHeaders": [{"name": "User-Agent", "value": "Mine"}]}
        tool = create_custom_tool_definition(order_status_row())

        with mock_http(handler):
            await tool.get_function(EXECUTE_FUNCTION).execute({"orderId": "A-1"}, ToolContext(config=config))

        assert captured["ua"] == "Mine"

    @pytest.mark.asyncio
    async def test_stored_header_override_ignores_case(self):
        captured = {}

        def handler(request):
            captured["content_types"] = request.headers.get_list("Content-Type")
            return httpx.Response(200, json={})

        config = {
            **order_status_row()["required_configs"],
            "httpHeaders": [{"name": "content-type", "value": "application/vnd.shop+json"}],
        }
        tool = create_custom_tool_definition(order_status_row())

        with mock_http(handler):
            await tool.get_function(EXECUTE_FUNCTION).execute({"orderId": "A-1"}, ToolContext(config=config))

        assert captured["content_types"] == ["application/vnd.shop+json"]

    @pytest.mark.asyncio
    async def test_parameters_are_sent_as_given(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        row = order_status_row(
            functions={
                EXECUTE_FUNCTION: {
                    "description": "Reserve stock",
                    "parameters": [
                        {"name": "qty", "type": "number", "required": True},
                        {"name": "note", "type": "string"},
                        {"name": "flag", "type": "boolean"},
                    ],
                }
            }
        )
        tool = create_custom_tool_definition(row)

        with mock_http(handler):
            result = await tool.get_function(EXECUTE_FUNCTION).execute(
                {"qty": 5, "note": None, "flag": "yes"}, ToolContext(config=row["required_configs"])
            )

        assert result["success"] is True
        assert captured["body"]["parameters"] == {"qty": 5, "note": None, "flag": "yes"}
        assert isinstance(captured["body"]["parameters"]["qty"], int)

    @pytest.mark.asyncio
    async def test_invalid_parameters_are_not_sent(self):
        handler_calls = []

        def handler(request):
            handler_calls.append(request)
            return httpx.Response(200, json={})

        tool = create_custom_tool_definition(order_status_row())

        with mock_http(handler), pytest.raises(ValidationError):
            await tool.get_function(EXECUTE_FUNCTION).execute(
                {"units": "c"}, ToolContext(config=order_status_row()["required_configs"])
            )

        assert handler_calls == []

    @pytest.mark.asyncio
    async def test_default_timeout_comes_from_settings(self, monkeypatch):
        monkeypatch.setenv("BOTSTACK_CUSTOM_TOOL_DEFAULT_TIMEOUT", "12")
        clear_settings_cache()
        captured = {}

        def factory(*args, **kwargs):
            captured["timeout"] = kwargs.get("timeout")
            return _RealAsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})), **kwargs)

        config = {"serverUrl": SERVER_URL}
        tool = create_custom_tool_definition(order_status_row(required_configs=config))

        with patch("httpx.AsyncClient", side_effect=factory):
            await tool.get_function(EXECUTE_FUNCTION).execute({"orderId": "A-1"}, ToolContext(config=config))

        assert captured["timeout"] == 12.0
        payload = spec_payload()
        del payload["timeout"]
        assert CustomToolSpec.model_validate(payload).timeout == 12

    @pytest.mark.asyncio
    async def test_client_error_is_http_error(self):
        def handler(request):
            return httpx.Response(404, json={"detail": "no such order"})

        tool = create_custom_tool_definition(order_status_row())

        with mock_http(handler):
            result = await tool.get_function(EXECUTE_FUNCTION).execute(
                {"orderId": "A-1"}, ToolContext(config=order_status_row()["required_configs"])
            )

        assert result == {
            "success": False,
            "error": {
                "code": "HTTP_ERROR",
                "message": "HTTP 404: Not Found",
                "details": {"detail": "no such order"},
            },
        }

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        tool = create_custom_tool_definition(order_status_row())

        with mock_http(handler), pytest.raises(httpx.HTTPStatusError):
            await tool.get_function(EXECUTE_FUNCTION).execute(
                {"orderId": "A-1"}, ToolContext(config=order_status_row()["required_configs"])
            )

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        tool = create_custom_tool_definition(order_status_row())

        with mock_http(handler):
            result = await tool.get_function(EXECUTE_FUNCTION).execute(
                {"orderId": "A-1"}, ToolContext(config=order_status_row()["required_configs"])
            )

        assert result["success"] is False
        assert result["error"]["code"] == "NETWORK_ERROR"
        assert "connection refused" in result["error"]["message"]

    @pytest.mark.asyncio
    async def test_missing_server_url_raises(self):
        tool = create_custom_tool_definition(order_status_row())

        with pytest.raises(CustomToolConfigurationError, match="no server URL"):
            await tool.get_function(EXECUTE_FUNCTION).execute({"orderId": "A-1"}, ToolContext(config={"timeout": 5}))


# ============================================================================
# Custom Tool Service
# ============================================================================


class TestCustomToolService:
    """Test persistence and registry sync."""

    @pytest.mark.asyncio
    async def test_create_registers_and_installs(self, session, registry, bot):
        service = CustomToolService(session, registry)

        tool = await service.create_custom_tool(bot.id, CustomToolSpec.model_validate(spec_payload()))

        assert tool.type == "CUSTOM"
        assert tool.created_by_bot_id == bot.id
        assert tool.required_configs["serverUrl"] == SERVER_URL
        assert tool.required_configs["secretToken"] == "s3cret"
        assert registry.get(tool.id) is not None

        bot_tool = (await session.execute(select(BotTool).where(BotTool.tool_id == tool.id))).scalar_one()
        assert bot_tool.is_enabled is True
        assert bot_tool.config["timeout"] == 10

    def test_spec_rejects_bad_names(self):
        with pytest.raises(ValidationError):
            CustomToolSpec.model_validate(spec_payload(name="order status!"))

    def test_spec_config_omits_empty_secret(self):
        config = CustomToolSpec.model_validate(spec_payload(secretToken=None, **{"async": True})).tool_config()

        assert "secretToken" not in config
        assert config["async"] is True

    @pytest.mark.asyncio
    async def test_update_rewrites_installations(self, session, registry, bot):
        service = CustomToolService(session, registry)
        tool = await service.create_custom_tool(bot.id, CustomToolSpec.model_validate(spec_payload()))

        await service.update_custom_tool(
            tool.id, CustomToolSpec.model_validate(spec_payload(description="New text", timeout=20))
        )

        assert registry.get(tool.id).description == "New text"
        bot_tool = (await session.execute(select(BotTool).where(BotTool.tool_id == tool.id))).scalar_one()
        assert bot_tool.config["timeout"] == 20

    @pytest.mark.asyncio
    async def test_delete_removes_everything(self, session, registry, bot):
        service = CustomToolService(session, registry)
        tool = await service.create_custom_tool(bot.id, CustomToolSpec.model_validate(spec_payload()))
        tool_id = tool.id

        await service.delete_custom_tool(tool_id)

        assert registry.get(tool_id) is None
        assert await session.get(Tool, tool_id) is None
        assert await service.list_custom_tools(bot.id) == []

    @pytest.mark.asyncio
    async def test_missing_tool_raises(self, session, registry):
        service = CustomToolService(session, registry)

        with pytest.raises(CustomToolNotFoundError):
            await service.delete_custom_tool("missing")
        with pytest.raises(CustomToolNotFoundError):
            await service.update_custom_tool("missing", CustomToolSpec.model_validate(spec_payload()))

    @pytest.mark.asyncio
    async def test_load_public_custom_tools(self, session, registry, bot):
        session.add(Tool(id="public-1", name="weather", type="CUSTOM", required_configs={"serverUrl": SERVER_URL}))
        session.add(
            Tool(id="private-1", name="mine", type="CUSTOM", created_by_bot_id=bot.id, required_configs={})
        )
        session.add(Tool(id="off-1", name="off", type="CUSTOM", is_active=False, required_configs={}))
        await session.commit()

        loaded = await CustomToolService(session, registry).load_public_custom_tools()

        assert loaded == 1
        assert "public-1" in registry
        assert "private-1" not in registry

    @pytest.mark.asyncio
    async def test_visibility(self, session, bot):
        other = Bot(name="Other", user_id="user-2")
        session.add(other)
        session.add(Tool(id="private-1", name="mine", type="CUSTOM", created_by_bot_id=bot.id))
        session.add(Tool(id="public-1", name="shared", type="CUSTOM"))
        await session.commit()

        assert await load_custom_tool(session, "private-1", bot.id) is not None
        assert await load_custom_tool(session, "private-1", other.id) is None
        assert await load_custom_tool(session, "public-1", other.id) is not None


# ============================================================================
# Execution Through The Service
# ============================================================================


class TestCustomToolExecution:
    """Test custom tools end to end through the execution service."""

    async def _create(self, session, bot):
        # A fresh registry: the tool must be resolved lazily from the database
        tool = await CustomToolService(session, registry=ToolRegistry()).create_custom_tool(
            bot.id, CustomToolSpec.model_validate(spec_payload())
        )
        return tool.id

    @pytest.mark.asyncio
    async def test_lazy_resolution_and_success(self, session, session_factory, registry, cipher, bot):
        tool_id = await self._create(session, bot)
        service = ToolExecutionService(session_factory, registry, cipher)

        with mock_http(lambda request: httpx.Response(200, json={"status": "shipped"})):
            result = await service.execute_tool(
                tool_id, EXECUTE_FUNCTION, {"orderId": "A-1"}, ToolContext(bot_id=bot.id)
            )

        assert result["success"] is True
        assert result["data"] == {"status": "shipped"}

    @pytest.mark.asyncio
    async def test_server_error_is_execution_failed(self, session, session_factory, registry, cipher, bot):
        tool_id = await self._create(session, bot)
        service = ToolExecutionService(session_factory, registry, cipher)

        with mock_http(lambda request: httpx.Response(500, text="oops")):
            result = await service.execute_tool(
                tool_id, EXECUTE_FUNCTION, {"orderId": "A-1"}, ToolContext(bot_id=bot.id)
            )

        assert result["error"]["code"] == "EXECUTION_FAILED"
        assert "500" in result["error"]["message"]

    @pytest.mark.asyncio
    async def test_invalid_params_are_execution_failed(self, session, session_factory, registry, cipher, bot):
        tool_id = await self._create(session, bot)
        service = ToolExecutionService(session_factory, registry, cipher)

        result = await service.execute_tool(tool_id, EXECUTE_FUNCTION, {}, ToolContext(bot_id=bot.id))

        assert result["error"]["code"] == "EXECUTION_FAILED"

    @pytest.mark.asyncio
    async def test_other_bots_cannot_see_private_tools(self, session, session_factory, registry, cipher, bot):
        tool_id = await self._create(session, bot)
        service = ToolExecutionService(session_factory, registry, cipher)

        result = await service.execute_tool(
            tool_id, EXECUTE_FUNCTION, {"orderId": "A-1"}, ToolContext(bot_id="another-bot")
        )

        assert result["error"]["code"] == "TOOL_NOT_FOUND"
