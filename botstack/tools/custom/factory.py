"""
botstack.tools.custom.factory - Custom Tool Factory

Turns a stored custom tool record into a live ToolDefinition whose single
``execute`` function POSTs the call to the customer's HTTPS endpoint.

Wire contract of the outbound request:
    POST {serverUrl}
    Content-Type: application/json
    Authorization: Bearer {secretToken}
    User-Agent: ChatBot-CustomTool/1.0
    {"parameters": {...}, "context": {...}, "metadata": {"timestamp": ...}}

Stored headers override the defaults. 4xx responses are returned as
HTTP_ERROR results; 5xx responses raise and surface as EXECUTION_FAILED.
"""

import logging
from collections.abc import Mapping
from time import time
from typing import Any

import httpx
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
from botstack.models.base import utcnow
from botstack.settings import get_settings

from .schema import build_parameters_model, parse_parameter_specs, parameters_to_json_schema

logger = logging.getLogger(__name__)

EXECUTE_FUNCTION = "execute"


class CustomToolConfigurationError(Exception):
    """Custom tool is missing its endpoint configuration."""


class HttpHeader(CamelModel):
    name: str
    value: str


class CustomToolConfig(CamelModel):
    """Per-tool endpoint configuration."""

    is_async: bool = Field(default=False, alias="async")
    strict: bool = False
    server_url: str | None = None
    secret_token: str | None = None
    timeout: int = Field(default_factory=lambda: get_settings().custom_tool_default_timeout, ge=1, le=300)
    http_headers: list[HttpHeader] = Field(default_factory=list)


CUSTOM_TOOL_TEMPLATE = ToolDefinition(
    id="custom-tool-template",
    name="Custom Tool Template",
    description="Template for custom HTTP-based tools",
    type=ToolType.CUSTOM,
    config_schema=CustomToolConfig,
    functions={},
    default_config={"async": False, "strict": False, "httpHeaders": []},
)


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def build_request_headers(config: CustomToolConfig) -> httpx.Headers:
    """Default headers, overridden case-insensitively by the tool's stored headers."""
    headers = httpx.Headers(
        {
            "Content-Type": "application/json",
            "User-Agent": get_settings().custom_tool_user_agent,
        }
    )
    if config.secret_token:
        headers["Authorization"] = f"Bearer {config.secret_token}"
    for header in config.http_headers:
        headers[header.name] = header.value
    return headers


def build_request_payload(params: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    return {
        "parameters": params,
        "context": {
            "botId": context.bot_id,
            "userId": context.user_id,
            "organizationId": context.organization_id,
            "conversationId": context.conversation_id,
            "webhookPayload": context.webhook_payload,
        },
        "metadata": {"timestamp": utcnow().isoformat()},
    }


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _make_execute(tool_id: str, tool_name: str, parameters_model: type[BaseModel]):
    async def execute(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
        if not context.config:
            raise CustomToolConfigurationError(f"Custom tool {tool_name} has no configuration")
        config = CustomToolConfig.model_validate(context.config)
        if not config.server_url:
            raise CustomToolConfigurationError(f"Custom tool {tool_name} has no server URL")

        # Validation only; the endpoint receives the caller's params unchanged
        parameters_model.model_validate(params)
        payload = build_request_payload(params, context)

        start_time = time()
        try:
            async with httpx.AsyncClient(timeout=float(config.timeout)) as client:
                response = await client.post(
                    config.server_url,
                    json=payload,
                    headers=build_request_headers(config),
                )
        except httpx.TransportError as e:
            logger.warning(
                f"Custom tool {tool_name} request failed: {e}",
                extra={"tool_id": tool_id, "bot_id": context.bot_id},
            )
            return error_result("NETWORK_ERROR", f"Request to custom tool failed: {e}")

        execution_time = round((time() - start_time) * 1000)

        if response.status_code >= 500:
            response.raise_for_status()

        body = _response_body(response)
        if response.status_code >= 400:
            logger.warning(
                f"Custom tool {tool_name} returned HTTP {response.status_code}",
                extra={"tool_id": tool_id, "bot_id": context.bot_id},
            )
            return error_result(
                "HTTP_ERROR",
                f"HTTP {response.status_code}: {response.reason_phrase}",
                details=body,
            )

        return {
            "success": True,
            "data": body,
            "metadata": {"httpStatus": response.status_code, "executionTime": execution_time},
        }

    return execute


def create_custom_tool_definition(row: Any) -> ToolDefinition:
    """
    Materialize a stored custom tool as a ToolDefinition.

    Args:
        row: Tool model instance or mapping with id, name, description,
            functions, functions_schema and required_configs

    Returns:
        Definition with a single ``execute`` function
    """
    tool_id = _field(row, "id")
    name = _field(row, "name")
    functions = _field(row, "functions") or {}
    function_config = functions.get(EXECUTE_FUNCTION) if isinstance(functions, Mapping) else None
    function_config = dict(function_config or {})

    if "schema" not in function_config:
        stored_schemas = _field(row, "functions_schema") or {}
        if isinstance(stored_schemas, Mapping) and isinstance(stored_schemas.get(EXECUTE_FUNCTION), dict):
            function_config["schema"] = stored_schemas[EXECUTE_FUNCTION]

    specs = parse_parameter_specs(function_config)
    parameters_model = build_parameters_model(name or "custom", specs)

    return ToolDefinition(
        id=tool_id,
        name=name,
        description=_field(row, "description") or f"Custom tool: {name}",
        type=ToolType.CUSTOM,
        config_schema=CustomToolConfig,
        functions={
            EXECUTE_FUNCTION: ToolFunction(
                description=function_config.get("description") or f"Execute {name}",
                parameters=parameters_model,
                execute=_make_execute(tool_id, name, parameters_model),
                json_schema=parameters_to_json_schema(specs),
            )
        },
        default_config=dict(_field(row, "required_configs") or {}),
    )
