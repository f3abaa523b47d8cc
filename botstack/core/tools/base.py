"""
botstack.core.tools.base - Tool Definition Contract

Core interfaces and data types shared by the registry, the execution service
and every concrete tool family:
- ToolDefinition: static description of a capability and its functions
- ToolFunction: one LLM-callable function (description, parameter model, body)
- ToolContext: caller identity plus resolved config/credentials for one call
- ToolErrorCode / error_result: the uniform failure shape
"""

import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from botstack.services.credentials.cipher import CredentialCipher


class ToolType(str, Enum):
    """Coarse tool category."""

    CALENDAR_BOOKING = "CALENDAR_BOOKING"
    CONTACT_FORM = "CONTACT_FORM"
    CUSTOM = "CUSTOM"
    DATA_QUERY = "DATA_QUERY"
    INTEGRATION = "INTEGRATION"
    NOTIFICATION = "NOTIFICATION"


class ToolErrorCode(str, Enum):
    """Failure codes produced by the execution service itself."""

    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    TOOL_INACTIVE = "TOOL_INACTIVE"
    FUNCTION_NOT_FOUND = "FUNCTION_NOT_FOUND"
    TOOL_DISABLED = "TOOL_DISABLED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    CREDENTIAL_NOT_FOUND = "CREDENTIAL_NOT_FOUND"
    EXECUTION_FAILED = "EXECUTION_FAILED"


# Every tool call returns a plain dict: {"success": bool, "error"?: {...}, ...}
ExecutionResult = dict[str, Any]


def error_result(code: str | Enum, message: str, **details: Any) -> ExecutionResult:
    """
    Build a structured failure result.

    Example:
        >>> error_result("HTTP_ERROR", "HTTP 404: Not Found", details={"detail": "x"})
        {'success': False, 'error': {'code': 'HTTP_ERROR', 'message': 'HTTP 404: Not Found', 'details': {'detail': 'x'}}}
    """
    error: dict[str, Any] = {
        "code": code.value if isinstance(code, Enum) else code,
        "message": message,
    }
    error.update(details)
    return {"success": False, "error": error}


def skipped_result(code: str | Enum, message: str) -> ExecutionResult:
    """Build a soft-skip result (the function was deliberately not run)."""
    result = error_result(code, message)
    result["skipped"] = True
    return result


class CamelModel(BaseModel):
    """
    Base for tool config and parameter models.

    Fields are snake_case in Python and camelCase on the wire (stored bot
    config, LLM function schemas), matching what bot admins and models send.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


ToolBody = Callable[[dict[str, Any], "ToolContext"], Awaitable[Any]]


@dataclass(frozen=True)
class ToolFunction:
    """
    One callable function of a tool.

    ``parameters`` validates the raw params inside the body; the execution
    service does not validate them. ``json_schema`` overrides the schema
    derived from ``parameters`` (custom tools carry their own).
    ``describe`` builds the description from a bot's config when set.
    """

    description: str
    parameters: type[BaseModel]
    execute: ToolBody
    json_schema: dict[str, Any] | None = None
    describe: Callable[[dict[str, Any]], str] | None = None

    def description_for(self, config: dict[str, Any] | None = None) -> str:
        if self.describe is None:
            return self.description
        return self.describe(config or {})

    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema handed to the LLM for function calling."""
        if self.json_schema is not None:
            return self.json_schema
        return self.parameters.model_json_schema(by_alias=True)


@dataclass(frozen=True)
class ToolAuth:
    """Third-party authorization a tool needs before it can run."""

    required: bool
    provider: str
    scopes: tuple[str, ...] = ()
    connect_action: str | None = None
    disconnect_action: str | None = None


@dataclass
class ToolContext:
    """
    Execution context threaded through every tool call.

    Callers fill in identity; the execution service adds the resolved
    config, decrypted credentials, a database session and the credential
    cipher before invoking the function body.
    """

    user_id: str | None = None
    bot_id: str | None = None
    organization_id: str | None = None
    conversation_id: str | None = None
    webhook_payload: dict[str, Any] | None = None
    config: dict[str, Any] = field(default_factory=dict)
    credentials: dict[str, Any] | None = None
    credential_id: str | None = None
    session: "AsyncSession | None" = None
    cipher: "CredentialCipher | None" = None

    def resolved(
        self,
        *,
        config: dict[str, Any],
        credentials: dict[str, Any] | None,
        credential_id: str | None,
        session: "AsyncSession | None",
        cipher: "CredentialCipher | None" = None,
    ) -> "ToolContext":
        """Return a copy carrying the resolved execution state."""
        return replace(
            self,
            config=config,
            credentials=credentials,
            credential_id=credential_id,
            session=session,
            cipher=cipher if cipher is not None else self.cipher,
        )


_LLM_NAME_INVALID = re.compile(r"[^a-zA-Z0-9_-]")


def llm_function_name(tool_id: str, function_name: str) -> str:
    """Name under which a tool function is exposed to the LLM."""
    return _LLM_NAME_INVALID.sub("_", f"{tool_id}__{function_name}")[:64]


@dataclass(frozen=True)
class ToolDefinition:
    """
    Static description of a capability.

    Example:
        >>> tool = ToolDefinition(
        ...     id="lead-capture",
        ...     name="Lead Info Collector",
        ...     description="Capture contact details",
        ...     type=ToolType.CONTACT_FORM,
        ...     config_schema=LeadCaptureConfig,
        ...     functions={"saveLead": save_lead},
        ... )
    """

    id: str
    name: str
    description: str
    type: ToolType
    config_schema: type[BaseModel]
    functions: Mapping[str, ToolFunction]
    default_config: dict[str, Any] = field(default_factory=dict)
    integration_type: str | None = None
    version: str = "1.0.0"
    credential_schema: type[BaseModel] | None = None
    auth: ToolAuth | None = None

    def get_credential_schema(self) -> type[BaseModel] | None:
        """Schema of the credential payload, None for tools without third-party auth."""
        return self.credential_schema

    def get_function(self, name: str) -> ToolFunction | None:
        """Look up a function by name."""
        return self.functions.get(name)

    def validate_config(self, config: dict[str, Any] | None) -> dict[str, Any]:
        """
        Validate a per-bot config, falling back to the default config.

        Returns:
            Normalized config (camelCase keys) ready to persist

        Raises:
            pydantic.ValidationError: If the config does not match config_schema
        """
        source = config if config is not None else self.default_config
        model = self.config_schema.model_validate(source)
        return model.model_dump(by_alias=True, exclude_none=True, mode="json")

    def function_specs(self, config: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Describe each function for LLM function calling, for a bot's config if given."""
        return [
            {
                "name": llm_function_name(self.id, function_name),
                "description": function.description_for(config),
                "parameters_schema": function.parameters_schema(),
                "tool_id": self.id,
                "function_name": function_name,
            }
            for function_name, function in self.functions.items()
        ]
