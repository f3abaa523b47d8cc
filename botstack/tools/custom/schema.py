"""
botstack.tools.custom.schema - Custom Tool Parameter Schemas

Custom tools store their parameters as JSON, either as a JSON Schema object
(``{"type": "object", "properties": ..., "required": [...]}``) or as a list of
parameter records (``[{"name", "type", "required", "enumValues", ...}]``).

Both forms are parsed once into ``ParameterSpec`` records, from which we build:
- a pydantic model that validates call parameters
- the JSON Schema handed to the LLM for function calling

Unknown or missing types degrade to "accept anything" for that parameter so
one malformed entry never blocks the rest.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, create_model


class ParameterKind(str, Enum):
    """Type tag of a custom tool parameter."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"

    @classmethod
    def parse(cls, value: Any) -> "ParameterKind":
        """Map a stored type tag to a kind, degrading to ANY."""
        if value == "integer":
            return cls.NUMBER
        try:
            return cls(value)
        except ValueError:
            return cls.ANY


@dataclass(frozen=True)
class ParameterSpec:
    """One parameter of a custom tool."""

    name: str
    kind: ParameterKind
    description: str = ""
    required: bool = False
    enum_values: tuple[str, ...] = ()
    items_kind: ParameterKind | None = None


def _specs_from_json_schema(schema: dict[str, Any]) -> list[ParameterSpec]:
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return []
    required = schema.get("required") or []

    specs = []
    for name, prop in properties.items():
        if not isinstance(prop, dict):
            continue
        kind = ParameterKind.parse(prop.get("type"))
        items = prop.get("items")
        enum_values = prop.get("enum") if kind is ParameterKind.STRING else None
        specs.append(
            ParameterSpec(
                name=name,
                kind=kind,
                description=prop.get("description") or "",
                required=name in required,
                enum_values=tuple(str(v) for v in enum_values or ()),
                items_kind=(
                    ParameterKind.parse(items.get("type"))
                    if kind is ParameterKind.ARRAY and isinstance(items, dict)
                    else None
                ),
            )
        )
    return specs


def _specs_from_parameter_list(parameters: list[Any]) -> list[ParameterSpec]:
    specs = []
    for param in parameters:
        if not isinstance(param, dict) or not isinstance(param.get("name"), str):
            continue
        kind = ParameterKind.parse(param.get("type"))
        enum_values = param.get("enumValues") if kind is ParameterKind.STRING else None
        items_type = param.get("itemsType") if kind is ParameterKind.ARRAY else None
        specs.append(
            ParameterSpec(
                name=param["name"],
                kind=kind,
                description=param.get("description") or "",
                required=bool(param.get("required", False)),
                enum_values=tuple(str(v) for v in enum_values or ()),
                items_kind=ParameterKind.parse(items_type) if items_type else None,
            )
        )
    return specs


def parse_parameter_specs(function_config: dict[str, Any] | None) -> list[ParameterSpec]:
    """
    Parse a stored custom tool function config into parameter specs.

    The JSON Schema form (``schema``) wins over the list form (``parameters``).

    Example:
        >>> parse_parameter_specs({"parameters": [{"name": "orderId", "type": "string", "required": True}]})
        [ParameterSpec(name='orderId', kind=<ParameterKind.STRING: 'string'>, description='', required=True, enum_values=(), items_kind=None)]
    """
    if not isinstance(function_config, dict):
        return []
    schema = function_config.get("schema")
    if isinstance(schema, dict):
        return _specs_from_json_schema(schema)
    parameters = function_config.get("parameters")
    if isinstance(parameters, list):
        return _specs_from_parameter_list(parameters)
    return []


_PYTHON_TYPES: dict[ParameterKind, Any] = {
    ParameterKind.STRING: str,
    ParameterKind.NUMBER: float,
    ParameterKind.BOOLEAN: bool,
    ParameterKind.OBJECT: dict[str, Any],
    ParameterKind.ANY: Any,
}


def _python_type(spec: ParameterSpec) -> Any:
    if spec.kind is ParameterKind.STRING and spec.enum_values:
        return Literal[spec.enum_values]
    if spec.kind is ParameterKind.ARRAY:
        item_kind = spec.items_kind or ParameterKind.ANY
        return list[_PYTHON_TYPES.get(item_kind, Any)]
    return _PYTHON_TYPES[spec.kind]


class CustomParameters(BaseModel):
    """Base for generated custom tool parameter models (extra keys pass through)."""

    model_config = ConfigDict(extra="allow")


def build_parameters_model(tool_name: str, specs: list[ParameterSpec]) -> type[BaseModel]:
    """
    Build a pydantic model validating a custom tool's parameters.

    Parameter names are used as aliases so names that are not Python
    identifiers still validate.
    """
    fields: dict[str, Any] = {}
    for index, spec in enumerate(specs):
        annotation = _python_type(spec)
        if spec.required:
            field = Field(..., alias=spec.name, description=spec.description or None)
        else:
            annotation = annotation | None if annotation is not Any else Any
            field = Field(default=None, alias=spec.name, description=spec.description or None)
        fields[f"p{index}"] = (annotation, field)

    model_name = "".join(part.capitalize() for part in tool_name.replace("-", "_").split("_")) or "Custom"
    return create_model(f"{model_name}Parameters", __base__=CustomParameters, **fields)


def parameters_to_json_schema(specs: list[ParameterSpec]) -> dict[str, Any]:
    """
    Build the LLM-facing JSON Schema for a custom tool.

    Example:
        >>> parameters_to_json_schema([ParameterSpec("units", ParameterKind.STRING, enum_values=("c", "f"))])
        {'type': 'object', 'properties': {'units': {'type': 'string', 'enum': ['c', 'f']}}, 'required': []}
    """
    properties: dict[str, Any] = {}
    for spec in specs:
        prop: dict[str, Any] = {}
        if spec.kind is not ParameterKind.ANY:
            prop["type"] = spec.kind.value
        if spec.description:
            prop["description"] = spec.description
        if spec.kind is ParameterKind.STRING and spec.enum_values:
            prop["enum"] = list(spec.enum_values)
        if spec.kind is ParameterKind.ARRAY and spec.items_kind and spec.items_kind is not ParameterKind.ANY:
            prop["items"] = {"type": spec.items_kind.value}
        properties[spec.name] = prop

    return {
        "type": "object",
        "properties": properties,
        "required": [spec.name for spec in specs if spec.required],
    }
