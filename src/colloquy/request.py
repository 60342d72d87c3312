"""Model-aware chat-completion request construction.

The resolved parameter constraints decide which sampling parameters reach
the wire. Unsupported parameters are dropped silently, which is how
reasoning models end up ignoring temperature and friends. Values are never
clamped: a supported parameter is sent exactly as supplied.
"""

from __future__ import annotations

from copy import deepcopy
import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from colloquy.constraints import constraints_for
from colloquy.convert import tool_to_wire
from colloquy.errors import RequestBuildError
from colloquy.options import SAMPLING_PARAMETERS
from colloquy.transcript import ResponseFormat, ToolDefinition

if TYPE_CHECKING:
    from collections.abc import Sequence

    from colloquy.models import ModelDescriptor
    from colloquy.options import GenerationOptions

logger = logging.getLogger(__name__)


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a JSON schema for strict structured-output requirements.

    Ensures that for all 'object' types:
    1. additionalProperties is False
    2. All defined properties are listed in 'required'
    """
    normalized = deepcopy(schema)

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node

        updated: dict[str, Any] = {}
        for key, value in node.items():
            updated[key] = walk(value)

        if updated.get("type") == "object" or "properties" in updated:
            properties = updated.get("properties", {})
            if isinstance(properties, dict):
                updated["additionalProperties"] = False
                if "required" not in updated:
                    updated["required"] = list(properties.keys())

        return updated

    return walk(normalized)


def _schema_dict(fmt: ResponseFormat) -> dict[str, Any]:
    schema = fmt.schema
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        try:
            return schema.model_json_schema()
        except Exception as e:
            raise RequestBuildError(
                f"Cannot derive JSON schema from {schema.__name__}: {e}"
            ) from e
    if isinstance(schema, dict):
        return schema
    raise RequestBuildError(
        f"Unsupported response schema type: {type(schema).__name__}",
        hint="Pass a JSON Schema dict or a Pydantic BaseModel subclass.",
    )


def response_format_to_wire(fmt: ResponseFormat) -> dict[str, Any]:
    """Render a response format as the wire ``response_format`` object."""
    if fmt.kind == "json_object":
        return {"type": "json_object"}
    if fmt.kind != "json_schema":
        raise RequestBuildError(f"Unknown response format kind: {fmt.kind!r}")

    schema = _schema_dict(fmt)
    try:
        # Round-trip to reject values the JSON encoder cannot represent.
        schema = json.loads(json.dumps(schema))
    except (TypeError, ValueError) as e:
        raise RequestBuildError(
            f"Response schema {fmt.name!r} is not JSON-serializable: {e}"
        ) from e
    if fmt.strict:
        schema = to_strict_schema(schema)
    return {
        "type": "json_schema",
        "json_schema": {"name": fmt.name, "schema": schema, "strict": fmt.strict},
    }


def build_request(
    model: ModelDescriptor,
    messages: list[dict[str, Any]],
    options: GenerationOptions | None = None,
    tools: Sequence[ToolDefinition | dict[str, Any]] | None = None,
    response_format: ResponseFormat | dict[str, Any] | None = None,
    *,
    stream: bool = False,
) -> dict[str, Any]:
    """Build the chat-completion request body for *model*.

    Raises:
        RequestBuildError: When *response_format* cannot be represented.
    """
    constraints = constraints_for(model)
    body: dict[str, Any] = {"model": model.name, "messages": messages}

    if options is not None:
        for name, value in options.sampling_parameters().items():
            if constraints.supports(name):
                body[SAMPLING_PARAMETERS[name]] = value
            else:
                logger.debug(
                    "Dropping unsupported parameter %s for model %s", name, model.name
                )
        if options.max_tokens is not None:
            body[constraints.max_tokens_parameter_name] = options.max_tokens

    if tools:
        body["tools"] = [
            tool_to_wire(t) if isinstance(t, ToolDefinition) else t for t in tools
        ]

    if response_format is not None:
        if isinstance(response_format, ResponseFormat):
            body["response_format"] = response_format_to_wire(response_format)
        elif isinstance(response_format, dict):
            body["response_format"] = response_format
        else:
            raise RequestBuildError(
                f"Unsupported response format: {type(response_format).__name__}"
            )

    body["stream"] = stream
    return body
