"""Transcript → wire conversion.

All functions here are pure over the transcript value. Absence of an
optional element yields ``None``; content that cannot be rendered degrades
to a placeholder instead of failing.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, assert_never

from colloquy.transcript import (
    Instructions,
    Prompt,
    Response,
    StructuredSegment,
    TextSegment,
    ToolCalls,
    ToolOutput,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from colloquy.options import GenerationOptions
    from colloquy.transcript import (
        Entry,
        ResponseFormat,
        Segment,
        ToolDefinition,
        Transcript,
    )

logger = logging.getLogger(__name__)

#: Stand-in for structured content that cannot be JSON-encoded.
STRUCTURED_PLACEHOLDER = "[GeneratedContent]"
#: Assistant message content for a tool-call batch; the calls themselves are
#: not re-serialized into chat text.
TOOL_CALLS_PLACEHOLDER = "Tool calls executed"


def encode_json(value: Any) -> str:
    """Encode structured content compactly, keeping object keys in insertion order."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def render_segments(segments: Iterable[Segment]) -> str:
    """Render segments as text, joined by a single space."""
    texts: list[str] = []
    for segment in segments:
        match segment:
            case TextSegment(content=content):
                texts.append(content)
            case StructuredSegment(content=content):
                try:
                    texts.append(encode_json(content))
                except (TypeError, ValueError) as exc:
                    logger.warning(
                        "Structured segment is not JSON-encodable; using placeholder: %s",
                        exc,
                    )
                    texts.append(STRUCTURED_PLACEHOLDER)
            case _:
                assert_never(segment)
    return " ".join(texts)


def entry_to_message(entry: Entry) -> dict[str, str]:
    """Map one transcript entry onto one wire message."""
    match entry:
        case Instructions(segments=segments):
            return {"role": "system", "content": render_segments(segments)}
        case Prompt(segments=segments):
            return {"role": "user", "content": render_segments(segments)}
        case Response(segments=segments):
            return {"role": "assistant", "content": render_segments(segments)}
        case ToolCalls():
            return {"role": "assistant", "content": TOOL_CALLS_PLACEHOLDER}
        case ToolOutput(tool_name=tool_name, segments=segments):
            return {
                "role": "system",
                "content": f"Tool '{tool_name}' returned: {render_segments(segments)}",
            }
        case _:
            assert_never(entry)


def build_messages(transcript: Transcript) -> list[dict[str, str]]:
    """Convert a transcript into wire messages, one per entry, in order."""
    return [entry_to_message(entry) for entry in transcript]


def _first_instructions(transcript: Transcript) -> Instructions | None:
    for entry in transcript:
        if isinstance(entry, Instructions):
            return entry
    return None


def extract_tools(transcript: Transcript) -> list[ToolDefinition] | None:
    """Return the tools attached to the first Instructions entry, if any.

    Tools from later Instructions entries are not merged.
    """
    instructions = _first_instructions(transcript)
    if instructions is None or not instructions.tool_definitions:
        return None
    return list(instructions.tool_definitions)


def extract_response_format(transcript: Transcript) -> ResponseFormat | None:
    """Return the response format attached to the first Instructions entry."""
    instructions = _first_instructions(transcript)
    if instructions is None:
        return None
    return instructions.response_format


def extract_options(transcript: Transcript) -> GenerationOptions | None:
    """Return the generation options attached to the first Instructions entry.

    Used only as a fallback when the caller passes no explicit options.
    """
    instructions = _first_instructions(transcript)
    if instructions is None:
        return None
    return instructions.options


def tool_to_wire(tool: ToolDefinition) -> dict[str, Any]:
    """Render a tool definition as an OpenAI function tool."""
    function: dict[str, Any] = {"name": tool.name}
    if tool.description:
        function["description"] = tool.description
    function["parameters"] = tool.parameters
    return {"type": "function", "function": function}


def tools_to_wire(tools: Iterable[ToolDefinition]) -> list[dict[str, Any]]:
    return [tool_to_wire(t) for t in tools]
