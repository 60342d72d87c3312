"""Wire response models for the chat-completions API.

Models ignore unknown fields so that additive API changes do not break
decoding. Only the fields this package reads are declared.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from colloquy.errors import ResponseDecodeError


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WireFunction(_WireModel):
    name: str = ""
    arguments: str = ""


class WireToolCall(_WireModel):
    id: str
    type: str = "function"
    function: WireFunction


class AssistantMessage(_WireModel):
    role: str = "assistant"
    content: str | None = None
    refusal: str | None = None
    tool_calls: list[WireToolCall] | None = None


class Choice(_WireModel):
    index: int = 0
    message: AssistantMessage
    finish_reason: str | None = None


class Usage(_WireModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(_WireModel):
    id: str | None = None
    model: str | None = None
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None


class ToolCallFunctionDelta(_WireModel):
    name: str | None = None
    arguments: str | None = None


class ToolCallDelta(_WireModel):
    """One fragment of a streamed tool call.

    The API sends ``id`` and ``function.name`` only on the first fragment of
    each call; later fragments carry just ``index`` and an arguments piece.
    """

    index: int | None = None
    id: str | None = None
    type: str | None = None
    function: ToolCallFunctionDelta | None = None


class Delta(_WireModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None


class ChunkChoice(_WireModel):
    index: int = 0
    delta: Delta = Field(default_factory=Delta)
    finish_reason: str | None = None


class ChatCompletionChunk(_WireModel):
    id: str | None = None
    model: str | None = None
    choices: list[ChunkChoice] = Field(default_factory=list)
    usage: Usage | None = None


def parse_completion(body: Any) -> ChatCompletion:
    """Decode a non-streaming response body.

    Raises:
        ResponseDecodeError: When *body* is not a chat completion.
    """
    try:
        if isinstance(body, str | bytes | bytearray):
            return ChatCompletion.model_validate_json(body)
        return ChatCompletion.model_validate(body)
    except ValidationError as e:
        raise ResponseDecodeError(
            f"Malformed chat completion: {e.error_count()} validation error(s)",
            phase="decode",
        ) from e


def extract_tool_calls(completion: ChatCompletion) -> list[WireToolCall] | None:
    """Return the tool calls of the first choice, or None when there are none."""
    if not completion.choices:
        return None
    calls = completion.choices[0].message.tool_calls
    return calls or None


def extract_content(completion: ChatCompletion) -> str:
    """Return the text of the first choice.

    A refusal is surfaced as the content. A null content is an empty string.

    Raises:
        ResponseDecodeError: When the completion carries no choices.
    """
    if not completion.choices:
        raise ResponseDecodeError("Chat completion has no choices", phase="decode")
    message = completion.choices[0].message
    if message.content is not None:
        return message.content
    if message.refusal is not None:
        return message.refusal
    return ""
