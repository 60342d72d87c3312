"""Conversation transcript: an ordered, append-only sequence of typed entries.

Entries and segments are closed unions of frozen dataclasses. Consumers
dispatch on them with ``match`` and treat an unknown variant as a bug.

Structured content is plain JSON data (``None``, ``bool``, ``int``,
``float``, ``str``, ``list``, ``dict``). Object keys keep insertion order;
nothing in this package sorts them.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, TypeAlias, overload
import uuid

from pydantic import BaseModel

if TYPE_CHECKING:
    from colloquy.options import GenerationOptions

JSONValue: TypeAlias = (
    "None | bool | int | float | str | list[JSONValue] | dict[str, JSONValue]"
)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TextSegment:
    """Plain text content."""

    content: str
    id: str = field(default_factory=_new_id, compare=False)


@dataclass(frozen=True)
class StructuredSegment:
    """Structured (JSON-shaped) content."""

    content: Any
    id: str = field(default_factory=_new_id, compare=False)


Segment: TypeAlias = "TextSegment | StructuredSegment"
SegmentsInput: TypeAlias = "str | Segment | Sequence[Segment]"


def _coerce_segments(value: Any) -> tuple[Segment, ...]:
    if isinstance(value, str):
        return (TextSegment(value),)
    if isinstance(value, TextSegment | StructuredSegment):
        return (value,)
    segments = tuple(value)
    for segment in segments:
        if not isinstance(segment, TextSegment | StructuredSegment):
            raise TypeError(
                f"segments must be TextSegment or StructuredSegment, got {type(segment).__name__}"
            )
    return segments


@dataclass(frozen=True)
class ToolDefinition:
    """A tool the model may call, described by a JSON Schema for its arguments."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def __hash__(self) -> int:
        return hash((self.name, self.description))


@dataclass(frozen=True)
class ResponseFormat:
    """Requested output format: free JSON, or JSON matching a schema.

    ``schema`` is a JSON Schema dict or a Pydantic ``BaseModel`` subclass.
    """

    kind: Literal["json_object", "json_schema"]
    schema: dict[str, Any] | type[BaseModel] | None = None
    name: str = "response"
    strict: bool = True

    @classmethod
    def json(cls) -> ResponseFormat:
        """Request any well-formed JSON object."""
        return cls(kind="json_object")

    @classmethod
    def json_schema(
        cls,
        schema: dict[str, Any] | type[BaseModel],
        *,
        name: str | None = None,
        strict: bool = True,
    ) -> ResponseFormat:
        """Request JSON that validates against *schema*."""
        if name is None:
            name = schema.__name__ if isinstance(schema, type) else "response"
        return cls(kind="json_schema", schema=schema, name=name, strict=strict)

    def __hash__(self) -> int:
        return hash((self.kind, self.name, self.strict))


@dataclass(frozen=True)
class Instructions:
    """System-level guidance, the available tools, and optional generation hints."""

    segments: tuple[Segment, ...]
    tool_definitions: tuple[ToolDefinition, ...] = ()
    response_format: ResponseFormat | None = None
    options: GenerationOptions | None = None
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", _coerce_segments(self.segments))
        object.__setattr__(self, "tool_definitions", tuple(self.tool_definitions))


@dataclass(frozen=True)
class Prompt:
    """A user turn."""

    segments: tuple[Segment, ...]
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", _coerce_segments(self.segments))


@dataclass(frozen=True)
class Response:
    """An assistant turn."""

    segments: tuple[Segment, ...]
    asset_ids: tuple[str, ...] = ()
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", _coerce_segments(self.segments))


@dataclass(frozen=True)
class ToolCall:
    """One tool invocation requested by the model."""

    id: str
    tool_name: str
    arguments: Any = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCalls:
    """A batch of tool calls requested in one assistant turn."""

    calls: tuple[ToolCall, ...]
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "calls", tuple(self.calls))

    def __iter__(self) -> Iterator[ToolCall]:
        return iter(self.calls)

    def __len__(self) -> int:
        return len(self.calls)


@dataclass(frozen=True)
class ToolOutput:
    """The result of running a tool."""

    tool_name: str
    segments: tuple[Segment, ...]
    call_id: str | None = None
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", _coerce_segments(self.segments))


Entry: TypeAlias = "Instructions | Prompt | Response | ToolCalls | ToolOutput"
_ENTRY_TYPES = (Instructions, Prompt, Response, ToolCalls, ToolOutput)


class Transcript:
    """Ordered, append-only conversation history."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[Entry] = ()) -> None:
        self._entries: list[Entry] = []
        self.extend(entries)

    @classmethod
    def of(cls, *entries: Entry) -> Transcript:
        """Build a transcript from positional entries."""
        return cls(entries)

    def append(self, entry: Entry) -> None:
        """Append one entry at the end."""
        if not isinstance(entry, _ENTRY_TYPES):
            raise TypeError(f"not a transcript entry: {type(entry).__name__}")
        self._entries.append(entry)

    def extend(self, entries: Iterable[Entry]) -> None:
        """Append entries in order."""
        for entry in entries:
            self.append(entry)

    @property
    def entries(self) -> tuple[Entry, ...]:
        """Snapshot of the entries."""
        return tuple(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    @overload
    def __getitem__(self, index: int) -> Entry: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Entry, ...]: ...

    def __getitem__(self, index: int | slice) -> Entry | tuple[Entry, ...]:
        if isinstance(index, slice):
            return tuple(self._entries[index])
        return self._entries[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transcript):
            return NotImplemented
        return self._entries == other._entries

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        kinds = ", ".join(type(e).__name__ for e in self._entries)
        return f"Transcript([{kinds}])"
