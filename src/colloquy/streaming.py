"""Streaming response aggregation.

Turns the incremental chunk stream of one chat-completion call into
transcript entries:

- every text fragment produces a ``Response`` holding the *entire* text
  accumulated so far, so a consumer can render the latest snapshot as is;
- tool-call fragments are accumulated per call and emitted as one
  ``ToolCalls`` batch when the model finishes with ``"tool_calls"``.

Entries already produced are never retracted: a decode failure later in the
stream aborts aggregation with ``StreamDecodeError`` after the fact.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import ValidationError

from colloquy.errors import APIError, StreamDecodeError
from colloquy.transcript import Response, ToolCall, ToolCalls
from colloquy.wire import ChatCompletionChunk

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

    from colloquy.transcript import Entry
    from colloquy.wire import ToolCallDelta

logger = logging.getLogger(__name__)

AggregatorState = Literal["idle", "accumulating", "finished", "failed", "closed"]

_DONE = "[DONE]"
_SSE_FIELDS = ("data:", "event:", "id:", "retry:", ":")


def _decode_chunk(data: str) -> ChatCompletionChunk:
    try:
        raw = json.loads(data)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(
            f"Stream payload is not valid JSON: {e.msg}", phase="stream"
        ) from e

    if isinstance(raw, dict) and isinstance(raw.get("error"), dict):
        err = raw["error"]
        raise APIError(
            f"Stream reported an error: {err.get('message', 'unknown error')}",
            code=err.get("code") if isinstance(err.get("code"), str) else None,
            retryable=False,
            phase="stream",
        )

    try:
        return ChatCompletionChunk.model_validate(raw)
    except ValidationError as e:
        raise StreamDecodeError(
            f"Stream payload is not a completion chunk: {e.error_count()} validation error(s)",
            phase="stream",
        ) from e


def decode_payload(payload: bytes | str) -> list[ChatCompletionChunk]:
    """Decode one raw stream payload into zero or more chunks.

    Accepts Server-Sent-Events framing (``data:`` lines, comments, and the
    ``[DONE]`` sentinel) or a bare JSON chunk.

    Raises:
        StreamDecodeError: When a data line cannot be decoded.
    """
    if isinstance(payload, bytes | bytearray):
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StreamDecodeError(
                "Stream payload is not valid UTF-8", phase="stream"
            ) from e
    else:
        text = payload

    text = text.strip()
    if not text:
        return []
    if not text.startswith(_SSE_FIELDS):
        return [_decode_chunk(text)]

    chunks: list[ChatCompletionChunk] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(":"):
            continue
        field_name, _, value = line.partition(":")
        if field_name != "data":
            continue
        value = value.strip()
        if value == _DONE:
            continue
        chunks.append(_decode_chunk(value))
    return chunks


def parse_tool_arguments(raw: str) -> Any:
    """Parse a concatenated arguments string; unparseable input yields ``{}``."""
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Discarding unparseable tool-call arguments: %s", e.msg)
        return {}


@dataclass
class _PendingToolCall:
    id: str
    name: str
    arguments: str


class StreamAggregator:
    """Single-use aggregator for one streaming call.

    States move ``idle → accumulating → finished | failed``; a consumer that
    stops early leaves the aggregator ``closed``. An aggregator cannot be
    restarted.
    """

    def __init__(self) -> None:
        self._state: AggregatorState = "idle"
        self._text = ""
        self._pending: list[_PendingToolCall] = []
        self._by_index: dict[int, _PendingToolCall] = {}

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def text(self) -> str:
        """Text accumulated so far."""
        return self._text

    def aggregate(self, payloads: AsyncIterable[bytes | str]) -> AsyncIterator[Entry]:
        """Consume *payloads* and produce transcript entries lazily.

        Raises:
            RuntimeError: When the aggregator has already been started.
        """
        if self._state != "idle":
            raise RuntimeError("StreamAggregator is single-use and was already started")
        self._state = "accumulating"
        return self._run(payloads)

    async def _run(self, payloads: AsyncIterable[bytes | str]) -> AsyncIterator[Entry]:
        try:
            async for payload in payloads:
                for chunk in decode_payload(payload):
                    for entry in self._apply(chunk):
                        yield entry
        except GeneratorExit:
            self._state = "closed"
            raise
        except BaseException:
            self._state = "failed"
            raise
        else:
            self._state = "finished"
            logger.debug(
                "Stream finished: %d chars, %d tool call(s)",
                len(self._text),
                len(self._pending),
            )
        finally:
            aclose = getattr(payloads, "aclose", None)
            if aclose is not None:
                await aclose()

    def _apply(self, chunk: ChatCompletionChunk) -> list[Entry]:
        if not chunk.choices:
            return []
        choice = chunk.choices[0]
        delta = choice.delta
        out: list[Entry] = []

        if delta.tool_calls:
            for fragment in delta.tool_calls:
                self._accumulate(fragment)
        elif delta.content:
            self._text += delta.content
            out.append(Response(self._text))

        if choice.finish_reason == "tool_calls" and self._pending:
            out.append(self._batch())
        return out

    def _accumulate(self, fragment: ToolCallDelta) -> None:
        arguments = ""
        name = ""
        if fragment.function is not None:
            arguments = fragment.function.arguments or ""
            name = fragment.function.name or ""

        pending: _PendingToolCall | None = None
        if fragment.id is not None:
            pending = next((p for p in self._pending if p.id == fragment.id), None)
        elif fragment.index is not None:
            pending = self._by_index.get(fragment.index)

        if pending is not None:
            pending.arguments += arguments
            return

        call_id = fragment.id
        if call_id is None:
            call_id = f"call_{len(self._pending)}"
            logger.debug("Tool-call fragment without id; assigned %s", call_id)
        pending = _PendingToolCall(id=call_id, name=name, arguments=arguments)
        self._pending.append(pending)
        if fragment.index is not None:
            self._by_index.setdefault(fragment.index, pending)

    def _batch(self) -> ToolCalls:
        return ToolCalls(
            tuple(
                ToolCall(
                    id=p.id,
                    tool_name=p.name,
                    arguments=parse_tool_arguments(p.arguments),
                )
                for p in self._pending
            )
        )
