"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: fake transports, a fake clock, and
builders for wire payloads.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import json
from typing import Any


def completion(
    text: str | None = "ok",
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    finish_reason: str = "stop",
) -> dict[str, Any]:
    """Build a non-streaming chat completion body."""
    message: dict[str, Any] = {"role": "assistant", "content": text}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "model": "test-model",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
    }


def wire_tool_call(call_id: str, name: str, arguments: str) -> dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


def sse(chunk: dict[str, Any]) -> bytes:
    """Frame one chunk as a server-sent event."""
    return f"data: {json.dumps(chunk)}\n\n".encode()


def text_chunk(content: str, *, finish_reason: str | None = None) -> bytes:
    return sse(
        {
            "id": "chatcmpl-test",
            "object": "chat.completion.chunk",
            "choices": [
                {"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}
            ],
        }
    )


def tool_chunk(
    *,
    index: int = 0,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str = "",
    finish_reason: str | None = None,
) -> bytes:
    fragment: dict[str, Any] = {"index": index, "function": {"arguments": arguments}}
    if call_id is not None:
        fragment["id"] = call_id
        fragment["type"] = "function"
    if name is not None:
        fragment["function"]["name"] = name
    return sse(
        {
            "id": "chatcmpl-test",
            "object": "chat.completion.chunk",
            "choices": [
                {
                    "index": 0,
                    "delta": {"tool_calls": [fragment]},
                    "finish_reason": finish_reason,
                }
            ],
        }
    )


def finish_chunk(reason: str) -> bytes:
    return sse(
        {
            "id": "chatcmpl-test",
            "object": "chat.completion.chunk",
            "choices": [{"index": 0, "delta": {}, "finish_reason": reason}],
        }
    )


DONE = b"data: [DONE]\n\n"


async def aiter_payloads(items: list[Any]):
    """Async iterator over *items*, raising any exception instance in place."""
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


@dataclass
class FakeTransport:
    """Transport test double.

    ``responses`` is a script for ``send`` (bodies or exceptions);
    ``stream_payloads`` is replayed by ``open_stream``.
    """

    responses: list[dict[str, Any] | BaseException] = field(default_factory=list)
    stream_payloads: list[bytes | str | BaseException] = field(default_factory=list)
    requests: list[dict[str, Any]] = field(default_factory=list)
    streams_opened: int = 0
    streams_closed: int = 0
    closed: bool = False

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        self.requests.append(request)
        if not self.responses:
            return completion("ok")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    @asynccontextmanager
    async def open_stream(self, request: dict[str, Any]):
        self.requests.append(request)
        self.streams_opened += 1
        try:
            yield aiter_payloads(self.stream_payloads)
        finally:
            self.streams_closed += 1

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class FakeClock:
    """Manually advanced monotonic clock whose ``sleep`` advances time."""

    now: float = 1_000.0
    sleeps: list[float] = field(default_factory=list)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
