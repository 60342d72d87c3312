"""Stream decoding and aggregation."""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from colloquy.convert import render_segments
from colloquy.errors import APIError, StreamDecodeError
from colloquy.streaming import StreamAggregator, decode_payload, parse_tool_arguments
from colloquy.transcript import Response, ToolCalls
from tests.helpers import (
    DONE,
    aiter_payloads,
    finish_chunk,
    text_chunk,
    tool_chunk,
)

pytestmark = pytest.mark.unit


async def _collect(payloads: list) -> tuple[StreamAggregator, list]:
    aggregator = StreamAggregator()
    entries = [e async for e in aggregator.aggregate(aiter_payloads(payloads))]
    return aggregator, entries


def _texts(entries: list) -> list[str]:
    return [render_segments(e.segments) for e in entries if isinstance(e, Response)]


# =============================================================================
# Payload decoding
# =============================================================================


def test_decode_sse_skips_comments_and_done() -> None:
    payload = b": keep-alive\n\n" + text_chunk("a") + text_chunk("b") + DONE

    chunks = decode_payload(payload)

    assert [c.choices[0].delta.content for c in chunks] == ["a", "b"]


def test_decode_bare_json_chunk() -> None:
    chunks = decode_payload('{"choices":[{"index":0,"delta":{"content":"x"}}]}')

    assert chunks[0].choices[0].delta.content == "x"


@pytest.mark.parametrize("payload", [b"", "   ", "\n\n", "data: [DONE]"])
def test_decode_empty_payloads(payload: bytes | str) -> None:
    assert decode_payload(payload) == []


def test_decode_invalid_json_raises() -> None:
    with pytest.raises(StreamDecodeError, match="not valid JSON"):
        decode_payload("data: {not json")


def test_decode_invalid_utf8_raises() -> None:
    with pytest.raises(StreamDecodeError, match="UTF-8"):
        decode_payload(b"data: \xff\xfe")


def test_decode_non_chunk_shape_raises() -> None:
    with pytest.raises(StreamDecodeError, match="not a completion chunk"):
        decode_payload('data: {"choices": "nope"}')


def test_in_stream_error_payload_raises_api_error() -> None:
    with pytest.raises(APIError, match="overloaded") as exc:
        decode_payload('data: {"error": {"message": "overloaded", "code": "server_error"}}')

    assert exc.value.code == "server_error"
    assert exc.value.retryable is False
    assert exc.value.phase == "stream"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", {}),
        ("  ", {}),
        ('{"a": 1}', {"a": 1}),
        ('{"a": ', {}),
    ],
)
def test_parse_tool_arguments(raw: str, expected: dict) -> None:
    assert parse_tool_arguments(raw) == expected


# =============================================================================
# Text aggregation
# =============================================================================


@pytest.mark.asyncio
async def test_each_text_fragment_yields_full_snapshot() -> None:
    aggregator, entries = await _collect(
        [text_chunk("Hel"), text_chunk("lo"), text_chunk("!"), finish_chunk("stop"), DONE]
    )

    assert _texts(entries) == ["Hel", "Hello", "Hello!"]
    assert aggregator.state == "finished"
    assert aggregator.text == "Hello!"


@pytest.mark.asyncio
async def test_empty_content_fragments_are_skipped() -> None:
    _, entries = await _collect([text_chunk(""), text_chunk("a"), text_chunk("")])

    assert _texts(entries) == ["a"]


@pytest.mark.asyncio
async def test_stream_without_content_yields_nothing() -> None:
    aggregator, entries = await _collect([finish_chunk("stop"), DONE])

    assert entries == []
    assert aggregator.state == "finished"


@pytest.mark.asyncio
@given(st.lists(st.text(min_size=1, max_size=8), min_size=1, max_size=10))
@settings(max_examples=50, deadline=None)
async def test_snapshots_grow_monotonically(fragments: list[str]) -> None:
    _, entries = await _collect([text_chunk(f) for f in fragments])
    texts = _texts(entries)

    assert len(texts) == len(fragments)
    for previous, current in zip(texts, texts[1:], strict=False):
        assert current.startswith(previous)
    assert texts[-1] == "".join(fragments)


# =============================================================================
# Tool-call aggregation
# =============================================================================


@pytest.mark.asyncio
async def test_tool_call_arguments_are_concatenated_then_parsed() -> None:
    _, entries = await _collect(
        [
            tool_chunk(index=0, call_id="call_1", name="f", arguments='{"a":'),
            tool_chunk(index=0, arguments="1}"),
            finish_chunk("tool_calls"),
        ]
    )

    assert len(entries) == 1
    batch = entries[0]
    assert isinstance(batch, ToolCalls)
    [call] = batch.calls
    assert call.id == "call_1"
    assert call.tool_name == "f"
    assert call.arguments == {"a": 1}


@pytest.mark.asyncio
async def test_parallel_tool_calls_keep_first_seen_order() -> None:
    _, entries = await _collect(
        [
            tool_chunk(index=0, call_id="c_a", name="alpha", arguments='{"x"'),
            tool_chunk(index=1, call_id="c_b", name="beta", arguments="{}"),
            tool_chunk(index=0, arguments=": 2}"),
            finish_chunk("tool_calls"),
        ]
    )

    [batch] = entries
    assert [(c.id, c.tool_name, c.arguments) for c in batch] == [
        ("c_a", "alpha", {"x": 2}),
        ("c_b", "beta", {}),
    ]


@pytest.mark.asyncio
async def test_name_is_fixed_by_first_fragment() -> None:
    _, entries = await _collect(
        [
            tool_chunk(index=0, call_id="c1", name="first", arguments="{}"),
            tool_chunk(call_id="c1", name="second"),
            finish_chunk("tool_calls"),
        ]
    )

    assert entries[0].calls[0].tool_name == "first"


@pytest.mark.asyncio
async def test_fragments_without_id_get_synthetic_ids() -> None:
    _, entries = await _collect(
        [tool_chunk(index=3, name="f", arguments="{}"), finish_chunk("tool_calls")]
    )

    assert entries[0].calls[0].id == "call_0"


@pytest.mark.asyncio
async def test_unparseable_arguments_become_empty_object() -> None:
    _, entries = await _collect(
        [
            tool_chunk(index=0, call_id="c1", name="f", arguments='{"a": '),
            finish_chunk("tool_calls"),
        ]
    )

    assert entries[0].calls[0].arguments == {}


@pytest.mark.asyncio
async def test_tool_calls_without_finish_reason_are_not_emitted() -> None:
    _, entries = await _collect(
        [tool_chunk(index=0, call_id="c1", name="f", arguments="{}"), finish_chunk("stop")]
    )

    assert entries == []


@pytest.mark.asyncio
async def test_text_then_tool_calls() -> None:
    _, entries = await _collect(
        [
            text_chunk("Let me check."),
            tool_chunk(index=0, call_id="c1", name="lookup", arguments="{}"),
            finish_chunk("tool_calls"),
        ]
    )

    assert isinstance(entries[0], Response)
    assert isinstance(entries[1], ToolCalls)


# =============================================================================
# Lifecycle
# =============================================================================


@pytest.mark.asyncio
async def test_decode_error_after_partial_output_keeps_delivered_entries() -> None:
    aggregator = StreamAggregator()
    received = []

    with pytest.raises(StreamDecodeError):
        async for entry in aggregator.aggregate(
            aiter_payloads([text_chunk("par"), text_chunk("tial"), b"data: {broken"])
        ):
            received.append(entry)

    assert _texts(received) == ["par", "partial"]
    assert aggregator.state == "failed"


@pytest.mark.asyncio
async def test_transport_error_mid_stream_marks_failed() -> None:
    aggregator = StreamAggregator()

    with pytest.raises(ConnectionResetError):
        async for _ in aggregator.aggregate(
            aiter_payloads([text_chunk("a"), ConnectionResetError("reset")])
        ):
            pass

    assert aggregator.state == "failed"


@pytest.mark.asyncio
async def test_aggregator_is_single_use() -> None:
    aggregator, _ = await _collect([text_chunk("a")])

    with pytest.raises(RuntimeError, match="single-use"):
        aggregator.aggregate(aiter_payloads([]))


@pytest.mark.asyncio
async def test_early_close_releases_payload_source() -> None:
    closed = []

    async def payloads():
        try:
            for fragment in ("a", "b", "c"):
                yield text_chunk(fragment)
        finally:
            closed.append(True)

    aggregator = StreamAggregator()
    entries = aggregator.aggregate(payloads())
    first = await anext(entries)
    await entries.aclose()

    assert _texts([first]) == ["a"]
    assert aggregator.state == "closed"
    assert closed == [True]
