"""Language model facade: one transcript in, transcript entries out.

Composes conversion, request building, rate limiting, transport and
response aggregation for a single model. Non-streaming calls are retried
per ``Config.retry``; streaming calls are not, since entries already
delivered cannot be taken back.
"""

from __future__ import annotations

from contextlib import aclosing
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from colloquy._errors import wrap_transport_error
from colloquy.config import Config
from colloquy.convert import (
    build_messages,
    extract_options,
    extract_response_format,
    extract_tools,
    render_segments,
)
from colloquy.errors import (
    APIError,
    ColloquyError,
    ResponseDecodeError,
    UnexpectedResponseError,
)
from colloquy.models import ModelDescriptor, ModelInfo, get_model
from colloquy.rate_limit import RateLimiter
from colloquy.request import build_request
from colloquy.retry import retry_async
from colloquy.streaming import StreamAggregator, parse_tool_arguments
from colloquy.transcript import Response, ResponseFormat, ToolCall, ToolCalls
from colloquy.transport import OpenAITransport
from colloquy.wire import extract_content, extract_tool_calls, parse_completion

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from colloquy.options import GenerationOptions
    from colloquy.transcript import Entry, Transcript
    from colloquy.transport import Transport

M = TypeVar("M", bound=BaseModel)

logger = logging.getLogger(__name__)

_CHARS_PER_TOKEN = 4


class LanguageModel:
    """Chat-completion backed language model for one target model."""

    def __init__(
        self,
        model: ModelDescriptor | str,
        *,
        config: Config | None = None,
        transport: Transport | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.model = get_model(model) if isinstance(model, str) else model
        self.config = config if config is not None else Config()
        self._transport = transport if transport is not None else OpenAITransport(self.config)
        self._limiter = (
            rate_limiter
            if rate_limiter is not None
            else RateLimiter(self.config.rate_limits)
        )

    async def __aenter__(self) -> LanguageModel:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release transport resources."""
        await self._transport.aclose()

    @property
    def is_available(self) -> bool:
        """Availability is only known once a request is made."""
        return True

    def supports_locale(self, locale: str) -> bool:  # noqa: ARG002
        """Chat models handle most languages; every locale is accepted."""
        return True

    @property
    def model_info(self) -> ModelInfo:
        return ModelInfo.from_descriptor(self.model)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self, transcript: Transcript, options: GenerationOptions | None = None
    ) -> Entry:
        """Generate the next entry: a ``ToolCalls`` batch or a ``Response``."""
        request = self._build(transcript, options, stream=False)
        return await self._complete(request)

    async def generate_with_schema(
        self,
        transcript: Transcript,
        schema: ResponseFormat | dict[str, Any] | type[BaseModel],
        options: GenerationOptions | None = None,
    ) -> Entry:
        """Generate with an explicit response schema instead of the transcript's."""
        fmt = schema if isinstance(schema, ResponseFormat) else ResponseFormat.json_schema(schema)
        request = self._build(transcript, options, stream=False, response_format=fmt)
        return await self._complete(request)

    async def generate_as(
        self,
        transcript: Transcript,
        model_cls: type[M],
        options: GenerationOptions | None = None,
    ) -> tuple[Entry, M]:
        """Generate structured output and parse it into *model_cls*.

        Raises:
            UnexpectedResponseError: When the model answers with tool calls.
            ResponseDecodeError: When the text does not validate against *model_cls*.
        """
        entry = await self.generate_with_schema(transcript, model_cls, options)
        if not isinstance(entry, Response):
            raise UnexpectedResponseError(
                f"Expected a response entry, got {type(entry).__name__}"
            )
        text = render_segments(entry.segments)
        try:
            parsed = model_cls.model_validate_json(text)
        except ValidationError as e:
            raise ResponseDecodeError(
                f"Response does not match {model_cls.__name__}: "
                f"{e.error_count()} validation error(s)",
                model=self.model.name,
                phase="decode",
            ) from e
        return entry, parsed

    async def stream(
        self, transcript: Transcript, options: GenerationOptions | None = None
    ) -> AsyncIterator[Entry]:
        """Stream entries: growing ``Response`` snapshots, then any ``ToolCalls``.

        Closing the returned iterator early releases the underlying stream.
        """
        request = self._build(transcript, options, stream=True)
        await self._limiter.admit(tokens=self._estimate_request_tokens(request))
        aggregator = StreamAggregator()
        try:
            async with (
                self._transport.open_stream(request) as payloads,
                aclosing(aggregator.aggregate(payloads)) as entries,
            ):
                async for entry in entries:
                    yield entry
        except APIError as e:
            raise wrap_transport_error(e, model=self.model.name, phase="stream")
        except ColloquyError:
            raise
        except Exception as e:
            raise wrap_transport_error(e, model=self.model.name, phase="stream") from e

    # ------------------------------------------------------------------
    # Context helpers
    # ------------------------------------------------------------------

    def estimate_token_count(self, text: str) -> int:
        """Rough token estimate: about four characters per token, at least one."""
        return max(1, len(text) // _CHARS_PER_TOKEN)

    def would_exceed_context(self, prompt: str) -> bool:
        return self.estimate_token_count(prompt) > self.model.context_window

    def truncate_to_context(self, text: str, reserve_tokens: int = 1000) -> str:
        """Cut *text* to fit the context window minus *reserve_tokens*.

        Truncation prefers the last word boundary inside the limit.
        """
        max_chars = max(0, self.model.context_window - reserve_tokens) * _CHARS_PER_TOKEN
        if len(text) <= max_chars:
            return text
        truncated = text[:max_chars]
        last_space = truncated.rfind(" ")
        if last_space != -1:
            return truncated[:last_space]
        return truncated

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build(
        self,
        transcript: Transcript,
        options: GenerationOptions | None,
        *,
        stream: bool,
        response_format: ResponseFormat | None = None,
    ) -> dict[str, Any]:
        messages = build_messages(transcript)
        tools = extract_tools(transcript)
        if response_format is None:
            response_format = extract_response_format(transcript)
        final_options = options if options is not None else extract_options(transcript)
        return build_request(
            self.model,
            messages,
            final_options,
            tools,
            response_format,
            stream=stream,
        )

    def _estimate_request_tokens(self, request: dict[str, Any]) -> int:
        text = "".join(str(m.get("content", "")) for m in request["messages"])
        return self.estimate_token_count(text)

    async def _send(self, request: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self._transport.send(request)
        except APIError as e:
            raise wrap_transport_error(e, model=self.model.name, phase="generate")
        except ColloquyError:
            raise
        except Exception as e:
            raise wrap_transport_error(e, model=self.model.name, phase="generate") from e

    async def _complete(self, request: dict[str, Any]) -> Entry:
        tokens = self._estimate_request_tokens(request)

        async def attempt() -> dict[str, Any]:
            return await self._limiter.execute(lambda: self._send(request), tokens=tokens)

        body = await retry_async(attempt, policy=self.config.retry)
        completion = parse_completion(body)

        wire_calls = extract_tool_calls(completion)
        if wire_calls:
            logger.debug("%s requested %d tool call(s)", self.model.name, len(wire_calls))
            return ToolCalls(
                tuple(
                    ToolCall(
                        id=call.id,
                        tool_name=call.function.name,
                        arguments=parse_tool_arguments(call.function.arguments),
                    )
                    for call in wire_calls
                )
            )
        return Response(extract_content(completion))
