"""Transport boundary: sends wire requests and opens raw event streams."""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from colloquy._errors import wrap_transport_error
from colloquy.errors import ColloquyError, ConfigurationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from contextlib import AbstractAsyncContextManager

    from colloquy.config import Config

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Minimal transport protocol: send, open_stream, aclose."""

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        """Send a non-streaming request and return the decoded response body."""
        ...

    def open_stream(
        self, request: dict[str, Any]
    ) -> AbstractAsyncContextManager[AsyncIterator[bytes | str]]:
        """Open a stream; the context yields raw payloads and releases the stream on exit."""
        ...

    async def aclose(self) -> None:
        """Release client resources."""
        ...


class OpenAITransport:
    """Transport backed by the official ``openai`` async client."""

    def __init__(self, config: Config) -> None:
        """Initialize with a configuration; the client is created on first use."""
        self.config = config
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise ConfigurationError(
                    "openai package not installed",
                    hint="pip install openai",
                ) from e
            # Retries are handled by colloquy.retry, not by the SDK.
            self._client = AsyncOpenAI(
                api_key=self.config.require_api_key(),
                base_url=self.config.base_url,
                organization=self.config.organization,
                timeout=self.config.timeout_s,
                max_retries=0,
            )
        return self._client

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        """Create a chat completion and return it as a plain dict."""
        client = self._get_client()
        try:
            response = await client.chat.completions.create(**request)
        except ColloquyError:
            raise
        except Exception as e:
            raise wrap_transport_error(
                e, model=request.get("model"), phase="generate"
            ) from e
        return response.model_dump()

    @asynccontextmanager
    async def open_stream(
        self, request: dict[str, Any]
    ) -> AsyncIterator[AsyncIterator[bytes | str]]:
        """Open a raw server-sent-events stream for *request*."""
        client = self._get_client()
        model = request.get("model")
        async with AsyncExitStack() as stack:
            try:
                response = await stack.enter_async_context(
                    client.chat.completions.with_streaming_response.create(**request)
                )
            except Exception as e:
                raise wrap_transport_error(e, model=model, phase="stream") from e
            yield _iter_lines(response, model)
            logger.debug("Releasing stream for %s", model)

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()


async def _iter_lines(response: Any, model: str | None) -> AsyncIterator[str]:
    try:
        async for line in response.iter_lines():
            yield line
    except Exception as e:
        raise wrap_transport_error(e, model=model, phase="stream") from e
