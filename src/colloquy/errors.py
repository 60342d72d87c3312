"""Exception hierarchy for colloquy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class ColloquyError(Exception):
    """Base exception for all colloquy errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ColloquyError):
    """Configuration, options, or model descriptor validation failed."""


class RequestBuildError(ColloquyError):
    """A wire request could not be built (e.g. unrepresentable response format)."""


class UnexpectedResponseError(ColloquyError):
    """The model returned an entry of a different kind than the caller required."""


class APIError(ColloquyError):
    """Remote call failed.

    Transport errors carry retry metadata so callers can perform bounded
    retries without brittle substring matching.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        code: str | None = None,
        model: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.code = code
        self.model = model
        self.phase = phase


class RateLimitError(APIError):
    """Rate limit exceeded (HTTP 429)."""


class QuotaExceededError(APIError):
    """Account quota exhausted; waiting will not help."""


class ContextLengthError(APIError):
    """The request does not fit in the model's context window."""


class ModelUnavailableError(APIError):
    """The model does not exist or the account cannot access it."""


class ParameterNotSupportedError(APIError):
    """The model rejected a request parameter or parameter value."""


class ResponseDecodeError(APIError):
    """A non-streaming response body could not be decoded."""


class StreamDecodeError(APIError):
    """A streaming payload could not be decoded; the stream is aborted."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
