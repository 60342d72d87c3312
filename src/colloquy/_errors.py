"""Transport error mapping.

SDK and HTTP exceptions are mapped onto the APIError hierarchy with stable
retry metadata, so retry decisions never depend on substring matching.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from colloquy._http import NON_RETRYABLE_ERROR_CODES, RETRYABLE_STATUS_CODES
from colloquy.errors import (
    APIError,
    ContextLengthError,
    ModelUnavailableError,
    ParameterNotSupportedError,
    QuotaExceededError,
    RateLimitError,
    _walk_exception_chain,
)


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Walk the exception chain to find a retry-after delay in seconds."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "retry_after", None)
        if isinstance(value, int | float) and value >= 0:
            return float(value)

        response = getattr(e, "response", None)
        headers: Any = getattr(response, "headers", None)
        if headers is None:
            continue
        try:
            raw = headers.get("Retry-After")
        except AttributeError:
            raw = None
        if isinstance(raw, str) and raw.strip():
            try:
                seconds = float(raw)
            except ValueError:
                continue
            if seconds >= 0:
                return seconds
    return None


def extract_error_code(exc: BaseException) -> str | None:
    """Find the provider's machine-readable error code (e.g. ``context_length_exceeded``)."""
    for e in _walk_exception_chain(exc):
        code = getattr(e, "code", None)
        if isinstance(code, str) and code:
            return code
        body: Any = getattr(e, "body", None)
        if isinstance(body, dict):
            error = body.get("error", body)
            if isinstance(error, dict):
                code = error.get("code")
                if isinstance(code, str) and code:
                    return code
    return None


def _classify(status_code: int | None, code: str | None) -> type[APIError]:
    if code == "insufficient_quota":
        return QuotaExceededError
    if status_code == 429 or code == "rate_limit_exceeded":
        return RateLimitError
    if code == "context_length_exceeded":
        return ContextLengthError
    if code == "model_not_found" or status_code == 404:
        return ModelUnavailableError
    if code in {"unsupported_parameter", "unsupported_value"}:
        return ParameterNotSupportedError
    return APIError


_HINTS: dict[type[APIError], str] = {
    QuotaExceededError: "Check the account's billing and usage limits.",
    ContextLengthError: "Shorten the transcript or use a model with a larger context window.",
    ModelUnavailableError: "Check the model name and that the account can access it.",
    ParameterNotSupportedError: (
        "Describe the model with explicit ParameterConstraints so the "
        "parameter is omitted."
    ),
}


def _auth_hint(status_code: int | None) -> str | None:
    if status_code in {401, 403}:
        return "Check credentials/permissions (try setting OPENAI_API_KEY or Config.api_key)."
    return None


def wrap_transport_error(
    exc: BaseException,
    *,
    model: str | None,
    phase: str,
    message: str | None = None,
) -> APIError:
    """Map transport exceptions into APIError with stable retry metadata."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already wrapped: fill in missing context only.
    if isinstance(exc, APIError):
        if exc.model is None:
            exc.model = model
        if exc.phase is None:
            exc.phase = phase
        return exc

    status_code = extract_status_code(exc)
    retry_after_s = extract_retry_after_s(exc)
    code = extract_error_code(exc)
    err_cls = _classify(status_code, code)

    if code in NON_RETRYABLE_ERROR_CODES or err_cls not in (APIError, RateLimitError):
        retryable = False
    else:
        retryable = err_cls is RateLimitError or retry_after_s is not None
        if isinstance(status_code, int) and status_code in RETRYABLE_STATUS_CODES:
            retryable = True
        for e in _walk_exception_chain(exc):
            if isinstance(e, httpx.TimeoutException | httpx.RequestError):
                retryable = True
                break

    msg = message or f"{phase} failed"
    status_note = f" (status={status_code})" if isinstance(status_code, int) else ""
    cause = str(exc)
    return err_cls(
        f"{msg}{status_note}: {cause}" if cause else f"{msg}{status_note}",
        hint=_HINTS.get(err_cls) or _auth_hint(status_code),
        retryable=retryable,
        status_code=status_code,
        retry_after_s=retry_after_s,
        code=code,
        model=model,
        phase=phase,
    )
