"""Small HTTP-related constants shared across colloquy.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

# Retryable status codes shared by transport error mapping and retry.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

# Provider error codes that must never be retried, whatever the status code.
NON_RETRYABLE_ERROR_CODES: frozenset[str] = frozenset(
    {
        "context_length_exceeded",
        "insufficient_quota",
        "model_not_found",
        "unsupported_parameter",
        "unsupported_value",
    }
)
