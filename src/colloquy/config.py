"""Configuration: frozen client settings with environment fallbacks."""

from __future__ import annotations

from dataclasses import dataclass, field
import os

from dotenv import load_dotenv

from colloquy._validation import _require
from colloquy.errors import ConfigurationError
from colloquy.retry import RetryPolicy

load_dotenv()

_API_KEY_ENV_VAR = "OPENAI_API_KEY"
_BASE_URL_ENV_VAR = "OPENAI_BASE_URL"


@dataclass(frozen=True)
class RateLimitConfig:
    """Client-side admission budget.

    ``tokens_per_minute`` is enforced only for calls that report a token
    estimate to the limiter.
    """

    requests_per_minute: int = 500
    tokens_per_minute: int | None = None
    enable_backoff: bool = True

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.requests_per_minute, int)
            and self.requests_per_minute > 0,
            message=f"must be an int > 0, got {self.requests_per_minute!r}",
            field_name="requests_per_minute",
        )
        _require(
            condition=self.tokens_per_minute is None
            or (isinstance(self.tokens_per_minute, int) and self.tokens_per_minute > 0),
            message=f"must be an int > 0 or None, got {self.tokens_per_minute!r}",
            field_name="tokens_per_minute",
        )


@dataclass(frozen=True)
class Config:
    """Immutable configuration for a language model client.

    API keys are auto-resolved from ``OPENAI_API_KEY``.

    Example:
        config = Config(rate_limits=RateLimitConfig(requests_per_minute=60))
    """

    #: Auto-resolved from ``OPENAI_API_KEY`` when *None*.
    api_key: str | None = None
    #: Auto-resolved from ``OPENAI_BASE_URL`` when *None*.
    base_url: str | None = None
    organization: str | None = None
    timeout_s: float = 120.0
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Auto-resolve environment fallbacks and validate."""
        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each HTTP request, in seconds.",
            )
        if self.api_key is None:
            object.__setattr__(self, "api_key", os.environ.get(_API_KEY_ENV_VAR))
        if self.base_url is None:
            object.__setattr__(self, "base_url", os.environ.get(_BASE_URL_ENV_VAR))

    def require_api_key(self) -> str:
        """Return the API key or raise a ConfigurationError with a hint."""
        if not self.api_key:
            raise ConfigurationError(
                "API key required",
                hint=f"Set {_API_KEY_ENV_VAR} environment variable or pass api_key=...",
            )
        return self.api_key

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r}, rate_limits={self.rate_limits!r})"
        )

    __repr__ = __str__
