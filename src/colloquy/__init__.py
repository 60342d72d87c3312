"""colloquy: drive chat-completion models from a conversation transcript.

Public API:
    - LanguageModel: generate / stream transcript entries for one model
    - Transcript and its entries: Instructions, Prompt, Response, ToolCalls, ToolOutput
    - Model catalog: ModelDescriptor, get_model(), custom_model()
    - GenerationOptions, Config, RateLimitConfig, RetryPolicy
"""

from __future__ import annotations

import logging

from colloquy.config import Config, RateLimitConfig
from colloquy.constraints import (
    GENERAL_CONSTRAINTS,
    REASONING_CONSTRAINTS,
    ModelFamily,
    ParameterConstraints,
    constraints_for,
)
from colloquy.convert import (
    build_messages,
    extract_options,
    extract_response_format,
    extract_tools,
)
from colloquy.errors import (
    APIError,
    ColloquyError,
    ConfigurationError,
    ContextLengthError,
    ModelUnavailableError,
    ParameterNotSupportedError,
    QuotaExceededError,
    RateLimitError,
    RequestBuildError,
    ResponseDecodeError,
    StreamDecodeError,
    UnexpectedResponseError,
)
from colloquy.language_model import LanguageModel
from colloquy.models import (
    MODELS,
    Capability,
    ModelDescriptor,
    ModelInfo,
    PricingTier,
    custom_model,
    get_model,
)
from colloquy.options import GenerationOptions
from colloquy.rate_limit import RateLimiter
from colloquy.request import build_request
from colloquy.retry import RetryPolicy
from colloquy.streaming import StreamAggregator
from colloquy.transcript import (
    Instructions,
    Prompt,
    Response,
    ResponseFormat,
    StructuredSegment,
    TextSegment,
    ToolCall,
    ToolCalls,
    ToolDefinition,
    ToolOutput,
    Transcript,
)
from colloquy.transport import OpenAITransport, Transport

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("colloquy")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("colloquy").addHandler(logging.NullHandler())

__all__ = [
    "GENERAL_CONSTRAINTS",
    "MODELS",
    "REASONING_CONSTRAINTS",
    "APIError",
    "Capability",
    "ColloquyError",
    "Config",
    "ConfigurationError",
    "ContextLengthError",
    "GenerationOptions",
    "Instructions",
    "LanguageModel",
    "ModelDescriptor",
    "ModelFamily",
    "ModelInfo",
    "ModelUnavailableError",
    "OpenAITransport",
    "ParameterConstraints",
    "ParameterNotSupportedError",
    "PricingTier",
    "Prompt",
    "QuotaExceededError",
    "RateLimitConfig",
    "RateLimitError",
    "RateLimiter",
    "RequestBuildError",
    "Response",
    "ResponseDecodeError",
    "ResponseFormat",
    "RetryPolicy",
    "StreamAggregator",
    "StreamDecodeError",
    "StructuredSegment",
    "TextSegment",
    "ToolCall",
    "ToolCalls",
    "ToolDefinition",
    "ToolOutput",
    "Transcript",
    "Transport",
    "UnexpectedResponseError",
    "build_messages",
    "build_request",
    "constraints_for",
    "custom_model",
    "extract_options",
    "extract_response_format",
    "extract_tools",
    "get_model",
]
