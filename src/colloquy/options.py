"""Generation options: sampling and output-limit hints for a single call."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from colloquy._validation import _is_number, _require

#: Sampling parameters gated per model family, keyed by option field name.
#: Values are the wire field names.
SAMPLING_PARAMETERS: dict[str, str] = {
    "temperature": "temperature",
    "top_p": "top_p",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
    "stop": "stop",
}


@dataclass(frozen=True)
class GenerationOptions:
    """Optional sampling and limit hints.

    Only presence is validated here. Numeric ranges are deliberately not
    checked: out-of-range values are passed to the remote API as supplied,
    and unsupported parameters are dropped when the request is built.
    """

    temperature: float | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    #: One stop sequence or a list of them.
    stop: str | tuple[str, ...] | None = None
    #: Hard limit on output tokens. Mapped to the model's wire field name.
    max_tokens: int | None = None

    def __post_init__(self) -> None:
        """Validate option shapes early for clear errors."""
        for name in ("temperature", "top_p", "frequency_penalty", "presence_penalty"):
            value = getattr(self, name)
            _require(
                condition=value is None or _is_number(value),
                message="must be a number",
                field_name=name,
                hint=f"Pass {name}=0.7 or leave it unset.",
            )

        if isinstance(self.stop, list):
            object.__setattr__(self, "stop", tuple(self.stop))
        _require(
            condition=self.stop is None
            or isinstance(self.stop, str)
            or all(isinstance(s, str) for s in self.stop),
            message="must be a string or a sequence of strings",
            field_name="stop",
        )

        _require(
            condition=self.max_tokens is None
            or (
                isinstance(self.max_tokens, int)
                and not isinstance(self.max_tokens, bool)
                and self.max_tokens > 0
            ),
            message="must be a positive integer",
            field_name="max_tokens",
            hint="Reasoning models spend output tokens on thinking; allow headroom.",
        )

    def sampling_parameters(self) -> dict[str, Any]:
        """Return the sampling parameters that are set, keyed by option name."""
        out: dict[str, Any] = {}
        for name in SAMPLING_PARAMETERS:
            value = getattr(self, name)
            if value is None:
                continue
            out[name] = list(value) if isinstance(value, tuple) else value
        return out

    def is_empty(self) -> bool:
        """Return True when no option is set."""
        return all(getattr(self, f.name) is None for f in fields(self))
