"""Per-family parameter constraints.

General chat models accept the usual sampling parameters; reasoning models
accept none of them and name their output limit differently. A model may
carry its own explicit constraints, which always win.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from colloquy.models import ModelDescriptor


class ModelFamily(Enum):
    """Model family, selecting request/response shaping behavior."""

    GENERAL = "general"
    REASONING = "reasoning"


@dataclass(frozen=True)
class ParameterConstraints:
    """Which sampling parameters a model accepts, and how its output limit is named."""

    supports_temperature: bool
    supports_top_p: bool
    supports_frequency_penalty: bool
    supports_presence_penalty: bool
    supports_stop: bool
    max_tokens_parameter_name: str
    temperature_range: tuple[float, float] | None = None
    top_p_range: tuple[float, float] | None = None

    def supports(self, parameter: str) -> bool:
        """Return True when the option named *parameter* may be sent."""
        flag = {
            "temperature": self.supports_temperature,
            "top_p": self.supports_top_p,
            "frequency_penalty": self.supports_frequency_penalty,
            "presence_penalty": self.supports_presence_penalty,
            "stop": self.supports_stop,
        }.get(parameter)
        if flag is None:
            raise KeyError(f"unknown sampling parameter: {parameter!r}")
        return flag

    @property
    def supported_parameters(self) -> frozenset[str]:
        """Names of the sampling parameters this model accepts."""
        return frozenset(
            name
            for name in (
                "temperature",
                "top_p",
                "frequency_penalty",
                "presence_penalty",
                "stop",
            )
            if self.supports(name)
        )


GENERAL_CONSTRAINTS = ParameterConstraints(
    supports_temperature=True,
    supports_top_p=True,
    supports_frequency_penalty=True,
    supports_presence_penalty=True,
    supports_stop=True,
    max_tokens_parameter_name="max_tokens",
    temperature_range=(0.0, 2.0),
    top_p_range=(0.0, 1.0),
)

REASONING_CONSTRAINTS = ParameterConstraints(
    supports_temperature=False,
    supports_top_p=False,
    supports_frequency_penalty=False,
    supports_presence_penalty=False,
    supports_stop=False,
    max_tokens_parameter_name="max_completion_tokens",
)

_FAMILY_CONSTRAINTS: dict[ModelFamily, ParameterConstraints] = {
    ModelFamily.GENERAL: GENERAL_CONSTRAINTS,
    ModelFamily.REASONING: REASONING_CONSTRAINTS,
}


def constraints_for_family(family: ModelFamily) -> ParameterConstraints:
    """Return the default constraints for *family*."""
    return _FAMILY_CONSTRAINTS[family]


def constraints_for(model: ModelDescriptor) -> ParameterConstraints:
    """Resolve the constraints that govern requests to *model*.

    An explicit override on the descriptor is returned unchanged; otherwise
    the family default applies.
    """
    if model.parameter_constraints is not None:
        return model.parameter_constraints
    return constraints_for_family(model.family)
