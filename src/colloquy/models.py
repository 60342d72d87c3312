"""Model descriptors and the catalog of predefined models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, Flag, auto

from colloquy._validation import _require
from colloquy.constraints import ModelFamily, ParameterConstraints, constraints_for
from colloquy.errors import ConfigurationError


class Capability(Flag):
    """Model capability flags."""

    TEXT_GENERATION = auto()
    VISION = auto()
    FUNCTION_CALLING = auto()
    REASONING = auto()
    TOOL_ACCESS = auto()
    STREAMING = auto()


class PricingTier(Enum):
    """Relative cost class of a model."""

    ECONOMY = "economy"
    STANDARD = "standard"
    PREMIUM = "premium"

    @property
    def description(self) -> str:
        """Human-readable summary of the tier."""
        return _TIER_DESCRIPTIONS[self]


_TIER_DESCRIPTIONS = {
    PricingTier.ECONOMY: "Cost-efficient models for basic tasks",
    PricingTier.STANDARD: "Balanced performance and cost",
    PricingTier.PREMIUM: "Highest capability models with advanced features",
}


@dataclass(frozen=True)
class ModelDescriptor:
    """Immutable description of a target model.

    ``parameter_constraints`` overrides the family defaults when set; this is
    how a custom model with unusual parameter rules is described.
    """

    name: str
    family: ModelFamily
    context_window: int
    max_output_tokens: int
    capabilities: Capability
    pricing_tier: PricingTier = PricingTier.STANDARD
    knowledge_cutoff: str = "unknown"
    parameter_constraints: ParameterConstraints | None = None

    def __post_init__(self) -> None:
        """Validate descriptor invariants."""
        _require(
            condition=isinstance(self.name, str) and bool(self.name.strip()),
            message="must be a non-empty string",
            field_name="name",
        )
        _require(
            condition=isinstance(self.family, ModelFamily),
            message="must be a ModelFamily",
            field_name="family",
            hint="Use ModelFamily.GENERAL or ModelFamily.REASONING.",
        )
        _require(
            condition=self.context_window > 0,
            message=f"must be > 0, got {self.context_window}",
            field_name="context_window",
        )
        _require(
            condition=0 < self.max_output_tokens <= self.context_window,
            message=(
                f"must be in (0, context_window={self.context_window}], "
                f"got {self.max_output_tokens}"
            ),
            field_name="max_output_tokens",
        )

    @property
    def constraints(self) -> ParameterConstraints:
        """Parameter constraints resolved for this model."""
        return constraints_for(self)

    @property
    def supports_vision(self) -> bool:
        return Capability.VISION in self.capabilities

    @property
    def supports_function_calling(self) -> bool:
        return Capability.FUNCTION_CALLING in self.capabilities

    @property
    def supports_streaming(self) -> bool:
        return Capability.STREAMING in self.capabilities

    @property
    def is_reasoning_model(self) -> bool:
        return Capability.REASONING in self.capabilities

    def __str__(self) -> str:
        return f"{self.name} ({self.family.value}, {self.pricing_tier.value})"


@dataclass(frozen=True)
class ModelInfo:
    """Summary of a model, as reported by a language model facade."""

    name: str
    context_window: int
    max_output_tokens: int
    capabilities: Capability
    pricing_tier: PricingTier
    knowledge_cutoff: str
    supports_vision: bool
    supports_function_calling: bool
    is_reasoning_model: bool

    @classmethod
    def from_descriptor(cls, model: ModelDescriptor) -> ModelInfo:
        return cls(
            name=model.name,
            context_window=model.context_window,
            max_output_tokens=model.max_output_tokens,
            capabilities=model.capabilities,
            pricing_tier=model.pricing_tier,
            knowledge_cutoff=model.knowledge_cutoff,
            supports_vision=model.supports_vision,
            supports_function_calling=model.supports_function_calling,
            is_reasoning_model=model.is_reasoning_model,
        )


_GENERAL_FULL = (
    Capability.TEXT_GENERATION
    | Capability.VISION
    | Capability.FUNCTION_CALLING
    | Capability.STREAMING
    | Capability.TOOL_ACCESS
)
_REASONING_FULL = (
    Capability.TEXT_GENERATION
    | Capability.REASONING
    | Capability.FUNCTION_CALLING
    | Capability.STREAMING
    | Capability.TOOL_ACCESS
)

# Pure data - no complex classes
MODELS: dict[str, ModelDescriptor] = {
    "gpt-4o": ModelDescriptor(
        name="gpt-4o",
        family=ModelFamily.GENERAL,
        context_window=128_000,
        max_output_tokens=16_384,
        capabilities=_GENERAL_FULL,
        pricing_tier=PricingTier.STANDARD,
        knowledge_cutoff="October 2023",
    ),
    "gpt-4o-mini": ModelDescriptor(
        name="gpt-4o-mini",
        family=ModelFamily.GENERAL,
        context_window=128_000,
        max_output_tokens=16_384,
        capabilities=_GENERAL_FULL & ~Capability.TOOL_ACCESS,
        pricing_tier=PricingTier.ECONOMY,
        knowledge_cutoff="October 2023",
    ),
    "gpt-4-turbo": ModelDescriptor(
        name="gpt-4-turbo",
        family=ModelFamily.GENERAL,
        context_window=128_000,
        max_output_tokens=4_096,
        capabilities=_GENERAL_FULL,
        pricing_tier=PricingTier.STANDARD,
        knowledge_cutoff="April 2024",
    ),
    "o1": ModelDescriptor(
        name="o1",
        family=ModelFamily.REASONING,
        context_window=200_000,
        max_output_tokens=32_768,
        capabilities=_REASONING_FULL,
        pricing_tier=PricingTier.STANDARD,
        knowledge_cutoff="October 2023",
    ),
    "o1-pro": ModelDescriptor(
        name="o1-pro",
        family=ModelFamily.REASONING,
        context_window=200_000,
        max_output_tokens=65_536,
        capabilities=_REASONING_FULL,
        pricing_tier=PricingTier.PREMIUM,
        knowledge_cutoff="October 2023",
    ),
    "o3": ModelDescriptor(
        name="o3",
        family=ModelFamily.REASONING,
        context_window=200_000,
        max_output_tokens=32_768,
        capabilities=_REASONING_FULL,
        pricing_tier=PricingTier.STANDARD,
        knowledge_cutoff="October 2023",
    ),
    "o3-pro": ModelDescriptor(
        name="o3-pro",
        family=ModelFamily.REASONING,
        context_window=200_000,
        max_output_tokens=65_536,
        capabilities=_REASONING_FULL,
        pricing_tier=PricingTier.PREMIUM,
        knowledge_cutoff="October 2023",
    ),
    "o4-mini": ModelDescriptor(
        name="o4-mini",
        family=ModelFamily.REASONING,
        context_window=200_000,
        max_output_tokens=16_384,
        capabilities=_REASONING_FULL,
        pricing_tier=PricingTier.ECONOMY,
        knowledge_cutoff="October 2023",
    ),
}


# Pure functions instead of methods
def get_model(name: str) -> ModelDescriptor:
    """Look up a predefined model by its API name."""
    model = MODELS.get(name)
    if model is None:
        raise ConfigurationError(
            f"Unknown model: {name!r}",
            hint=(
                f"Predefined models: {', '.join(MODELS)}. "
                "Describe other models with custom_model(...)."
            ),
        )
    return model


def custom_model(
    name: str,
    *,
    family: ModelFamily,
    context_window: int,
    max_output_tokens: int,
    capabilities: Capability = Capability.TEXT_GENERATION | Capability.STREAMING,
    pricing_tier: PricingTier = PricingTier.STANDARD,
    knowledge_cutoff: str = "unknown",
    parameter_constraints: ParameterConstraints | None = None,
) -> ModelDescriptor:
    """Describe a model that is not in the predefined catalog."""
    return ModelDescriptor(
        name=name,
        family=family,
        context_window=context_window,
        max_output_tokens=max_output_tokens,
        capabilities=capabilities,
        pricing_tier=pricing_tier,
        knowledge_cutoff=knowledge_cutoff,
        parameter_constraints=parameter_constraints,
    )


def models_of_family(family: ModelFamily) -> list[ModelDescriptor]:
    return [m for m in MODELS.values() if m.family is family]


def models_with_pricing_tier(tier: PricingTier) -> list[ModelDescriptor]:
    return [m for m in MODELS.values() if m.pricing_tier is tier]


def models_with_capability(capability: Capability) -> list[ModelDescriptor]:
    """Return predefined models that have every flag in *capability*."""
    return [m for m in MODELS.values() if capability in m.capabilities]
