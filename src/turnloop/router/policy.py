"""Routing policy table.

Which tiers the router may pick, where escalation stops, and the fallback
answers for parse and API failures.
"""

from pydantic import BaseModel, Field, field_validator, model_validator

from turnloop.models.config import ModelTier
from turnloop.router.prompts import (
    THREE_TIER_CLASSIFICATION_PROMPT,
    TWO_TIER_CLASSIFICATION_PROMPT,
)


class RouterResponse(BaseModel):
    """Parsed classifier output."""

    tier: ModelTier
    confidence: float

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)


class RoutingPolicy(BaseModel):
    """Configurable tier table for automatic routing."""

    name: str
    prompt: str
    allowed_tiers: list[ModelTier] = Field(..., min_length=1)
    confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    classifier_tier: ModelTier = ModelTier.HAIKU
    classifier_max_tokens: int = Field(default=64, ge=1)
    # Tier for recognized JSON with an unrecognized tier string
    unknown_tier: ModelTier = ModelTier.SONNET
    parse_failure: RouterResponse = Field(
        default_factory=lambda: RouterResponse(tier=ModelTier.HAIKU, confidence=1.0)
    )
    api_failure: RouterResponse = Field(
        default_factory=lambda: RouterResponse(tier=ModelTier.SONNET, confidence=0.0)
    )

    @model_validator(mode="after")
    def _sort_allowed(self) -> "RoutingPolicy":
        self.allowed_tiers = sorted(set(self.allowed_tiers), key=lambda tier: tier.rank)
        return self

    @property
    def ceiling(self) -> ModelTier:
        """Most capable tier automatic routing may return."""
        return self.allowed_tiers[-1]

    def cap(self, tier: ModelTier) -> ModelTier:
        """Clamp a tier to the highest allowed tier not above it."""
        candidates = [allowed for allowed in self.allowed_tiers if allowed.rank <= tier.rank]
        return candidates[-1] if candidates else self.allowed_tiers[0]

    def escalate(self, response: RouterResponse) -> ModelTier:
        """Apply single-step confidence escalation.

        Below the threshold the tier moves up exactly one allowed step,
        never past the ceiling. At or above it the tier is unchanged.
        """
        tier = self.cap(response.tier)
        if response.confidence >= self.confidence_threshold:
            return tier
        higher = [allowed for allowed in self.allowed_tiers if allowed.rank > tier.rank]
        return higher[0] if higher else tier

    @classmethod
    def two_tier(cls, confidence_threshold: float = 0.8) -> "RoutingPolicy":
        """Default policy: Haiku or Sonnet, never Opus automatically."""
        return cls(
            name="two_tier",
            prompt=TWO_TIER_CLASSIFICATION_PROMPT,
            allowed_tiers=[ModelTier.HAIKU, ModelTier.SONNET],
            confidence_threshold=confidence_threshold,
        )

    @classmethod
    def three_tier(cls, confidence_threshold: float = 0.8) -> "RoutingPolicy":
        """Legacy policy that may route to Opus."""
        return cls(
            name="three_tier",
            prompt=THREE_TIER_CLASSIFICATION_PROMPT,
            allowed_tiers=[ModelTier.HAIKU, ModelTier.SONNET, ModelTier.OPUS],
            confidence_threshold=confidence_threshold,
        )

    @classmethod
    def by_name(cls, name: str, confidence_threshold: float | None = None) -> "RoutingPolicy":
        factories = {"two_tier": cls.two_tier, "three_tier": cls.three_tier}
        factory = factories.get(name)
        if factory is None:
            msg = f"Unknown routing policy '{name}'. Available: {', '.join(sorted(factories))}"
            raise ValueError(msg)
        if confidence_threshold is None:
            return factory()
        return factory(confidence_threshold)
