"""Configuration data models.

Defines the model tiers and the settings for the provider, router,
orchestrator and built-in tools.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator


class ModelTier(str, Enum):
    """Model quality/cost level, ordered from cheapest to most capable.

    The value is the provider model id sent on the wire.
    """

    HAIKU = "claude-haiku-4-5-20251001"
    SONNET = "claude-sonnet-4-5-20250929"
    OPUS = "claude-opus-4-6"

    @property
    def model_id(self) -> str:
        """Provider model identifier."""
        return self.value

    @property
    def display_name(self) -> str:
        """Human-readable model name."""
        return _DISPLAY_NAMES[self]

    @property
    def rank(self) -> int:
        """Position in the cheapest-to-most-capable ordering."""
        return _TIER_ORDER.index(self)

    @property
    def input_cost_per_million(self) -> float:
        """USD per million input tokens."""
        return _PRICES[self][0]

    @property
    def output_cost_per_million(self) -> float:
        """USD per million output tokens."""
        return _PRICES[self][1]

    def step_up(self) -> "ModelTier":
        """Next more capable tier, or self when already at the top."""
        index = min(self.rank + 1, len(_TIER_ORDER) - 1)
        return _TIER_ORDER[index]

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        """Estimated USD cost of a token count on this tier."""
        return (
            input_tokens / 1_000_000 * self.input_cost_per_million
            + output_tokens / 1_000_000 * self.output_cost_per_million
        )

    @classmethod
    def from_name(cls, name: str) -> "ModelTier | None":
        """Look up a tier by short name ("haiku"), enum name or model id."""
        key = name.strip()
        for tier in cls:
            if key.upper() == tier.name or key == tier.value:
                return tier
        return None

    @classmethod
    def ordered(cls) -> list["ModelTier"]:
        """All tiers, cheapest first."""
        return list(_TIER_ORDER)


_TIER_ORDER = (ModelTier.HAIKU, ModelTier.SONNET, ModelTier.OPUS)

_DISPLAY_NAMES = {
    ModelTier.HAIKU: "Haiku 4.5",
    ModelTier.SONNET: "Sonnet 4.5",
    ModelTier.OPUS: "Opus 4.6",
}

# (input, output) USD per million tokens
_PRICES = {
    ModelTier.HAIKU: (0.80, 4.00),
    ModelTier.SONNET: (3.00, 15.00),
    ModelTier.OPUS: (5.00, 25.00),
}


class ProviderConfig(BaseModel):
    """Connection settings for the Anthropic Messages API."""

    base_url: str = "https://api.anthropic.com"
    api_version: str = "2023-06-01"
    max_tokens: int = Field(default=8192, ge=1)
    api_key: SecretStr | None = None
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    # Read timeout between streamed chunks
    stream_timeout_seconds: float = Field(default=60.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/v1/messages"


class RouterConfig(BaseModel):
    """Configuration for the model-tier router."""

    policy: Literal["two_tier", "three_tier"] = "two_tier"
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class OrchestratorConfig(BaseModel):
    """Configuration for the tool loop orchestrator."""

    max_iterations: int = Field(default=5, ge=1)
    parallel_tools: bool = False
    system_prompt: str | None = None
    user_name: str = "the user"


class ToolSettings(BaseModel):
    """Settings shared by the built-in tools."""

    timezone: str = "America/New_York"
    default_location: str = "Catonsville, Maryland"
    search_endpoint: str = "https://api.tavily.com/search"
    search_max_results: int = Field(default=6, ge=1)
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    extraction_tier: ModelTier = ModelTier.HAIKU

    @field_validator("extraction_tier", mode="before")
    @classmethod
    def _tier_by_name(cls, value: object) -> object:
        # Accept "haiku" as well as the full model id
        if isinstance(value, str):
            return ModelTier.from_name(value) or value
        return value
