"""Tool data models.

Tool schemas, the dual-channel ToolResult, weather payloads and the
web-source catalog entries.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ToolSchema(BaseModel):
    """Tool declaration sent with each request."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_api(self) -> dict[str, Any]:
        return self.model_dump()


class PlainToolResult(BaseModel):
    """Text-only tool result."""

    kind: Literal["plain"] = "plain"
    text: str

    @property
    def overhead_input_tokens(self) -> int:
        return 0

    @property
    def overhead_output_tokens(self) -> int:
        return 0


class RichToolResult(BaseModel):
    """Tool result carrying a structured payload for the UI.

    Only ``text`` is sent back to the model. ``payload`` is embedded in the
    saved message as a ``<!--{marker_kind}:{json}-->`` marker.
    """

    kind: Literal["rich"] = "rich"
    text: str
    marker_kind: str
    payload: dict[str, Any]
    overhead_input_tokens: int = 0
    overhead_output_tokens: int = 0


ToolResult = PlainToolResult | RichToolResult


class HourlyForecast(BaseModel):
    """One hourly forecast entry."""

    model_config = ConfigDict(populate_by_name=True)

    hour: str
    temp: float = 0.0
    conditions: str = "Unknown"
    icon_code: str = Field(default="03d", alias="iconCode")
    pop: float = 0.0


class WeatherData(BaseModel):
    """Structured weather for card rendering.

    Serialized with camelCase aliases so stored markers stay readable by
    existing consumers.
    """

    model_config = ConfigDict(populate_by_name=True)

    city: str
    temp: float = 0.0
    feels_like: float = Field(default=0.0, alias="feelsLike")
    conditions: str = "Unknown"
    humidity: int = 0
    wind_speed: float = Field(default=0.0, alias="windSpeed")
    icon_code: str = Field(default="03d", alias="iconCode")
    high: float | None = None
    low: float | None = None
    hourly_forecast: list[HourlyForecast] = Field(default_factory=list, alias="hourlyForecast")
    observation_time: int | None = Field(default=None, alias="observationTime")
    timezone_offset: int | None = Field(default=None, alias="timezoneOffset")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class WebSource(BaseModel):
    """One URL-pattern source inside a lookup category."""

    name: str = ""
    url_pattern: str
    extraction_hint: str = ""
    # Lower numbers are tried first
    priority: int = 0
    enabled: bool = True


class WebToolCategory(BaseModel):
    """A lookup category and its ordered sources."""

    keyword: str = Field(..., min_length=1)
    name: str = ""
    extraction_hint: str = ""
    enabled: bool = True
    sources: list[WebSource] = Field(default_factory=list)
