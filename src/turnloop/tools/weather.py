"""Weather tool: web search plus structured extraction.

The search text is handed to a cheap model which extracts a JSON weather
record. The model sees a short text summary; the structured record rides
along as a ``weather`` marker for card rendering.
"""

import json
import logging
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from turnloop.exceptions import ProviderError
from turnloop.models.conversation import ConversationMessage
from turnloop.models.tools import (
    HourlyForecast,
    PlainToolResult,
    RichToolResult,
    ToolResult,
    WeatherData,
)
from turnloop.providers.base import ChatRequest
from turnloop.secrets_store import TAVILY_API_KEY
from turnloop.tools.base import Tool, ToolContext, input_text
from turnloop.tools.registry import ToolRegistry
from turnloop.tools.tavily import SearchFailure, run_search

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = "You extract structured data from text. Return only valid JSON."
EXTRACTION_MAX_TOKENS = 1024
MAX_HOURLY_ENTRIES = 6

EXTRACTION_PROMPT = """Extract weather data from this text into JSON. Return ONLY valid JSON, with no markdown backticks, no explanation and no extra text.

Required format:
{{
  "city": "city name",
  "temp": current temperature in Fahrenheit as number,
  "feelsLike": feels-like temperature in Fahrenheit as number (use temp if not mentioned),
  "conditions": "brief description like Clear, Partly Cloudy, Light Rain",
  "humidity": humidity percentage as integer (0 if not mentioned),
  "windSpeed": wind speed in mph as number (0 if not mentioned),
  "iconCode": "weather icon code from list below",
  "high": daily high in Fahrenheit as number or null if not mentioned,
  "low": daily low in Fahrenheit as number or null if not mentioned,
  "utcOffsetHours": UTC offset for this location as number (e.g., -5 for EST, -8 for PST, 0 for London, 1 for Paris),
  "hourly": [
    {{
      "hour": "display label like 'Now', '3 PM', '4 PM'",
      "temp": temperature in Fahrenheit as number,
      "conditions": "brief description",
      "iconCode": "icon code from list below",
      "pop": precipitation probability 0.0 to 1.0 (0 if not mentioned)
    }}
  ]
}}

For the "hourly" array: include up to 6 entries if hourly forecast data
is present in the text. The first entry should use "Now" as the hour label.
If no hourly data is available, return an empty array: "hourly": [].

For iconCode (both current and hourly), pick the best match:
"01d" = clear sky day, "01n" = clear sky night,
"02d" = few clouds day, "02n" = few clouds night,
"03d" = scattered clouds, "04d" = overcast,
"09d" = drizzle/showers, "10d" = rain day, "10n" = rain night,
"11d" = thunderstorm, "13d" = snow, "50d" = fog/mist/haze.
Use "d" suffix for daytime (6am-8pm), "n" for nighttime.

Text to extract from:
{search_text}"""

# Icon code prefix -> (day symbol, night symbol)
_ICON_SYMBOLS: dict[str, tuple[str, str]] = {
    "01": ("sun.max.fill", "moon.fill"),
    "02": ("cloud.sun.fill", "cloud.moon.fill"),
    "03": ("cloud.fill", "cloud.fill"),
    "04": ("smoke.fill", "smoke.fill"),
    "09": ("cloud.drizzle.fill", "cloud.drizzle.fill"),
    "10": ("cloud.rain.fill", "cloud.moon.rain.fill"),
    "11": ("cloud.bolt.rain.fill", "cloud.bolt.rain.fill"),
    "13": ("cloud.snow.fill", "cloud.snow.fill"),
    "50": ("cloud.fog.fill", "cloud.fog.fill"),
}


def icon_symbol(icon_code: str) -> str:
    """Map an OpenWeather-style icon code to a symbol name."""
    day, night = _ICON_SYMBOLS.get(icon_code[:2], ("cloud.fill", "cloud.fill"))
    return night if icon_code.endswith("n") else day


def resolve_location(location: str, default: str) -> str:
    if location.strip().lower() in ("", "none", "null"):
        return default
    return location


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        newline = cleaned.find("\n")
        cleaned = cleaned[newline + 1 :] if newline != -1 else ""
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    return cleaned


def parse_weather_json(text: str, location: str, observed_at: int | None = None) -> WeatherData | None:
    """Build WeatherData from the extraction model's reply.

    Missing or mistyped fields fall back to defaults. Returns None when the
    reply is not a JSON object at all.
    """
    try:
        data = json.loads(_strip_fences(text))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    city = data.get("city") if isinstance(data.get("city"), str) else location
    temp = _number(data.get("temp")) or 0.0
    feels_like = _number(data.get("feelsLike"))
    conditions = data.get("conditions") if isinstance(data.get("conditions"), str) else "Unknown"
    humidity = _number(data.get("humidity"))
    icon_code = data.get("iconCode") if isinstance(data.get("iconCode"), str) else "03d"
    offset_hours = _number(data.get("utcOffsetHours"))

    hourly: list[HourlyForecast] = []
    raw_hourly = data.get("hourly")
    if isinstance(raw_hourly, list):
        for entry in raw_hourly[:MAX_HOURLY_ENTRIES]:
            if not isinstance(entry, dict):
                continue
            hour = entry.get("hour")
            if not isinstance(hour, str) or not hour:
                continue
            hourly.append(
                HourlyForecast(
                    hour=hour,
                    temp=_number(entry.get("temp")) or 0.0,
                    conditions=entry.get("conditions")
                    if isinstance(entry.get("conditions"), str)
                    else "Unknown",
                    icon_code=entry.get("iconCode")
                    if isinstance(entry.get("iconCode"), str)
                    else "03d",
                    pop=_number(entry.get("pop")) or 0.0,
                )
            )

    return WeatherData(
        city=city,
        temp=temp,
        feels_like=feels_like if feels_like is not None else temp,
        conditions=conditions,
        humidity=int(humidity) if humidity is not None else 0,
        wind_speed=_number(data.get("windSpeed")) or 0.0,
        icon_code=icon_code,
        high=_number(data.get("high")),
        low=_number(data.get("low")),
        hourly_forecast=hourly,
        observation_time=observed_at if observed_at is not None else int(time.time()),
        timezone_offset=int(offset_hours * 3600) if offset_hours is not None else None,
    )


def format_weather_text(weather: WeatherData) -> str:
    """Plain-text summary handed back to the model."""
    lines = [
        f"Current Weather for {weather.city}:",
        f"• Conditions: {weather.conditions}",
        f"• Temperature: {weather.temp:.1f}°F (feels like {weather.feels_like:.1f}°F)",
    ]
    if weather.high is not None and weather.low is not None:
        lines.append(f"• High: {weather.high:.0f}°F / Low: {weather.low:.0f}°F")
    lines.append(f"• Humidity: {weather.humidity}%")
    lines.append(f"• Wind Speed: {weather.wind_speed:.1f} mph")
    return "\n".join(lines)


class WeatherInput(BaseModel):
    # Listed as required on the wire; blank or missing means the default location
    model_config = ConfigDict(json_schema_extra={"required": ["location"]})

    location: str = Field(
        default="",
        description="City and state or country, e.g. 'Baltimore, Maryland'.",
    )


@ToolRegistry.register
class WeatherTool(Tool):
    name = "get_weather"
    description = (
        "Get current weather conditions and a short hourly forecast for a location. "
        "Use this whenever the user asks about the weather."
    )
    input_model = WeatherInput
    required_secret = TAVILY_API_KEY

    def label(self, tool_input: dict[str, Any]) -> str:
        return f"Getting weather for {input_text(tool_input, 'location', 'default location')}"

    async def run(self, params: WeatherInput, context: ToolContext) -> ToolResult:
        location = resolve_location(params.location, context.settings.default_location)
        logger.info("Getting weather for: %s", location)

        query = (
            f"current weather and hourly forecast next 6 hours {location} "
            "temperature humidity wind"
        )
        search = await run_search(context, query)
        if isinstance(search, SearchFailure):
            logger.info("Weather search failed: %s", search.text)
            return PlainToolResult(text=search.text)
        search_text = search.text

        request = ChatRequest(
            tier=context.settings.extraction_tier,
            system=EXTRACTION_SYSTEM_PROMPT,
            messages=[
                ConversationMessage(
                    role="user",
                    content=EXTRACTION_PROMPT.format(search_text=search_text),
                )
            ],
            max_tokens=EXTRACTION_MAX_TOKENS,
        )
        try:
            extraction = await context.transport.single_shot(request)
        except ProviderError as e:
            logger.warning("Weather extraction failed (%s), returning search text", e)
            return PlainToolResult(text=search_text)

        weather = parse_weather_json(extraction.text, location)
        if weather is None:
            logger.warning("Weather extraction returned non-JSON, returning search text")
            return PlainToolResult(text=search_text)

        return RichToolResult(
            text=format_weather_text(weather),
            marker_kind="weather",
            payload=weather.to_payload(),
            overhead_input_tokens=extraction.input_tokens,
            overhead_output_tokens=extraction.output_tokens,
        )
