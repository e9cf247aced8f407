"""Embedded message markers.

Messages carry two kinds of HTML-comment markers inside their plain text:

- a tip, ``<!--tip:short summary-->``, appended by the model at the end of
  each response and used as routing context for later turns;
- structured markers, ``<!--{kind}:{json}-->``, written for rich tool results
  (``weather``) and stored user images (``image``).

Both survive markdown rendering untouched and can be extracted or stripped
without disturbing the surrounding text.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from turnloop.models.conversation import ImageMarker
from turnloop.models.tools import RichToolResult, ToolResult, WeatherData

logger = logging.getLogger(__name__)

TIP_PATTERN = re.compile(r"<!--tip:(.+?)-->", re.DOTALL)
TIP_STRIP_PATTERN = re.compile(r"<!--tip:.+?-->\n?", re.DOTALL)

# Structured markers always wrap a JSON object
STRUCTURED_PATTERN = re.compile(r"<!--([A-Za-z_][\w-]*):(\{.+?\})-->\n?")


def _kind_pattern(kind: str) -> re.Pattern[str]:
    return re.compile(rf"<!--{re.escape(kind)}:(\{{.+?\}})-->\n?")


def make_marker(kind: str, payload: BaseModel | dict[str, Any]) -> str:
    """Serialize a payload into a structured marker.

    Args:
        kind: Marker kind, e.g. "weather".
        payload: JSON-serializable mapping or pydantic model.

    Returns:
        The marker string, without a trailing newline.
    """
    if isinstance(payload, BaseModel):
        data = payload.model_dump(mode="json", by_alias=True)
    else:
        data = payload
    encoded = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    # A literal "-->" inside a JSON string would close the comment early
    encoded = encoded.replace("-->", "--\\u003e")
    return f"<!--{kind}:{encoded}-->"


def embedded_marker(result: ToolResult) -> str | None:
    """Marker to embed for a tool result, if it carries a payload."""
    if isinstance(result, RichToolResult):
        return make_marker(result.marker_kind, result.payload)
    return None


def extract_tip(text: str) -> str | None:
    """Return the first tip's text, trimmed, or None when absent."""
    match = TIP_PATTERN.search(text)
    if match is None:
        return None
    return match.group(1).strip()


def strip_tip(text: str) -> str:
    return TIP_STRIP_PATTERN.sub("", text).strip()


def extract_and_strip_tip(text: str) -> tuple[str, str | None]:
    """Split a finished response into (cleaned text, tip)."""
    return strip_tip(text), extract_tip(text)


def extract_markers(text: str, kind: str) -> list[dict[str, Any]]:
    """Decode every ``kind`` marker's JSON payload.

    Markers whose payload is not a JSON object are skipped.
    """
    payloads: list[dict[str, Any]] = []
    for match in _kind_pattern(kind).finditer(text):
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            logger.debug("Skipping malformed %s marker", kind)
            continue
        if isinstance(data, dict):
            payloads.append(data)
    return payloads


def strip_markers(text: str, kind: str) -> str:
    return _kind_pattern(kind).sub("", text)


def strip_all_markers(text: str) -> str:
    """Remove every tip and structured marker and trim the result."""
    text = TIP_STRIP_PATTERN.sub("", text)
    text = STRUCTURED_PATTERN.sub("", text)
    return text.strip()


def extract_weather(text: str) -> list[WeatherData]:
    results: list[WeatherData] = []
    for payload in extract_markers(text, "weather"):
        try:
            results.append(WeatherData.model_validate(payload))
        except ValidationError:
            logger.debug("Skipping weather marker that does not match WeatherData")
    return results


def extract_images(text: str) -> list[ImageMarker]:
    images: list[ImageMarker] = []
    for payload in extract_markers(text, "image"):
        try:
            images.append(ImageMarker.model_validate(payload))
        except ValidationError:
            logger.debug("Skipping incomplete image marker")
    return images


def extract_images_and_clean_text(text: str) -> tuple[list[ImageMarker], str]:
    return extract_images(text), strip_markers(text, "image").strip()


@dataclass
class ParsedContent:
    """Everything a renderer needs from a stored message."""

    display_text: str
    tip: str | None = None
    weather: list[WeatherData] = field(default_factory=list)
    images: list[ImageMarker] = field(default_factory=list)
    raw_text: str = ""


def parse_content(text: str) -> ParsedContent:
    return ParsedContent(
        display_text=strip_all_markers(text),
        tip=extract_tip(text),
        weather=extract_weather(text),
        images=extract_images(text),
        raw_text=text,
    )
