"""Current date and time tool."""

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from turnloop.models.tools import PlainToolResult, ToolResult
from turnloop.tools.base import Tool, ToolContext
from turnloop.tools.registry import ToolRegistry


def format_current_time(timezone: str, now: datetime | None = None) -> str:
    """Format a moment in a fixed timezone.

    Example: ``Current date and time: Monday, January 5, 2026 3:04 PM (EST)``
    """
    zone = ZoneInfo(timezone)
    moment = now.astimezone(zone) if now is not None else datetime.now(zone)
    hour = moment.hour % 12 or 12
    stamp = f"{moment:%A, %B} {moment.day}, {moment.year} {hour}:{moment:%M %p}"
    return f"Current date and time: {stamp} ({moment.tzname()})"


class ClockInput(BaseModel):
    pass


@ToolRegistry.register
class ClockTool(Tool):
    name = "get_datetime"
    description = (
        "Get the current date and time in the user's timezone. "
        "Use this when you need to know what day or time it is."
    )
    input_model = ClockInput

    def label(self, tool_input: dict[str, Any]) -> str:
        return "Checking date/time"

    async def run(self, params: ClockInput, context: ToolContext) -> ToolResult:
        return PlainToolResult(text=format_current_time(context.settings.timezone))
