"""General web search tool."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from turnloop.models.tools import PlainToolResult, ToolResult
from turnloop.secrets_store import TAVILY_API_KEY
from turnloop.tools.base import Tool, ToolContext, input_text
from turnloop.tools.registry import ToolRegistry
from turnloop.tools.tavily import search_web


class SearchInput(BaseModel):
    model_config = ConfigDict(json_schema_extra={"required": ["query"]})

    query: str = Field(
        default="",
        description="The search query. Be specific and include relevant context.",
    )


@ToolRegistry.register
class SearchWebTool(Tool):
    name = "search_web"
    description = (
        "Search the web for current information on any topic. Use this when you need "
        "up-to-date information about news, sports, current events, weather forecasts, "
        "or any topic that changes frequently. Don't deflect with 'I don't have "
        "real-time data'; use this tool."
    )
    input_model = SearchInput
    required_secret = TAVILY_API_KEY

    def label(self, tool_input: dict[str, Any]) -> str:
        return f"Searching: {input_text(tool_input, 'query')}"

    async def run(self, params: SearchInput, context: ToolContext) -> ToolResult:
        return PlainToolResult(text=await search_web(context, params.query))
