"""Category lookup tool backed by curated source fallback chains."""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from turnloop.models.tools import PlainToolResult, ToolResult
from turnloop.secrets_store import TAVILY_API_KEY
from turnloop.tools.base import Tool, ToolContext, input_text
from turnloop.tools.fetch import FetchSuccess
from turnloop.tools.registry import ToolRegistry
from turnloop.tools.tavily import search_web

logger = logging.getLogger(__name__)

# Category that always goes straight to general search
SEARCH_CATEGORY = "search"

NO_SEARCH_FALLBACK_TEXT = (
    "No curated web sources matched this query and no web search API key is configured. "
    "You can add a Tavily API key for general web search fallback, "
    "or configure a web tool source for this category."
)


async def search_fallback(context: ToolContext, query: str) -> str:
    """General search when curated sources can't answer."""
    if context.secret(TAVILY_API_KEY):
        return await search_web(context, query)
    return NO_SEARCH_FALLBACK_TEXT


class LookupInput(BaseModel):
    model_config = ConfigDict(json_schema_extra={"required": ["category", "query"]})

    category: str = Field(
        default=SEARCH_CATEGORY,
        description=(
            "The web tool category (e.g., 'weather', 'news', 'finance'). Use "
            "'search' for general web search when no specific category fits."
        ),
    )
    query: str = Field(default="", description="The user's question or search terms.")
    parameters: dict[str, str] = Field(
        default_factory=dict,
        description=(
            "Key-value pairs to fill URL placeholders "
            '(e.g., {"lat": "39.27", "lon": "-76.73", "city": "Catonsville"}).'
        ),
    )

    @field_validator("parameters", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # Models sometimes send coordinates as numbers
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items() if v is not None}
        return value


@ToolRegistry.register
class WebLookupTool(Tool):
    name = "web_lookup"
    description = (
        "Look up current information from trusted web sources. Use this for topics "
        "where a web source can provide current, reliable information. Specify the "
        "category to use a curated source, or use category 'search' for general web search."
    )
    input_model = LookupInput

    def label(self, tool_input: dict[str, Any]) -> str:
        category = input_text(tool_input, "category", SEARCH_CATEGORY)
        return f"Looking up {category}: {input_text(tool_input, 'query')}"

    async def run(self, params: LookupInput, context: ToolContext) -> ToolResult:
        logger.info("web_lookup: category=%s query=%s", params.category, params.query)

        if params.category.strip().lower() == SEARCH_CATEGORY:
            return PlainToolResult(text=await search_fallback(context, params.query))

        sources = context.catalog.enabled_sources(params.category)
        if not sources:
            logger.info("web_lookup: no sources for '%s', using web search", params.category)
            return PlainToolResult(text=await search_fallback(context, params.query))

        result = await context.fetcher.fetch_with_fallback(sources, params.parameters)
        if isinstance(result, FetchSuccess):
            return PlainToolResult(text=f"Source: {result.url}\n\n{result.content}")

        logger.info("web_lookup: all sources failed (%s), using web search", result.reason)
        return PlainToolResult(text=await search_fallback(context, params.query))
