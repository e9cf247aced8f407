"""Tavily search client shared by the search-backed tools."""

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from turnloop.secrets_store import TAVILY_API_KEY
from turnloop.tools.base import ToolContext

logger = logging.getLogger(__name__)

NOT_CONFIGURED_TEXT = "Web search not available: Tavily API key not configured."
EMPTY_QUERY_TEXT = "No search query provided."
NO_RESULTS_TEXT = "No search results found."
PARSE_FAILED_TEXT = "Failed to parse search results."


@dataclass(frozen=True)
class SearchSuccess:
    text: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class SearchFailure:
    """A search that produced nothing usable; ``text`` explains why."""

    text: str

    @property
    def ok(self) -> bool:
        return False


SearchResult = SearchSuccess | SearchFailure


def _result_blocks(data: dict[str, Any], max_results: int) -> list[str]:
    blocks: list[str] = []

    answer = data.get("answer")
    if isinstance(answer, str) and answer:
        blocks.append(f"[Summary] {answer}\n")

    results = data.get("results")
    if isinstance(results, list):
        for index, result in enumerate(results[:max_results], start=1):
            if not isinstance(result, dict):
                continue
            title = result.get("title") or "No title"
            url = result.get("url") or "No URL"
            content = result.get("content") or "No content"
            blocks.append(f"[{index}] {title}\nURL: {url}\n{content}\n")
    return blocks


def format_results(data: dict[str, Any], max_results: int) -> str:
    """Flatten a Tavily response into one text block.

    The AI summary, when offered, comes first, followed by numbered
    title/URL/excerpt entries.
    """
    blocks = _result_blocks(data, max_results)
    return "\n".join(blocks) if blocks else NO_RESULTS_TEXT


class TavilySearchClient:
    """Thin async client for the Tavily search endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str = "https://api.tavily.com/search",
        max_results: int = 6,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._max_results = max_results

    async def search(self, api_key: str, query: str) -> SearchResult:
        """Run a search. Never raises: every problem becomes a SearchFailure."""
        body = {
            "api_key": api_key,
            "query": query,
            "search_depth": "advanced",
            "include_answer": True,
            "max_results": self._max_results,
        }
        try:
            response = await self._client.post(self._endpoint, json=body)
        except httpx.HTTPError as e:
            logger.warning("Search request failed: %s", e)
            return SearchFailure(f"Search error: {e}")

        if not response.is_success:
            logger.warning("Search returned HTTP %d", response.status_code)
            return SearchFailure(f"Search failed with HTTP {response.status_code}")

        try:
            data = response.json()
        except json.JSONDecodeError:
            return SearchFailure(PARSE_FAILED_TEXT)
        if not isinstance(data, dict):
            return SearchFailure(PARSE_FAILED_TEXT)

        blocks = _result_blocks(data, self._max_results)
        if not blocks:
            return SearchFailure(NO_RESULTS_TEXT)
        return SearchSuccess("\n".join(blocks))


async def run_search(context: ToolContext, query: str) -> SearchResult:
    """Search with the configured Tavily key, or explain why it can't run."""
    api_key = context.secret(TAVILY_API_KEY)
    if not api_key:
        return SearchFailure(NOT_CONFIGURED_TEXT)
    if not query.strip():
        return SearchFailure(EMPTY_QUERY_TEXT)

    logger.info("Searching for: %s", query)
    client = TavilySearchClient(
        context.http_client,
        endpoint=context.settings.search_endpoint,
        max_results=context.settings.search_max_results,
    )
    return await client.search(api_key, query)


async def search_web(context: ToolContext, query: str) -> str:
    """Search text for the model; failures are explained in the text."""
    return (await run_search(context, query)).text
