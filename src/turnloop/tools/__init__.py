"""Built-in tools.

Importing this package registers every built-in tool with ToolRegistry,
in the order they are offered to the model.
"""

from turnloop.tools import clock, lookup, search, weather  # noqa: F401
from turnloop.tools.base import Tool, ToolContext
from turnloop.tools.catalog import SourceCatalog
from turnloop.tools.fetch import FetchFailure, FetchResult, FetchSuccess, SourceFetcher
from turnloop.tools.registry import ToolDispatcher, ToolRegistry

__all__ = [
    "FetchFailure",
    "FetchResult",
    "FetchSuccess",
    "SourceCatalog",
    "SourceFetcher",
    "Tool",
    "ToolContext",
    "ToolDispatcher",
    "ToolRegistry",
]
