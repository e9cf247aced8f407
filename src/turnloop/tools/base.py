"""Base class and execution context for built-in tools."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel

from turnloop.models.config import ToolSettings
from turnloop.models.tools import ToolResult, ToolSchema
from turnloop.providers.base import ChatTransport
from turnloop.secrets_store import SecretProvider, resolve_secret
from turnloop.tools.catalog import SourceCatalog
from turnloop.tools.fetch import SourceFetcher


@dataclass
class ToolContext:
    """Collaborators a tool may use while running."""

    transport: ChatTransport
    http_client: httpx.AsyncClient
    secrets: SecretProvider | None = None
    catalog: SourceCatalog = field(default_factory=SourceCatalog)
    settings: ToolSettings = field(default_factory=ToolSettings)

    def secret(self, name: str) -> str | None:
        """Current value of a secret; re-read on every call."""
        return resolve_secret(self.secrets, name)

    @property
    def fetcher(self) -> SourceFetcher:
        return SourceFetcher(self.http_client, self.settings.fetch_timeout_seconds)


def input_text(tool_input: dict[str, Any], key: str, default: str = "") -> str:
    """Read a string field from raw, unvalidated tool input."""
    value = tool_input.get(key)
    return value if isinstance(value, str) and value else default


class Tool(ABC):
    """A tool the model can call.

    Subclasses declare a pydantic input model. Its JSON schema is the wire
    schema offered to the model, and raw input dicts are validated into it
    before :meth:`run` sees them.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]
    # Secret that must resolve for the tool to be offered
    required_secret: ClassVar[str | None] = None

    @classmethod
    def schema(cls) -> ToolSchema:
        return ToolSchema(
            name=cls.name,
            description=cls.description,
            input_schema=cls.input_model.model_json_schema(),
        )

    @classmethod
    def is_available(cls, context: ToolContext) -> bool:
        return cls.required_secret is None or context.secret(cls.required_secret) is not None

    def label(self, tool_input: dict[str, Any]) -> str:
        """Status text shown while the tool runs."""
        return f"Using {self.name}"

    @abstractmethod
    async def run(self, params: Any, context: ToolContext) -> ToolResult:
        """Execute the tool.

        Args:
            params: Validated instance of ``input_model``.
            context: Shared collaborators.

        Returns:
            The tool's result.
        """
        ...
