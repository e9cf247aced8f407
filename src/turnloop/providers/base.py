"""Abstract base class for chat transports.

Defines the two calls the rest of turnloop makes against the provider: a
streaming exchange decoded into a StreamResult, and a non-streaming
single-shot completion.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from turnloop.models.config import ModelTier
from turnloop.models.conversation import ConversationMessage, StreamResult
from turnloop.models.tools import ToolSchema
from turnloop.streaming.decoder import TextCallback


class ChatRequest(BaseModel):
    """One request to the Messages endpoint."""

    tier: ModelTier
    system: str
    messages: list[ConversationMessage]
    tools: list[ToolSchema] = Field(default_factory=list)
    max_tokens: int | None = Field(default=None, ge=1)

    def to_payload(self, *, stream: bool, default_max_tokens: int) -> dict[str, Any]:
        """Build the JSON body.

        Args:
            stream: Whether to request an event stream.
            default_max_tokens: Used when the request sets no max_tokens.

        Returns:
            The request body as a dict.
        """
        payload: dict[str, Any] = {
            "model": self.tier.model_id,
            "max_tokens": self.max_tokens or default_max_tokens,
            "system": self.system,
            "messages": [message.to_api() for message in self.messages],
        }
        if stream:
            payload["stream"] = True
        if self.tools:
            payload["tools"] = [tool.to_api() for tool in self.tools]
        return payload


class SingleShotResult(BaseModel):
    """Text and usage of a non-streaming completion."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class ChatTransport(ABC):
    """Abstract base class for provider transports."""

    @abstractmethod
    async def stream(
        self,
        request: ChatRequest,
        on_text: TextCallback | None = None,
    ) -> StreamResult:
        """Run one streaming exchange.

        Args:
            request: Model, system prompt, messages and tools.
            on_text: Called with each text delta as it arrives.

        Returns:
            The decoded StreamResult.

        Raises:
            TransportError: On network failure or timeout.
            APIStatusError: If the provider answers non-2xx.
        """
        ...

    @abstractmethod
    async def single_shot(self, request: ChatRequest) -> SingleShotResult:
        """Run one non-streaming completion.

        Raises:
            TransportError: On network failure or timeout.
            APIStatusError: If the provider answers non-2xx.
            ResponseParseError: If the body has no text content.
        """
        ...

    async def aclose(self) -> None:
        """Release any held connections."""
