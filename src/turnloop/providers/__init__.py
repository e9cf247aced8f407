"""Provider transports."""

from turnloop.providers.anthropic import AnthropicTransport
from turnloop.providers.base import ChatRequest, ChatTransport, SingleShotResult

__all__ = ["AnthropicTransport", "ChatRequest", "ChatTransport", "SingleShotResult"]
