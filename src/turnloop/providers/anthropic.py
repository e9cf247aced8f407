"""Anthropic Messages API transport over httpx.

The API key is resolved on every call (config, then secret store, then
``ANTHROPIC_API_KEY``) so a key added mid-session is picked up on the next
request.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from turnloop.exceptions import (
    APIStatusError,
    ProviderConfigError,
    ResponseParseError,
    TransportError,
)
from turnloop.models.config import ProviderConfig
from turnloop.models.conversation import StreamResult
from turnloop.providers.base import ChatRequest, ChatTransport, SingleShotResult
from turnloop.secrets_store import ANTHROPIC_API_KEY, SecretProvider, resolve_secret
from turnloop.streaming.decoder import TextCallback, decode_stream

logger = logging.getLogger(__name__)

# Longest error body kept on APIStatusError
ERROR_BODY_LIMIT = 1000


class AnthropicTransport(ChatTransport):
    """Streaming and single-shot calls against ``/v1/messages``."""

    def __init__(
        self,
        config: ProviderConfig | None = None,
        secrets: SecretProvider | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Endpoint, version, token and timeout settings.
            secrets: Store consulted for the API key when config has none.
            client: Shared httpx client. One is created (and owned) if omitted.
        """
        self._config = config or ProviderConfig()
        self._secrets = secrets
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def _api_key(self) -> str:
        if self._config.api_key:
            return self._config.api_key.get_secret_value()
        api_key = resolve_secret(self._secrets, ANTHROPIC_API_KEY)
        if not api_key:
            msg = (
                "Anthropic API key not found. Provide via config provider.api_key, "
                "the secret store, or the ANTHROPIC_API_KEY environment variable."
            )
            raise ProviderConfigError(msg)
        return api_key

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key(),
            "anthropic-version": self._config.api_version,
            "content-type": "application/json",
        }

    def _stream_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._config.stream_timeout_seconds,
            connect=self._config.connect_timeout_seconds,
        )

    def _request_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._config.request_timeout_seconds,
            connect=self._config.connect_timeout_seconds,
        )

    @asynccontextmanager
    async def open_stream(self, payload: dict[str, Any]) -> AsyncIterator[AsyncIterator[str]]:
        """Open a streaming POST and yield its line iterator.

        Non-2xx responses are drained and raised as APIStatusError before any
        line is yielded. Leaving the context closes the connection, which is
        how cancellation tears down an in-flight exchange.
        """
        headers = self._headers()
        try:
            async with self._client.stream(
                "POST",
                self._config.messages_url,
                json=payload,
                headers=headers,
                timeout=self._stream_timeout(),
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise APIStatusError(response.status_code, body[:ERROR_BODY_LIMIT])
                yield response.aiter_lines()
        except httpx.TimeoutException as e:
            msg = f"Request to {self._config.messages_url} timed out: {e}"
            raise TransportError(msg) from e
        except httpx.HTTPError as e:
            msg = f"Transport error talking to {self._config.messages_url}: {e}"
            raise TransportError(msg) from e

    async def stream(
        self,
        request: ChatRequest,
        on_text: TextCallback | None = None,
    ) -> StreamResult:
        payload = request.to_payload(stream=True, default_max_tokens=self._config.max_tokens)
        logger.debug(
            "Streaming %s with %d messages and %d tools",
            request.tier.display_name,
            len(request.messages),
            len(request.tools),
        )
        async with self.open_stream(payload) as lines:
            result = await decode_stream(lines, on_text)
        logger.debug(
            "Stream finished: stop_reason=%s tool_calls=%d tokens=%d/%d",
            result.stop_reason,
            len(result.tool_calls),
            result.input_tokens,
            result.output_tokens,
        )
        return result

    async def single_shot(self, request: ChatRequest) -> SingleShotResult:
        payload = request.to_payload(stream=False, default_max_tokens=self._config.max_tokens)
        headers = self._headers()
        try:
            response = await self._client.post(
                self._config.messages_url,
                json=payload,
                headers=headers,
                timeout=self._request_timeout(),
            )
        except httpx.TimeoutException as e:
            msg = f"Request to {self._config.messages_url} timed out: {e}"
            raise TransportError(msg) from e
        except httpx.HTTPError as e:
            msg = f"Transport error talking to {self._config.messages_url}: {e}"
            raise TransportError(msg) from e

        if not response.is_success:
            raise APIStatusError(response.status_code, response.text[:ERROR_BODY_LIMIT])

        try:
            data = response.json()
            text = data["content"][0]["text"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            msg = f"Failed to parse single-shot response: {e}"
            raise ResponseParseError(msg) from e
        if not isinstance(text, str):
            msg = "Single-shot response content[0].text is not a string"
            raise ResponseParseError(msg)

        usage = data.get("usage") or {}
        return SingleShotResult(
            text=text,
            input_tokens=int(usage.get("input_tokens", 0) or 0),
            output_tokens=int(usage.get("output_tokens", 0) or 0),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AnthropicTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
