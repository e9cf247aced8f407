"""Shared fixtures for turnloop tests."""

import json
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from turnloop.models.conversation import StreamResult, ToolCall
from turnloop.providers.base import ChatRequest, ChatTransport, SingleShotResult
from turnloop.streaming.decoder import TextCallback


class ScriptedTransport(ChatTransport):
    """Transport that replays canned results and records every request.

    Items in either script may be exceptions, which are raised instead.
    """

    def __init__(
        self,
        streams: Sequence[StreamResult | Exception] = (),
        single_shots: Sequence[SingleShotResult | Exception] = (),
    ) -> None:
        self.streams = list(streams)
        self.single_shots = list(single_shots)
        self.stream_requests: list[ChatRequest] = []
        self.single_shot_requests: list[ChatRequest] = []

    async def stream(
        self,
        request: ChatRequest,
        on_text: TextCallback | None = None,
    ) -> StreamResult:
        self.stream_requests.append(request)
        item = self.streams.pop(0)
        if isinstance(item, Exception):
            raise item
        if on_text is not None and item.text:
            on_text(item.text)
        return item

    async def single_shot(self, request: ChatRequest) -> SingleShotResult:
        self.single_shot_requests.append(request)
        item = self.single_shots.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def make_transport() -> Callable[..., ScriptedTransport]:
    """Factory for ScriptedTransport instances."""
    return ScriptedTransport


def text_result(text: str, input_tokens: int = 10, output_tokens: int = 5) -> StreamResult:
    return StreamResult(
        text=text,
        stop_reason="end_turn",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


def tool_result(
    *calls: tuple[str, str, dict[str, Any]],
    text: str = "",
    input_tokens: int = 10,
    output_tokens: int = 5,
) -> StreamResult:
    return StreamResult(
        text=text,
        tool_calls=tuple(ToolCall(id=i, name=n, input=args) for i, n, args in calls),
        stop_reason="tool_use",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


@pytest.fixture
def text_stream() -> Callable[..., StreamResult]:
    """Build an end_turn StreamResult."""
    return text_result


@pytest.fixture
def tool_stream() -> Callable[..., StreamResult]:
    """Build a tool_use StreamResult from (id, name, input) tuples."""
    return tool_result


def sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}"


@pytest.fixture
def sse_line() -> Callable[[dict[str, Any]], str]:
    """Format one event as an SSE data line."""
    return sse


@pytest.fixture(autouse=True)
def _clear_secret_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real credentials in the environment from leaking into tests."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("TAVILY_API_KEY", raising=False)
