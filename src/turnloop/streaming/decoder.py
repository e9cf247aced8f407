"""Server-sent event decoder for the Messages streaming API.

Turns ``data: <json>`` lines into one StreamResult: accumulated text, the
completed tool calls, the stop reason and token usage. Malformed lines are
skipped rather than aborting the stream.
"""

import json
import logging
from collections.abc import AsyncIterable, Callable, Iterable
from typing import Any

from turnloop.models.conversation import StopReason, StreamResult, ToolCall

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

TextCallback = Callable[[str], None]


class SSEDecoder:
    """Incremental state machine over Messages API stream events.

    Feed it lines with :meth:`feed_line`, then read :meth:`result`. The
    optional ``on_text`` callback receives every text delta as it arrives.
    """

    def __init__(self, on_text: TextCallback | None = None) -> None:
        self._on_text = on_text
        self._text_parts: list[str] = []
        self._tool_calls: list[ToolCall] = []
        self._stop_reason = StopReason.END_TURN.value
        self._input_tokens = 0
        self._output_tokens = 0
        self._cache_creation_tokens = 0
        self._cache_read_tokens = 0

        # Per-block state
        self._block_type: str | None = None
        self._tool_id: str | None = None
        self._tool_name: str | None = None
        self._tool_json_parts: list[str] = []

    def feed_line(self, line: str) -> None:
        """Consume one line of the event stream."""
        line = line.rstrip("\r\n")
        if not line.startswith(DATA_PREFIX):
            if line:
                logger.debug("Skipping non-data SSE line: %.80s", line)
            return

        data = line[len(DATA_PREFIX) :]
        if data == DONE_SENTINEL:
            return

        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed SSE data line: %.80s", data)
            return
        if not isinstance(event, dict) or not isinstance(event.get("type"), str):
            logger.debug("Skipping SSE event without a type")
            return

        self._dispatch(event)

    def feed_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.feed_line(line)

    def result(self) -> StreamResult:
        """Snapshot of everything decoded so far."""
        return StreamResult(
            text="".join(self._text_parts),
            tool_calls=tuple(self._tool_calls),
            stop_reason=self._stop_reason,
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            cache_creation_input_tokens=self._cache_creation_tokens,
            cache_read_input_tokens=self._cache_read_tokens,
        )

    def _dispatch(self, event: dict[str, Any]) -> None:
        event_type = event["type"]
        if event_type == "message_start":
            self._on_message_start(event)
        elif event_type == "content_block_start":
            self._on_block_start(event)
        elif event_type == "content_block_delta":
            self._on_block_delta(event)
        elif event_type == "content_block_stop":
            self._on_block_stop()
        elif event_type == "message_delta":
            self._on_message_delta(event)
        # message_stop and ping carry nothing we need

    def _on_message_start(self, event: dict[str, Any]) -> None:
        message = event.get("message")
        usage = message.get("usage") if isinstance(message, dict) else None
        if not isinstance(usage, dict):
            return
        self._input_tokens = _int(usage.get("input_tokens"), self._input_tokens)
        self._cache_creation_tokens = _int(usage.get("cache_creation_input_tokens"), 0)
        self._cache_read_tokens = _int(usage.get("cache_read_input_tokens"), 0)

    def _on_block_start(self, event: dict[str, Any]) -> None:
        block = event.get("content_block")
        if not isinstance(block, dict):
            return
        self._block_type = block.get("type")
        if self._block_type == "tool_use":
            self._tool_id = block.get("id")
            self._tool_name = block.get("name")
            self._tool_json_parts = []

    def _on_block_delta(self, event: dict[str, Any]) -> None:
        delta = event.get("delta")
        if not isinstance(delta, dict):
            return
        delta_type = delta.get("type")
        if delta_type == "text_delta":
            text = delta.get("text")
            if isinstance(text, str):
                self._text_parts.append(text)
                if self._on_text is not None:
                    self._on_text(text)
        elif delta_type == "input_json_delta":
            partial = delta.get("partial_json")
            if isinstance(partial, str):
                self._tool_json_parts.append(partial)

    def _on_block_stop(self) -> None:
        if self._block_type == "tool_use" and self._tool_id and self._tool_name:
            self._tool_calls.append(
                ToolCall(
                    id=self._tool_id,
                    name=self._tool_name,
                    input=parse_tool_input("".join(self._tool_json_parts)),
                )
            )
        self._block_type = None
        self._tool_id = None
        self._tool_name = None
        self._tool_json_parts = []

    def _on_message_delta(self, event: dict[str, Any]) -> None:
        delta = event.get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("stop_reason"), str):
            self._stop_reason = delta["stop_reason"]
        usage = event.get("usage")
        if isinstance(usage, dict):
            # Usage here is cumulative, so overwrite
            self._output_tokens = _int(usage.get("output_tokens"), self._output_tokens)


def parse_tool_input(raw: str) -> dict[str, Any]:
    """Parse concatenated input_json_delta fragments.

    Anything other than a JSON object yields an empty dict.
    """
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Tool input is not valid JSON, using empty input: %.80s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value


async def decode_stream(
    lines: AsyncIterable[str],
    on_text: TextCallback | None = None,
) -> StreamResult:
    """Drive an SSEDecoder over an async line source."""
    decoder = SSEDecoder(on_text)
    async for line in lines:
        decoder.feed_line(line)
    return decoder.result()
