"""Streaming response decoding."""

from turnloop.streaming.decoder import (
    SSEDecoder,
    decode_stream,
    parse_tool_input,
)

__all__ = ["SSEDecoder", "decode_stream", "parse_tool_input"]
