"""Turn orchestration: the streaming tool loop and its session glue."""

from turnloop.orchestrator.context import (
    build_api_message,
    build_messages,
    build_user_message,
    filter_context,
)
from turnloop.orchestrator.orchestrator import (
    TurnObserver,
    TurnOrchestrator,
    TurnRequest,
    TurnState,
)
from turnloop.orchestrator.prompts import DEFAULT_SYSTEM_PROMPT, build_system_prompt
from turnloop.orchestrator.session import ChatSession, SessionReply

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "ChatSession",
    "SessionReply",
    "TurnObserver",
    "TurnOrchestrator",
    "TurnRequest",
    "TurnState",
    "build_api_message",
    "build_messages",
    "build_system_prompt",
    "build_user_message",
    "filter_context",
]
