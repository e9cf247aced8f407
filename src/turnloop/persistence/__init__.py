"""Persistence module for chat sessions."""

from turnloop.persistence.models import SessionRecord, SessionSummary
from turnloop.persistence.storage import ConversationStore, JsonConversationStore

__all__ = [
    "ConversationStore",
    "JsonConversationStore",
    "SessionRecord",
    "SessionSummary",
]
