"""Persistence data models.

Defines the on-disk structure of a chat session.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from turnloop.models.conversation import StoredMessage


class SessionRecord(BaseModel):
    """One chat session as stored on disk."""

    session_id: str
    name: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    # Minimum user-message grade for inclusion in API context
    context_threshold: int = Field(default=0, ge=0, le=5)
    messages: list[StoredMessage] = Field(default_factory=list)


class SessionSummary(BaseModel):
    """Listing entry for a stored session."""

    session_id: str
    name: str
    updated_at: datetime
    message_count: int
