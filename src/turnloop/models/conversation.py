"""Conversation data models.

Defines the wire form of messages, tool calls, stream results and the
per-turn records produced by the orchestrator.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from turnloop.models.config import ModelTier


def _new_id() -> str:
    return uuid.uuid4().hex


class MediaAttachment(BaseModel):
    """Base64-encoded media attached to a user turn."""

    media_type: str
    data: str


class ImageSource(BaseModel):
    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    type: Literal["image"] = "image"
    source: ImageSource


class ToolUsePart(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str


ContentPart = Annotated[
    TextPart | ImagePart | ToolUsePart | ToolResultPart,
    Field(discriminator="type"),
]


class ConversationMessage(BaseModel):
    """A message in provider wire form.

    An assistant message holding tool_use parts must be followed by a user
    message holding a tool_result part for each of those ids.
    """

    role: Literal["user", "assistant"]
    content: str | list[ContentPart]

    def to_api(self) -> dict[str, Any]:
        """Serialize to the provider's JSON shape."""
        return self.model_dump(mode="json")

    @property
    def tool_use_ids(self) -> list[str]:
        if isinstance(self.content, str):
            return []
        return [part.id for part in self.content if isinstance(part, ToolUsePart)]


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class StopReason(str, Enum):
    """Why a streaming exchange ended."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str) -> "StopReason":
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


class StreamResult(BaseModel):
    """Terminal output of one streaming exchange."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    stop_reason: str = StopReason.END_TURN.value
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def stop(self) -> StopReason:
        return StopReason.parse(self.stop_reason)


class ConversationTurn(BaseModel):
    """One user input on its way to an assembled assistant response."""

    turn_id: str = Field(default_factory=_new_id)
    user_text: str
    attachments: list[MediaAttachment] = Field(default_factory=list)
    iteration: int = Field(default=0, ge=0)


class StoredMessage(BaseModel):
    """A message as kept in conversation history."""

    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=_new_id)
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime = Field(default_factory=datetime.now)
    turn_id: str = ""
    is_final_response: bool = True
    # Context grade 0-5; 0 excludes the turn from future API payloads
    text_grade: int = Field(default=5, ge=0, le=5)
    input_tokens: int = 0
    output_tokens: int = 0
    tip: str = ""
    model_id: str = ""

    @property
    def tier(self) -> ModelTier | None:
        return ModelTier.from_name(self.model_id) if self.model_id else None


class AssembledMessage(BaseModel):
    """Final artifact of one turn, handed to persistence."""

    role: Literal["assistant"] = "assistant"
    content: str
    tip: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    router_input_tokens: int = 0
    router_output_tokens: int = 0
    tier: ModelTier
    turn_id: str
    is_final_response: bool = True
    iterations: int = 0
    # Set when the iteration cap cut the tool loop short
    truncated: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    def to_stored(self) -> StoredMessage:
        """Convert to the history form."""
        return StoredMessage(
            role="assistant",
            content=self.content,
            created_at=self.created_at,
            turn_id=self.turn_id,
            is_final_response=True,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            tip=self.tip,
            model_id=self.tier.model_id,
        )


class ImageMarker(BaseModel):
    """Image payload embedded in a stored user message."""

    id: str
    media_type: str
    data: str
