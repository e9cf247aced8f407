"""Data models for turnloop."""

from turnloop.models.config import (
    ModelTier,
    OrchestratorConfig,
    ProviderConfig,
    RouterConfig,
    ToolSettings,
)
from turnloop.models.conversation import (
    AssembledMessage,
    ContentPart,
    ConversationMessage,
    ConversationTurn,
    ImageMarker,
    ImagePart,
    ImageSource,
    MediaAttachment,
    StopReason,
    StoredMessage,
    StreamResult,
    TextPart,
    ToolCall,
    ToolResultPart,
    ToolUsePart,
)
from turnloop.models.tools import (
    HourlyForecast,
    PlainToolResult,
    RichToolResult,
    ToolResult,
    ToolSchema,
    WeatherData,
    WebSource,
    WebToolCategory,
)

__all__ = [
    "AssembledMessage",
    "ContentPart",
    "ConversationMessage",
    "ConversationTurn",
    "HourlyForecast",
    "ImageMarker",
    "ImagePart",
    "ImageSource",
    "MediaAttachment",
    "ModelTier",
    "OrchestratorConfig",
    "PlainToolResult",
    "ProviderConfig",
    "RichToolResult",
    "RouterConfig",
    "StopReason",
    "StoredMessage",
    "StreamResult",
    "TextPart",
    "ToolCall",
    "ToolResult",
    "ToolResultPart",
    "ToolSchema",
    "ToolSettings",
    "ToolUsePart",
    "WeatherData",
    "WebSource",
    "WebToolCategory",
]
