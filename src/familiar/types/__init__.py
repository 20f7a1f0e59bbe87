"""Type definitions for familiar."""

from familiar.types.config import (
    CameraConfig,
    CodingConfig,
    Config,
    MobilityConfig,
    TtsConfig,
)
from familiar.types.messages import (
    ActionEvent,
    AgentEvent,
    CancelledEvent,
    DoneEvent,
    ErrorEvent,
    TextEvent,
)
from familiar.types.providers import (
    BackendAdapter,
    Message,
    StopReason,
    ToolCall,
    ToolResult,
    TurnResult,
)
from familiar.types.tools import Tool, ToolContext, ToolDef, ToolOutput, ToolParam

__all__ = [
    "ActionEvent",
    "AgentEvent",
    "BackendAdapter",
    "CameraConfig",
    "CancelledEvent",
    "CodingConfig",
    "Config",
    "DoneEvent",
    "ErrorEvent",
    "Message",
    "MobilityConfig",
    "StopReason",
    "TextEvent",
    "Tool",
    "ToolCall",
    "ToolContext",
    "ToolDef",
    "ToolOutput",
    "ToolParam",
    "ToolResult",
    "TtsConfig",
    "TurnResult",
]
