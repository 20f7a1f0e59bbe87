"""familiar -- an embodied AI companion.

Usage:
    import familiar

    engine = familiar.Engine(familiar.Config(api_key="..."))

    def show(event):
        match event:
            case familiar.TextEvent(chunk=c):
                print(c, end="")
            case familiar.ActionEvent(label=label):
                print(label)

    await engine.dispatch("What do you see?", show)
"""

from familiar.core.engine import Engine
from familiar.core.loop import Agent
from familiar.errors import (
    AgentBusyError,
    BackendMismatchError,
    ConfigError,
    FamiliarError,
    NotInitializedError,
    TransportError,
)
from familiar.types.config import Config
from familiar.types.messages import (
    ActionEvent,
    AgentEvent,
    CancelledEvent,
    DoneEvent,
    ErrorEvent,
    TextEvent,
)

__version__ = "0.3.0"

__all__ = [
    # Core API
    "Agent",
    "Config",
    "Engine",
    # Events
    "ActionEvent",
    "AgentEvent",
    "CancelledEvent",
    "DoneEvent",
    "ErrorEvent",
    "TextEvent",
    # Errors
    "AgentBusyError",
    "BackendMismatchError",
    "ConfigError",
    "FamiliarError",
    "NotInitializedError",
    "TransportError",
]
