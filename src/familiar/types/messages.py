"""Progress events streamed from the agent loop to the UI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class TextEvent:
    """Streaming text chunk from the model."""

    chunk: str

    is_terminal = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "chunk": self.chunk}


@dataclass(frozen=True, slots=True)
class ActionEvent:
    """The agent is about to run a tool."""

    name: str
    label: str

    is_terminal = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": "action", "name": self.name, "label": self.label}


@dataclass(frozen=True, slots=True)
class DoneEvent:
    """The turn finished."""

    is_terminal = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": "done"}


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """The turn failed or hit the step cap."""

    message: str

    is_terminal = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": "error", "message": self.message}


@dataclass(frozen=True, slots=True)
class CancelledEvent:
    """The turn was interrupted by the user."""

    is_terminal = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": "cancelled"}


AgentEvent = TextEvent | ActionEvent | DoneEvent | ErrorEvent | CancelledEvent
