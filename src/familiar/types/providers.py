"""Backend adapter protocol and turn result types."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from familiar.types.tools import ToolDef

# A provider-shaped conversation record. The core never inspects its fields.
Message = dict[str, Any]

TextCallback = Callable[[str], None]


class StopReason(Enum):
    """Why the model stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one tool call, ready to be fed back to the model."""

    call_id: str
    text: str
    image_b64: str | None = None


@dataclass(frozen=True, slots=True)
class TurnResult:
    """Normalized outcome of one model round."""

    stop_reason: StopReason
    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    @classmethod
    def build(
        cls, stop_reason: StopReason, text: str, tool_calls: list[ToolCall],
    ) -> TurnResult:
        """Create a TurnResult, downgrading an empty TOOL_USE to END_TURN."""
        if stop_reason is StopReason.TOOL_USE and not tool_calls:
            stop_reason = StopReason.END_TURN
        return cls(stop_reason=stop_reason, text=text, tool_calls=tuple(tool_calls))


@runtime_checkable
class BackendAdapter(Protocol):
    """Protocol that all backend adapters must implement."""

    name: str

    async def stream_turn(
        self,
        system: str,
        history: list[Message],
        tools: list[ToolDef],
        on_text: TextCallback,
    ) -> tuple[TurnResult, Message]:
        """Run one streamed model round.

        Returns the normalized result and the raw assistant record to append
        to history.
        """
        ...

    def make_user_message(self, text: str) -> Message:
        """Wrap plain user text in this backend's message shape."""
        ...

    def make_tool_results(self, results: list[ToolResult]) -> list[Message]:
        """Encode tool results as the message(s) this backend expects next."""
        ...
