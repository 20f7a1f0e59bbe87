"""Tool definition types and protocols."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ToolParam:
    """A parameter for a tool."""

    name: str
    type: str  # "string", "integer", "number", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None
    default: Any = None
    items: dict[str, Any] | None = None  # For array types: JSON Schema for items

    def to_schema(self) -> dict[str, Any]:
        """Render this parameter as a JSON Schema property dict."""
        prop: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum is not None:
            prop["enum"] = list(self.enum)
        if self.default is not None:
            prop["default"] = self.default
        # Array types require an items schema (OpenAI enforces this).
        if self.type == "array":
            prop["items"] = self.items if self.items is not None else {"type": "string"}
        return prop


@dataclass(frozen=True, slots=True)
class ToolDef:
    """Definition of a tool exposed to the model."""

    name: str
    description: str
    parameters: tuple[ToolParam, ...] = ()

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema object describing the tool's input.

        ``required`` is always present, even when empty, since some backends
        reject schemas without it.
        """
        return {
            "type": "object",
            "properties": {p.name: p.to_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }


@dataclass(frozen=True, slots=True)
class ToolOutput:
    """What a tool hands back to the loop: text plus an optional JPEG."""

    text: str
    image_b64: str | None = None


@dataclass(slots=True)
class ToolContext:
    """Context passed to tool execute methods."""

    cwd: Path
    extra: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tools must implement."""

    @property
    def definition(self) -> ToolDef:
        """Return the tool definition for the model."""
        ...

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        """Execute the tool with the given arguments and context."""
        ...
