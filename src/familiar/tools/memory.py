"""Memory tools: ``remember`` and ``recall`` over the observation store."""

from __future__ import annotations

from typing import Any

from familiar.memory.store import EMOTIONS, ObservationStore, format_memories
from familiar.tools.base import BaseTool
from familiar.types.tools import ToolContext, ToolDef, ToolOutput, ToolParam

_REMEMBER = ToolDef(
    name="remember",
    description=(
        "Save something to long-term memory. Use this to remember important things: "
        "what you saw, what happened, how you felt, conversations. "
        "If you just took a photo with see(), pass the image_path to attach it."
    ),
    parameters=(
        ToolParam(name="content", type="string", description="What to remember (1-3 sentences)."),
        ToolParam(
            name="emotion",
            type="string",
            description="Emotional tone of this memory.",
            required=False,
            enum=EMOTIONS,
        ),
        ToolParam(
            name="image_path",
            type="string",
            description="Optional path to an image file to attach (e.g. from see()).",
            required=False,
        ),
    ),
)

_RECALL = ToolDef(
    name="recall",
    description=(
        "Search long-term memory for things related to a topic. "
        "Use this to remember past observations, conversations, or feelings."
    ),
    parameters=(
        ToolParam(name="query", type="string", description="What to search for."),
        ToolParam(
            name="n",
            type="integer",
            description="Number of memories to return (default 3).",
            required=False,
        ),
    ),
)


class RememberTool(BaseTool):
    def __init__(self, store: ObservationStore) -> None:
        self._store = store

    @property
    def definition(self) -> ToolDef:
        return _REMEMBER

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        content = str(args.get("content", ""))
        image_path = args.get("image_path") or None
        self._store.add(
            content,
            emotion=str(args.get("emotion") or "neutral"),
            image_path=image_path,
        )
        suffix = " (with image)" if image_path else ""
        return self._ok(f"Remembered{suffix}: {content[:60]}")


class RecallTool(BaseTool):
    def __init__(self, store: ObservationStore) -> None:
        self._store = store

    @property
    def definition(self) -> ToolDef:
        return _RECALL

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        query = str(args.get("query", ""))
        try:
            n = int(args.get("n", 3))
        except (TypeError, ValueError):
            n = 3
        return self._ok(format_memories(self._store.recall(query, n)))
