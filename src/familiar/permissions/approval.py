"""Terminal approvers that answer pending permission requests."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from familiar.permissions.registry import PermissionRegistry, PermissionRequest

logger = logging.getLogger(__name__)


def describe_tool_call(tool_name: str, args: dict[str, Any]) -> str:
    """Build a human-readable one-line description of a tool call."""
    if tool_name == "bash" and "command" in args:
        return f"Run command: {args['command']}"
    if tool_name == "write_file" and "path" in args:
        content = str(args.get("content", ""))
        lines = content.count("\n") + 1 if content else 0
        return f"Write {args['path']} ({lines} lines)"
    if tool_name == "edit_file" and "path" in args:
        return f"Edit {args['path']}"
    # Fallback: tool name + truncated args
    args_str = json.dumps(args, default=str, ensure_ascii=False)
    if len(args_str) > 80:
        args_str = args_str[:77] + "..."
    return f"{tool_name}({args_str})"


class StdinApprover:
    """Plain-text y/n prompt on stdin for every request in *registry*."""

    def __init__(self, registry: PermissionRegistry) -> None:
        self._registry = registry
        self._tasks: set[asyncio.Task[None]] = set()

    def attach(self) -> None:
        self._registry.subscribe(self._on_request)

    def detach(self) -> None:
        self._registry.unsubscribe(self._on_request)

    def _on_request(self, request: PermissionRequest) -> None:
        task = asyncio.get_running_loop().create_task(self._answer(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _answer(self, request: PermissionRequest) -> None:
        allowed = await self.prompt(request)
        self._registry.respond(request.id, allowed)

    async def prompt(self, request: PermissionRequest) -> bool:
        """Prompt the user with a y/n question."""
        loop = asyncio.get_running_loop()
        text = f"\nAllow {request.tool}? {request.detail}\n[y/n] > "
        try:
            answer = await loop.run_in_executor(None, lambda: input(text))
        except (EOFError, KeyboardInterrupt):
            return False
        return answer.strip().lower() in ("y", "yes")
