"""ToolRegistry: builds the agent's tools from config and dispatches calls."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx

from familiar.memory.store import ObservationStore, format_context
from familiar.permissions.approval import describe_tool_call
from familiar.permissions.manager import PermissionManager
from familiar.permissions.rules import PermissionDecision
from familiar.tools.base import BaseTool
from familiar.tools.camera import LookTool, OnvifCamera, SeeTool
from familiar.tools.fs import EditFileTool, GrepTool, ListFilesTool, ReadFileTool, WriteFileTool
from familiar.tools.memory import RecallTool, RememberTool
from familiar.tools.mobility import TuyaVacuum, WalkTool
from familiar.tools.shell import BashTool
from familiar.tools.tts import ElevenLabsVoice, SayTool
from familiar.types.config import Config
from familiar.types.tools import ToolContext, ToolDef, ToolOutput

logger = logging.getLogger(__name__)

# Asks the user whether a tool may run: (tool name, description) -> allowed
Approver = Callable[[str, str], Awaitable[bool]]


class ToolRegistry:
    """Registers tools and dispatches execution requests.

    Usage::

        tools = ToolRegistry.from_config(config)
        output = await tools.execute("see", {})

    Unlike the model-facing result, exceptions raised by a tool propagate
    out of :meth:`execute`; the agent loop turns them into error text.
    """

    def __init__(
        self,
        *,
        store: ObservationStore | None = None,
        permissions: PermissionManager | None = None,
        approver: Approver | None = None,
        cwd: Path | None = None,
    ) -> None:
        self._registry: dict[str, BaseTool] = {}
        self._store = store
        self._permissions = permissions or PermissionManager()
        self._approver = approver
        self._ctx = ToolContext(cwd=cwd or Path.cwd())

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        approver: Approver | None = None,
        store: ObservationStore | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> ToolRegistry:
        """Create the embodied tools, plus the coding tools when enabled.

        Devices that are not configured still get their tool; calling it
        returns a short "not configured" message instead of failing.
        """
        store = store or ObservationStore()
        coding = config.coding
        registry = cls(
            store=store,
            permissions=PermissionManager.from_strings(coding.trust_mode, coding.rules),
            approver=approver,
            cwd=Path(coding.work_dir).expanduser() if coding.work_dir else None,
        )

        camera = OnvifCamera(config.camera, client) if config.camera.host else None
        voice = ElevenLabsVoice(config.tts, client) if config.tts.elevenlabs_api_key else None
        mob = config.mobility
        robot = TuyaVacuum(mob, client) if mob.tuya_device_id and mob.tuya_api_key else None

        for tool in (
            SeeTool(camera),
            LookTool(camera),
            SayTool(voice),
            WalkTool(robot),
            RememberTool(store),
            RecallTool(store),
        ):
            registry.register(tool)

        if coding.enabled:
            for tool in (
                ReadFileTool(),
                WriteFileTool(),
                EditFileTool(),
                ListFilesTool(),
                GrepTool(),
                BashTool(),
            ):
                registry.register(tool)
        return registry

    # ------------------------------------------------------------------
    # Registration / lookup
    # ------------------------------------------------------------------

    def register(self, tool: BaseTool) -> None:
        """Add a tool to the registry under its definition name."""
        self._registry[tool.definition.name] = tool

    def get(self, name: str) -> BaseTool | None:
        return self._registry.get(name)

    def tool_defs(self) -> list[ToolDef]:
        """Return all registered tool definitions, in registration order."""
        return [tool.definition for tool in self._registry.values()]

    @property
    def cwd(self) -> Path:
        return self._ctx.cwd

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def execute(self, name: str, args: dict[str, Any]) -> ToolOutput:
        """Run the tool called *name*.

        Unknown names and refused permissions produce a normal text result.
        """
        tool = self._registry.get(name)
        if tool is None:
            return ToolOutput(f"Unknown tool: {name}")

        if tool.requires_permission:
            refusal = await self._check_permission(tool, name, args)
            if refusal is not None:
                return ToolOutput(refusal)

        return await tool.execute(args, self._ctx)

    async def _check_permission(
        self, tool: BaseTool, name: str, args: dict[str, Any],
    ) -> str | None:
        decision = self._permissions.check(name, tool.permission_arg(args))
        if decision is PermissionDecision.ALLOW:
            return None
        if decision is PermissionDecision.DENY:
            logger.info("Denied %s by rule", name)
            return f"Permission denied by rule for {name}."
        if self._approver is None:
            return f"Permission required for {name}, but nobody is available to approve it."
        if await self._approver(name, describe_tool_call(name, args)):
            return None
        return f"User denied permission for {name}."

    # ------------------------------------------------------------------
    # Memory context
    # ------------------------------------------------------------------

    def recall_for_context(self, limit: int) -> str:
        """Recent memories formatted for the system prompt; empty on any failure."""
        if self._store is None:
            return ""
        try:
            rows = self._store.recent(limit)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read memories: %s", exc)
            return ""
        return format_context(rows)

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={list(self._registry)})"
