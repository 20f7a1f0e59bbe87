"""Base tool class with shared logic."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from familiar.types.tools import ToolContext, ToolDef, ToolOutput


class BaseTool(ABC):
    """Base class for all tools.

    Tools that change the outside world (files, shell) set
    ``requires_permission`` and name the argument rules are matched against
    in :meth:`permission_arg`.
    """

    requires_permission: bool = False

    @property
    @abstractmethod
    def definition(self) -> ToolDef:
        ...

    @abstractmethod
    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        ...

    def permission_arg(self, args: dict[str, Any]) -> str:
        return ""

    def _ok(self, text: str, image_b64: str | None = None) -> ToolOutput:
        return ToolOutput(text=text, image_b64=image_b64)
