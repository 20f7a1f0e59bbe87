"""Tools the familiar can use: body parts, memory and coding helpers."""

from familiar.tools.base import BaseTool
from familiar.tools.manager import Approver, ToolRegistry

__all__ = ["Approver", "BaseTool", "ToolRegistry"]
