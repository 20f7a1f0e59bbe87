"""Terminal rendering of agent events and permission prompts."""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from familiar.permissions.approval import StdinApprover
from familiar.permissions.registry import PermissionRegistry, PermissionRequest
from familiar.types.messages import (
    ActionEvent,
    AgentEvent,
    CancelledEvent,
    DoneEvent,
    ErrorEvent,
    TextEvent,
)


class EventPrinter:
    """Streams agent events to the terminal.

    Text goes to stdout as it arrives; actions and status go to stderr so
    piped output contains only what the agent wrote.
    """

    def __init__(self, console: Console | None = None, err_console: Console | None = None) -> None:
        self._out = console or Console(highlight=False)
        self._err = err_console or Console(stderr=True, highlight=False)
        self._mid_line = False

    def __call__(self, event: AgentEvent) -> None:
        self.print_event(event)

    def print_event(self, event: AgentEvent) -> None:
        match event:
            case TextEvent(chunk=chunk):
                self._out.print(chunk, end="", markup=False)
                self._mid_line = not chunk.endswith("\n")
            case ActionEvent(label=label):
                self._end_line()
                self._err.print(Text(label, style="#7c7c8a"))
            case DoneEvent():
                self._end_line()
            case ErrorEvent(message=message):
                self._end_line()
                self._err.print(Text(f"✗ {message}", style="bold red"))
            case CancelledEvent():
                self._end_line()
                self._err.print(Text("(interrupted)", style="yellow"))

    def _end_line(self) -> None:
        if self._mid_line:
            self._out.print()
            self._mid_line = False


class RichApprover(StdinApprover):
    """Approval prompt rendered as a rich panel."""

    def __init__(self, registry: PermissionRegistry, console: Console | None = None) -> None:
        super().__init__(registry)
        self._console = console or Console(stderr=True)

    async def prompt(self, request: PermissionRequest) -> bool:
        title = Text(f" ◆ {request.tool} ", style="bold #fbbf24")
        self._console.print()
        self._console.print(Panel(
            Text(request.detail, style="#94a3b8"),
            title=title,
            border_style="#fbbf24",
            expand=False,
            padding=(0, 1),
        ))

        loop = asyncio.get_running_loop()
        try:
            self._console.print("[bold #fbbf24]Allow?[/bold #fbbf24] [#7c7c8a](y/n)[/#7c7c8a] › ", end="")
            answer = await loop.run_in_executor(None, lambda: input(""))
        except (EOFError, KeyboardInterrupt):
            self._console.print()
            return False
        return answer.strip().lower() in ("y", "yes")
