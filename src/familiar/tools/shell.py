"""Bash tool: runs shell commands for coding mode."""

from __future__ import annotations

import asyncio
from typing import Any

from familiar.tools.base import BaseTool
from familiar.tools.feedback import bash_feedback
from familiar.tools.fs import resolve_path
from familiar.types.tools import ToolContext, ToolDef, ToolOutput, ToolParam

_DEFAULT_TIMEOUT_SECS = 30
_MAX_TIMEOUT_SECS = 120
_MAX_OUTPUT_CHARS = 32_768

_DEFINITION = ToolDef(
    name="bash",
    description="Run a shell command. Returns stdout + stderr. Has a timeout.",
    parameters=(
        ToolParam(name="command", type="string", description="Shell command to execute"),
        ToolParam(
            name="timeout_secs",
            type="integer",
            description=(
                f"Timeout in seconds (default {_DEFAULT_TIMEOUT_SECS}, max {_MAX_TIMEOUT_SECS})"
            ),
            required=False,
        ),
        ToolParam(
            name="cwd",
            type="string",
            description="Working directory override (default: configured work_dir)",
            required=False,
        ),
    ),
)


def _truncate(data: bytes) -> str:
    text = data.decode("utf-8", errors="replace")
    if len(text) > _MAX_OUTPUT_CHARS:
        return f"{text[:_MAX_OUTPUT_CHARS]}...[truncated, {len(text)} chars total]"
    return text


class BashTool(BaseTool):
    """Executes a command with ``bash -c`` and reports exit code and output."""

    requires_permission = True

    @property
    def definition(self) -> ToolDef:
        return _DEFINITION

    def permission_arg(self, args: dict[str, Any]) -> str:
        return str(args.get("command", ""))

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        command = args.get("command")
        if not isinstance(command, str) or not command:
            raise ValueError("missing command")

        try:
            timeout = int(args.get("timeout_secs", _DEFAULT_TIMEOUT_SECS))
        except (TypeError, ValueError):
            timeout = _DEFAULT_TIMEOUT_SECS
        timeout = max(1, min(timeout, _MAX_TIMEOUT_SECS))
        cwd = resolve_path(args["cwd"], ctx) if args.get("cwd") else ctx.cwd

        proc = await asyncio.create_subprocess_exec(
            "bash", "-c", command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            try:
                proc.kill()
                await proc.wait()
            except ProcessLookupError:
                pass
            return self._ok(f"Command timed out after {timeout}s")

        status = proc.returncode if proc.returncode is not None else -1
        text = f"Exit: {status}\n"
        if stdout:
            text += f"--- stdout ---\n{_truncate(stdout)}\n"
        if stderr:
            text += f"--- stderr ---\n{_truncate(stderr)}"

        feedback = bash_feedback(text)
        if feedback:
            text = f"{text.rstrip()}\n\n{feedback}"
        return self._ok(text)
