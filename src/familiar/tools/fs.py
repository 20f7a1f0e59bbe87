"""Filesystem tools for coding mode: read, write, edit, list and grep."""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path
from typing import Any

from familiar.tools.base import BaseTool
from familiar.tools.feedback import write_feedback
from familiar.types.tools import ToolContext, ToolDef, ToolOutput, ToolParam

_MAX_LIST = 200
_MAX_MATCHES = 100
_MAX_GREP_BYTES = 5_000_000


def resolve_path(raw: str, ctx: ToolContext) -> Path:
    """Absolute paths are kept; relative ones resolve against the work dir."""
    path = Path(raw).expanduser()
    return path if path.is_absolute() else ctx.cwd / path


def _require(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or (key == "path" and not value):
        raise ValueError(f"missing {key}")
    return value


class ReadFileTool(BaseTool):
    """Reads a file and returns its content with line numbers."""

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name="read_file",
            description="Read a file. Optionally specify line range.",
            parameters=(
                ToolParam(
                    name="path",
                    type="string",
                    description="File path (absolute or relative to work_dir)",
                ),
                ToolParam(
                    name="start_line",
                    type="integer",
                    description="First line to read (1-based, optional)",
                    required=False,
                ),
                ToolParam(
                    name="end_line",
                    type="integer",
                    description="Last line to read (inclusive, optional)",
                    required=False,
                ),
            ),
        )

    def permission_arg(self, args: dict[str, Any]) -> str:
        return str(args.get("path", ""))

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        path = resolve_path(_require(args, "path"), ctx)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        total = len(lines)
        start = max(0, int(args["start_line"]) - 1) if args.get("start_line") else 0
        end = min(int(args["end_line"]), total) if args.get("end_line") else total
        numbered = "".join(
            f"{i:4}: {line}\n" for i, line in enumerate(lines[start:end], start + 1)
        )
        return self._ok(f"File: {path} ({total} lines total)\n{numbered}")


class WriteFileTool(BaseTool):
    """Creates or overwrites a file, making parent directories as needed."""

    requires_permission = True

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name="write_file",
            description="Write (overwrite) a file with given content.",
            parameters=(
                ToolParam(name="path", type="string", description="File path"),
                ToolParam(name="content", type="string", description="Full file content"),
            ),
        )

    def permission_arg(self, args: dict[str, Any]) -> str:
        return str(args.get("path", ""))

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        path = resolve_path(_require(args, "path"), ctx)
        content = _require(args, "content")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return self._ok(
            f"Written {len(content.encode())} bytes to {path}\n\n{write_feedback(str(path))}"
        )


class EditFileTool(BaseTool):
    """Replaces one unique occurrence of a string in a file."""

    requires_permission = True

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name="edit_file",
            description="Replace an exact string in a file. old_string must be unique.",
            parameters=(
                ToolParam(name="path", type="string", description="File path"),
                ToolParam(
                    name="old_string",
                    type="string",
                    description="Exact text to replace (must appear exactly once)",
                ),
                ToolParam(name="new_string", type="string", description="Replacement text"),
            ),
        )

    def permission_arg(self, args: dict[str, Any]) -> str:
        return str(args.get("path", ""))

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        path = resolve_path(_require(args, "path"), ctx)
        old = _require(args, "old_string")
        new = _require(args, "new_string")
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        content = path.read_text(encoding="utf-8")
        count = content.count(old) if old else 0
        if count == 0:
            raise ValueError("old_string not found in file")
        if count > 1:
            raise ValueError(f"old_string appears {count} times, must be unique. Add more context.")

        path.write_text(content.replace(old, new, 1), encoding="utf-8")
        return self._ok(
            f"Edited {path}: replaced {len(old)} chars with {len(new)} chars\n\n"
            f"{write_feedback(str(path))}"
        )


class ListFilesTool(BaseTool):
    """Lists files under a directory matching a glob pattern."""

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name="list_files",
            description="List files matching a glob pattern under a directory.",
            parameters=(
                ToolParam(
                    name="path",
                    type="string",
                    description="Directory to search (default: work_dir)",
                    required=False,
                ),
                ToolParam(
                    name="pattern",
                    type="string",
                    description="Glob pattern (default: **/*)",
                    required=False,
                ),
            ),
        )

    def permission_arg(self, args: dict[str, Any]) -> str:
        return str(args.get("path", ""))

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        base = resolve_path(args.get("path") or str(ctx.cwd), ctx)
        pattern = args.get("pattern") or "**/*"
        paths: list[str] = []
        for p in sorted(base.glob(pattern)):
            if p.is_file():
                paths.append(str(p))
                if len(paths) >= _MAX_LIST:
                    break
        return self._ok("\n".join(paths) if paths else "No files found")


class GrepTool(BaseTool):
    """Searches file contents with a regular expression."""

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name="grep",
            description="Search file contents with a regex pattern.",
            parameters=(
                ToolParam(name="pattern", type="string", description="Regex pattern"),
                ToolParam(
                    name="path",
                    type="string",
                    description="File or directory to search",
                    required=False,
                ),
                ToolParam(
                    name="include",
                    type="string",
                    description="File glob filter e.g. *.py",
                    required=False,
                ),
            ),
        )

    def permission_arg(self, args: dict[str, Any]) -> str:
        return str(args.get("pattern", ""))

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        regex = re.compile(_require(args, "pattern"))
        base = resolve_path(args.get("path") or str(ctx.cwd), ctx)
        include = args.get("include")

        files = [base] if base.is_file() else sorted(p for p in base.rglob("*") if p.is_file())
        results: list[str] = []
        for path in files:
            if include and not fnmatch.fnmatch(path.name, include):
                continue
            try:
                if path.stat().st_size > _MAX_GREP_BYTES:
                    continue
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            for lineno, line in enumerate(text.splitlines(), 1):
                if regex.search(line):
                    results.append(f"{path}:{lineno}: {line.strip()}")
                    if len(results) >= _MAX_MATCHES:
                        return self._ok("\n".join(results))
        return self._ok("\n".join(results) if results else "No matches found")
