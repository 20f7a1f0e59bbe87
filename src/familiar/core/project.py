"""Project context and workflow rules injected in coding mode."""

from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_MANIFESTS = ("pyproject.toml", "setup.py", "package.json", "Cargo.toml", "go.mod")
_READMES = ("README.md", "README.rst", "README.txt", "README")
_SOURCE_DIRS = ("src", "lib", "app")

_TEST_COMMANDS = {
    "Python": "python -m pytest",
    "Node": "npm test",
    "Rust": "cargo test",
}

CODING_WORKFLOW = """[Coding Workflow: follow this strictly]
1. READ FIRST: Before touching any code, read the relevant files.
   Use read_file, list_files, and grep to understand the codebase.
2. PLAN: State your plan in 2-3 sentences before writing any code.
3. WRITE SMALL: Make the smallest possible change that moves toward the goal.
   Prefer edit_file over write_file to avoid clobbering existing code.
4. VERIFY: After every write_file or edit_file, read the file back to confirm.
5. TEST: After any code change, run the project's test command.
   Do not declare success until tests pass.
6. ONE THING AT A TIME: Complete one step fully before moving to the next.

[Tool Usage Rules]
- read_file   : Always use line ranges for large files (> 200 lines).
- edit_file   : old_string must be unique. Add surrounding context if needed.
- bash        : Prefer short-lived commands. Always check the exit code.
- list_files  : Use to orient yourself at the start of a task.
- grep        : Use to find definitions and usages before editing.

[What NOT to do]
- Do NOT write code without reading first.
- Do NOT skip verification after write/edit.
- Do NOT declare done without running tests.
- Do NOT make sweeping changes across many files in one step."""


@dataclass(slots=True)
class ProjectContext:
    """What a quick look at the work directory revealed."""

    work_dir: str
    project_type: str = "Unknown"  # "Python", "Node", "Rust", "Mixed", "Unknown"
    key_files: list[str] = field(default_factory=list)
    description: str | None = None
    languages: list[str] = field(default_factory=list)

    @property
    def test_command(self) -> str | None:
        return _TEST_COMMANDS.get(self.project_type)


def scan_project(work_dir: str | Path) -> ProjectContext:
    """Inspect manifests, README and source dirs under *work_dir*."""
    base = Path(work_dir)
    ctx = ProjectContext(work_dir=str(base))

    kinds: list[str] = []
    if (base / "pyproject.toml").exists() or (base / "setup.py").exists():
        kinds.append("Python")
        ctx.languages.append("Python")
        ctx.description = _pyproject_description(base / "pyproject.toml")
    if (base / "package.json").exists():
        kinds.append("Node")
        ctx.languages.append("JavaScript/TypeScript")
        ctx.description = ctx.description or _package_json_description(base / "package.json")
    if (base / "Cargo.toml").exists():
        kinds.append("Rust")
        ctx.languages.append("Rust")

    if len(kinds) == 1:
        ctx.project_type = kinds[0]
    elif kinds:
        ctx.project_type = "Mixed"

    ctx.key_files.extend(name for name in _MANIFESTS if (base / name).exists())
    readme = next((name for name in _READMES if (base / name).exists()), None)
    if readme:
        ctx.key_files.append(readme)
    ctx.key_files.extend(f"{d}/" for d in _SOURCE_DIRS if (base / d).is_dir())
    return ctx


def format_project_context(ctx: ProjectContext) -> str:
    lines = [
        "[Project Context]",
        f"Directory : {ctx.work_dir}",
        f"Type      : {ctx.project_type}",
    ]
    if ctx.languages:
        lines.append(f"Languages : {', '.join(ctx.languages)}")
    if ctx.description:
        lines.append(f"About     : {ctx.description}")
    if ctx.key_files:
        lines.append(f"Key files : {', '.join(ctx.key_files)}")
    if ctx.test_command:
        lines.append(f"Test cmd  : {ctx.test_command}")
    return "\n".join(lines)


def _pyproject_description(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.debug("Could not parse %s: %s", path, exc)
        return None
    desc = data.get("project", {}).get("description")
    return desc if isinstance(desc, str) and desc else None


def _package_json_description(path: Path) -> str | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.debug("Could not parse %s: %s", path, exc)
        return None
    desc = data.get("description") if isinstance(data, dict) else None
    return desc if isinstance(desc, str) and desc else None
