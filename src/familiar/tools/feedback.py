"""Self-feedback hints appended to coding-tool results.

They nudge the model to verify its own work: re-read a file after writing
it, and fix the root cause when a command fails.
"""

from __future__ import annotations

import re

_EXIT_RE = re.compile(r"^Exit: (-?\d+)")
_STDERR_MARKER = "--- stderr ---\n"
_MAX_ERROR_LINES = 10


def bash_feedback(output: str) -> str | None:
    """Feedback for a failed ``bash`` result, or None when it exited 0.

    Output without an ``Exit: N`` header (timeouts) gets no feedback.
    """
    first_line = output.split("\n", 1)[0]
    match = _EXIT_RE.match(first_line)
    exit_code = int(match.group(1)) if match else 0
    if exit_code == 0:
        return None

    start = output.find(_STDERR_MARKER)
    section = output[start + len(_STDERR_MARKER):] if start >= 0 else output
    lines = [line for line in section.splitlines() if line.strip()][:_MAX_ERROR_LINES]
    preview = "\n".join(lines)
    return (
        f"[Self-Feedback] The command exited with code {exit_code}.\n"
        f"Error:\n{preview}\n"
        "Analyse the error, fix the root cause, and retry."
    )


def write_feedback(path: str) -> str:
    return (
        f"[Self-Feedback] You just modified `{path}`. "
        "Read the file to verify your changes are correct before proceeding."
    )
