"""Permission rules and trust modes for the coding tools."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class TrustMode(Enum):
    """How much the user trusts the agent with side-effecting tools."""

    PROMPT = "prompt"  # Ask before writes and shell commands
    FULL = "full"  # Never ask
    CUSTOM = "custom"  # Allow/deny rule list, then fall back to PROMPT behaviour

    @classmethod
    def parse(cls, value: str) -> TrustMode:
        """Parse a config value; unknown strings mean PROMPT."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.PROMPT


class PermissionDecision(Enum):
    """Result of a permission check."""

    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


def glob_match(pattern: str, value: str) -> bool:
    """Match *value* against a minimal glob.

    ``*`` and ``**`` both match any run of characters, including spaces and
    slashes, so ``"cargo *"`` matches whole shell commands. Every other
    character matches itself.
    """
    regex = ".*".join(re.escape(part) for part in re.split(r"\*+", pattern))
    return re.fullmatch(regex, value, flags=re.DOTALL) is not None


@dataclass(frozen=True, slots=True)
class PermRule:
    """A single rule such as ``allow:bash:cargo *`` or ``deny:write_file:/etc/**``."""

    allow: bool
    tool: str  # Tool name, or "*" for any tool
    pattern: str  # Glob matched against the tool's main argument

    @classmethod
    def parse(cls, text: str) -> PermRule:
        """Parse ``"<allow|deny>:<tool>:<pattern>"``.

        The pattern may itself contain colons.

        Raises
        ------
        ValueError
            If the text does not have three parts or the verb is unknown.
        """
        parts = text.split(":", 2)
        if len(parts) != 3:
            raise ValueError(f"Invalid permission rule {text!r}: expected verb:tool:pattern")
        verb, tool, pattern = parts
        verb = verb.strip().lower()
        if verb not in ("allow", "deny"):
            raise ValueError(f"Invalid permission rule {text!r}: verb must be allow or deny")
        return cls(allow=verb == "allow", tool=tool.strip(), pattern=pattern)

    def matches(self, tool: str, arg: str) -> bool:
        if self.tool != "*" and self.tool != tool:
            return False
        return glob_match(self.pattern, arg)
