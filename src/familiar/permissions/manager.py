"""Permission evaluation for side-effecting tools.

Modes:
- PROMPT: Ask for everything except read-only tools
- FULL: Auto-approve everything
- CUSTOM: First matching rule wins, otherwise behave like PROMPT
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from familiar.permissions.rules import PermissionDecision, PermRule, TrustMode

logger = logging.getLogger(__name__)

# Tools considered read-only (safe to auto-approve without rules)
READ_ONLY_TOOLS = frozenset({"read_file", "list_files", "grep"})


class PermissionManager:
    """Evaluates whether a tool call should be allowed, denied, or prompted."""

    def __init__(
        self,
        mode: TrustMode = TrustMode.PROMPT,
        rules: Iterable[PermRule] = (),
    ) -> None:
        self._mode = mode
        self._rules = list(rules)

    @classmethod
    def from_strings(cls, mode: str, rules: Iterable[str]) -> PermissionManager:
        """Build a manager from config values, skipping rules that do not parse."""
        parsed: list[PermRule] = []
        for spec in rules:
            try:
                parsed.append(PermRule.parse(spec))
            except ValueError as exc:
                logger.warning("Ignoring permission rule: %s", exc)
        return cls(TrustMode.parse(mode), parsed)

    @property
    def mode(self) -> TrustMode:
        return self._mode

    @property
    def rules(self) -> list[PermRule]:
        return list(self._rules)

    def check(self, tool_name: str, arg: str = "") -> PermissionDecision:
        """Check permission for a call to *tool_name* whose main argument is *arg*.

        Returns:
            PermissionDecision.ALLOW: execute without prompting
            PermissionDecision.DENY : refuse execution
            PermissionDecision.ASK  : prompt user for approval
        """
        if self._mode is TrustMode.FULL:
            return PermissionDecision.ALLOW

        if self._mode is TrustMode.CUSTOM:
            for rule in self._rules:
                if rule.matches(tool_name, arg):
                    return PermissionDecision.ALLOW if rule.allow else PermissionDecision.DENY

        if tool_name in READ_ONLY_TOOLS:
            return PermissionDecision.ALLOW
        return PermissionDecision.ASK
