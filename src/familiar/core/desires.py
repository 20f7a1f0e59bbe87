"""Desire state: a small intrinsic-motivation model for the familiar.

Each desire is an intensity in ``[0.0, 1.0]`` that grows linearly while it
is neglected and drops when the agent acts on it. At most one desire is
"active" at a time: the strongest one at or above :data:`THRESHOLD`.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

THRESHOLD = 0.6
STRONG_BAND = 0.85
MODERATE_BAND = 0.7

# Amount removed from the active desire once a turn ends.
SATISFY_AMOUNT = 0.4


@dataclass(frozen=True, slots=True)
class DesireSpec:
    """Static description of one desire."""

    name: str
    seed: float
    rate: float  # intensity gained per idle second
    why: str
    suggestion: str


# Declaration order breaks ties in strongest().
DESIRES: tuple[DesireSpec, ...] = (
    DesireSpec(
        name="observe_room",
        seed=0.4,
        rate=0.008,
        why="I haven't observed the room recently and feel drawn to check it.",
        suggestion="consider using see() or look() to observe the surroundings",
    ),
    DesireSpec(
        name="look_outside",
        seed=0.3,
        rate=0.006,
        why="I haven't checked what is happening outside and I'm curious.",
        suggestion="consider using look() toward the window, then see()",
    ),
    DesireSpec(
        name="greet_companion",
        seed=0.3,
        rate=0.004,
        why="I miss interacting with my companion and want to acknowledge them.",
        suggestion="consider saying hello or checking in with the companion",
    ),
    DesireSpec(
        name="explore_object",
        seed=0.2,
        rate=0.002,
        why="Something caught my attention and I want to investigate further.",
        suggestion="consider looking more closely at interesting objects",
    ),
)

_SPECS: dict[str, DesireSpec] = {d.name: d for d in DESIRES}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class DesireState:
    """Current intensities plus the time they were last advanced.

    Parameters
    ----------
    clock:
        Monotonic time source in seconds. Defaults to :func:`time.monotonic`;
        tests pass a fake clock to control elapsed time.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._levels: dict[str, float] = {d.name: d.seed for d in DESIRES}
        self._last_updated = self._clock()

    def level(self, name: str) -> float:
        """Intensity of *name*, or 0.0 for an unknown desire."""
        return self._levels.get(name, 0.0)

    def levels(self) -> dict[str, float]:
        """Snapshot of all intensities in declaration order."""
        return dict(self._levels)

    def decay(self, now: float | None = None) -> None:
        """Advance every desire by the time elapsed since the last call.

        All desires grow, so repeated calls compose: advancing twice over
        two intervals gives the same result as once over their sum.
        """
        current = self._clock() if now is None else now
        elapsed = max(0.0, current - self._last_updated)
        for spec in DESIRES:
            self._levels[spec.name] = _clamp(self._levels[spec.name] + elapsed * spec.rate)
        self._last_updated = current

    def boost(self, name: str, amount: float) -> None:
        if name in self._levels:
            self._levels[name] = _clamp(self._levels[name] + amount)

    def satisfy(self, name: str, amount: float) -> None:
        if name in self._levels:
            self._levels[name] = _clamp(self._levels[name] - amount)

    def strongest(self) -> tuple[str, float] | None:
        """The highest desire at or above the threshold, if any."""
        best: tuple[str, float] | None = None
        for spec in DESIRES:
            level = self._levels[spec.name]
            if level >= THRESHOLD and (best is None or level > best[1]):
                best = (spec.name, level)
        return best

    def context_string(self) -> str | None:
        """Three-line description of the active desire for the system prompt."""
        active = self.strongest()
        if active is None:
            return None
        name, level = active
        if level >= STRONG_BAND:
            intensity = "strongly"
        elif level >= MODERATE_BAND:
            intensity = "moderately"
        else:
            intensity = "slightly"
        spec = _SPECS[name]
        return (
            f"Current desire: I {intensity} want to {name}.\n"
            f"Why: {spec.why}\n"
            f"Suggestion: {spec.suggestion}."
        )

    def __repr__(self) -> str:
        levels = ", ".join(f"{k}={v:.2f}" for k, v in self._levels.items())
        return f"DesireState({levels})"
