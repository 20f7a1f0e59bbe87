"""Conversation state owned by one agent."""

from __future__ import annotations

from collections.abc import Callable

from familiar.core.desires import DesireState
from familiar.errors import BackendMismatchError
from familiar.types.providers import Message


class AgentSession:
    """History, desires and the cached world model for one conversation.

    Records in ``history`` are provider-shaped, so every record must come
    from the same backend. The first backend used tags the session and a
    different one is refused until :meth:`reset`.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock
        self.history: list[Message] = []
        self.desires = DesireState(clock)
        self.world_model: str | None = None
        self.backend: str | None = None

    def bind_backend(self, name: str) -> None:
        """Tag the session with *name*, or raise if it belongs to another backend."""
        if self.backend is None or not self.history:
            self.backend = name
        elif self.backend != name:
            raise BackendMismatchError(
                f"This conversation was started with {self.backend}; "
                f"clear the history before switching to {name}."
            )

    def reset(self) -> None:
        """Start over: empty history, fresh desires, no cached world model."""
        self.history = []
        self.desires = DesireState(self._clock)
        self.world_model = None
        self.backend = None

    def __len__(self) -> int:
        return len(self.history)
