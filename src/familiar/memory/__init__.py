"""Persistent memory for familiar."""

from familiar.memory.store import Observation, ObservationStore, format_context, format_memories

__all__ = ["Observation", "ObservationStore", "format_context", "format_memories"]
