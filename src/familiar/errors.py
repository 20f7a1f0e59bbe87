"""Exception hierarchy for familiar."""

from __future__ import annotations


class FamiliarError(Exception):
    """Base class for all familiar errors."""


class TransportError(FamiliarError):
    """A model backend could not be reached or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotInitializedError(FamiliarError):
    """A turn was requested before any agent was configured."""


class AgentBusyError(FamiliarError):
    """A turn was requested while another one is still in flight."""


class BackendMismatchError(FamiliarError):
    """The session history was produced by a different backend."""


class ConfigError(FamiliarError):
    """The configuration file could not be read or is invalid."""


class DeviceError(FamiliarError):
    """A camera, speaker or robot driver failed to carry out a command."""
