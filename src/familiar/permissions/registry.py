"""Registry of permission requests waiting for a user answer.

A tool that needs approval calls :meth:`PermissionRegistry.request`, which
parks the turn on a single-use future. The UI is told about the request
through subscribed listeners and answers it with :meth:`respond`, from any
thread. A pending request never blocks forever: it is denied as soon as
the turn's cancel flag is set, or when the optional timeout elapses.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.25  # seconds between cancel-flag checks


@dataclass(frozen=True, slots=True)
class PermissionRequest:
    """A question shown to the user: may *tool* run with *detail*?"""

    id: str
    tool: str
    detail: str


Listener = Callable[[PermissionRequest], None]


def _resolve(future: asyncio.Future[bool], allowed: bool) -> None:
    if not future.done():
        future.set_result(allowed)


class PermissionRegistry:
    """Tracks pending permission requests by id."""

    def __init__(self, poll_interval: float = _POLL_INTERVAL) -> None:
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._pending: dict[str, tuple[asyncio.AbstractEventLoop, asyncio.Future[bool]]] = {}
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        """Call *listener* for every new request."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def pending(self) -> list[str]:
        """Ids of requests that have not been answered yet."""
        with self._lock:
            return list(self._pending)

    async def request(
        self,
        tool: str,
        detail: str,
        *,
        cancel: threading.Event | None = None,
        timeout: float | None = None,
    ) -> bool:
        """Ask the user whether *tool* may run and wait for the answer.

        Args:
            tool: Name of the tool asking for permission.
            detail: Human-readable description of what it is about to do.
            cancel: Turn cancel flag; once set the request is denied.
            timeout: Seconds to wait before denying. ``None`` waits until
                answered or cancelled.

        Returns:
            True if the user allowed the call, False otherwise.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[bool] = loop.create_future()
        request = PermissionRequest(id=uuid.uuid4().hex, tool=tool, detail=detail)

        with self._lock:
            self._pending[request.id] = (loop, future)
        logger.info("Permission requested for %s: %s", tool, detail)

        for listener in list(self._listeners):
            try:
                listener(request)
            except Exception:
                logger.exception("Permission listener failed")

        deadline = None if timeout is None else loop.time() + timeout
        try:
            while True:
                if cancel is not None and cancel.is_set():
                    logger.info("Permission request %s denied: turn cancelled", request.id)
                    return False
                wait = self._poll_interval if cancel is not None else None
                if deadline is not None:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        logger.warning("Permission request %s timed out", request.id)
                        return False
                    wait = remaining if wait is None else min(wait, remaining)
                try:
                    return await asyncio.wait_for(asyncio.shield(future), wait)
                except TimeoutError:
                    continue
        finally:
            with self._lock:
                self._pending.pop(request.id, None)

    def respond(self, request_id: str, allowed: bool) -> bool:
        """Answer a pending request. Returns False for unknown or stale ids."""
        with self._lock:
            entry = self._pending.pop(request_id, None)
        if entry is None:
            logger.debug("Ignoring answer for unknown permission request %s", request_id)
            return False
        loop, future = entry
        loop.call_soon_threadsafe(_resolve, future, allowed)
        return True
