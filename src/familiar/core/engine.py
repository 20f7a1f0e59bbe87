"""Engine: owns the agent, runs turns, relays events and drives the heartbeat."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from familiar.core.channel import EventChannel
from familiar.core.loop import Agent
from familiar.errors import AgentBusyError, NotInitializedError
from familiar.permissions.registry import PermissionRegistry
from familiar.types.config import DEFAULT_HEARTBEAT_SECS, Config
from familiar.types.messages import AgentEvent, ErrorEvent

logger = logging.getLogger(__name__)

IDLE_PROMPT = "(idle: your desires are active, act on them naturally)"

Sink = Callable[[AgentEvent], None]
T = TypeVar("T")


class AgentSlot:
    """Holds the single agent and hands it out to one turn at a time.

    While a turn owns the agent the slot is busy. An agent installed during
    a turn waits in ``_pending`` and replaces the returning one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._agent: Agent | None = None
        self._pending: Agent | None = None
        self._busy = False

    @property
    def configured(self) -> bool:
        with self._lock:
            return self._agent is not None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    def install(self, agent: Agent) -> None:
        with self._lock:
            if self._busy:
                self._pending = agent
            else:
                self._agent = agent

    def take(self) -> Agent:
        """Claim the agent for a turn. Raises without changing any state."""
        with self._lock:
            if self._agent is None:
                raise NotInitializedError("No agent configured. Set a platform and API key first.")
            if self._busy:
                raise AgentBusyError("The agent is still working on the previous message.")
            self._busy = True
            return self._agent

    def put_back(self, agent: Agent) -> None:
        with self._lock:
            if self._pending is not None:
                self._agent, self._pending = self._pending, None
            else:
                self._agent = agent
            self._busy = False

    def with_idle(self, fn: Callable[[Agent], T]) -> T | None:
        """Call *fn* on the agent if one is installed and free, else return None."""
        with self._lock:
            if self._agent is None or self._busy:
                return None
            return fn(self._agent)


class Engine:
    """Front door for UIs: configure once, then dispatch messages.

    Usage::

        engine = Engine(config)
        await engine.dispatch("hello", print)

    Parameters
    ----------
    config:
        Installs an agent right away when given.
    agent_factory:
        Builds an :class:`Agent` from a config; tests inject scripted agents.
    permissions:
        Registry that tool permission prompts go through.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        agent_factory: Callable[[Config], Agent] = Agent,
        permissions: PermissionRegistry | None = None,
    ) -> None:
        self._agent_factory = agent_factory
        self._slot = AgentSlot()
        self._cancel = threading.Event()
        self._config: Config | None = None
        self._heartbeat: asyncio.Task[None] | None = None
        self.permissions = permissions or PermissionRegistry()
        if config is not None:
            self.configure(config)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, config: Config) -> None:
        """Install a fresh agent for *config*."""
        self._config = config
        self._slot.install(self._agent_factory(config))
        logger.info("Agent configured (platform=%s)", config.platform)

    @property
    def config(self) -> Config | None:
        return self._config

    @property
    def is_configured(self) -> bool:
        return self._slot.configured

    @property
    def is_busy(self) -> bool:
        return self._slot.busy

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def dispatch(self, message: str, sink: Sink) -> None:
        """Run one turn for *message*, delivering every event to *sink*.

        Raises :class:`NotInitializedError` or :class:`AgentBusyError` before
        anything starts. Once the turn has started, failures are delivered to
        *sink* as an :class:`ErrorEvent` and the agent is always handed back.
        """
        agent = self._slot.take()
        self._cancel.clear()
        channel = EventChannel()
        relay = asyncio.create_task(self._relay(channel, sink))
        try:
            try:
                await agent.run(message, channel, self._cancel, self.permissions)
            except Exception as exc:
                logger.exception("Turn failed unexpectedly")
                await channel.send(ErrorEvent(message=f"Internal error: {exc}"))
            finally:
                channel.close()
            await relay
        finally:
            if not relay.done():
                relay.cancel()
            self._slot.put_back(agent)

    async def _relay(self, channel: EventChannel, sink: Sink) -> None:
        """Forward events to *sink* until the channel closes.

        The sink always sees a terminal event last; a turn that ends without
        one is reported as an error.
        """
        last: AgentEvent | None = None
        try:
            async for event in channel:
                last = event
                self._deliver(sink, event)
        finally:
            # Later sends become no-ops instead of waiting on a dead relay.
            channel.close_receiver()
        if last is None or not last.is_terminal:
            logger.warning("Turn ended without a terminal event")
            self._deliver(sink, ErrorEvent(message="Turn ended without a result."))
        if channel.dropped:
            logger.info("Dropped %d text chunks this turn", channel.dropped)

    @staticmethod
    def _deliver(sink: Sink, event: AgentEvent) -> None:
        try:
            sink(event)
        except Exception:
            logger.exception("Event sink failed on %s", type(event).__name__)

    def cancel(self) -> None:
        """Ask the running turn to stop at its next checkpoint."""
        self._cancel.set()
        logger.info("Cancel requested")

    def respond_permission(self, request_id: str, allowed: bool) -> bool:
        return self.permissions.respond(request_id, allowed)

    def clear_history(self) -> bool:
        """Reset the idle agent's conversation. False if none is free."""

        def _clear(agent: Agent) -> bool:
            agent.clear_history()
            return True

        return bool(self._slot.with_idle(_clear))

    def dump_system_prompt(self) -> str | None:
        return self._slot.with_idle(lambda agent: agent.dump_system_prompt())

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------

    def start_heartbeat(self, sink: Sink, interval: float | None = None) -> asyncio.Task[None]:
        """Start the idle loop. Calling it again returns the running task."""
        if self._heartbeat is not None and not self._heartbeat.done():
            return self._heartbeat
        if interval is None:
            interval = self._config.heartbeat_secs if self._config else DEFAULT_HEARTBEAT_SECS
        self._heartbeat = asyncio.create_task(
            self._heartbeat_loop(sink, interval), name="familiar-heartbeat"
        )
        return self._heartbeat

    async def _heartbeat_loop(self, sink: Sink, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.heartbeat_tick(sink)

    async def heartbeat_tick(self, sink: Sink) -> bool:
        """Dispatch the idle prompt if the agent is free and wants something."""
        if not self._slot.with_idle(lambda agent: agent.has_strong_desire()):
            logger.debug("Heartbeat: nothing to do")
            return False
        logger.info("Heartbeat: acting on desire")
        try:
            await self.dispatch(IDLE_PROMPT, sink)
        except (AgentBusyError, NotInitializedError):
            logger.debug("Heartbeat skipped: agent became unavailable")
            return False
        return True

    async def stop_heartbeat(self) -> None:
        task, self._heartbeat = self._heartbeat, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
