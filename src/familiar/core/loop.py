"""The react loop: model -> tools -> model -> ... until the model is done."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from functools import partial
from typing import Any

from familiar.core.channel import EventChannel
from familiar.core.desires import SATISFY_AMOUNT
from familiar.core.labels import action_label
from familiar.core.prompt import build_system_prompt, build_world_model
from familiar.core.session import AgentSession
from familiar.errors import BackendMismatchError, TransportError
from familiar.permissions.registry import PermissionRegistry
from familiar.providers.registry import create_backend
from familiar.tools.manager import ToolRegistry
from familiar.types.config import Config
from familiar.types.messages import (
    ActionEvent,
    CancelledEvent,
    DoneEvent,
    ErrorEvent,
    TextEvent,
)
from familiar.types.providers import BackendAdapter, StopReason, ToolCall, ToolResult

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 50

# Using a body part nudges the matching desire up.
_TOOL_BOOSTS: dict[str, tuple[str, float]] = {
    "see": ("observe_room", 0.15),
    "look": ("look_outside", 0.1),
}

BackendFactory = Callable[[Config], BackendAdapter]
ToolsFactory = Callable[..., ToolRegistry]


class Agent:
    """One companion: config, conversation session and the react loop.

    The backend and tool registry are rebuilt for every turn from the
    current config, so a reconfigured key or device takes effect on the
    next message. The session (history, desires) lives as long as the agent.
    """

    def __init__(
        self,
        config: Config,
        *,
        backend_factory: BackendFactory = create_backend,
        tools_factory: ToolsFactory = ToolRegistry.from_config,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config
        self.session = AgentSession(clock)
        self._backend_factory = backend_factory
        self._tools_factory = tools_factory

    # ------------------------------------------------------------------
    # Desires / session
    # ------------------------------------------------------------------

    def has_strong_desire(self) -> bool:
        """Advance desires to now and report whether one is active."""
        self.session.desires.decay()
        return self.session.desires.strongest() is not None

    def clear_history(self) -> None:
        self.session.reset()
        logger.info("Conversation history cleared")

    # ------------------------------------------------------------------
    # Prompt
    # ------------------------------------------------------------------

    def world_model(self) -> str:
        if self.session.world_model is None:
            self.session.world_model = build_world_model(self.config)
        return self.session.world_model

    def system_prompt(self, episodic: str, desire: str | None) -> str:
        return build_system_prompt(
            self.config,
            world_model=self.world_model(),
            episodic=episodic,
            desire=desire,
            max_steps=MAX_ITERATIONS,
        )

    def dump_system_prompt(self) -> str:
        """Render the prompt the next turn would use, without calling a model."""
        tools = self._tools_factory(self.config)
        self.session.desires.decay()
        return self.system_prompt(
            tools.recall_for_context(5), self.session.desires.context_string()
        )

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def run(
        self,
        user_input: str,
        events: EventChannel,
        cancel: threading.Event | None = None,
        permissions: PermissionRegistry | None = None,
    ) -> None:
        """Run one turn, reporting progress on *events*.

        Every path ends with exactly one terminal event (done, error or
        cancelled). Failures talking to the backend are reported as an
        error event and leave the history recorded so far in place.
        """
        cancel = cancel or threading.Event()
        approver = None
        if permissions is not None:
            approver = partial(
                permissions.request,
                cancel=cancel,
                timeout=self.config.coding.permission_timeout,
            )

        backend = self._backend_factory(self.config)
        tools = self._tools_factory(self.config, approver=approver)
        session = self.session

        try:
            session.bind_backend(backend.name)
        except BackendMismatchError as exc:
            logger.warning("%s", exc)
            await events.send(ErrorEvent(message=str(exc)))
            return

        session.desires.decay()
        desire_ctx = session.desires.context_string()
        active = session.desires.strongest()
        episodic = tools.recall_for_context(5)

        session.history.append(backend.make_user_message(user_input))
        system = self.system_prompt(episodic, desire_ctx)
        tool_defs = tools.tool_defs()

        def on_text(chunk: str) -> None:
            events.send_nowait(TextEvent(chunk=chunk))

        for iteration in range(MAX_ITERATIONS):
            if cancel.is_set():
                logger.info("Turn cancelled before round %d", iteration + 1)
                await events.send(CancelledEvent())
                return

            try:
                result, record = await backend.stream_turn(
                    system, session.history, tool_defs, on_text
                )
            except TransportError as exc:
                logger.error("Backend request failed: %s", exc)
                await events.send(ErrorEvent(message=str(exc)))
                return

            session.history.append(record)

            if result.stop_reason is StopReason.END_TURN:
                if active is not None:
                    session.desires.satisfy(active[0], SATISFY_AMOUNT)
                await events.send(DoneEvent())
                return

            results = [await self._run_tool(tools, call, events) for call in result.tool_calls]
            session.history.extend(backend.make_tool_results(results))

        logger.warning("Turn stopped after %d rounds", MAX_ITERATIONS)
        await events.send(ErrorEvent(message="Reached maximum steps."))
        await events.send(DoneEvent())

    async def _run_tool(
        self, tools: ToolRegistry, call: ToolCall, events: EventChannel
    ) -> ToolResult:
        args: dict[str, Any] = call.input if isinstance(call.input, dict) else {}
        await events.send(ActionEvent(name=call.name, label=action_label(call.name, args)))

        boost = _TOOL_BOOSTS.get(call.name)
        if boost is not None:
            self.session.desires.boost(*boost)

        try:
            output = await tools.execute(call.name, args)
        except Exception as exc:
            logger.warning("Tool %s failed: %s", call.name, exc)
            return ToolResult(call_id=call.id, text=f"Tool error: {exc}")
        logger.debug("Tool %s -> %d chars", call.name, len(output.text))
        return ToolResult(call_id=call.id, text=output.text, image_b64=output.image_b64)
