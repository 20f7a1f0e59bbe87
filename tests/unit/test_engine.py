"""Tests for familiar.core.engine: ownership, relay, cancel and heartbeat."""

from __future__ import annotations

import asyncio

import pytest

from familiar.core.engine import IDLE_PROMPT, Engine
from familiar.errors import AgentBusyError, NotInitializedError
from familiar.types.config import Config
from familiar.types.messages import CancelledEvent, DoneEvent, ErrorEvent, TextEvent
from familiar.types.providers import ToolCall
from tests.conftest import EchoTool, MockBackend, MockTurn, make_agent


class GatedBackend(MockBackend):
    """Blocks in every round until ``gate`` is set."""

    def __init__(self, turns, name="mock"):
        super().__init__(turns, name)
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def stream_turn(self, system, history, tools, on_text):
        self.entered.set()
        await self.gate.wait()
        return await super().stream_turn(system, history, tools, on_text)


class BrokenBackend(MockBackend):
    async def stream_turn(self, system, history, tools, on_text):
        raise RuntimeError("kaboom")


def _engine(backend, store, clock=None, **kwargs) -> Engine:
    return Engine(
        Config(api_key="test-key"),
        agent_factory=lambda config: make_agent(
            backend, store, config=config, clock=clock, extra_tools=[EchoTool()],
        ),
        **kwargs,
    )


class TestDispatch:
    @pytest.mark.asyncio
    async def test_not_configured(self):
        engine = Engine()
        assert not engine.is_configured
        with pytest.raises(NotInitializedError):
            await engine.dispatch("hi", lambda e: None)

    @pytest.mark.asyncio
    async def test_events_reach_sink(self, store):
        engine = _engine(MockBackend([MockTurn(text="Hello!")]), store)
        seen = []

        await engine.dispatch("hi", seen.append)

        assert seen == [TextEvent(chunk="Hello!"), DoneEvent()]
        assert not engine.is_busy

    @pytest.mark.asyncio
    async def test_busy_while_turn_in_flight(self, store):
        backend = GatedBackend([MockTurn(text="done")])
        engine = _engine(backend, store)

        task = asyncio.create_task(engine.dispatch("first", lambda e: None))
        await backend.entered.wait()
        assert engine.is_busy
        with pytest.raises(AgentBusyError):
            await engine.dispatch("second", lambda e: None)

        backend.gate.set()
        await task
        assert not engine.is_busy
        # The refused message never reached the history.
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_unexpected_failure_returns_agent(self, store):
        engine = _engine(BrokenBackend([]), store)
        seen = []

        await engine.dispatch("hi", seen.append)

        assert seen == [ErrorEvent(message="Internal error: kaboom")]
        assert not engine.is_busy
        assert engine.clear_history()

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_relay(self, store):
        engine = _engine(MockBackend([MockTurn(text="a")]), store)
        seen = []

        def sink(event):
            seen.append(event)
            if isinstance(event, TextEvent):
                raise ValueError("ui went away")

        await engine.dispatch("hi", sink)
        assert seen[-1] == DoneEvent()


    @pytest.mark.asyncio
    async def test_turn_without_terminal_event_reports_error(self):
        class SilentAgent:
            async def run(self, user_input, events, cancel=None, permissions=None):
                await events.send(TextEvent(chunk="half a thought"))

        engine = Engine(Config(), agent_factory=lambda config: SilentAgent())
        seen = []

        await engine.dispatch("hi", seen.append)

        assert seen == [
            TextEvent(chunk="half a thought"),
            ErrorEvent(message="Turn ended without a result."),
        ]
        assert seen[-1].is_terminal
        assert not engine.is_busy


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_running_turn(self, store):
        backend = GatedBackend([
            MockTurn(tool_calls=[ToolCall("c1", "echo", {"text": "x"})]),
            MockTurn(text="never"),
        ])
        engine = _engine(backend, store)
        seen = []

        task = asyncio.create_task(engine.dispatch("hi", seen.append))
        await backend.entered.wait()
        engine.cancel()
        backend.gate.set()
        await task

        assert seen[-1] == CancelledEvent()
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_stale_cancel_is_cleared(self, store):
        engine = _engine(MockBackend([MockTurn(text="ok")]), store)
        engine.cancel()
        seen = []

        await engine.dispatch("hi", seen.append)

        assert seen[-1] == DoneEvent()


class TestConfigure:
    @pytest.mark.asyncio
    async def test_reconfigure_during_turn(self, store):
        first = GatedBackend([MockTurn(text="old")])
        second = MockBackend([MockTurn(text="new")])
        engine = _engine(first, store)

        task = asyncio.create_task(engine.dispatch("hi", lambda e: None))
        await first.entered.wait()
        engine._agent_factory = lambda config: make_agent(second, store, config=config)
        engine.configure(Config(api_key="other"))
        first.gate.set()
        await task

        seen = []
        await engine.dispatch("again", seen.append)
        assert seen == [TextEvent(chunk="new"), DoneEvent()]

    def test_clear_history_without_agent(self):
        assert not Engine().clear_history()

    def test_respond_to_unknown_permission(self, store):
        engine = _engine(MockBackend([]), store)
        assert not engine.respond_permission("nope", True)


class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_tick_without_desire(self, store, fake_clock):
        backend = MockBackend([])
        engine = _engine(backend, store, clock=fake_clock)

        assert not await engine.heartbeat_tick(lambda e: None)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_tick_with_desire_sends_idle_prompt(self, store, fake_clock):
        backend = MockBackend([MockTurn(text="Let me look around.")])
        engine = _engine(backend, store, clock=fake_clock)
        fake_clock.advance(60)
        seen = []

        assert await engine.heartbeat_tick(seen.append)

        assert backend.calls[0]["history"][0]["content"] == IDLE_PROMPT
        assert seen[-1] == DoneEvent()

    @pytest.mark.asyncio
    async def test_tick_skips_busy_agent(self, store, fake_clock):
        backend = GatedBackend([MockTurn(text="busy")])
        engine = _engine(backend, store, clock=fake_clock)
        fake_clock.advance(60)

        task = asyncio.create_task(engine.dispatch("hi", lambda e: None))
        await backend.entered.wait()
        assert not await engine.heartbeat_tick(lambda e: None)
        backend.gate.set()
        await task

    @pytest.mark.asyncio
    async def test_heartbeat_task(self, store, fake_clock):
        backend = MockBackend([MockTurn(text="idle thought")])
        engine = _engine(backend, store, clock=fake_clock)
        fake_clock.advance(60)
        seen = []

        task = engine.start_heartbeat(seen.append, interval=0.01)
        assert engine.start_heartbeat(seen.append) is task
        for _ in range(200):
            if DoneEvent() in seen:
                break
            await asyncio.sleep(0.01)
        await engine.stop_heartbeat()

        assert seen[0] == TextEvent(chunk="idle thought")
        assert task.done()
