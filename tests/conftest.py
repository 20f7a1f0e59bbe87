"""Test fixtures including MockBackend for deterministic testing."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from familiar.core.channel import EventChannel
from familiar.core.loop import Agent
from familiar.memory.store import ObservationStore
from familiar.tools.base import BaseTool
from familiar.tools.camera import LookTool, SeeTool
from familiar.tools.manager import ToolRegistry
from familiar.types.config import Config
from familiar.types.messages import AgentEvent
from familiar.types.providers import Message, StopReason, ToolCall, ToolResult, TurnResult
from familiar.types.tools import ToolContext, ToolDef, ToolOutput, ToolParam


@dataclass
class MockTurn:
    """A scripted model round for MockBackend.

    Give text, tool calls or both. ``error`` is raised instead of answering.
    """

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    error: Exception | None = None


class MockBackend:
    """A deterministic backend adapter.

    Usage:
        backend = MockBackend(turns=[
            MockTurn(tool_calls=[ToolCall("c1", "see", {})]),
            MockTurn(text="I see a cat."),
        ])

    Every call to :meth:`stream_turn` is recorded in ``calls``.
    Once the script runs out each round ends the turn with no text.
    """

    def __init__(self, turns: list[MockTurn], name: str = "mock") -> None:
        self.name = name
        self._turns = list(turns)
        self._index = 0
        self.calls: list[dict[str, Any]] = []

    async def stream_turn(
        self, system: str, history: list[Message], tools: list[ToolDef], on_text: Any,
    ) -> tuple[TurnResult, Message]:
        self.calls.append({"system": system, "history": list(history), "tools": list(tools)})
        turn = self._turns[self._index] if self._index < len(self._turns) else MockTurn()
        self._index += 1
        if turn.error is not None:
            raise turn.error
        if turn.text:
            on_text(turn.text)
        stop = StopReason.TOOL_USE if turn.tool_calls else StopReason.END_TURN
        record = {
            "role": "assistant",
            "text": turn.text,
            "calls": [c.id for c in turn.tool_calls],
        }
        return TurnResult.build(stop, turn.text, turn.tool_calls), record

    def make_user_message(self, text: str) -> Message:
        return {"role": "user", "content": text}

    def make_tool_results(self, results: list[ToolResult]) -> list[Message]:
        return [
            {"role": "tool", "call_id": r.call_id, "content": r.text, "image": r.image_b64}
            for r in results
        ]


class LoopingBackend(MockBackend):
    """Asks for the same tool forever."""

    async def stream_turn(self, system, history, tools, on_text):  # type: ignore[override]
        self.calls.append({"system": system, "history": list(history), "tools": list(tools)})
        call = ToolCall(id=f"c{len(self.calls)}", name="echo", input={"text": "again"})
        return TurnResult.build(StopReason.TOOL_USE, "", [call]), {"role": "assistant"}


class EchoTool(BaseTool):
    """Returns its input; raises when asked to fail."""

    def __init__(self) -> None:
        self.seen: list[dict[str, Any]] = []

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name="echo",
            description="Echo the text back.",
            parameters=(ToolParam(name="text", type="string", description="Text"),),
        )

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        self.seen.append(args)
        if args.get("fail"):
            raise RuntimeError("echo exploded")
        return self._ok(f"echo: {args.get('text', '')}")


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def collect(channel: EventChannel) -> list[AgentEvent]:
    """Close *channel* and return everything buffered in it."""
    channel.close()
    return [event async for event in channel]


def make_agent(
    backend: MockBackend,
    store: ObservationStore,
    *,
    config: Config | None = None,
    clock: FakeClock | None = None,
    extra_tools: list[BaseTool] | None = None,
) -> Agent:
    """An Agent wired to *backend* with camera-less body tools and *extra_tools*."""
    approvers: list[Any] = []

    def tools_factory(config: Config, *, approver: Any = None, **_: Any) -> ToolRegistry:
        approvers.append(approver)
        registry = ToolRegistry(store=store, approver=approver)
        for tool in [SeeTool(None), LookTool(None), *(extra_tools or [])]:
            registry.register(tool)
        return registry

    agent = Agent(
        config or Config(api_key="test-key"),
        backend_factory=lambda config: backend,
        tools_factory=tools_factory,
        clock=clock,
    )
    agent.approvers = approvers  # type: ignore[attr-defined]
    return agent


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> ObservationStore:
    return ObservationStore(tmp_path / "observations.jsonl")


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep ME.md and config lookups away from the real home directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for var in (
        "FAMILIAR_PLATFORM", "FAMILIAR_API_KEY", "FAMILIAR_MODEL",
        "LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with sample files."""
    project = tmp_path / "project"
    project.mkdir()
    (project / "README.md").write_text("# Test Project\n\nA test project.\n")
    (project / "main.py").write_text("def hello():\n    print('Hello, world!')\n\nhello()\n")
    src = project / "src"
    src.mkdir()
    (src / "utils.py").write_text("def add(a, b):\n    return a + b\n")
    return project
