"""Tests for familiar.tools: body tools, drivers, coding tools and the registry."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from pathlib import Path

import httpx
import pytest

from familiar.errors import DeviceError
from familiar.memory.store import ObservationStore
from familiar.permissions.manager import PermissionManager
from familiar.permissions.rules import TrustMode
from familiar.tools.camera import LookTool, SeeTool, direction_to_degrees, ws_security_header
from familiar.tools.feedback import bash_feedback
from familiar.tools.fs import EditFileTool, GrepTool, ListFilesTool, ReadFileTool, WriteFileTool
from familiar.tools.manager import ToolRegistry
from familiar.tools.memory import RecallTool, RememberTool
from familiar.tools.mobility import TuyaVacuum, WalkTool, tuya_sign
from familiar.tools.shell import BashTool
from familiar.tools.tts import ElevenLabsVoice, SayTool
from familiar.types.config import Config, MobilityConfig, TtsConfig
from familiar.types.tools import ToolContext


@pytest.fixture
def ctx(tmp_path: Path) -> ToolContext:
    return ToolContext(cwd=tmp_path)


class FakeCamera:
    def __init__(self, frame: bytes = b"\xff\xd8jpeg", fail: bool = False) -> None:
        self.frame = frame
        self.fail = fail
        self.moves: list[tuple[float, float]] = []

    async def capture(self) -> bytes:
        if self.fail:
            raise DeviceError("stream unreachable")
        return self.frame

    async def move(self, pan_deg: float, tilt_deg: float) -> None:
        self.moves.append((pan_deg, tilt_deg))


class FakeVoice:
    def __init__(self) -> None:
        self.said: list[tuple[str, str]] = []

    async def speak(self, text: str, speaker: str) -> None:
        self.said.append((text, speaker))


class FakeRobot:
    def __init__(self) -> None:
        self.commands: list[str] = []

    async def send(self, command: str) -> None:
        self.commands.append(command)


class TestCamera:
    @pytest.mark.asyncio
    async def test_see_without_camera(self, ctx):
        out = await SeeTool(None).execute({}, ctx)
        assert out.text == "(No camera configured)"
        assert out.image_b64 is None

    @pytest.mark.asyncio
    async def test_see_returns_base64_frame(self, ctx):
        out = await SeeTool(FakeCamera()).execute({}, ctx)
        assert out.text == "(Camera image captured)"
        assert base64.b64decode(out.image_b64) == b"\xff\xd8jpeg"

    @pytest.mark.asyncio
    async def test_see_failure_is_reported(self, ctx):
        out = await SeeTool(FakeCamera(fail=True)).execute({}, ctx)
        assert out.text == "Camera capture failed: stream unreachable"

    @pytest.mark.asyncio
    async def test_look_directions(self, ctx):
        camera = FakeCamera()
        tool = LookTool(camera, settle_secs=0)
        out = await tool.execute({"direction": "left", "degrees": 200}, ctx)
        assert out.text == "Turned left 90°"
        assert camera.moves == [(90.0, 0.0)]

        out = await tool.execute({"direction": "around"}, ctx)
        assert out.text.startswith("Swept left-center-right.")
        assert camera.moves[1:] == [(-45.0, 0.0), (90.0, 0.0), (-45.0, 0.0)]

    @pytest.mark.asyncio
    async def test_look_without_camera(self, ctx):
        out = await LookTool(None).execute({"direction": "up"}, ctx)
        assert out.text == "(No camera, cannot look up)"

    def test_direction_to_degrees(self):
        assert direction_to_degrees("right", 30) == (-30.0, 0.0)
        assert direction_to_degrees("down", 10) == (0.0, 10.0)
        assert direction_to_degrees("sideways", 10) == (0.0, 0.0)

    def test_ws_security_digest(self):
        header = ws_security_header("admin", "pw", nonce=b"0123456789abcdef",
                                    created="2025-01-01T00:00:00Z")
        digest = base64.b64encode(
            hashlib.sha1(b"0123456789abcdef" + b"2025-01-01T00:00:00Z" + b"pw").digest()
        ).decode()
        assert digest in header
        assert "<wsse:Username>admin</wsse:Username>" in header


class TestVoice:
    @pytest.mark.asyncio
    async def test_say_without_voice(self, ctx):
        out = await SayTool(None).execute({"text": "hello"}, ctx)
        assert out.text == "(No TTS configured, would have said: hello)"

    @pytest.mark.asyncio
    async def test_say(self, ctx):
        voice = FakeVoice()
        out = await SayTool(voice).execute({"text": "hi!", "speaker": "pc"}, ctx)
        assert out.text == "Said: hi!"
        assert voice.said == [("hi!", "pc")]

    @pytest.mark.asyncio
    async def test_elevenlabs_synthesize_and_play(self, ctx):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, content=b"ID3mp3")

        played = []

        async def player(audio: bytes) -> None:
            played.append(audio)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            voice = ElevenLabsVoice(TtsConfig(elevenlabs_api_key="el", voice_id="v1"), client, player)
            out = await SayTool(voice).execute({"text": "konnichiwa"}, ctx)

        assert out.text == "Said: konnichiwa"
        assert played == [b"ID3mp3"]
        assert requests[0].url.path == "/v1/text-to-speech/v1"
        assert requests[0].headers["xi-api-key"] == "el"
        assert json.loads(requests[0].content)["model_id"] == "eleven_multilingual_v2"

    @pytest.mark.asyncio
    async def test_elevenlabs_error_becomes_text(self, ctx):
        transport = httpx.MockTransport(lambda r: httpx.Response(401, text="bad key"))
        async with httpx.AsyncClient(transport=transport) as client:
            voice = ElevenLabsVoice(TtsConfig(elevenlabs_api_key="el"), client)
            out = await SayTool(voice).execute({"text": "hi"}, ctx)
        assert out.text == "TTS failed (401): bad key"


class TestMobility:
    @pytest.mark.asyncio
    async def test_walk_with_duration_stops(self, ctx):
        robot = FakeRobot()
        out = await WalkTool(robot).execute({"direction": "left", "duration": 0.01}, ctx)
        assert out.text == "Walked left for 0.01s"
        assert robot.commands == ["turn_left", "stop"]

    @pytest.mark.asyncio
    async def test_walk_without_duration(self, ctx):
        robot = FakeRobot()
        out = await WalkTool(robot).execute({"direction": "forward"}, ctx)
        assert out.text == "Started moving forward"
        assert robot.commands == ["forward"]

    @pytest.mark.asyncio
    async def test_walk_without_robot(self, ctx):
        out = await WalkTool(None).execute({"direction": "backward"}, ctx)
        assert out.text == "(No robot configured, cannot walk backward)"

    def test_tuya_sign(self):
        expected = hmac.new(b"sec", b"idtok123GET", hashlib.sha256).hexdigest().upper()
        assert tuya_sign("sec", "id", "123", "GET", "tok") == expected

    @pytest.mark.asyncio
    async def test_tuya_token_then_command(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/v1.0/token":
                return httpx.Response(200, json={
                    "success": True, "result": {"access_token": "tok", "expire_time": 7200},
                })
            return httpx.Response(200, json={"success": True, "result": True})

        config = MobilityConfig(tuya_region="eu", tuya_api_key="cid", tuya_api_secret="sec",
                                tuya_device_id="dev1")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            robot = TuyaVacuum(config, client, clock=lambda: 1700000000.0)
            await robot.send("forward")
            await robot.send("stop")

        # The token is fetched once and reused.
        assert [r.url.path for r in requests] == [
            "/v1.0/token", "/v1.0/devices/dev1/commands", "/v1.0/devices/dev1/commands",
        ]
        command = requests[1]
        assert command.url.host == "openapi.tuyaeu.com"
        assert command.headers["access_token"] == "tok"
        assert command.headers["t"] == "1700000000000"
        assert json.loads(command.content) == {"commands": [{"code": "control", "value": "forward"}]}

    @pytest.mark.asyncio
    async def test_tuya_failure_raises(self):
        transport = httpx.MockTransport(
            lambda r: httpx.Response(200, json={"success": False, "code": 1010, "msg": "token invalid"})
        )
        async with httpx.AsyncClient(transport=transport) as client:
            robot = TuyaVacuum(MobilityConfig(tuya_device_id="d", tuya_api_key="k"), client)
            with pytest.raises(DeviceError, match="Tuya error 1010: token invalid"):
                await robot.send("stop")


class TestMemoryTools:
    @pytest.mark.asyncio
    async def test_remember_and_recall(self, store: ObservationStore, ctx):
        out = await RememberTool(store).execute(
            {"content": "A red mug on the desk", "emotion": "curious", "image_path": "/tmp/a.jpg"},
            ctx,
        )
        assert out.text == "Remembered (with image): A red mug on the desk"

        out = await RecallTool(store).execute({"query": "mug", "n": 5}, ctx)
        assert "[curious] 📷: A red mug on the desk" in out.text

    @pytest.mark.asyncio
    async def test_recall_empty(self, store: ObservationStore, ctx):
        out = await RecallTool(store).execute({"query": "anything"}, ctx)
        assert out.text == "No relevant memories found."


class TestCodingTools:
    @pytest.mark.asyncio
    async def test_write_read_edit(self, ctx, tmp_path):
        out = await WriteFileTool().execute({"path": "pkg/a.py", "content": "x = 1\ny = 2\n"}, ctx)
        assert "[Self-Feedback] You just modified" in out.text
        assert (tmp_path / "pkg" / "a.py").read_text() == "x = 1\ny = 2\n"

        out = await ReadFileTool().execute({"path": "pkg/a.py", "start_line": 2}, ctx)
        assert out.text.endswith("   2: y = 2\n")
        assert "(2 lines total)" in out.text

        await EditFileTool().execute(
            {"path": "pkg/a.py", "old_string": "y = 2", "new_string": "y = 3"}, ctx,
        )
        assert (tmp_path / "pkg" / "a.py").read_text() == "x = 1\ny = 3\n"

    @pytest.mark.asyncio
    async def test_edit_requires_unique_match(self, ctx, tmp_path):
        (tmp_path / "b.txt").write_text("aa aa")
        with pytest.raises(ValueError, match="appears 2 times"):
            await EditFileTool().execute(
                {"path": "b.txt", "old_string": "aa", "new_string": "b"}, ctx,
            )

    @pytest.mark.asyncio
    async def test_read_missing(self, ctx):
        with pytest.raises(FileNotFoundError):
            await ReadFileTool().execute({"path": "nope.txt"}, ctx)

    @pytest.mark.asyncio
    async def test_list_and_grep(self, ctx, tmp_path):
        (tmp_path / "one.py").write_text("def hello():\n    pass\n")
        (tmp_path / "two.txt").write_text("nothing here\n")

        out = await ListFilesTool().execute({"pattern": "*.py"}, ctx)
        assert out.text == str(tmp_path / "one.py")

        out = await GrepTool().execute({"pattern": "def \\w+"}, ctx)
        assert "one.py" in out.text
        assert "def hello" in out.text

        out = await GrepTool().execute({"pattern": "zzz"}, ctx)
        assert out.text == "No matches found"

    @pytest.mark.asyncio
    async def test_bash_success_and_failure(self, ctx):
        out = await BashTool().execute({"command": "echo hi"}, ctx)
        assert out.text.startswith("Exit: 0\n--- stdout ---\nhi")
        assert "[Self-Feedback]" not in out.text

        out = await BashTool().execute({"command": "echo oops >&2; exit 3"}, ctx)
        assert out.text.startswith("Exit: 3")
        assert "The command exited with code 3." in out.text
        assert "oops" in out.text

    @pytest.mark.asyncio
    async def test_bash_timeout(self, ctx):
        out = await BashTool().execute({"command": "sleep 5", "timeout_secs": 1}, ctx)
        assert out.text == "Command timed out after 1s"

    def test_bash_feedback_ignores_success(self):
        assert bash_feedback("Exit: 0\n--- stdout ---\nok\n") is None
        assert bash_feedback("Command timed out after 3s") is None

    def test_bash_feedback_limits_lines(self):
        stderr = "\n".join(f"line {i}" for i in range(30))
        feedback = bash_feedback(f"Exit: 1\n--- stderr ---\n{stderr}")
        assert "line 9" in feedback
        assert "line 10" not in feedback


class TestToolRegistry:
    def test_from_config_body_tools(self, store):
        registry = ToolRegistry.from_config(Config(api_key="k"), store=store)
        assert [d.name for d in registry.tool_defs()] == [
            "see", "look", "say", "walk", "remember", "recall",
        ]

    def test_from_config_with_coding(self, store, tmp_path):
        config = Config(api_key="k")
        config.coding.enabled = True
        config.coding.work_dir = str(tmp_path)
        registry = ToolRegistry.from_config(config, store=store)
        assert "bash" in registry
        assert len(registry) == 12
        assert registry.cwd == tmp_path

    @pytest.mark.asyncio
    async def test_unknown_tool(self, store):
        out = await ToolRegistry(store=store).execute("fly", {})
        assert out.text == "Unknown tool: fly"

    @pytest.mark.asyncio
    async def test_gated_tool_without_approver(self, store, tmp_path):
        registry = ToolRegistry(store=store, cwd=tmp_path)
        registry.register(BashTool())
        out = await registry.execute("bash", {"command": "touch x"})
        assert out.text == "Permission required for bash, but nobody is available to approve it."
        assert not (tmp_path / "x").exists()

    @pytest.mark.asyncio
    async def test_gated_tool_denied_by_rule(self, store, tmp_path):
        registry = ToolRegistry(
            store=store,
            permissions=PermissionManager.from_strings("custom", ["deny:bash:rm *"]),
            cwd=tmp_path,
        )
        registry.register(BashTool())
        out = await registry.execute("bash", {"command": "rm -rf /"})
        assert out.text == "Permission denied by rule for bash."

    @pytest.mark.asyncio
    async def test_approver_decides(self, store, tmp_path):
        asked = []

        async def approver(tool: str, detail: str) -> bool:
            asked.append((tool, detail))
            return detail.endswith("ok.txt (1 lines)")

        registry = ToolRegistry(store=store, approver=approver, cwd=tmp_path)
        registry.register(WriteFileTool())

        out = await registry.execute("write_file", {"path": "no.txt", "content": "x"})
        assert out.text == "User denied permission for write_file."
        await registry.execute("write_file", {"path": "ok.txt", "content": "x"})
        assert (tmp_path / "ok.txt").exists()
        assert asked[0] == ("write_file", "Write no.txt (1 lines)")

    @pytest.mark.asyncio
    async def test_full_trust_skips_approval(self, store, tmp_path):
        registry = ToolRegistry(
            store=store, permissions=PermissionManager(TrustMode.FULL), cwd=tmp_path,
        )
        registry.register(BashTool())
        out = await registry.execute("bash", {"command": "true"})
        assert out.text.startswith("Exit: 0")

    @pytest.mark.asyncio
    async def test_tool_exceptions_propagate(self, store, tmp_path):
        registry = ToolRegistry(store=store, cwd=tmp_path)
        registry.register(ReadFileTool())
        with pytest.raises(FileNotFoundError):
            await registry.execute("read_file", {"path": "missing"})

    def test_recall_for_context(self, store):
        registry = ToolRegistry(store=store)
        assert registry.recall_for_context(5) == ""
        store.add("Saw a bird")
        assert registry.recall_for_context(5).endswith("] Saw a bird")

    def test_recall_for_context_without_store(self):
        assert ToolRegistry().recall_for_context(5) == ""
