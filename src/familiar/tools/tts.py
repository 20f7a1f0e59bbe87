"""Voice: ``say`` speaks through ElevenLabs text-to-speech."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol

import httpx

from familiar.errors import DeviceError
from familiar.tools.base import BaseTool
from familiar.types.config import TtsConfig
from familiar.types.tools import ToolContext, ToolDef, ToolOutput, ToolParam

logger = logging.getLogger(__name__)

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech"
TTS_MODEL = "eleven_multilingual_v2"

# Command-line players tried in order; the first one on PATH wins.
_PLAYERS: tuple[tuple[str, ...], ...] = (
    ("afplay",),
    ("mpg123", "-q"),
    ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"),
)


class VoiceDriver(Protocol):
    """Turns text into sound."""

    async def speak(self, text: str, speaker: str) -> None:
        """Say *text* aloud. Raises DeviceError on failure."""
        ...


async def play_mp3(audio: bytes) -> None:
    """Play MP3 bytes on the local machine with the first available player."""
    for cmd in _PLAYERS:
        if shutil.which(cmd[0]) is None:
            continue
        with tempfile.NamedTemporaryFile(prefix="familiar_tts_", suffix=".mp3", delete=False) as f:
            f.write(audio)
            path = Path(f.name)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, str(path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await proc.wait()
        finally:
            path.unlink(missing_ok=True)
        return
    logger.warning("No audio player found (tried %s)", ", ".join(c[0] for c in _PLAYERS))


class ElevenLabsVoice:
    """Synthesizes speech with ElevenLabs and plays it locally."""

    def __init__(
        self,
        config: TtsConfig,
        client: httpx.AsyncClient | None = None,
        player: Callable[[bytes], Awaitable[None]] = play_mp3,
    ) -> None:
        self._config = config
        self._client = client
        self._player = player

    async def synthesize(self, text: str) -> bytes:
        url = f"{ELEVENLABS_URL}/{self._config.voice_id}"
        body = {
            "text": text,
            "model_id": TTS_MODEL,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
        }
        headers = {"xi-api-key": self._config.elevenlabs_api_key}
        client = self._client or httpx.AsyncClient(timeout=30.0)
        try:
            resp = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise DeviceError(f"TTS request failed: {exc}") from exc
        finally:
            if self._client is None:
                await client.aclose()
        if not resp.is_success:
            raise DeviceError(f"TTS failed ({resp.status_code}): {resp.text}")
        return resp.content

    async def speak(self, text: str, speaker: str) -> None:
        # Only the local speaker is driven; camera-speaker requests fall back to it.
        audio = await self.synthesize(text)
        await self._player(audio)


_SAY = ToolDef(
    name="say",
    description=(
        "Speak aloud. This is the ONLY way to make sound: text output is silent. "
        "Keep it to 1-2 short sentences."
    ),
    parameters=(
        ToolParam(name="text", type="string", description="What to say aloud"),
        ToolParam(
            name="speaker",
            type="string",
            description=(
                "Which speaker to use. 'camera' = camera speaker (sounds like it's coming "
                "from the room), 'pc' = local speaker, 'both' = both simultaneously."
            ),
            required=False,
            enum=("camera", "pc", "both"),
        ),
    ),
)


class SayTool(BaseTool):
    """Speaks text through the configured voice."""

    def __init__(self, voice: VoiceDriver | None) -> None:
        self._voice = voice

    @property
    def definition(self) -> ToolDef:
        return _SAY

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        text = str(args.get("text", ""))
        speaker = str(args.get("speaker", ""))
        if self._voice is None:
            return self._ok(f"(No TTS configured, would have said: {text})")
        try:
            await self._voice.speak(text, speaker)
        except DeviceError as exc:
            return self._ok(str(exc))
        return self._ok(f"Said: {text}")
