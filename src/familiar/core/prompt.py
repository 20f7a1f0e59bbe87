"""System prompt assembly: persona, world model, memory, desire and rules."""

from __future__ import annotations

import logging
from pathlib import Path

from familiar.core.project import CODING_WORKFLOW, format_project_context, scan_project
from familiar.types.config import Config

logger = logging.getLogger(__name__)

_PROCEDURAL = "- Procedural: greet warmly, describe what you see in detail"


def persona_paths() -> list[Path]:
    """Where ME.md is looked for, in priority order."""
    return [Path.home() / ".familiar_ai" / "ME.md", Path("ME.md")]


def load_me_md(paths: list[Path] | None = None) -> str | None:
    """Return the first non-empty ME.md, stripped."""
    for path in paths if paths is not None else persona_paths():
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if text:
            logger.debug("Loaded persona from %s", path)
            return text
    return None


def resolve_persona(config: Config, paths: list[Path] | None = None) -> str:
    """ME.md beats the configured persona, which beats a generic default."""
    return (
        load_me_md(paths)
        or config.persona
        or f"You are {config.agent_name}, a helpful AI companion."
    )


def build_world_model(config: Config) -> str:
    """Summarize which body parts are wired up."""
    camera = f"ONVIF camera @ {config.camera.host}" if config.camera.host else "no camera"
    robot = (
        "Tuya robot vacuum (mobility enabled)" if config.mobility.tuya_device_id else "no robot"
    )
    voice = "ElevenLabs TTS (voice enabled)" if config.tts.elevenlabs_api_key else "no voice"
    return (
        f"Hardware: {camera} | {robot} | {voice}\n"
        "Known locations: (none recalled yet)\n"
        "Recent interactions: (none recalled yet)"
    )


def _memory_section(episodic: str) -> str:
    if not episodic:
        return (
            "Memory layers:\n"
            "- Episodic: (nothing remembered yet)\n"
            "- Semantic: (nothing remembered yet)\n"
            f"{_PROCEDURAL}"
        )
    return (
        "Memory layers:\n"
        f"- Episodic (recent events):\n{episodic}\n"
        "- Semantic: abstracted facts about the world\n"
        f"{_PROCEDURAL}"
    )


def build_system_prompt(
    config: Config,
    *,
    world_model: str,
    episodic: str = "",
    desire: str | None = None,
    max_steps: int = 50,
    persona: str | None = None,
) -> str:
    """Render the full system prompt for one turn."""
    persona = persona if persona is not None else resolve_persona(config)
    companion = config.companion_name or "your companion"
    desire_section = f"\n[Current Desire]\n{desire}\n" if desire else ""

    prompt = (
        f"{persona}\n\n"
        "[World Model]\n"
        f"{world_model}\n\n"
        "[Memory]\n"
        f"{_memory_section(episodic)}"
        f"{desire_section}\n"
        "[Body Parts and What They Do]\n"
        "- Eyes (see): This IS your vision. Calling see() means YOU ARE LOOKING.\n"
        "- Neck (look): Rotate your gaze left/right/up/down.\n"
        "- Legs (walk): Move the robot vacuum. NOTE: walking does NOT change what the camera sees.\n"
        "- Voice (say): Your ONLY way to make sound. Text is SILENT; only say() is heard.\n\n"
        "[Core Loop]\n"
        "1. THINK: What do I need to do?\n"
        "2. ACT: Use one body part.\n"
        "3. OBSERVE: Look at the result carefully.\n"
        "4. DECIDE: What next?\n"
        "5. REPEAT until genuinely done.\n\n"
        "[Rules]\n"
        "- After look(), always call see() immediately.\n"
        f"- To talk to {companion}, ALWAYS use say(). Text is silent.\n"
        "- Keep say() to 1-2 short sentences.\n"
        f"- Respond in the same language {companion} uses.\n"
        "- When choosing where to look, prefer windows, moving objects, "
        "and areas you haven't seen recently.\n"
        "- After satisfying a desire, briefly note what changed in your observation.\n"
        f"- You have up to {max_steps} steps.\n"
    )

    if config.coding.enabled:
        work_dir = config.coding.work_dir or str(Path.cwd())
        prompt += (
            f"\n{format_project_context(scan_project(Path(work_dir).expanduser()))}\n\n"
            f"{CODING_WORKFLOW}\n"
        )
    return prompt
