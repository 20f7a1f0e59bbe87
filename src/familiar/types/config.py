"""Configuration types for familiar."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

DEFAULT_PLATFORM = "kimi"
DEFAULT_VOICE_ID = "cgSgspJ2msm6clMCkdW9"
DEFAULT_HEARTBEAT_SECS = 60.0


@dataclass(slots=True)
class CameraConfig:
    """Pan/tilt IP camera (eyes and neck)."""

    host: str = ""
    username: str = ""
    password: str = ""
    onvif_port: int = 2020


@dataclass(slots=True)
class TtsConfig:
    """ElevenLabs text-to-speech (voice)."""

    elevenlabs_api_key: str = ""
    voice_id: str = DEFAULT_VOICE_ID


@dataclass(slots=True)
class MobilityConfig:
    """Tuya robot vacuum (legs)."""

    tuya_region: str = "us"
    tuya_api_key: str = ""
    tuya_api_secret: str = ""
    tuya_device_id: str = ""


@dataclass(slots=True)
class CodingConfig:
    """Filesystem and shell tools for the coding assistant mode."""

    enabled: bool = False
    work_dir: str = ""
    trust_mode: str = "prompt"  # "prompt", "full", "custom"
    rules: list[str] = field(default_factory=list)  # e.g. "allow:bash:cargo *"
    permission_timeout: float | None = None  # seconds; None waits until cancel


@dataclass(slots=True)
class Config:
    """Complete runtime configuration."""

    platform: str = DEFAULT_PLATFORM
    api_key: str = ""
    model: str = ""
    agent_name: str = "AI"
    persona: str = ""
    companion_name: str = "You"
    heartbeat_secs: float = DEFAULT_HEARTBEAT_SECS
    camera: CameraConfig = field(default_factory=CameraConfig)
    tts: TtsConfig = field(default_factory=TtsConfig)
    mobility: MobilityConfig = field(default_factory=MobilityConfig)
    coding: CodingConfig = field(default_factory=CodingConfig)

    def is_configured(self) -> bool:
        """An agent can only be built once there is a key and a name."""
        return bool(self.api_key) and bool(self.agent_name)

    def effective_model(self) -> str:
        """The configured model, or the platform's default when unset."""
        if self.model:
            return self.model
        from familiar.providers.registry import default_model

        return default_model(self.platform)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a Config from parsed TOML, ignoring unknown keys."""
        sections = {
            "camera": CameraConfig,
            "tts": TtsConfig,
            "mobility": MobilityConfig,
            "coding": CodingConfig,
        }
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            section_cls = sections.get(f.name)
            if section_cls is not None:
                if isinstance(value, dict):
                    kwargs[f.name] = _build_section(section_cls, value)
            else:
                kwargs[f.name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to plain dicts for TOML writing. ``None`` values are omitted."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if hasattr(value, "__dataclass_fields__"):
                out[f.name] = {
                    sf.name: getattr(value, sf.name)
                    for sf in fields(value)
                    if getattr(value, sf.name) is not None
                }
            elif value is not None:
                out[f.name] = value
        return out


def _build_section(section_cls: type, data: dict[str, Any]) -> Any:
    known = {f.name for f in fields(section_cls)}
    return section_cls(**{k: v for k, v in data.items() if k in known})
