"""Configuration loading and saving (TOML, env vars, ME.md)."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from familiar.errors import ConfigError
from familiar.types.config import Config

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

ENV_OVERRIDES = {
    "FAMILIAR_PLATFORM": "platform",
    "FAMILIAR_API_KEY": "api_key",
    "FAMILIAR_MODEL": "model",
}


def config_dir() -> Path:
    """``~/.familiar_ai``, where config, persona and memories live."""
    return Path.home() / ".familiar_ai"


def config_path() -> Path:
    return config_dir() / "config.toml"


def load_config(path: Path | None = None, *, env_overrides: bool = True) -> Config:
    """Read the config file and apply environment overrides.

    Load with ``env_overrides=False`` before :func:`save_config` so values
    that only come from the environment or ``.env`` are not persisted.

    A missing file yields the defaults. A file that exists but cannot be
    parsed raises :class:`ConfigError` rather than silently starting blank.
    """
    path = path or config_path()
    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Cannot read {path}: {exc}") from exc
        logger.debug("Loaded config from %s", path)

    if env_overrides:
        for env_var, key in ENV_OVERRIDES.items():
            if value := os.environ.get(env_var):
                data[key] = value

    try:
        return Config.from_dict(data)
    except TypeError as exc:
        raise ConfigError(f"Invalid config in {path}: {exc}") from exc


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write *config* as TOML, readable only by the owner. Returns the path."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_toml(path, config.to_dict())
    logger.info("Saved config to %s", path)
    return path


def set_value(config: Config, key: str, raw: str) -> None:
    """Set a dotted key such as ``camera.host`` from a string value.

    The value is coerced to the type of the current field. Lists are
    comma-separated. Raises :class:`ConfigError` for unknown keys or values
    that cannot be converted.
    """
    *sections, name = key.split(".")
    target: Any = config
    for section in sections:
        target = getattr(target, section, None)
        if target is None or not hasattr(target, "__dataclass_fields__"):
            raise ConfigError(f"Unknown config section: {section}")
    known = {f.name for f in fields(target)}
    if name not in known or hasattr(getattr(target, name), "__dataclass_fields__"):
        raise ConfigError(f"Unknown config key: {key}")
    setattr(target, name, _coerce(getattr(target, name), raw, key))


def _coerce(current: Any, raw: str, key: str) -> Any:
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
        raise ConfigError(f"{key} expects true or false, got {raw!r}")
    try:
        if isinstance(current, int):
            return int(raw)
        if isinstance(current, float):
            return float(raw)
        if current is None and key.endswith("_timeout"):
            return float(raw) if raw else None
    except ValueError as exc:
        raise ConfigError(f"{key} expects a number, got {raw!r}") from exc
    if isinstance(current, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def save_me_md(text: str, path: Path | None = None) -> Path:
    """Write the persona file that overrides ``persona`` in the config."""
    path = path or config_dir() / "ME.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text.strip() + "\n", encoding="utf-8")
    return path


def _write_toml(path: Path, data: dict[str, Any]) -> None:
    """Write a dict as TOML to *path*."""
    lines: list[str] = []
    for k, v in data.items():
        if not isinstance(v, dict):
            lines.append(f"{k} = {_toml_value(v)}")
    for k, v in data.items():
        if isinstance(v, dict) and v:
            lines.append(f"\n[{k}]")
            lines.extend(f"{sk} = {_toml_value(sv)}" for sk, sv in v.items())
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    # Config holds API keys
    try:
        path.chmod(0o600)
    except OSError:
        pass


def _toml_value(v: Any) -> str:
    """Format a Python value as a TOML literal."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        escaped = v.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'
    if isinstance(v, (list, tuple)):
        return "[" + ", ".join(_toml_value(item) for item in v) + "]"
    raise ConfigError(f"Cannot write {type(v).__name__} to TOML")
