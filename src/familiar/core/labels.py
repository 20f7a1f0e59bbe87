"""Short human-readable labels for tool calls shown while the agent acts.

Labels follow the system language, read from ``LANGUAGE``, ``LC_ALL``,
``LC_MESSAGES`` and ``LANG`` in that order; anything unrecognised falls back
to English.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

_LANG_VARS = ("LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG")

# key -> {lang: label}; "en" is always present.
_LABELS: dict[str, dict[str, str]] = {
    "see": {
        "en": "📷 Looking...",
        "ja": "📷 見てる...",
        "zh": "📷 查看中...",
        "zh_tw": "📷 查看中...",
        "fr": "📷 Observation...",
        "de": "📷 Schaut...",
    },
    "look_left": {
        "en": "↩️ Looking left...",
        "ja": "↩️ 左を見てる...",
        "zh": "↩️ 向左看...",
        "zh_tw": "↩️ 向左看...",
        "fr": "↩️ Regarde à gauche...",
        "de": "↩️ Schaut links...",
    },
    "look_right": {
        "en": "↪️ Looking right...",
        "ja": "↪️ 右を見てる...",
        "zh": "↪️ 向右看...",
        "zh_tw": "↪️ 向右看...",
        "fr": "↪️ Regarde à droite...",
        "de": "↪️ Schaut rechts...",
    },
    "look_up": {
        "en": "⬆️ Looking up...",
        "ja": "⬆️ 上を見てる...",
        "zh": "⬆️ 向上看...",
        "zh_tw": "⬆️ 向上看...",
        "fr": "⬆️ Regarde en haut...",
        "de": "⬆️ Schaut nach oben...",
    },
    "look_down": {
        "en": "⬇️ Looking down...",
        "ja": "⬇️ 下を見てる...",
        "zh": "⬇️ 向下看...",
        "zh_tw": "⬇️ 向下看...",
        "fr": "⬇️ Regarde en bas...",
        "de": "⬇️ Schaut nach unten...",
    },
    "look_around": {
        "en": "🔄 Looking around...",
        "ja": "🔄 周りを見てる...",
        "zh": "🔄 环顾四周...",
        "zh_tw": "🔄 環顧四周...",
        "fr": "🔄 Regarde autour...",
        "de": "🔄 Schaut sich um...",
    },
    "walk_forward": {
        "en": "🚶 Walking forward...",
        "ja": "🚶 前進中...",
        "zh": "🚶 前进中...",
        "zh_tw": "🚶 前進中...",
        "fr": "🚶 Avance...",
        "de": "🚶 Geht vorwärts...",
    },
    "walk_backward": {
        "en": "🚶 Walking backward...",
        "ja": "🚶 後退中...",
        "zh": "🚶 后退中...",
        "zh_tw": "🚶 後退中...",
        "fr": "🚶 Recule...",
        "de": "🚶 Geht rückwärts...",
    },
    "walk_left": {
        "en": "🚶 Turning left...",
        "ja": "🚶 左に旋回中...",
        "zh": "🚶 左转中...",
        "zh_tw": "🚶 左轉中...",
        "fr": "🚶 Tourne à gauche...",
        "de": "🚶 Dreht links...",
    },
    "walk_right": {
        "en": "🚶 Turning right...",
        "ja": "🚶 右に旋回中...",
        "zh": "🚶 右转中...",
        "zh_tw": "🚶 右轉中...",
        "fr": "🚶 Tourne à droite...",
        "de": "🚶 Dreht rechts...",
    },
    "walk_stop": {
        "en": "🛑 Stopping...",
        "ja": "🛑 停止中...",
        "zh": "🛑 停止中...",
        "zh_tw": "🛑 停止中...",
        "fr": "🛑 Arrête...",
        "de": "🛑 Hält an...",
    },
}

_LOOK_DIRECTIONS = frozenset({"left", "right", "up", "down"})
_WALK_DIRECTIONS = frozenset({"forward", "backward", "left", "right"})

_SAY_PREVIEW_CHARS = 30


def parse_lang(value: str) -> str | None:
    """Map a locale string such as ``ja_JP.UTF-8`` to a label language."""
    lower = value.split(".", 1)[0].lower()
    if lower.startswith("ja"):
        return "ja"
    if lower.startswith(("zh_tw", "zh-tw", "zh_hk", "zh_mo")):
        return "zh_tw"
    if lower.startswith("zh"):
        return "zh"
    if lower.startswith("fr"):
        return "fr"
    if lower.startswith("de"):
        return "de"
    return None


def detect_lang(env: Mapping[str, str] | None = None) -> str:
    """First recognised language from the locale variables, else ``"en"``."""
    env = os.environ if env is None else env
    for var in _LANG_VARS:
        value = env.get(var)
        if not value:
            continue
        # LANGUAGE may be a colon-separated preference list
        lang = parse_lang(value.split(":", 1)[0])
        if lang is not None:
            return lang
    return "en"


def _t(key: str, lang: str) -> str:
    labels = _LABELS[key]
    return labels.get(lang, labels["en"])


def _direction(args: Mapping[str, Any], known: frozenset[str], default: str) -> str:
    value = args.get("direction")
    return value if isinstance(value, str) and value in known else default


def action_label(name: str, args: Any, lang: str | None = None) -> str:
    """Build the progress label for a call to *name* with *args*.

    *args* is whatever the model sent; anything but a mapping is treated as
    no arguments.
    """
    if lang is None:
        lang = detect_lang()
    if not isinstance(args, Mapping):
        args = {}
    match name:
        case "see":
            return _t("see", lang)
        case "look":
            direction = _direction(args, _LOOK_DIRECTIONS, "around")
            return _t(f"look_{direction}", lang)
        case "say":
            text = str(args.get("text", ""))
            return f'💬 "{text[:_SAY_PREVIEW_CHARS]}..."'
        case "walk":
            direction = _direction(args, _WALK_DIRECTIONS, "stop")
            return _t(f"walk_{direction}", lang)
        case _:
            return f"⚙️ {name}..."
