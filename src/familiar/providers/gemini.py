"""Google Gemini native API adapter (``streamGenerateContent`` over SSE)."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx

from familiar.providers.base import MAX_TOKENS, BaseProvider, as_dict, as_list, as_str
from familiar.types.providers import (
    Message,
    StopReason,
    TextCallback,
    ToolCall,
    ToolResult,
    TurnResult,
)
from familiar.types.tools import ToolDef

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

_JPEG_DATA_URL_PREFIX = "data:image/jpeg;base64,"


def to_gemini_contents(history: list[Message]) -> list[dict[str, Any]]:
    """Convert stored history records into Gemini ``contents`` entries.

    Records that already carry ``parts`` (everything this adapter produced)
    pass through with their role normalized. ``content`` strings and content
    lists are converted; ``tool_result`` items have no Gemini equivalent and
    are dropped. Records that end up with no parts are skipped.
    """
    contents: list[dict[str, Any]] = []
    for msg in history:
        role = "model" if msg.get("role") in ("assistant", "model") else "user"

        parts: list[dict[str, Any]]
        if isinstance(msg.get("parts"), list):
            parts = msg["parts"]
        else:
            content = msg.get("content")
            parts = []
            if isinstance(content, str):
                parts.append({"text": content})
            elif isinstance(content, list):
                for item in content:
                    item_type = item.get("type")
                    if item_type == "text":
                        parts.append({"text": item.get("text", "")})
                    elif item_type == "image_url":
                        url = (item.get("image_url") or {}).get("url", "")
                        parts.append(
                            {
                                "inlineData": {
                                    "mimeType": "image/jpeg",
                                    "data": url.removeprefix(_JPEG_DATA_URL_PREFIX),
                                }
                            }
                        )

        if parts:
            contents.append({"role": role, "parts": parts})
    return contents


class GeminiProvider(BaseProvider):
    """Adapter for the Gemini ``v1beta`` REST API.

    Gemini does not assign ids to function calls, so every call gets a
    synthetic ``call_<hex>`` id. The adapter remembers which function each id
    refers to, because ``functionResponse`` must carry the function name.
    """

    name = "gemini"
    display_name = "Gemini"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key, model, base_url=base_url, client=client)
        self._call_names: dict[str, str] = {}

    async def stream_turn(
        self,
        system: str,
        history: list[Message],
        tools: list[ToolDef],
        on_text: TextCallback,
    ) -> tuple[TurnResult, Message]:
        payload: dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": to_gemini_contents(history),
            "tools": [
                {
                    "functionDeclarations": [
                        {
                            "name": t.name,
                            "description": t.description,
                            "parameters": t.input_schema,
                        }
                        for t in tools
                    ]
                }
            ],
            "generationConfig": {
                "maxOutputTokens": MAX_TOKENS,
                "thinkingConfig": {"thinkingBudget": 0},
            },
        }
        url = f"{self._base_url}/models/{self._model}:streamGenerateContent"
        params = {"alt": "sse", "key": self._api_key}

        text = ""
        raw_parts: list[dict[str, Any]] = []
        calls: list[ToolCall] = []

        async for event in self._stream_events(
            url, headers={"content-type": "application/json"}, payload=payload, params=params,
        ):
            candidates = as_list(event.get("candidates"))
            if not candidates:
                continue
            parts = as_list(as_dict(as_dict(candidates[0]).get("content")).get("parts"))
            for part in parts:
                if not isinstance(part, dict):
                    continue
                raw_parts.append(part)
                chunk = as_str(part.get("text"))
                if chunk:
                    text += chunk
                    on_text(chunk)
                fn = as_dict(part.get("functionCall"))
                if fn:
                    call_id = f"call_{uuid.uuid4().hex}"
                    name = as_str(fn.get("name"))
                    self._call_names[call_id] = name
                    calls.append(ToolCall(id=call_id, name=name, input=as_dict(fn.get("args"))))

        stop = StopReason.TOOL_USE if calls else StopReason.END_TURN
        result = TurnResult.build(stop, text, calls)
        return result, {"role": "model", "parts": raw_parts}

    def make_user_message(self, text: str) -> Message:
        return {"role": "user", "parts": [{"text": text}]}

    def make_tool_results(self, results: list[ToolResult]) -> list[Message]:
        parts: list[dict[str, Any]] = []
        for r in results:
            name = self._call_names.get(r.call_id, r.call_id)
            parts.append({"functionResponse": {"name": name, "response": {"result": r.text}}})
            if r.image_b64:
                parts.append({"inlineData": {"mimeType": "image/jpeg", "data": r.image_b64}})
        return [{"role": "user", "parts": parts}]
