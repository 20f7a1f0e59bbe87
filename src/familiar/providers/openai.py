"""OpenAI chat-completions adapter (raw HTTP + SSE)."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

import httpx

from familiar.providers.base import (
    MAX_TOKENS,
    BaseProvider,
    as_dict,
    as_list,
    as_str,
    parse_tool_args,
)
from familiar.types.providers import Message, TextCallback, ToolCall, ToolResult, TurnResult
from familiar.types.tools import ToolDef

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIProvider(BaseProvider):
    """Adapter for ``/v1/chat/completions`` and compatible endpoints.

    Streamed ``tool_calls`` fragments are keyed by their ``index``: the id
    and name arrive once, the JSON arguments arrive in pieces that are
    concatenated in order and parsed after ``[DONE]``.

    Parameters
    ----------
    api_key:
        Bearer token.
    model:
        Model name (e.g. ``"gpt-4o-mini"``).
    base_url:
        API root. Defaults to ``https://api.openai.com/v1``; subclasses
        point it at OpenAI-compatible services.
    """

    name = "openai"
    display_name = "OpenAI"
    default_base_url = "https://api.openai.com/v1"

    # Newer OpenAI models reject ``max_tokens``; compatible services still want it.
    max_tokens_field = "max_completion_tokens"

    _END_TURN_REASONS = frozenset({"stop", "length", "content_filter", "function_call"})
    _TOOL_USE_REASON = "tool_calls"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key, model, base_url=base_url, client=client)

    async def stream_turn(
        self,
        system: str,
        history: list[Message],
        tools: list[ToolDef],
        on_text: TextCallback,
    ) -> tuple[TurnResult, Message]:
        payload: dict[str, Any] = {
            "model": self._model,
            self.max_tokens_field: MAX_TOKENS,
            "messages": [{"role": "system", "content": system}, *history],
            "stream": True,
        }
        if tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.input_schema,
                    },
                }
                for t in tools
            ]
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "content-type": "application/json",
        }

        text = ""
        # index -> [id, name, accumulated arguments]
        pending: dict[int, list[str]] = {}
        finish_reason: str | None = None

        async for chunk in self._stream_events(
            f"{self._base_url}/chat/completions", headers=headers, payload=payload,
        ):
            choices = as_list(chunk.get("choices"))
            if not choices:
                continue
            choice = as_dict(choices[0])
            if as_str(choice.get("finish_reason")):
                finish_reason = choice["finish_reason"]
            delta = as_dict(choice.get("delta"))

            content = as_str(delta.get("content"))
            if content:
                text += content
                on_text(content)

            for fragment in as_list(delta.get("tool_calls")):
                if not isinstance(fragment, dict):
                    continue
                index = fragment.get("index", 0)
                if not isinstance(index, int):
                    continue
                entry = pending.setdefault(index, ["", "", ""])
                if as_str(fragment.get("id")):
                    entry[0] = fragment["id"]
                fn = as_dict(fragment.get("function"))
                if as_str(fn.get("name")):
                    entry[1] = fn["name"]
                entry[2] += as_str(fn.get("arguments"))

        calls = [
            ToolCall(
                id=call_id or f"call_{uuid.uuid4().hex}",
                name=name,
                input=parse_tool_args(args),
            )
            for _, (call_id, name, args) in sorted(pending.items())
        ]
        result = TurnResult.build(self._map_stop_reason(finish_reason), text, calls)

        raw: Message = {"role": "assistant", "content": text or None}
        if calls:
            raw["tool_calls"] = [
                {
                    "id": c.id,
                    "type": "function",
                    "function": {
                        "name": c.name,
                        "arguments": json.dumps(c.input, separators=(",", ":"), ensure_ascii=False),
                    },
                }
                for c in calls
            ]
        return result, raw

    def make_user_message(self, text: str) -> Message:
        return {"role": "user", "content": text}

    def make_tool_results(self, results: list[ToolResult]) -> list[Message]:
        messages: list[Message] = []
        for r in results:
            messages.append({"role": "tool", "tool_call_id": r.call_id, "content": r.text})
            if r.image_b64:
                # Tool messages cannot carry images; attach them as a user turn.
                messages.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:image/jpeg;base64,{r.image_b64}"},
                            }
                        ],
                    }
                )
        return messages
