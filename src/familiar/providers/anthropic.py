"""Anthropic Messages API adapter (raw HTTP + SSE)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from familiar.providers.base import MAX_TOKENS, BaseProvider, as_dict, as_str, parse_tool_args
from familiar.types.providers import Message, TextCallback, ToolCall, ToolResult, TurnResult
from familiar.types.tools import ToolDef

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    """Adapter for Anthropic's ``/v1/messages`` streaming endpoint.

    Tool calls arrive as ``tool_use`` content blocks whose input is streamed
    as ``partial_json`` fragments; fragments are appended to whichever tool
    block was opened last and parsed once the stream ends.
    """

    name = "anthropic"
    display_name = "Anthropic"
    default_base_url = "https://api.anthropic.com/v1"

    _END_TURN_REASONS = frozenset({"end_turn", "max_tokens", "stop_sequence", "pause_turn", "refusal"})
    _TOOL_USE_REASON = "tool_use"

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
            "max_tokens": MAX_TOKENS,
            "system": system,
            "tools": [
                {"name": t.name, "description": t.description, "input_schema": t.input_schema}
                for t in tools
            ],
            "messages": history,
            "stream": True,
        }
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

        text = ""
        # Each entry: [id, name, accumulated partial_json]
        pending: list[list[str]] = []
        current: int | None = None
        raw_stop: str | None = None

        async for event in self._stream_events(
            f"{self._base_url}/messages", headers=headers, payload=payload,
        ):
            event_type = event.get("type")
            if event_type == "content_block_start":
                block = as_dict(event.get("content_block"))
                if block.get("type") == "tool_use":
                    pending.append([as_str(block.get("id")), as_str(block.get("name")), ""])
                    current = len(pending) - 1
                else:
                    current = None
            elif event_type == "content_block_delta":
                delta = as_dict(event.get("delta"))
                if delta.get("type") == "text_delta":
                    chunk = as_str(delta.get("text"))
                    if chunk:
                        text += chunk
                        on_text(chunk)
                elif delta.get("type") == "input_json_delta" and current is not None:
                    pending[current][2] += as_str(delta.get("partial_json"))
            elif event_type == "content_block_stop":
                current = None
            elif event_type == "message_delta":
                stop = as_str(as_dict(event.get("delta")).get("stop_reason"))
                if stop:
                    raw_stop = stop
            elif event_type == "error":
                logger.warning("Anthropic stream error event: %s", event.get("error"))

        calls = [
            ToolCall(id=call_id, name=name, input=parse_tool_args(args))
            for call_id, name, args in pending
        ]
        result = TurnResult.build(self._map_stop_reason(raw_stop), text, calls)

        content: list[dict[str, Any]] = []
        if text:
            content.append({"type": "text", "text": text})
        for call in calls:
            content.append(
                {"type": "tool_use", "id": call.id, "name": call.name, "input": call.input}
            )
        return result, {"role": "assistant", "content": content}

    def make_user_message(self, text: str) -> Message:
        return {"role": "user", "content": text}

    def make_tool_results(self, results: list[ToolResult]) -> list[Message]:
        blocks: list[dict[str, Any]] = []
        for r in results:
            inner: list[dict[str, Any]] = [{"type": "text", "text": r.text}]
            if r.image_b64:
                inner.append(
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": "image/jpeg",
                            "data": r.image_b64,
                        },
                    }
                )
            blocks.append({"type": "tool_result", "tool_use_id": r.call_id, "content": inner})
        return [{"role": "user", "content": blocks}]
