"""Base provider with the shared SSE transport and stop-reason mapping."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import httpx

from familiar.errors import TransportError
from familiar.types.providers import Message, StopReason, TextCallback, ToolResult, TurnResult
from familiar.types.tools import ToolDef

logger = logging.getLogger(__name__)

MAX_TOKENS: int = 4096

# Generous read timeout: a streamed turn can sit idle while the model thinks.
_TIMEOUT = httpx.Timeout(connect=15.0, read=120.0, write=30.0, pool=15.0)

_DATA_PREFIX = "data: "
_DONE = object()


def parse_sse_line(line: str) -> Any:
    """Decode one server-sent-events line.

    Returns the decoded JSON payload, the ``_DONE`` sentinel for
    ``data: [DONE]``, or ``None`` for anything that should be skipped
    (comments, ``event:`` lines, blank keep-alives, malformed JSON, and
    payloads that are not JSON objects).
    """
    if not line.startswith(_DATA_PREFIX):
        return None
    payload = line[len(_DATA_PREFIX):].strip()
    if payload == "[DONE]":
        return _DONE
    try:
        value = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE payload: %.200s", payload)
        return None
    if not isinstance(value, dict):
        logger.debug("Skipping non-object SSE payload: %.200s", payload)
        return None
    return value


def as_dict(value: Any) -> dict[str, Any]:
    """*value* when it is a JSON object, else an empty one."""
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def parse_tool_args(raw: str) -> dict[str, Any]:
    """Parse accumulated tool-call JSON, falling back to an empty object."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool arguments were not valid JSON, using {}: %.200s", raw)
        return {}
    return value if isinstance(value, dict) else {}


class BaseProvider(ABC):
    """Abstract base class for all backend adapters.

    Concrete sub-classes implement :meth:`stream_turn`,
    :meth:`make_user_message` and :meth:`make_tool_results`; the HTTP
    streaming, error translation and SSE decoding live here.

    Parameters
    ----------
    api_key:
        Credential sent to the provider.
    model:
        The model identifier string (e.g. ``"kimi-k2.5"``).
    base_url:
        Override for the provider's API root (proxies, tests).
    client:
        Optional shared :class:`httpx.AsyncClient`. When omitted a client is
        created and closed around every request.
    """

    name: str = ""
    display_name: str = ""
    default_base_url: str = ""

    # Raw stop reasons that are known to mean "the model is done talking".
    _END_TURN_REASONS: frozenset[str] = frozenset()
    _TOOL_USE_REASON: str = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._client = client

    @property
    def model_id(self) -> str:
        """The model identifier being used by this provider instance."""
        return self._model

    # ------------------------------------------------------------------
    # Abstract interface, implemented by sub-classes
    # ------------------------------------------------------------------

    @abstractmethod
    async def stream_turn(
        self,
        system: str,
        history: list[Message],
        tools: list[ToolDef],
        on_text: TextCallback,
    ) -> tuple[TurnResult, Message]:
        """Run one streamed model round.

        Parameters
        ----------
        system:
            System prompt, sent in whatever slot the provider reserves for it.
        history:
            Conversation records in this provider's own shape.
        tools:
            Tool definitions the model may call.
        on_text:
            Called with each text delta as soon as it is decoded.

        Returns
        -------
        tuple[TurnResult, Message]
            The normalized result and the raw assistant record for history.

        Raises
        ------
        TransportError
            On a non-2xx status or any network failure.
        """
        ...

    @abstractmethod
    def make_user_message(self, text: str) -> Message:
        ...

    @abstractmethod
    def make_tool_results(self, results: list[ToolResult]) -> list[Message]:
        ...

    # ------------------------------------------------------------------
    # Protected helpers for sub-classes
    # ------------------------------------------------------------------

    async def _stream_events(
        self,
        url: str,
        *,
        headers: dict[str, str],
        payload: dict[str, Any],
        params: dict[str, str] | None = None,
    ) -> AsyncIterator[Any]:
        """POST *payload* and yield each decoded ``data:`` event.

        Iteration stops at ``data: [DONE]`` or when the server closes the
        stream. Non-2xx responses and ``httpx`` failures are re-raised as
        :class:`TransportError`.
        """
        client = self._client or httpx.AsyncClient(timeout=_TIMEOUT)
        try:
            async with client.stream(
                "POST", url, headers=headers, json=payload, params=params,
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.warning(
                        "%s returned HTTP %d", self.display_name, response.status_code,
                    )
                    raise TransportError(
                        f"{self.display_name} API error {response.status_code}: {body}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    event = parse_sse_line(line)
                    if event is _DONE:
                        return
                    if event is not None:
                        yield event
        except httpx.HTTPError as exc:
            logger.warning("%s request failed: %s", self.display_name, exc)
            raise TransportError(f"{self.display_name} request failed: {exc}") from exc
        finally:
            if self._client is None:
                await client.aclose()

    def _map_stop_reason(self, raw: str | None) -> StopReason:
        """Translate a provider stop reason; unknown values end the turn."""
        if raw == self._TOOL_USE_REASON:
            return StopReason.TOOL_USE
        if raw is not None and raw not in self._END_TURN_REASONS:
            logger.warning(
                "%s returned unrecognized stop reason %r; treating as end of turn",
                self.display_name,
                raw,
            )
        return StopReason.END_TURN
