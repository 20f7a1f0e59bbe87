"""Kimi (Moonshot AI) adapter.

Moonshot exposes an OpenAI-compatible chat completions endpoint at
``https://api.moonshot.ai/v1``. This adapter wraps :class:`OpenAIProvider`
with Moonshot's defaults; message shapes are identical.
"""

from __future__ import annotations

import httpx

from familiar.providers.openai import OpenAIProvider

DEFAULT_MODEL = "kimi-k2.5"


class KimiProvider(OpenAIProvider):
    """Provider adapter for Kimi models, the default platform."""

    name = "kimi"
    display_name = "Kimi"
    default_base_url = "https://api.moonshot.ai/v1"
    max_tokens_field = "max_tokens"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key, model, base_url=base_url, client=client)
