"""Backend selection for familiar."""

from __future__ import annotations

import logging

import httpx

from familiar.providers.anthropic import AnthropicProvider
from familiar.providers.base import BaseProvider
from familiar.providers.gemini import GeminiProvider
from familiar.providers.kimi import KimiProvider
from familiar.providers.openai import OpenAIProvider
from familiar.types.config import DEFAULT_PLATFORM, Config

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[BaseProvider]] = {
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "kimi": KimiProvider,
}

DEFAULT_MODELS: dict[str, str] = {
    "kimi": "kimi-k2.5",
    "anthropic": "claude-haiku-4-5-20251001",
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
}


def resolve_platform(platform: str) -> str:
    """Normalize a platform name; anything unrecognized means the default."""
    key = platform.strip().lower()
    return key if key in PROVIDERS else DEFAULT_PLATFORM


def default_model(platform: str) -> str:
    """Return the model used when the config leaves ``model`` empty."""
    return DEFAULT_MODELS[resolve_platform(platform)]


def create_backend(config: Config, client: httpx.AsyncClient | None = None) -> BaseProvider:
    """Instantiate the backend adapter selected by *config*.

    Parameters
    ----------
    config:
        Runtime configuration; ``platform``, ``api_key`` and ``model`` are used.
    client:
        Optional shared HTTP client passed through to the adapter.

    Returns
    -------
    BaseProvider
        A ready-to-use adapter. Unknown platforms fall back to Kimi.
    """
    platform = resolve_platform(config.platform)
    if platform != config.platform:
        logger.debug("Unknown platform %r, using %s", config.platform, platform)
    provider_cls = PROVIDERS[platform]
    return provider_cls(config.api_key, config.effective_model(), client=client)
