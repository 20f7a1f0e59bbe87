"""Backend adapters for familiar.

Public surface
--------------
- :class:`BaseProvider`     : abstract base with the shared SSE transport
- :class:`AnthropicProvider`: Anthropic Messages API
- :class:`GeminiProvider`   : Gemini native API
- :class:`OpenAIProvider`   : OpenAI chat completions
- :class:`KimiProvider`     : Moonshot Kimi, the default platform
- :func:`create_backend`    : factory that returns the right adapter
"""

from __future__ import annotations

from familiar.providers.anthropic import AnthropicProvider
from familiar.providers.base import BaseProvider
from familiar.providers.gemini import GeminiProvider
from familiar.providers.kimi import KimiProvider
from familiar.providers.openai import OpenAIProvider
from familiar.providers.registry import DEFAULT_MODELS, create_backend, default_model

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "DEFAULT_MODELS",
    "GeminiProvider",
    "KimiProvider",
    "OpenAIProvider",
    "create_backend",
    "default_model",
]
