"""LLM Provider Factory for VoiceType.

Usage:
    provider = get_llm_provider()          # LLM_BACKEND from config
    remote = get_llm_provider("remote")
"""

from __future__ import annotations

import logging

from .config import config
from .llm_provider import LLMProvider, NullLLMProvider

logger = logging.getLogger(__name__)

_providers: dict[str, LLMProvider] = {}


def _create_local_provider() -> LLMProvider:
    from .llm_local import LocalLLMProvider

    device = "cuda" if config.WHISPER_DEVICE == "cuda" else "cpu"
    return LocalLLMProvider(config.LLM_MODEL, models_dir=config.MODELS_DIR, device=device)


def _create_remote_provider() -> LLMProvider:
    from .llm_remote import RemoteLLMProvider, RemoteProvider

    return RemoteLLMProvider(
        provider=RemoteProvider.parse(config.REMOTE_PROVIDER),
        api_key=config.REMOTE_API_KEY,
        base_url=config.REMOTE_BASE_URL,
        model=config.REMOTE_MODEL,
    )


_CREATORS = {
    "local": _create_local_provider,
    "remote": _create_remote_provider,
}


def get_llm_provider(name: str | None = None) -> LLMProvider:
    """Backend by name ("local" or "remote"), NullLLMProvider if unusable."""
    if name is None:
        name = config.LLM_BACKEND

    if name in _providers:
        return _providers[name]

    creator = _CREATORS.get(name)
    if creator is None:
        logger.warning("Unknown LLM backend %r", name)
        provider: LLMProvider = NullLLMProvider()
    else:
        provider = creator()
        if not provider.is_available():
            logger.warning("LLM backend %s is not available (missing key or library)", name)
            provider = NullLLMProvider()

    _providers[name] = provider
    return provider


def clear_llm_provider_cache():
    global _providers
    _providers = {}
