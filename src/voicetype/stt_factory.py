"""STT Provider Factory for VoiceType.

Usage:
    # Configured engine, falling back to the other one if unavailable
    provider = get_stt_provider_with_fallback()

    # Specific engine
    whisper = get_stt_provider("whisper")

    # What can run on this machine
    available = get_available_stt_providers()  # ["whisper", "elevenlabs"]
"""

from __future__ import annotations

import logging

from .config import config
from .stt_provider import NullSTTProvider, STTProvider, STTProviderConfig

logger = logging.getLogger(__name__)

# Cached provider instances (singleton pattern)
_providers: dict[str, STTProvider] = {}


def _create_whisper_provider() -> STTProvider | None:
    from .stt_whisper import HAS_WHISPER, WhisperSTTProvider

    if not HAS_WHISPER:
        return None

    provider_config = STTProviderConfig(
        model=config.WHISPER_MODEL,
        timeout=config.STT_TIMEOUT,
        language=config.INPUT_LANGUAGE,
        sample_rate=config.SAMPLE_RATE,
        extra={"device": config.WHISPER_DEVICE, "compute_type": config.WHISPER_COMPUTE_TYPE},
    )
    return WhisperSTTProvider(provider_config, models_dir=config.MODELS_DIR)


def _create_elevenlabs_provider() -> STTProvider | None:
    if not config.ELEVENLABS_API_KEY:
        return None

    from .stt_elevenlabs import ElevenLabsSTTProvider

    provider_config = STTProviderConfig(
        api_key=config.ELEVENLABS_API_KEY,
        model=config.ELEVENLABS_MODEL,
        timeout=config.STT_TIMEOUT,
        language=config.INPUT_LANGUAGE,
        sample_rate=config.SAMPLE_RATE,
    )
    return ElevenLabsSTTProvider(provider_config)


_CREATORS = {
    "whisper": _create_whisper_provider,
    "elevenlabs": _create_elevenlabs_provider,
}


def get_stt_provider(name: str | None = None) -> STTProvider:
    """Get STT provider by name or use the configured SPEECH_ENGINE.

    Returns:
        STTProvider instance (NullSTTProvider if unavailable)
    """
    if name is None:
        name = config.SPEECH_ENGINE

    if name in _providers:
        return _providers[name]

    creator = _CREATORS.get(name)
    if creator is None:
        logger.warning("Unknown speech engine %r", name)
    provider = creator() if creator else None

    if provider is None or not provider.is_available():
        provider = NullSTTProvider()

    _providers[name] = provider
    return provider


def get_stt_provider_with_fallback() -> STTProvider:
    """Get the configured provider, or the other one if it is unavailable."""
    primary = config.SPEECH_ENGINE
    order = [primary] + [name for name in _CREATORS if name != primary]

    for provider_name in order:
        provider = get_stt_provider(provider_name)
        if provider.is_available():
            if provider_name != primary:
                logger.warning("Speech engine %s unavailable, using %s", primary, provider_name)
            return provider

    return NullSTTProvider()


def get_available_stt_providers() -> list[str]:
    """Names of the providers that are configured and installed."""
    return [name for name in _CREATORS if get_stt_provider(name).is_available()]


def clear_stt_provider_cache():
    """Clear cached provider instances (tests, config changes)."""
    global _providers
    _providers = {}
