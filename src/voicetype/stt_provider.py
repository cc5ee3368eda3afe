"""STT Provider Abstraction for VoiceType - multi-engine speech-to-text support.

This module provides a clean abstraction layer for the speech engines,
enabling switching between a local model and a cloud service.

Supported providers:
- Whisper: local faster-whisper model (default, works offline)
- ElevenLabs: cloud batch transcription
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path


class STTCapability(Enum):
    """Capabilities that STT providers may support."""

    BATCH = auto()  # Transcribe a finished recording file
    OFFLINE = auto()  # Runs without network access
    LOCAL_MODEL = auto()  # Needs a model download/load before use
    WORD_TIMESTAMPS = auto()  # Per-word timing information


@dataclass
class TranscriptionResult:
    """Result from STT transcription.

    Attributes:
        text: The transcribed text
        language: Detected or specified language code (e.g., "zh", "en")
        is_partial: True when the engine stopped early (timeout) and the text
            covers only the segments finished so far
        raw_response: Provider-specific raw response data for debugging
    """

    text: str
    language: str | None = None
    is_partial: bool = False
    raw_response: dict = field(default_factory=dict)


@dataclass
class STTProviderConfig:
    """Configuration for an STT provider.

    Attributes:
        api_key: API key for cloud providers ("" for local engines)
        model: Model identifier (e.g. "large-v3-turbo", "scribe_v1")
        timeout: Wall-clock limit for one transcription, in seconds
        language: Language code hint (None for auto-detect)
        sample_rate: Audio sample rate in Hz
        extra: Provider-specific options (device, compute type, ...)
    """

    api_key: str = ""
    model: str = ""
    timeout: float = 120.0
    language: str | None = None
    sample_rate: int = 16000
    extra: dict = field(default_factory=dict)


class STTProvider(ABC):
    """Abstract base class for STT providers.

    Providers are synchronous and may block; the transcription adapter runs
    them in a worker thread.

    Usage:
        provider = get_stt_provider("whisper")
        if provider.is_available():
            result = provider.transcribe(Path("recording.wav"), "zh")
            print(result.text)
    """

    def __init__(self, config: STTProviderConfig):
        self.config = config
        self._client = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g., 'Whisper', 'ElevenLabs')."""

    @property
    @abstractmethod
    def capabilities(self) -> set[STTCapability]:
        """Set of capabilities this provider supports."""

    @abstractmethod
    def is_available(self) -> bool:
        """True if the provider is configured and its SDK is installed."""

    def is_ready(self) -> bool:
        """True if transcribe() can run without loading a model first.

        Cloud providers are ready as soon as they are available.
        """
        return self.is_available()

    @abstractmethod
    def transcribe(self, audio_path: Path, language: str | None = None) -> TranscriptionResult | None:
        """Transcribe a WAV file.

        Returns:
            TranscriptionResult, or None when nothing was recognized

        Raises:
            Exception: provider errors propagate to the caller
        """

    def needs_model(self) -> bool:
        return STTCapability.LOCAL_MODEL in self.capabilities


class NullSTTProvider(STTProvider):
    """Null implementation used when no provider can be created.

    Never ready, so sessions fail with "model not ready" instead of
    silently recording into nothing.
    """

    def __init__(self):
        super().__init__(STTProviderConfig())

    @property
    def name(self) -> str:
        return "None"

    @property
    def capabilities(self) -> set[STTCapability]:
        return set()

    def is_available(self) -> bool:
        return False

    def transcribe(self, audio_path: Path, language: str | None = None) -> TranscriptionResult | None:
        return None


# Phrases speech models hallucinate on silence or noise.
NOISE_PHRASES = {
    "thanks for watching",
    "thank you for watching",
    "subscribe",
    "like and subscribe",
    "you",
    "thank you",
    "bye",
    "um",
    "uh",
    "hmm",
    "huh",
    "字幕由amara.org社区提供",
    "请不吝点赞 订阅 转发 打赏支持明镜与点点栏目",
    "谢谢观看",
}


def filter_noise(text: str | None) -> str:
    """Return ``text`` stripped, or "" when it is a known hallucination."""
    if not text:
        return ""
    text = text.strip()
    if text.lower().rstrip(".!。！") in NOISE_PHRASES:
        return ""
    return text
