"""ElevenLabs STT Provider for VoiceType.

Uses the ElevenLabs Scribe model for cloud batch transcription. Useful on
machines that cannot run a local Whisper model.

SDK: https://github.com/elevenlabs/elevenlabs-python
"""

from __future__ import annotations

from pathlib import Path

from .errors import NoAudioFile
from .stt_provider import (
    STTCapability,
    STTProvider,
    TranscriptionResult,
)


class ElevenLabsSTTProvider(STTProvider):
    """ElevenLabs Speech-to-Text provider.

    Usage:
        config = STTProviderConfig(api_key="...", model="scribe_v1", timeout=120.0)
        provider = ElevenLabsSTTProvider(config)
        result = provider.transcribe(Path("recording.wav"), "zh")
    """

    @property
    def name(self) -> str:
        return "ElevenLabs"

    @property
    def capabilities(self) -> set[STTCapability]:
        return {STTCapability.BATCH, STTCapability.WORD_TIMESTAMPS}

    def is_available(self) -> bool:
        """True if the API key is set and the SDK is installed."""
        if not self.config.api_key:
            return False
        try:
            from elevenlabs.client import ElevenLabs  # noqa: F401

            return True
        except ImportError:
            return False

    def _get_client(self):
        if self._client is None:
            from elevenlabs.client import ElevenLabs

            self._client = ElevenLabs(
                api_key=self.config.api_key,
                timeout=self.config.timeout,
            )
        return self._client

    def transcribe(self, audio_path: Path, language: str | None = None) -> TranscriptionResult | None:
        if audio_path is None or not Path(audio_path).exists():
            raise NoAudioFile(str(audio_path))

        client = self._get_client()
        model_id = self.config.model or "scribe_v1"
        params = {"model_id": model_id}
        language = language or self.config.language
        if language and language != "auto":
            params["language_code"] = language

        with open(audio_path, "rb") as audio_file:
            transcription = client.speech_to_text.convert(file=audio_file, **params)

        text = transcription.text if hasattr(transcription, "text") else str(transcription)
        if not text:
            return None

        return TranscriptionResult(
            text=text,
            language=getattr(transcription, "language_code", None),
            raw_response={"provider": "elevenlabs", "model": model_id},
        )
