"""Speech engine adapter: STTProvider -> TranscriptionEngine port."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from ..errors import NoAudioFile
from ..stt_provider import STTProvider, filter_noise

logger = logging.getLogger(__name__)


class TranscriptionAdapter:
    def __init__(self, provider: STTProvider):
        self._provider = provider

    @property
    def provider(self) -> STTProvider:
        return self._provider

    def is_ready(self) -> bool:
        return self._provider.is_ready()

    async def transcribe(self, audio: Path | None, language: str | None) -> str:
        if audio is None:
            raise NoAudioFile("no recording")
        result = await asyncio.to_thread(self._provider.transcribe, audio, language)
        if result is None:
            return ""
        if result.is_partial:
            logger.info("Using partial transcript from %s", self._provider.name)
        return filter_noise(result.text)
