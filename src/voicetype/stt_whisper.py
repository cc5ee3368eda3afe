"""Local Whisper STT Provider for VoiceType.

Runs faster-whisper (CTranslate2) on the CPU or a CUDA device. The model is
fetched from the Hugging Face hub into MODELS_DIR on first use.

Loading goes through three reported stages:
    downloading -> compiling (building the CTranslate2 model) -> loading
    (a warm-up decode on silence)
"""

from __future__ import annotations

import logging
from pathlib import Path
import threading
import time

import numpy as np

from .errors import CompileFailed, DownloadFailed, LoadFailed, ModelNotLoaded, NoAudioFile
from .stt_provider import (
    STTCapability,
    STTProvider,
    STTProviderConfig,
    TranscriptionResult,
)

try:
    from faster_whisper import WhisperModel
    from faster_whisper.utils import download_model

    HAS_WHISPER = True
except ImportError:
    HAS_WHISPER = False

logger = logging.getLogger(__name__)

# Sizes faster-whisper resolves to CTranslate2 conversions on the hub.
AVAILABLE_MODELS = (
    "tiny",
    "base",
    "small",
    "medium",
    "large-v3",
    "large-v3-turbo",
    "distil-large-v3",
)


class WhisperSTTProvider(STTProvider):
    """faster-whisper provider; also the ModelLoader for its own model.

    Usage:
        provider = WhisperSTTProvider(STTProviderConfig(model="large-v3-turbo"))
        provider.load(provider.config.model, lambda stage, f: None)
        result = provider.transcribe(Path("recording.wav"), "zh")
    """

    def __init__(self, config: STTProviderConfig, models_dir: Path | None = None):
        super().__init__(config)
        self.models_dir = models_dir
        self._model = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "Whisper"

    @property
    def capabilities(self) -> set[STTCapability]:
        return {STTCapability.BATCH, STTCapability.OFFLINE, STTCapability.LOCAL_MODEL}

    def is_available(self) -> bool:
        return HAS_WHISPER

    def is_ready(self) -> bool:
        return self._model is not None

    def is_cached(self, model_id: str | None = None) -> bool:
        """True if the model files are already on disk."""
        if not HAS_WHISPER:
            return False
        try:
            download_model(model_id or self.config.model, output_dir=self._output_dir(model_id), local_files_only=True)
            return True
        except Exception:
            return False

    def _output_dir(self, model_id: str | None) -> str | None:
        if self.models_dir is None:
            return None
        safe = (model_id or self.config.model).replace("/", "--")
        return str(self.models_dir / f"whisper-{safe}")

    # -- ModelLoader ---------------------------------------------------------

    def load(self, model_id: str, on_progress) -> None:
        if not HAS_WHISPER:
            raise LoadFailed("faster-whisper is not installed")

        with self._lock:
            on_progress("downloading", 0.0)
            try:
                path = download_model(model_id, output_dir=self._output_dir(model_id))
            except Exception as e:
                raise DownloadFailed(str(e)) from e
            on_progress("downloading", 1.0)

            on_progress("compiling", 0.0)
            device = self.config.extra.get("device", "cpu")
            compute_type = self.config.extra.get("compute_type", "int8")
            try:
                model = WhisperModel(path, device=device, compute_type=compute_type)
            except Exception as e:
                raise CompileFailed(str(e)) from e
            on_progress("compiling", 1.0)

            on_progress("loading", 0.0)
            try:
                silence = np.zeros(self.config.sample_rate // 2, dtype=np.float32)
                segments, _ = model.transcribe(silence, beam_size=1, without_timestamps=True)
                for _ in segments:
                    pass
            except Exception as e:
                raise LoadFailed(str(e)) from e
            on_progress("loading", 1.0)

            self._model = model
            logger.info("Whisper model %s loaded (%s, %s)", model_id, device, compute_type)

    def unload(self) -> None:
        with self._lock:
            self._model = None

    # -- transcription -------------------------------------------------------

    def transcribe(self, audio_path: Path, language: str | None = None) -> TranscriptionResult | None:
        model = self._model
        if model is None:
            raise ModelNotLoaded(self.config.model)
        if audio_path is None or not Path(audio_path).exists():
            raise NoAudioFile(str(audio_path))

        language = language or self.config.language
        started = time.monotonic()
        deadline = started + self.config.timeout

        parts: list[str] = []
        outcome: dict = {"info": None, "error": None}

        def decode():
            # VAD, language detection and decoding all happen in here; segments
            # decode lazily while iterating.
            try:
                segments, info = model.transcribe(
                    str(audio_path),
                    language=language if language and language != "auto" else None,
                    beam_size=5,
                    vad_filter=True,
                    without_timestamps=True,
                )
                outcome["info"] = info
                for segment in segments:
                    if segment.text and segment.text.strip():
                        parts.append(segment.text.strip())
            except Exception as e:
                outcome["error"] = e

        # A hung decoder is abandoned at the deadline; the worker is a daemon
        # and its late segments are ignored.
        worker = threading.Thread(target=decode, name="WhisperDecode", daemon=True)
        worker.start()
        worker.join(max(deadline - time.monotonic(), 0))

        partial = worker.is_alive()
        if partial:
            logger.warning("Transcription hit the %.0fs limit, returning partial text", self.config.timeout)
        elif outcome["error"] is not None:
            raise outcome["error"]

        info = outcome["info"]
        text = " ".join(list(parts)).strip()
        logger.info("Transcribed %d chars in %.1fs", len(text), time.monotonic() - started)
        if not text:
            return None
        return TranscriptionResult(
            text=text,
            language=getattr(info, "language", language),
            is_partial=partial,
            raw_response={"provider": "whisper", "model": self.config.model},
        )
