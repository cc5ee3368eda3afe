"""Microphone capture into a temporary WAV file.

A reader thread pulls chunks from a PyAudio input stream, appends them to the
WAV file and reports an input level in [0, 1] for each chunk.
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path
import tempfile
import threading
from typing import Callable
import uuid
import wave

import numpy as np

from .platform_utils import IS_LINUX, IS_WINDOWS

logger = logging.getLogger(__name__)


# Suppress audio system warnings (ALSA on Linux, etc.)
@contextlib.contextmanager
def suppress_stderr():
    """Suppress stderr to hide audio system warnings."""
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        old_stderr = os.dup(2)
    except OSError:
        yield
        return
    try:
        os.dup2(devnull, 2)
        yield
    finally:
        os.dup2(old_stderr, 2)
        os.close(devnull)
        os.close(old_stderr)


with suppress_stderr():
    import pyaudio


def rms_level(data: bytes) -> float:
    """Map a chunk of int16 PCM to a 0..1 level (-50 dB .. 0 dB)."""
    if not data:
        return 0.0
    samples = np.frombuffer(data, dtype=np.int16).astype(np.float32) / 32768.0
    rms = float(np.sqrt(np.mean(samples * samples)))
    db = 20 * np.log10(max(rms, 1e-6))
    return float(min(max((db + 50) / 50, 0.0), 1.0))


def select_input_device(devices: list[dict]) -> dict | None:
    """Pick the best input device from PyAudio device descriptions."""
    if not devices:
        return None

    selected = None
    if IS_LINUX:
        # PulseAudio/PipeWire handles resampling for us
        selected = next((d for d in devices if d["name"].lower() == "pulse"), None)
    elif IS_WINDOWS:
        selected = next((d for d in devices if "microphone" in d["name"].lower()), None)

    if not selected:
        selected = next((d for d in devices if d["is_default"]), None)
    return selected or devices[0]


class AudioCapture:
    """CaptureCoordinator backed by PyAudio."""

    def __init__(self, sample_rate: int = 16000, chunk_size: int = 1024, temp_dir: Path | None = None):
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.temp_dir = Path(temp_dir or tempfile.gettempdir())
        self._audio = None
        self._stream = None
        self._wav = None
        self._thread: threading.Thread | None = None
        self._recording = threading.Event()
        self._last_artifact: Path | None = None

    def _pyaudio(self):
        if self._audio is None:
            with suppress_stderr():
                self._audio = pyaudio.PyAudio()
        return self._audio

    def list_input_devices(self) -> list[dict]:
        audio = self._pyaudio()
        try:
            default_idx = audio.get_default_input_device_info()["index"]
        except (IOError, OSError):
            default_idx = None

        devices = []
        for i in range(audio.get_device_count()):
            try:
                info = audio.get_device_info_by_index(i)
            except (IOError, OSError):
                continue
            if info["maxInputChannels"] > 0:
                devices.append(
                    {
                        "index": i,
                        "name": info["name"],
                        "rate": int(info["defaultSampleRate"]),
                        "is_default": i == default_idx,
                    }
                )
        return devices

    def _resolve_device(self, device: str | None) -> int | None:
        if device and device != "auto":
            try:
                return int(device)
            except ValueError:
                logger.warning("MIC_DEVICE %r is not a device index, auto-detecting", device)
        selected = select_input_device(self.list_input_devices())
        if selected is None:
            return None
        logger.info("Mic: %s", selected["name"])
        return selected["index"]

    def start(self, device: str | None, on_level: Callable[[float], None]) -> bool:
        self.cleanup()
        path = self.temp_dir / f"voicetype_recording_{uuid.uuid4().hex}.wav"

        # WAV first: nothing to release if the file can't be created
        try:
            wav = wave.open(str(path), "wb")
        except OSError as e:
            logger.error("Could not create recording file %s: %s", path, e)
            return False
        wav.setnchannels(1)
        wav.setsampwidth(2)  # 16-bit
        wav.setframerate(self.sample_rate)

        try:
            audio = self._pyaudio()
            with suppress_stderr():
                stream = audio.open(
                    format=pyaudio.paInt16,
                    channels=1,
                    rate=self.sample_rate,
                    input=True,
                    input_device_index=self._resolve_device(device),
                    frames_per_buffer=self.chunk_size,
                )
        except (IOError, OSError) as e:
            logger.error("Could not open microphone: %s", e)
            wav.close()
            path.unlink(missing_ok=True)
            return False

        self._stream = stream
        self._wav = wav
        self._last_artifact = path
        self._recording.set()
        self._thread = threading.Thread(
            target=self._read_loop, args=(stream, wav, on_level), name="AudioCapture", daemon=True
        )
        self._thread.start()
        return True

    def _read_loop(self, stream, wav, on_level) -> None:
        while self._recording.is_set():
            try:
                data = stream.read(self.chunk_size, exception_on_overflow=False)
            except (IOError, OSError) as e:
                logger.warning("Audio read error: %s", e)
                break
            wav.writeframes(data)
            on_level(rms_level(data))

    def stop(self) -> None:
        if not self._recording.is_set():
            return
        self._recording.clear()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        if self._wav is not None:
            self._wav.close()
            self._wav = None

    def last_artifact(self) -> Path | None:
        return self._last_artifact

    def cleanup(self, artifact: Path | None = None) -> None:
        target = artifact or self._last_artifact
        if target is None:
            return
        try:
            Path(target).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete recording %s: %s", target, e)
        if target == self._last_artifact:
            self._last_artifact = None

    def terminate(self) -> None:
        self.stop()
        self.cleanup()
        if self._audio is not None:
            self._audio.terminate()
            self._audio = None
