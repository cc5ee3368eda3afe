"""Core ports (interfaces) for VoiceType.

These protocols define the boundaries between the session orchestrator
and platform/vendor-specific adapters. They are intentionally small and
capability-oriented to keep the core decoupled.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Protocol, runtime_checkable

from .models import InsertResult

# (stage name, fraction of that stage in [0, 1])
ProgressCallback = Callable[[str, float], None]
LevelCallback = Callable[[float], None]


@runtime_checkable
class TranscriptionEngine(Protocol):
    """Speech-to-text over a finished recording."""

    def is_ready(self) -> bool:
        """True when transcribe() can be called without loading a model."""

    async def transcribe(self, audio: Path | None, language: str | None) -> str:
        """Return the transcript; raise on failure."""


@runtime_checkable
class ModelLoader(Protocol):
    """Brings a model to the ready state, reporting staged progress."""

    def load(self, model_id: str, on_progress: ProgressCallback) -> None:
        """Blocking load; raises DownloadFailed, CompileFailed or LoadFailed."""

    def unload(self) -> None:
        """Release the in-memory model; the cached files stay on disk."""


@runtime_checkable
class GenerationEngine(Protocol):
    """Text-to-text rewriting, local or remote."""

    async def generate(self, prompt: str, system_prompt: str | None, max_tokens: int) -> str:
        """Return generated text; raise on failure."""


@runtime_checkable
class CaptureCoordinator(Protocol):
    """Microphone capture into a temporary artifact."""

    def start(self, device: str | None, on_level: LevelCallback) -> bool:
        """Begin capture; False when the device cannot be opened."""

    def stop(self) -> None:
        """Stop capture and finalize the artifact."""

    def last_artifact(self) -> Path | None:
        """Artifact of the most recent recording, if any."""

    def cleanup(self, artifact: Path | None = None) -> None:
        """Delete the given artifact (default: the most recent one)."""


@runtime_checkable
class ScreenContextCapture(Protocol):
    """Screen OCR used only as disambiguation input for generation."""

    def has_permission(self) -> bool:
        """True when the screen may be captured."""

    def capture_and_recognize(self, max_length: int = 2000) -> str:
        """Recognized text, or "" on any failure. Never raises."""


@runtime_checkable
class InsertionSink(Protocol):
    """Delivers final text to the focused application."""

    def active_target(self) -> Any:
        """Handle of the window that should receive the text."""

    async def insert(self, text: str, target: Any = None) -> InsertResult:
        """Insert text; report a best-effort result."""

    def copy_to_clipboard(self, text: str) -> None:
        """Place text on the clipboard for manual pasting."""


@runtime_checkable
class HistoryStore(Protocol):
    """Persisted record of inserted text."""

    def add_record(self, raw_text: str, processed_text: str, was_processed: bool) -> None:
        """Store one session result; must not block for long."""

    def recent_context(self, limit: int = 5, window_minutes: int = 30) -> str:
        """Recent inputs formatted for a prompt, or ""."""


@runtime_checkable
class UIFeedback(Protocol):
    """User-visible notifications."""

    def notify(self, title: str, message: str) -> None:
        """Display a notification."""
