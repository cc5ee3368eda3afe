"""Core configuration model (structured view)."""

from __future__ import annotations

from dataclasses import dataclass

from .models import OutputMode


@dataclass(frozen=True)
class AppConfig:
    """Settings a session reads; snapshotted when recording stops."""

    output_mode: OutputMode = OutputMode.PROCESSED
    input_language: str = "zh"
    ui_language: str = "zh"
    style_prompt: str = ""
    use_screen_context: bool = True
    use_history_context: bool = False
    speech_model: str = ""
    microphone: str | None = None
    display_delay: float = 1.5
    notifications_enabled: bool = True
    debug: bool = False

    @property
    def rewrites(self) -> bool:
        return self.output_mode is OutputMode.PROCESSED
