"""Plain data types passed between the orchestrator and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OutputMode(str, Enum):
    DIRECT = "direct"  # verbatim: deterministic cleanup only
    PROCESSED = "processed"  # rewritten by a generation engine


@dataclass
class Session:
    """One activation-to-insertion attempt."""

    id: int = 0
    raw_transcript: str = ""
    processed_text: str = ""
    audio_level: float = 0.0
    screen_context: str | None = None


@dataclass(frozen=True)
class InsertResult:
    """Best-effort outcome reported by an insertion sink."""

    success: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> "InsertResult":
        return cls(success=True)

    @classmethod
    def probably_failed(cls, reason: str) -> "InsertResult":
        return cls(success=False, reason=reason)
