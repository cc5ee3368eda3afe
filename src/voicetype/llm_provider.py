"""LLM Provider Abstraction for VoiceType.

Two backends rewrite transcripts:
- Local: a small instruction model run with transformers
- Remote: any OpenAI- or Anthropic-compatible HTTP endpoint

Providers are synchronous; the generation adapter runs them in a worker
thread. Every failure is raised so the text pipeline can fall back to the
deterministic cleanup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """Abstract base class for generation backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name."""

    @abstractmethod
    def is_available(self) -> bool:
        """True if the backend is configured and its libraries are installed."""

    def is_ready(self) -> bool:
        """True if generate() can run without loading a model first."""
        return self.is_available()

    def needs_model(self) -> bool:
        """True if the backend must load a model (and acts as its ModelLoader)."""
        return False

    @abstractmethod
    def generate(self, prompt: str, system_prompt: str | None = None, max_tokens: int = 2048) -> str:
        """Return the generated text; raise LLMError (or a library error) on failure."""


class NullLLMProvider(LLMProvider):
    """Backend used when none is configured; always fails over to cleanup."""

    @property
    def name(self) -> str:
        return "None"

    def is_available(self) -> bool:
        return False

    def generate(self, prompt: str, system_prompt: str | None = None, max_tokens: int = 2048) -> str:
        from .errors import LLMError

        raise LLMError("no generation backend configured")
