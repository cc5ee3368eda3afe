"""Exception types shared by engines, adapters and the orchestrator."""

from __future__ import annotations


class VoiceTypeError(Exception):
    """Base class for all VoiceType errors."""


class ModelLoadError(VoiceTypeError):
    """A model could not be made ready.

    ``message_key`` names the user-facing reason in ``voicetype.messages``.
    """

    message_key = "pipeline.load_failed"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class DownloadFailed(ModelLoadError):
    message_key = "pipeline.download_failed"


class CompileFailed(ModelLoadError):
    message_key = "pipeline.compile_failed"


class LoadFailed(ModelLoadError):
    message_key = "pipeline.load_failed"


class ModelNotLoaded(VoiceTypeError):
    """An engine was asked to work before its model was loaded."""


class NoAudioFile(VoiceTypeError):
    """The recording produced no artifact to transcribe."""


class LLMError(VoiceTypeError):
    """Text generation failed."""


class RemoteLLMError(LLMError):
    """A remote provider rejected the request or returned garbage."""
