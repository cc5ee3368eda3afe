"""VoiceType - hotkey-driven voice typing with optional LLM rewriting"""

__version__ = "0.1.0"
__description__ = "Hotkey-driven voice typing with optional LLM rewriting"

__all__ = ["main", "VoiceType", "__version__"]


def __getattr__(name: str):
    """Lazy import to avoid triggering pynput/PyAudio initialization on package import.

    This allows importing voicetype.core or voicetype.text_processor without
    an X display or audio devices, which is needed for CI/headless environments.
    """
    if name == "VoiceType":
        from .main import VoiceType

        return VoiceType
    if name == "main":
        from .main import main

        return main
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
