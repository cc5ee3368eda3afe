"""Configuration for VoiceType"""

import os
from pathlib import Path

from dotenv import load_dotenv

from .platform_utils import default_data_dir

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


class Config:
    """Settings read from the environment (and .env)"""

    # Paths
    DATA_DIR = Path(os.getenv("DATA_DIR", "") or default_data_dir())
    MODELS_DIR = DATA_DIR / "models"

    # Hotkey: "ctrl", "shift", "alt", "alt_r", "cmd" or "fn"
    HOTKEY = os.getenv("HOTKEY", "alt_r").lower()
    # "long_press", "double_tap" or "toggle"
    ACTIVATION_MODE = os.getenv("ACTIVATION_MODE", "long_press").lower()
    TAP_INTERVAL = _env_float("TAP_INTERVAL", 0.4)

    # Speech: "whisper" (local, faster-whisper) or "elevenlabs"
    SPEECH_ENGINE = os.getenv("SPEECH_ENGINE", "whisper").lower()
    WHISPER_MODEL = os.getenv("WHISPER_MODEL", "large-v3-turbo")
    WHISPER_DEVICE = "cuda" if _env_bool("USE_CUDA", "false") else "cpu"
    WHISPER_COMPUTE_TYPE = os.getenv("WHISPER_COMPUTE_TYPE", "int8")
    STT_TIMEOUT = _env_float("STT_TIMEOUT", 120.0)
    ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY", "")
    ELEVENLABS_MODEL = os.getenv("ELEVENLABS_MODEL", "scribe_v1")

    # Generation: "local" (transformers) or "remote" (HTTP provider)
    LLM_BACKEND = os.getenv("LLM_BACKEND", "local").lower()
    LLM_MODEL = os.getenv("LLM_MODEL", "Qwen/Qwen3-0.6B")
    REMOTE_PROVIDER = os.getenv("REMOTE_PROVIDER", "custom").lower()
    REMOTE_BASE_URL = os.getenv("REMOTE_BASE_URL", "")
    REMOTE_API_KEY = os.getenv("REMOTE_API_KEY", "")
    REMOTE_MODEL = os.getenv("REMOTE_MODEL", "")
    LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "2048"))

    # Output: "direct" (verbatim) or "processed" (rewritten)
    OUTPUT_MODE = os.getenv("OUTPUT_MODE", "processed").lower()
    # "concise", "formal" or "casual"
    LANGUAGE_STYLE = os.getenv("LANGUAGE_STYLE", "concise").lower()
    CUSTOM_STYLE_PROMPT = os.getenv("CUSTOM_STYLE_PROMPT", "")
    # Spoken language: "zh" or "en"
    INPUT_LANGUAGE = os.getenv("INPUT_LANGUAGE", "zh").lower()
    UI_LANGUAGE = os.getenv("UI_LANGUAGE", "zh").lower()
    USE_SCREEN_CONTEXT = _env_bool("USE_SCREEN_CONTEXT", "true")
    USE_HISTORY_CONTEXT = _env_bool("USE_HISTORY_CONTEXT", "false")

    # Audio
    SAMPLE_RATE = 16000
    CHUNK_SIZE = 1024
    # Set to device index number to force specific mic, or "auto"
    MIC_DEVICE = os.getenv("MIC_DEVICE", "auto")

    # Seconds the done/error state stays visible before returning to idle
    DISPLAY_DELAY = _env_float("DISPLAY_DELAY", 1.5)

    NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", "true")
    DEBUG = _env_bool("DEBUG", "false")

    @classmethod
    def create_dirs(cls):
        cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
        cls.MODELS_DIR.mkdir(exist_ok=True)


config = Config()
