"""Env configuration adapter producing a structured AppConfig."""

from __future__ import annotations

import logging

from ..config import config as env_config
from ..core.config_model import AppConfig
from ..core.models import OutputMode
from ..prompt_builder import style_prompt_for

logger = logging.getLogger(__name__)


def _output_mode(value: str) -> OutputMode:
    try:
        return OutputMode(value)
    except ValueError:
        logger.warning("Unknown OUTPUT_MODE %r, using processed", value)
        return OutputMode.PROCESSED


def _language(value: str, name: str) -> str:
    if value in ("zh", "en"):
        return value
    logger.warning("Unsupported %s %r, using zh", name, value)
    return "zh"


def load_app_config(source=env_config) -> AppConfig:
    input_language = _language(source.INPUT_LANGUAGE, "INPUT_LANGUAGE")
    speech_model = source.WHISPER_MODEL if source.SPEECH_ENGINE == "whisper" else source.ELEVENLABS_MODEL
    return AppConfig(
        output_mode=_output_mode(source.OUTPUT_MODE),
        input_language=input_language,
        ui_language=_language(source.UI_LANGUAGE, "UI_LANGUAGE"),
        style_prompt=style_prompt_for(source.LANGUAGE_STYLE, input_language, source.CUSTOM_STYLE_PROMPT),
        use_screen_context=source.USE_SCREEN_CONTEXT,
        use_history_context=source.USE_HISTORY_CONTEXT,
        speech_model=speech_model,
        microphone=None if source.MIC_DEVICE == "auto" else source.MIC_DEVICE,
        display_delay=source.DISPLAY_DELAY,
        notifications_enabled=source.NOTIFICATIONS_ENABLED,
        debug=source.DEBUG,
    )
