"""Screenshot + OCR of the primary screen.

The recognized text only helps the language model disambiguate names and
terms; every failure yields "" and a log line, never an exception.
"""

from __future__ import annotations

import logging
import os
import shutil

from .platform_utils import IS_WAYLAND

logger = logging.getLogger(__name__)

# Simplified + traditional Chinese and English, like the dictation languages.
OCR_LANGUAGES = "chi_sim+chi_tra+eng"


class ScreenContext:
    """ScreenContextCapture backed by mss and Tesseract."""

    def __init__(self, languages: str = OCR_LANGUAGES):
        self.languages = languages

    def has_permission(self) -> bool:
        # X11 lets any client read the root window; Wayland does not.
        if IS_WAYLAND or not os.environ.get("DISPLAY"):
            return False
        return shutil.which("tesseract") is not None

    def capture_and_recognize(self, max_length: int = 2000) -> str:
        try:
            import mss
            from PIL import Image
            import pytesseract
        except ImportError as e:
            logger.info("Screen context unavailable: %s", e)
            return ""

        try:
            with mss.mss() as sct:
                monitor = sct.monitors[1] if len(sct.monitors) > 1 else sct.monitors[0]
                shot = sct.grab(monitor)
            image = Image.frombytes("RGB", shot.size, shot.rgb)
        except Exception as e:
            logger.info("Screen capture failed: %s", e)
            return ""

        try:
            text = pytesseract.image_to_string(image, lang=self.languages)
        except Exception as e:
            logger.error("OCR failed: %s", e)
            return ""

        lines = [line.strip() for line in text.splitlines() if line.strip()]
        result = "\n".join(lines)
        logger.info("OCR extracted %d chars", len(result))
        return result[:max_length]
