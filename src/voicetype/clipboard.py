"""Clipboard access for VoiceType - X11 CLIPBOARD selection via xclip."""

import logging
import subprocess

from .platform_utils import IS_LINUX

logger = logging.getLogger(__name__)


def get_clipboard() -> str | None:
    """Get text from the system clipboard (CLIPBOARD selection).

    Returns:
        The clipboard text, or None if empty or on error.
    """
    if not IS_LINUX:
        return None

    try:
        result = subprocess.run(
            ["xclip", "-selection", "clipboard", "-o"],
            capture_output=True,
            text=True,
            timeout=2.0,
        )
    except FileNotFoundError:
        logger.warning("xclip not installed. Install with: sudo apt install xclip")
        return None
    except subprocess.TimeoutExpired:
        logger.debug("xclip timed out reading the clipboard")
        return None

    if result.returncode == 0 and result.stdout:
        return result.stdout
    return None


def set_clipboard(text: str) -> bool:
    """Set text to the system clipboard.

    Returns:
        True if successful, False otherwise.
    """
    if not IS_LINUX:
        return False

    try:
        process = subprocess.Popen(
            ["xclip", "-selection", "clipboard"],
            stdin=subprocess.PIPE,
            text=True,
        )
        process.communicate(input=text, timeout=2.0)
    except FileNotFoundError:
        logger.warning("xclip not installed. Install with: sudo apt install xclip")
        return False
    except subprocess.TimeoutExpired:
        process.kill()
        logger.debug("xclip timed out writing the clipboard")
        return False
    return process.returncode == 0
