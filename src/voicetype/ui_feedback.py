"""Desktop notifications for VoiceType"""

import logging
import shutil
import subprocess

from .config import config

logger = logging.getLogger(__name__)


def notify(title: str, message: str, timeout: int = 2):
    """Show desktop notification"""
    if not config.NOTIFICATIONS_ENABLED or shutil.which("notify-send") is None:
        return
    try:
        subprocess.run(
            ["notify-send", "-a", "VoiceType", "-t", str(timeout * 1000), title, message],
            timeout=2,
            capture_output=True,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        # Notifications are optional
        logger.debug("notify-send failed: %s", e)
