"""Platform detection and per-platform paths for VoiceType"""

import os
import platform
import sys
from pathlib import Path

# Platform detection
IS_WINDOWS = sys.platform == "win32"
IS_LINUX = sys.platform.startswith("linux")
IS_MACOS = sys.platform == "darwin"

# Display system detection (Linux-specific)
IS_X11 = False
IS_WAYLAND = False

if IS_LINUX:
    session_type = os.environ.get("XDG_SESSION_TYPE", "").lower()
    IS_X11 = session_type == "x11" or os.environ.get("DISPLAY") is not None
    IS_WAYLAND = session_type == "wayland"


def default_data_dir() -> Path:
    """Directory holding the dictionary, history and model cache."""
    if IS_MACOS:
        return Path.home() / "Library" / "Application Support" / "VoiceType"
    if IS_WINDOWS:
        return Path(os.environ.get("APPDATA", Path.home())) / "VoiceType"
    base = os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share"
    return Path(base) / "voicetype"


def paste_modifier() -> str:
    """Name of the modifier used with V to paste ("cmd" on macOS)."""
    return "cmd" if IS_MACOS else "ctrl"


def get_platform_info() -> dict:
    """Get detailed platform information."""
    return {
        "system": platform.system(),
        "release": platform.release(),
        "python_version": platform.python_version(),
        "is_linux": IS_LINUX,
        "is_macos": IS_MACOS,
        "is_x11": IS_X11,
        "is_wayland": IS_WAYLAND,
    }
