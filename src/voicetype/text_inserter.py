"""Insert text into the focused application via clipboard + paste keystroke.

Sequence:
    1. re-activate the window that had focus when recording started
       (poll up to 30 x 50 ms, then settle 100 ms)
    2. save the clipboard, write our text, wait 50 ms
    3. send Ctrl+V with pynput, falling back to xdotool
    4. wait 300 ms, restore the previous clipboard if it still holds our text

Neither the activation nor the paste can be confirmed, so the result is
best-effort: ``probably_failed`` tells the caller to leave the text on the
clipboard and tell the user.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess

from . import clipboard
from .core.models import InsertResult
from .platform_utils import paste_modifier

logger = logging.getLogger(__name__)

NO_DISPLAY = "No X display available for keyboard input"
ACTIVATE_FAILED = "Could not activate target application"
PASTE_FAILED = "Paste command may not have reached the target"


def get_active_window() -> int | None:
    """X11 id of the focused window (``_NET_ACTIVE_WINDOW``), or None."""
    try:
        from Xlib import display

        d = display.Display()
    except Exception as e:
        logger.debug("X display unavailable: %s", e)
        return None

    try:
        root = d.screen().root
        prop = root.get_full_property(d.intern_atom("_NET_ACTIVE_WINDOW"), 0)
        if not prop or not prop.value:
            return None
        window_id = int(prop.value[0])
        return window_id or None
    finally:
        d.close()


def activate_window(window_id: int) -> bool:
    try:
        result = subprocess.run(
            ["xdotool", "windowactivate", str(window_id)],
            capture_output=True,
            timeout=2.0,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.warning("xdotool windowactivate failed: %s", e)
        return False
    return result.returncode == 0


def paste_with_pynput() -> bool:
    try:
        from pynput.keyboard import Controller, Key

        kb = Controller()
        with kb.pressed(getattr(Key, paste_modifier())):
            kb.press("v")
            kb.release("v")
    except Exception as e:
        logger.info("pynput paste failed: %s", e)
        return False
    return True


def paste_with_xdotool() -> bool:
    try:
        result = subprocess.run(
            ["xdotool", "key", "--clearmodifiers", f"{paste_modifier()}+v"],
            capture_output=True,
            timeout=2.0,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.error("xdotool paste failed: %s", e)
        return False
    return result.returncode == 0


class TextInserter:
    """InsertionSink for X11 desktops."""

    def __init__(
        self,
        poll_attempts: int = 30,
        poll_interval: float = 0.05,
        settle_delay: float = 0.1,
        clipboard_delay: float = 0.05,
        restore_delay: float = 0.3,
    ):
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        self.clipboard_delay = clipboard_delay
        self.restore_delay = restore_delay

    def has_display(self) -> bool:
        return bool(os.environ.get("DISPLAY"))

    def active_target(self) -> int | None:
        return get_active_window() if self.has_display() else None

    def copy_to_clipboard(self, text: str) -> None:
        if not clipboard.set_clipboard(text):
            logger.warning("Could not place text on the clipboard")

    async def insert(self, text: str, target: int | None = None) -> InsertResult:
        if not self.has_display():
            logger.error("No DISPLAY, cannot send keystrokes")
            return InsertResult.probably_failed(NO_DISPLAY)

        activated = await self._activate_target(target)
        pasted = await self._insert_via_clipboard(text)

        if not activated or not pasted:
            reason = PASTE_FAILED if activated else ACTIVATE_FAILED
            logger.info("Insertion probably failed: %s", reason)
            return InsertResult.probably_failed(reason)
        return InsertResult.ok()

    async def _activate_target(self, target: int | None) -> bool:
        if target is None:
            return True
        if get_active_window() == target:
            return True

        await asyncio.to_thread(activate_window, target)
        activated = False
        for _ in range(self.poll_attempts):
            await asyncio.sleep(self.poll_interval)
            if get_active_window() == target:
                activated = True
                break
        await asyncio.sleep(self.settle_delay)
        return activated

    async def _insert_via_clipboard(self, text: str) -> bool:
        previous = await asyncio.to_thread(clipboard.get_clipboard)
        if not await asyncio.to_thread(clipboard.set_clipboard, text):
            return False
        await asyncio.sleep(self.clipboard_delay)

        pasted = await asyncio.to_thread(paste_with_pynput)
        if not pasted:
            pasted = await asyncio.to_thread(paste_with_xdotool)

        await asyncio.sleep(self.restore_delay)

        # No change counter on X11: only restore if nobody replaced our text.
        if previous is not None and await asyncio.to_thread(clipboard.get_clipboard) == text:
            await asyncio.to_thread(clipboard.set_clipboard, previous)
        return pasted
