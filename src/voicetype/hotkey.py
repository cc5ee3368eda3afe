"""Global hotkey sampling.

Two sources report whether the configured modifier is held:

- a pynput keyboard listener (global hook, event driven)
- a python-xlib ``query_keymap`` poller, used when the hook cannot be
  installed or has not delivered anything yet

Both call ``on_sample(source, pressed)`` from their own threads; the caller
marshals samples onto the owner loop and through a KeyStateRouter.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .core.activation import KeySource

logger = logging.getLogger(__name__)

# pynput Key attribute names per configured hotkey
PYNPUT_KEYS = {
    "ctrl": ("ctrl", "ctrl_l", "ctrl_r"),
    "shift": ("shift", "shift_l", "shift_r"),
    "alt": ("alt", "alt_l", "alt_r", "alt_gr"),
    "alt_r": ("alt_r", "alt_gr"),
    "cmd": ("cmd", "cmd_l", "cmd_r"),
}

# X keysym names per configured hotkey
X_KEYSYMS = {
    "ctrl": ("Control_L", "Control_R"),
    "shift": ("Shift_L", "Shift_R"),
    "alt": ("Alt_L", "Alt_R"),
    "alt_r": ("Alt_R", "ISO_Level3_Shift"),
    "cmd": ("Super_L", "Super_R"),
}

SampleCallback = Callable[[KeySource, bool], None]


def normalize_hotkey(name: str) -> str:
    name = name.lower()
    if name == "fn":
        # Fn is handled by keyboard firmware and never reaches X11.
        logger.warning("The fn key is not visible on Linux, using alt_r")
        return "alt_r"
    if name not in PYNPUT_KEYS:
        logger.warning("Unknown HOTKEY %r, using alt_r", name)
        return "alt_r"
    return name


class HotkeyListener:
    def __init__(
        self,
        hotkey: str,
        on_sample: SampleCallback,
        on_privileged_active: Callable[[bool], None] | None = None,
        poll_interval: float = 0.05,
    ):
        self.hotkey = normalize_hotkey(hotkey)
        self._on_sample = on_sample
        self._on_privileged_active = on_privileged_active
        self.poll_interval = poll_interval
        self._listener = None
        self._targets: set = set()
        self._held: set = set()
        self._stop = threading.Event()
        self._poller: threading.Thread | None = None

    def start(self) -> None:
        if not self._start_hook():
            logger.info("Global keyboard hook unavailable, polling the keymap")
        self._stop.clear()
        self._poller = threading.Thread(target=self._poll_loop, name="HotkeyPoller", daemon=True)
        self._poller.start()

    def stop(self) -> None:
        self._stop.set()
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        if self._poller is not None:
            self._poller.join(timeout=1.0)
            self._poller = None

    # -- privileged source ---------------------------------------------------

    def _start_hook(self) -> bool:
        try:
            from pynput import keyboard
        except ImportError as e:
            logger.warning("pynput unavailable: %s", e)
            return False

        self._targets = {
            getattr(keyboard.Key, name) for name in PYNPUT_KEYS[self.hotkey] if hasattr(keyboard.Key, name)
        }

        try:
            self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
            self._listener.start()
            self._listener.wait()
        except Exception as e:
            logger.warning("Could not install keyboard hook: %s", e)
            self._listener = None
            return False

        if self._on_privileged_active:
            self._on_privileged_active(True)
        return True

    def _on_press(self, key) -> None:
        if key in self._targets and key not in self._held:
            self._held.add(key)
            if len(self._held) == 1:
                self._on_sample(KeySource.PRIVILEGED, True)

    def _on_release(self, key) -> None:
        if key in self._held:
            self._held.discard(key)
            if not self._held:
                self._on_sample(KeySource.PRIVILEGED, False)

    # -- fallback source -----------------------------------------------------

    def _poll_loop(self) -> None:
        try:
            from Xlib import XK, display

            d = display.Display()
        except Exception as e:
            logger.info("Keymap polling unavailable: %s", e)
            return

        keycodes = set()
        for name in X_KEYSYMS[self.hotkey]:
            keysym = XK.string_to_keysym(name)
            if keysym:
                keycodes.update(code for code, _ in d.keysym_to_keycodes(keysym))

        was_pressed = False
        try:
            while not self._stop.wait(self.poll_interval):
                keymap = d.query_keymap()
                pressed = any(keymap[code // 8] & (1 << (code % 8)) for code in keycodes)
                if pressed != was_pressed:
                    was_pressed = pressed
                    self._on_sample(KeySource.FALLBACK, pressed)
        finally:
            d.close()
