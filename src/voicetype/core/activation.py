"""Hotkey activation policies: key-state samples in, start/stop intents out."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class ActivationMode(str, Enum):
    LONG_PRESS = "long_press"
    DOUBLE_TAP = "double_tap"
    TOGGLE = "toggle"

    @classmethod
    def parse(cls, value: str) -> "ActivationMode":
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unknown activation mode %r, using long_press", value)
            return cls.LONG_PRESS


class Intent(Enum):
    START = auto()
    STOP = auto()


@dataclass
class ActivationState:
    was_pressed: bool = False
    is_holding: bool = False
    # Double-tap bookkeeping only
    last_press_time: float = float("-inf")
    tap_count: int = 0


class ActivationDetector:
    """Turns boolean "hotkey held" samples into START/STOP intents.

    The detector models key state only. It emits START even while a session
    is busy; deciding whether to accept it is the orchestrator's job.
    """

    def __init__(
        self,
        mode: ActivationMode = ActivationMode.LONG_PRESS,
        on_start: Callable[[], None] | None = None,
        on_stop: Callable[[], None] | None = None,
        tap_interval: float = 0.4,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.mode = mode
        self.tap_interval = tap_interval
        self.state = ActivationState()
        self._on_start = on_start
        self._on_stop = on_stop
        self._clock = clock

    def process_key_state(self, is_pressed: bool) -> Intent | None:
        if self.mode is ActivationMode.LONG_PRESS:
            intent = self._long_press(is_pressed)
        elif self.mode is ActivationMode.DOUBLE_TAP:
            intent = self._double_tap(is_pressed)
        else:
            intent = self._toggle(is_pressed)
        self.state.was_pressed = is_pressed

        if intent is Intent.START and self._on_start:
            self._on_start()
        elif intent is Intent.STOP and self._on_stop:
            self._on_stop()
        return intent

    def _rising_edge(self, is_pressed: bool) -> bool:
        return is_pressed and not self.state.was_pressed

    def _long_press(self, is_pressed: bool) -> Intent | None:
        s = self.state
        if self._rising_edge(is_pressed) and not s.is_holding:
            s.is_holding = True
            return Intent.START
        if not is_pressed and s.was_pressed and s.is_holding:
            s.is_holding = False
            return Intent.STOP
        return None

    def _double_tap(self, is_pressed: bool) -> Intent | None:
        if not self._rising_edge(is_pressed):
            return None
        s = self.state
        now = self._clock()
        if now - s.last_press_time < self.tap_interval:
            s.tap_count += 1
        else:
            s.tap_count = 1
        s.last_press_time = now

        if s.tap_count < 2:
            return None
        s.tap_count = 0
        return self._flip()

    def _toggle(self, is_pressed: bool) -> Intent | None:
        if not self._rising_edge(is_pressed):
            return None
        return self._flip()

    def _flip(self) -> Intent:
        s = self.state
        s.is_holding = not s.is_holding
        return Intent.START if s.is_holding else Intent.STOP


class KeySource(str, Enum):
    PRIVILEGED = "privileged"  # global hook (pynput listener)
    FALLBACK = "fallback"  # keymap polling


class KeyStateRouter:
    """Deduplicates the two key-state sources ahead of the detector.

    While the privileged source is active its samples are the only ones
    forwarded; fallback samples are dropped.
    """

    def __init__(self, sink: Callable[[bool], object]):
        self._sink = sink
        self.privileged_active = False

    def set_privileged_active(self, active: bool) -> None:
        self.privileged_active = active

    def feed(self, source: KeySource, is_pressed: bool) -> bool:
        """Forward one sample; returns False when it was dropped."""
        if source is KeySource.FALLBACK and self.privileged_active:
            return False
        self._sink(is_pressed)
        return True
