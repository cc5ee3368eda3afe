"""Session phase state machine for the dictation flow."""

from __future__ import annotations

from enum import Enum, auto
import logging
from typing import Callable


class SessionPhase(Enum):
    IDLE = auto()
    DOWNLOADING = auto()
    RECORDING = auto()
    TRANSCRIBING = auto()
    PROCESSING = auto()
    INSERTING = auto()
    DONE = auto()
    ERROR = auto()


class SessionEvent(Enum):
    LOAD = auto()
    LOADED = auto()
    START = auto()
    STOP = auto()
    EMPTY = auto()
    PROCESS = auto()
    INSERT = auto()
    INSERTED = auto()
    CANCEL = auto()
    ERROR = auto()
    RESET = auto()


# Phases from which a new session may begin.
RESTING_PHASES = frozenset({SessionPhase.IDLE, SessionPhase.DONE, SessionPhase.ERROR})

_FROM_REST = {
    SessionEvent.LOAD: SessionPhase.DOWNLOADING,
    SessionEvent.START: SessionPhase.RECORDING,
    SessionEvent.ERROR: SessionPhase.ERROR,
}

_TRANSITIONS = {
    SessionPhase.IDLE: dict(_FROM_REST),
    SessionPhase.DOWNLOADING: {
        SessionEvent.START: SessionPhase.RECORDING,
        SessionEvent.LOADED: SessionPhase.IDLE,
        SessionEvent.ERROR: SessionPhase.ERROR,
    },
    SessionPhase.RECORDING: {
        SessionEvent.STOP: SessionPhase.TRANSCRIBING,
        SessionEvent.CANCEL: SessionPhase.IDLE,
        SessionEvent.ERROR: SessionPhase.ERROR,
    },
    SessionPhase.TRANSCRIBING: {
        SessionEvent.EMPTY: SessionPhase.IDLE,
        SessionEvent.PROCESS: SessionPhase.PROCESSING,
        SessionEvent.INSERT: SessionPhase.INSERTING,
        SessionEvent.CANCEL: SessionPhase.IDLE,
        SessionEvent.ERROR: SessionPhase.ERROR,
    },
    SessionPhase.PROCESSING: {
        SessionEvent.INSERT: SessionPhase.INSERTING,
        SessionEvent.CANCEL: SessionPhase.IDLE,
        SessionEvent.ERROR: SessionPhase.ERROR,
    },
    SessionPhase.INSERTING: {
        SessionEvent.INSERTED: SessionPhase.DONE,
        SessionEvent.CANCEL: SessionPhase.IDLE,
        SessionEvent.ERROR: SessionPhase.ERROR,
    },
    SessionPhase.DONE: {**_FROM_REST, SessionEvent.RESET: SessionPhase.IDLE},
    SessionPhase.ERROR: {**_FROM_REST, SessionEvent.RESET: SessionPhase.IDLE},
}

PhaseListener = Callable[[SessionPhase, SessionPhase], None]


class SessionStateMachine:
    """Single-writer phase holder; only the orchestrator calls ``transition``."""

    def __init__(self):
        self.state = SessionPhase.IDLE
        self.error_reason: str | None = None
        self._listeners: list[PhaseListener] = []

    @property
    def is_busy(self) -> bool:
        return self.state not in RESTING_PHASES

    def add_listener(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    def can(self, event: SessionEvent) -> bool:
        return event in _TRANSITIONS.get(self.state, {})

    def transition(self, event: SessionEvent, reason: str | None = None) -> SessionPhase:
        allowed = _TRANSITIONS.get(self.state, {})
        if event not in allowed:
            logging.getLogger(__name__).warning(
                "Invalid state transition: %s --%s--> (ignored)", self.state, event
            )
            return self.state

        previous = self.state
        self.state = allowed[event]
        self.error_reason = reason if self.state is SessionPhase.ERROR else None
        if previous is not self.state:
            for listener in list(self._listeners):
                listener(previous, self.state)
        return self.state
