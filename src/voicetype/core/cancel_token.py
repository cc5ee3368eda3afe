"""Cancellation token for one in-flight unit of work."""

from __future__ import annotations


class CancelToken:
    """Cooperative cancellation flag bound to a single session.

    A fresh token is issued for every unit of work; tokens are never reused,
    so a preempted unit keeps seeing ``cancelled`` after the next one starts.
    """

    def __init__(self, session_id: int = 0):
        self.session_id = session_id
        self._cancelled = False
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason
