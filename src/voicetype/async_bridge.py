"""Owner event loop for VoiceType.

One persistent asyncio loop runs in a dedicated thread and owns all session
state: the phase machine, the current Session, the activation detector and
the model readiness entries. Other threads never touch that state directly:

    +------------------+         +----------------------+
    | FOREIGN THREADS  |         | OWNER THREAD         |
    | (hotkey hook,    |         |                      |
    |  audio reader,   |-------->| asyncio event loop   |
    |  model loader)   |  call_  |   - orchestrator     |
    |                  |  soon   |   - activation       |
    | submit(coro)     |-------->|   - readiness        |
    | Future.result()  |<--------|                      |
    +------------------+         +----------------------+

Usage:
    bridge = get_async_bridge()  # Singleton, started on first use
    bridge.call_soon(router.feed, KeySource.PRIVILEGED, True)
    future = bridge.submit(orchestrator.warm_up())
"""

import asyncio
import atexit
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)


class AsyncBridge:
    """Persistent asyncio loop in a daemon thread."""

    def __init__(self):
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()
        self._lock = threading.Lock()

    def _run_loop(self):
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._started.set()

        try:
            self._loop.run_forever()
        finally:
            self._drain(self._loop)
            self._loop.close()
            self._loop = None

    @staticmethod
    def _drain(loop: asyncio.AbstractEventLoop) -> None:
        # Units of work still in flight get a chance to delete their artifacts.
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))

    def start(self) -> None:
        """Start the owner thread. No-op if already running."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return

            self._started.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                name="VoiceType-Owner",
                daemon=True,
            )
            self._thread.start()

            self._started.wait(timeout=5.0)
            if not self._started.is_set():
                raise RuntimeError("Failed to start owner event loop")

    def stop(self) -> None:
        """Stop the loop (cancelling pending tasks) and join the thread."""
        with self._lock:
            if self._loop is not None:
                self._loop.call_soon_threadsafe(self._loop.stop)

            if self._thread is not None:
                self._thread.join(timeout=5.0)
                self._thread = None

            self._started.clear()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("AsyncBridge not started. Call start() first.")
        return self._loop

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and self._loop is not None
            and self._loop.is_running()
        )

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run a plain callback on the owner thread (thread-safe)."""
        self.loop.call_soon_threadsafe(callback, *args)

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        """Schedule a coroutine on the owner loop from any thread."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)


# Module-level singleton
_bridge_instance: AsyncBridge | None = None
_bridge_lock = threading.Lock()


def get_async_bridge() -> AsyncBridge:
    """The singleton AsyncBridge, started (or restarted) on demand."""
    global _bridge_instance

    with _bridge_lock:
        if _bridge_instance is None:
            _bridge_instance = AsyncBridge()
            _bridge_instance.start()
            atexit.register(_cleanup_bridge)
        elif not _bridge_instance.is_running:
            _bridge_instance.start()

        return _bridge_instance


def _cleanup_bridge():
    global _bridge_instance
    if _bridge_instance is not None:
        try:
            _bridge_instance.stop()
        except RuntimeError as e:
            logger.debug("Owner loop shutdown: %s", e)
        _bridge_instance = None

