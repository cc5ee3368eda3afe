"""Core orchestration for VoiceType.

Keeps the record -> transcribe -> (rewrite) -> insert pipeline in one place,
decoupled from platform/vendor-specific implementations via ports.

Everything here runs on the owner event loop (see ``async_bridge``). Blocking
engine work is pushed to worker threads with ``asyncio.to_thread``; foreign
threads report back with ``call_soon_threadsafe``. Each recording gets its own
unit of work and CancelToken, and the token is checked after every await so a
cancelled or preempted unit never touches the newer session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..errors import LoadFailed, ModelLoadError, NoAudioFile
from ..messages import message
from .cancel_token import CancelToken
from .config_model import AppConfig
from .models import Session
from .ports import (
    CaptureCoordinator,
    HistoryStore,
    InsertionSink,
    ModelLoader,
    ScreenContextCapture,
    TranscriptionEngine,
    UIFeedback,
)
from .readiness import ModelKind, ModelReadinessTracker
from .state_machine import SessionEvent, SessionPhase, SessionStateMachine

logger = logging.getLogger(__name__)

APP_TITLE = "VoiceType"


class SessionOrchestrator:
    """Owns the session phase and drives one dictation at a time."""

    def __init__(
        self,
        transcriber: TranscriptionEngine,
        capture: CaptureCoordinator,
        text_processor,
        inserter: InsertionSink,
        ui: UIFeedback,
        settings: AppConfig,
        readiness: ModelReadinessTracker | None = None,
        screen: ScreenContextCapture | None = None,
        history: HistoryStore | None = None,
        speech_loader: ModelLoader | None = None,
        generation_loader: ModelLoader | None = None,
        generation_model: str = "",
    ):
        self._transcriber = transcriber
        self._capture = capture
        self._text_processor = text_processor
        self._inserter = inserter
        self._ui = ui
        self.settings = settings
        self.readiness = readiness or ModelReadinessTracker()
        self._screen = screen
        self._history = history
        self._speech_loader = speech_loader
        self._generation_loader = generation_loader
        self._generation_model = generation_model

        self._state = SessionStateMachine()
        self.session = Session()
        self._session_counter = 0
        self._token: CancelToken | None = None
        self._task: asyncio.Task | None = None
        self._screen_task: asyncio.Future | None = None
        self._target: Any = None
        self._reset_handle: asyncio.TimerHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._starts_in_flight = 0
        self._stop_pending = False
        self._generation_load: asyncio.Future | None = None

        if settings.speech_model:
            self.readiness.register(settings.speech_model, ModelKind.SPEECH)
        if generation_model:
            self.readiness.register(generation_model, ModelKind.GENERATION)

    @property
    def state(self) -> SessionStateMachine:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.state

    @property
    def current_task(self) -> asyncio.Task | None:
        return self._task

    def _text(self, key: str) -> str:
        return message(key, self.settings.ui_language)

    # -- session control ---------------------------------------------------

    def request_start(self, preempt: bool = False) -> asyncio.Task:
        """Schedule ``start`` from a synchronous callback on the owner loop.

        A ``stop`` that arrives before recording has begun is held and
        applied as soon as the session enters recording.
        """
        self._loop = asyncio.get_running_loop()
        self._starts_in_flight += 1
        task = self._loop.create_task(self._run_requested_start(preempt))
        task.add_done_callback(_log_task_error)
        return task

    async def _run_requested_start(self, preempt: bool) -> bool:
        try:
            started = await self.start(preempt)
        finally:
            self._starts_in_flight -= 1
        if self._stop_pending and (started or not self._starts_in_flight):
            self._stop_pending = False
            if started:
                logger.info("Session %d released before recording began", self.session.id)
                self.stop()
        return started

    async def start(self, preempt: bool = False) -> bool:
        """Begin recording a new session.

        While busy the request is rejected with a notice, unless ``preempt``
        is set and the current session is past model loading: then the
        current unit of work is cancelled without waiting for it.
        """
        self._loop = asyncio.get_running_loop()

        if self._state.is_busy:
            if not preempt or self.phase is SessionPhase.DOWNLOADING:
                self._ui.notify(APP_TITLE, self._text("pipeline.busy"))
                return False
            logger.info("Preempting session %d", self.session.id)
            self.cancel()

        if not await self._ensure_speech_model():
            return False

        if self._token is not None:
            self._token.cancel("superseded")
        self._cancel_reset_timer()

        self._session_counter += 1
        self.session = Session(id=self._session_counter)
        self._token = CancelToken(self.session.id)
        self._target = self._inserter.active_target()
        self._state.transition(SessionEvent.START)

        settings = self.settings
        self._screen_task = None
        if (
            settings.rewrites
            and settings.use_screen_context
            and self._screen is not None
            and self._screen.has_permission()
        ):
            self._screen_task = asyncio.ensure_future(
                asyncio.to_thread(self._screen.capture_and_recognize)
            )

        session_id = self.session.id
        if not self._capture.start(settings.microphone, lambda level: self._on_level(session_id, level)):
            _cancel_future(self._screen_task)
            self._screen_task = None
            self._fail(self._text("pipeline.mic_failed"))
            return False

        logger.info("Session %d recording", session_id)
        return True

    def stop(self) -> asyncio.Task | None:
        """Stop recording and hand the artifact to a new unit of work.

        No-op unless recording, except that a stop racing a requested start
        is remembered. Returns the unit's task.
        """
        if self.phase is not SessionPhase.RECORDING:
            if self._starts_in_flight:
                self._stop_pending = True
            return None

        self._capture.stop()
        artifact = self._capture.last_artifact()
        self._state.transition(SessionEvent.STOP)

        self._task = self._loop.create_task(
            self._process_recording(
                self._token, self.session, artifact, self._screen_task, self.settings, self._target
            )
        )
        self._screen_task = None
        return self._task

    def cancel(self) -> None:
        """Abandon the current session and return to idle."""
        if self.phase is SessionPhase.RECORDING:
            self._capture.stop()
            self._capture.cleanup(self._capture.last_artifact())
        if self._token is not None:
            self._token.cancel("cancelled")
        _cancel_future(self._screen_task)
        self._screen_task = None
        if self._state.can(SessionEvent.CANCEL):
            self._state.transition(SessionEvent.CANCEL)
            self.session = Session()

    def _on_level(self, session_id: int, level: float) -> None:
        # Called from the capture thread.
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._set_level, session_id, level)

    def _set_level(self, session_id: int, level: float) -> None:
        if self.session.id == session_id and self.phase is SessionPhase.RECORDING:
            self.session.audio_level = level

    # -- unit of work ------------------------------------------------------

    async def _process_recording(
        self,
        token: CancelToken,
        session: Session,
        artifact,
        screen_task: asyncio.Future | None,
        settings: AppConfig,
        target: Any,
    ) -> None:
        try:
            if artifact is None:
                raise NoAudioFile("no recording was produced")

            raw = await self._transcriber.transcribe(artifact, settings.input_language)
            if token.cancelled:
                return
            raw = (raw or "").strip()
            logger.debug("Transcript for session %d: %s", session.id, raw)

            if not raw:
                logger.info("Session %d: no speech detected", session.id)
                self._state.transition(SessionEvent.EMPTY)
                self.session = Session()
                return
            session.raw_transcript = raw

            if settings.rewrites:
                self._state.transition(SessionEvent.PROCESS)
                screen_text = ""
                if screen_task is not None:
                    try:
                        screen_text = await screen_task
                    except Exception as e:
                        logger.warning("Screen context capture failed: %s", e)
                    if token.cancelled:
                        return
                session.screen_context = screen_text or None

                if not await self._ensure_generation_model():
                    logger.warning("Session %d: generation model unavailable, using cleanup", session.id)
                if token.cancelled:
                    return

                recent = ""
                if settings.use_history_context and self._history is not None:
                    recent = self._history.recent_context()

                text = await self._text_processor.process(
                    raw,
                    style_prompt=settings.style_prompt,
                    screen_context=screen_text,
                    recent_history=recent,
                )
                if token.cancelled:
                    return
            else:
                _cancel_future(screen_task)
                text = self._text_processor.basic_clean(raw)

            if not text:
                # Nothing left after cleanup (the speech was all fillers).
                logger.info("Session %d: nothing to insert", session.id)
                self._state.transition(SessionEvent.CANCEL)
                self.session = Session()
                return
            session.processed_text = text
            logger.debug("Processed text for session %d: %s", session.id, text)

            self._state.transition(SessionEvent.INSERT)
            result = await self._inserter.insert(text, target)
            if token.cancelled:
                return

            if self._history is not None:
                self._history.add_record(raw, text, settings.rewrites)
            self._state.transition(SessionEvent.INSERTED)

            if not result.success:
                logger.warning("Insertion may have failed: %s", result.reason)
                self._inserter.copy_to_clipboard(text)
                self._ui.notify(
                    self._text("pipeline.insert_failed_title"),
                    self._text("pipeline.insert_failed_body") + result.reason,
                )
            self._schedule_reset(session.id)

        except Exception as e:
            if token.cancelled:
                return
            logger.exception("Session %d failed", session.id)
            self._fail(f"{self._text('pipeline.error_prefix')}{e}")
        finally:
            _cancel_future(screen_task)
            self._capture.cleanup(artifact)

    # -- model lifecycle ---------------------------------------------------

    async def _ensure_speech_model(self) -> bool:
        if self._transcriber.is_ready():
            return True
        if self._speech_loader is None or not self.settings.speech_model:
            self._fail(self._text("pipeline.model_not_ready"))
            return False

        self._state.transition(SessionEvent.LOAD)
        self._ui.notify(APP_TITLE, self._text("pipeline.preparing_model"))
        try:
            await self._load_model(self._speech_loader, self.settings.speech_model, ModelKind.SPEECH)
        except ModelLoadError as e:
            self._fail(self._load_failure_reason(e))
            return False
        return True

    async def _load_model(self, loader: ModelLoader, model_id: str, kind: ModelKind) -> None:
        loop = asyncio.get_running_loop()
        tracker = self.readiness
        tracker.begin_download(model_id, kind)

        def on_progress(stage: str, fraction: float) -> None:
            # Called from the loader thread.
            loop.call_soon_threadsafe(tracker.update_progress, model_id, stage, fraction)

        try:
            await asyncio.to_thread(loader.load, model_id, on_progress)
        except ModelLoadError as e:
            tracker.mark_error(model_id, str(e) or type(e).__name__)
            raise
        except Exception as e:
            tracker.mark_error(model_id, str(e))
            raise LoadFailed(str(e)) from e
        tracker.mark_ready(model_id)
        logger.info("Model %s ready", model_id)

    def _load_failure_reason(self, error: ModelLoadError) -> str:
        reason = self._text(error.message_key)
        return f"{reason}: {error.detail}" if error.detail else reason

    async def warm_up(self) -> None:
        """Load models ahead of the first session. Failures are only logged."""
        self._loop = asyncio.get_running_loop()
        settings = self.settings

        if (
            self._speech_loader is not None
            and settings.speech_model
            and not self._transcriber.is_ready()
            and self._state.can(SessionEvent.LOAD)
        ):
            self._state.transition(SessionEvent.LOAD)
            try:
                await self._load_model(self._speech_loader, settings.speech_model, ModelKind.SPEECH)
            except ModelLoadError as e:
                logger.error("Speech model warm-up failed: %s", e)
                self._fail(self._load_failure_reason(e))
            else:
                self._state.transition(SessionEvent.LOADED)

        if settings.rewrites:
            await self._ensure_generation_model()

    async def _ensure_generation_model(self) -> bool:
        """Load the local generation model unless it is already READY.

        Concurrent callers share one load. Returns False when the load fails;
        the text processor then falls back to basic cleanup.
        """
        loader, model_id = self._generation_loader, self._generation_model
        if loader is None or not model_id or self.readiness.is_ready(model_id):
            return True

        if self._generation_load is None or self._generation_load.done():
            self._generation_load = asyncio.ensure_future(
                self._load_model(loader, model_id, ModelKind.GENERATION)
            )
        try:
            await asyncio.shield(self._generation_load)
        except ModelLoadError as e:
            logger.error("Generation model load failed: %s", e)
            return False
        return True

    def unload_speech_model(self) -> bool:
        if self._speech_loader is None or self._state.is_busy:
            return False
        self._speech_loader.unload()
        self.readiness.mark_downloaded(self.settings.speech_model)
        self._ui.notify(APP_TITLE, self._text("pipeline.speech_unloaded"))
        return True

    def unload_generation_model(self) -> bool:
        if self._generation_loader is None or self._state.is_busy:
            return False
        self._generation_loader.unload()
        self.readiness.mark_downloaded(self._generation_model)
        self._ui.notify(APP_TITLE, self._text("pipeline.llm_unloaded"))
        return True

    # -- terminal phases ---------------------------------------------------

    def _fail(self, reason: str) -> None:
        logger.error("Session %d error: %s", self.session.id, reason)
        self._state.transition(SessionEvent.ERROR, reason)
        self._ui.notify(f"⚠ {APP_TITLE}", reason)
        self._schedule_reset(self.session.id)

    def _schedule_reset(self, session_id: int) -> None:
        self._cancel_reset_timer()
        loop = self._loop or asyncio.get_running_loop()
        self._reset_handle = loop.call_later(
            self.settings.display_delay, self._reset_after_display, session_id
        )

    def _cancel_reset_timer(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _reset_after_display(self, session_id: int) -> None:
        self._reset_handle = None
        if self.session.id != session_id:
            return
        if self.phase in (SessionPhase.DONE, SessionPhase.ERROR):
            self._state.transition(SessionEvent.RESET)
            self.session = Session()


def _cancel_future(future: asyncio.Future | None) -> None:
    if future is not None and not future.done():
        future.cancel()


def _log_task_error(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Session start failed", exc_info=task.exception())
