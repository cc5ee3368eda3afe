import asyncio
from pathlib import Path

from voicetype.core.activation import ActivationDetector, ActivationMode
from voicetype.core.config_model import AppConfig
from voicetype.core.controller import SessionOrchestrator
from voicetype.core.models import InsertResult, OutputMode
from voicetype.core.ports import (
    CaptureCoordinator,
    GenerationEngine,
    HistoryStore,
    InsertionSink,
    ModelLoader,
    ScreenContextCapture,
    TranscriptionEngine,
    UIFeedback,
)
from voicetype.core.readiness import ModelStatus
from voicetype.core.state_machine import SessionPhase
from voicetype.dictionary import PersonalDictionary
from voicetype.errors import DownloadFailed, ModelNotLoaded
from voicetype.messages import message
from voicetype.text_processor import TextProcessor


class _Transcriber(TranscriptionEngine):
    def __init__(self, texts=("你好世界",), ready=True, gate=None, error=None):
        self.texts = list(texts)
        self.ready = ready
        self.gate = gate
        self.error = error
        self.calls = []

    def is_ready(self) -> bool:
        return self.ready

    async def transcribe(self, audio, language):
        self.calls.append((audio, language))
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]


class _Loader(ModelLoader):
    def __init__(self, transcriber, error=None):
        self.transcriber = transcriber
        self.error = error
        self.loaded = []
        self.unloaded = False

    def load(self, model_id, on_progress):
        on_progress("downloading", 0.5)
        if self.error:
            raise self.error
        on_progress("downloading", 1.0)
        on_progress("compiling", 1.0)
        on_progress("loading", 1.0)
        self.loaded.append(model_id)
        self.transcriber.ready = True

    def unload(self):
        self.unloaded = True
        self.transcriber.ready = False


class _Capture(CaptureCoordinator):
    def __init__(self, ok=True):
        self.ok = ok
        self.count = 0
        self.current = None
        self.stopped = 0
        self.cleaned = []

    def start(self, device, on_level):
        if not self.ok:
            return False
        self.count += 1
        self.current = Path(f"rec-{self.count}.wav")
        on_level(0.5)
        return True

    def stop(self):
        self.stopped += 1

    def last_artifact(self):
        return self.current

    def cleanup(self, artifact=None):
        self.cleaned.append(artifact)


class _Screen(ScreenContextCapture):
    def __init__(self, permission=True, text="会议室 屏幕文字"):
        self.permission = permission
        self.text = text
        self.captures = 0

    def has_permission(self):
        return self.permission

    def capture_and_recognize(self, max_length=2000):
        self.captures += 1
        return self.text


class _Engine(GenerationEngine):
    def __init__(self, result="整理后的文本", error=None, gate=None):
        self.result = result
        self.error = error
        self.gate = gate
        self.calls = []
        self.called = asyncio.Event()

    async def generate(self, prompt, system_prompt, max_tokens):
        self.calls.append((prompt, system_prompt))
        self.called.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return self.result


class _LocalModel(GenerationEngine, ModelLoader):
    """Generation engine that only answers while its weights are loaded."""

    def __init__(self, result="整理后的文本", error=None):
        self.result = result
        self.error = error
        self.loaded = False
        self.loads = []

    def load(self, model_id, on_progress):
        on_progress("downloading", 1.0)
        self.loads.append(model_id)
        if self.error:
            raise self.error
        on_progress("compiling", 1.0)
        on_progress("loading", 1.0)
        self.loaded = True

    def unload(self):
        self.loaded = False

    async def generate(self, prompt, system_prompt, max_tokens):
        if not self.loaded:
            raise ModelNotLoaded("generation model is not loaded")
        return self.result


class _Inserter(InsertionSink):
    def __init__(self, result=None):
        self.result = result or InsertResult.ok()
        self.calls = []
        self.clipboard = []

    def active_target(self):
        return "window-1"

    async def insert(self, text, target=None):
        self.calls.append((text, target))
        return self.result

    def copy_to_clipboard(self, text):
        self.clipboard.append(text)


class _History(HistoryStore):
    def __init__(self):
        self.records = []

    def add_record(self, raw_text, processed_text, was_processed):
        self.records.append((raw_text, processed_text, was_processed))

    def recent_context(self, limit=5, window_minutes=30):
        return ""


class _UI(UIFeedback):
    def __init__(self):
        self.calls = []

    def notify(self, title: str, message: str) -> None:
        self.calls.append((title, message))


def _orchestrator(
    tmp_path,
    transcriber=None,
    engine=None,
    capture=None,
    inserter=None,
    screen=None,
    loader=None,
    mode=OutputMode.PROCESSED,
    generation=None,
    display_delay=60.0,
):
    transcriber = transcriber or _Transcriber()
    parts = {
        "transcriber": transcriber,
        "capture": capture or _Capture(),
        "engine": engine if engine is not None else (generation or _Engine()),
        "inserter": inserter or _Inserter(),
        "screen": screen or _Screen(),
        "history": _History(),
        "ui": _UI(),
    }
    processor = TextProcessor(PersonalDictionary(tmp_path), engine=parts["engine"], language="zh")
    settings = AppConfig(output_mode=mode, speech_model="tiny", display_delay=display_delay)
    orchestrator = SessionOrchestrator(
        transcriber=transcriber,
        capture=parts["capture"],
        text_processor=processor,
        inserter=parts["inserter"],
        ui=parts["ui"],
        settings=settings,
        screen=parts["screen"],
        history=parts["history"],
        speech_loader=loader,
        generation_loader=generation,
        generation_model="local-llm" if generation is not None else "",
    )
    return orchestrator, parts


def test_happy_path_rewrites_and_inserts(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path, engine=_Engine(result="<think>嗯</think>整理后的文本"))

        assert await orchestrator.start() is True
        assert orchestrator.phase is SessionPhase.RECORDING
        assert orchestrator.session.audio_level == 0.0  # level arrives via the loop
        await asyncio.sleep(0)
        assert orchestrator.session.audio_level == 0.5

        task = orchestrator.stop()
        assert orchestrator.phase is SessionPhase.TRANSCRIBING
        await task

        assert orchestrator.phase is SessionPhase.DONE
        assert parts["inserter"].calls == [("整理后的文本", "window-1")]
        assert parts["history"].records == [("你好世界", "整理后的文本", True)]
        assert parts["capture"].cleaned == [Path("rec-1.wav")]
        assert parts["screen"].captures == 1
        _, system_prompt = parts["engine"].calls[0]
        assert "会议室 屏幕文字" in system_prompt
        assert orchestrator.session.processed_text == "整理后的文本"

    asyncio.run(scenario())


def test_empty_transcript_returns_to_idle_without_inserting(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path, transcriber=_Transcriber(texts=("  ",)))
        await orchestrator.start()
        await orchestrator.stop()

        assert orchestrator.phase is SessionPhase.IDLE
        assert parts["inserter"].calls == []
        assert parts["history"].records == []
        assert parts["engine"].calls == []

    asyncio.run(scenario())


def test_generation_failure_inserts_cleaned_transcript(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(
            tmp_path,
            transcriber=_Transcriber(texts=("嗯 这个 会议 记录 嗯",)),
            engine=_Engine(error=RuntimeError("boom")),
        )
        await orchestrator.start()
        await orchestrator.stop()

        assert orchestrator.phase is SessionPhase.DONE
        assert parts["inserter"].calls[0][0] == "会议 记录"

    asyncio.run(scenario())


def test_direct_mode_skips_generation_and_screen(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(
            tmp_path,
            transcriber=_Transcriber(texts=("嗯 这个 会议 记录 嗯",)),
            mode=OutputMode.DIRECT,
        )
        await orchestrator.start()
        await orchestrator.stop()

        assert parts["engine"].calls == []
        assert parts["screen"].captures == 0
        assert parts["inserter"].calls[0][0] == "会议 记录"
        assert parts["history"].records == [("嗯 这个 会议 记录 嗯", "会议 记录", False)]

    asyncio.run(scenario())


def test_start_while_busy_is_rejected_with_notice(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path)
        await orchestrator.start()

        assert await orchestrator.start() is False
        assert orchestrator.phase is SessionPhase.RECORDING
        assert orchestrator.session.id == 1
        assert parts["ui"].calls[-1][1] == message("pipeline.busy", "zh")

    asyncio.run(scenario())


def test_stop_when_not_recording_is_a_noop(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path)
        assert orchestrator.stop() is None
        assert parts["capture"].stopped == 0
        assert orchestrator.phase is SessionPhase.IDLE

    asyncio.run(scenario())


def test_preempted_session_never_inserts(tmp_path):
    async def scenario():
        gate = asyncio.Event()
        engine = _Engine(result="第一段", gate=gate)
        orchestrator, parts = _orchestrator(
            tmp_path, transcriber=_Transcriber(texts=("第一段话", "第二段话")), engine=engine
        )

        await orchestrator.start()
        task_a = orchestrator.stop()
        await engine.called.wait()
        assert orchestrator.phase is SessionPhase.PROCESSING

        assert await orchestrator.start(preempt=True) is True
        assert orchestrator.phase is SessionPhase.RECORDING
        assert orchestrator.session.id == 2

        gate.set()
        await task_a

        # Session A finished generating after being preempted: nothing leaks.
        assert parts["inserter"].calls == []
        assert parts["history"].records == []
        assert orchestrator.phase is SessionPhase.RECORDING
        assert orchestrator.session.id == 2
        assert Path("rec-1.wav") in parts["capture"].cleaned

        await orchestrator.stop()
        assert orchestrator.phase is SessionPhase.DONE
        assert len(parts["inserter"].calls) == 1

    asyncio.run(scenario())


def test_cancel_during_transcription_goes_idle(tmp_path):
    async def scenario():
        gate = asyncio.Event()
        orchestrator, parts = _orchestrator(tmp_path, transcriber=_Transcriber(gate=gate))
        await orchestrator.start()
        task = orchestrator.stop()
        await asyncio.sleep(0)

        orchestrator.cancel()
        assert orchestrator.phase is SessionPhase.IDLE

        gate.set()
        await task
        assert orchestrator.phase is SessionPhase.IDLE
        assert parts["inserter"].calls == []
        assert parts["capture"].cleaned == [Path("rec-1.wav")]

    asyncio.run(scenario())


def test_loads_engine_before_recording(tmp_path):
    async def scenario():
        transcriber = _Transcriber(ready=False)
        loader = _Loader(transcriber)
        orchestrator, parts = _orchestrator(tmp_path, transcriber=transcriber, loader=loader)
        phases = []
        orchestrator.state.add_listener(lambda old, new: phases.append(new))

        assert await orchestrator.start() is True
        assert phases[:2] == [SessionPhase.DOWNLOADING, SessionPhase.RECORDING]
        assert loader.loaded == ["tiny"]
        entry = orchestrator.readiness.get("tiny")
        assert entry.status is ModelStatus.READY
        assert entry.progress == 1.0

    asyncio.run(scenario())


def test_load_failure_ends_in_error_without_capture(tmp_path):
    async def scenario():
        transcriber = _Transcriber(ready=False)
        loader = _Loader(transcriber, error=DownloadFailed("network down"))
        capture = _Capture()
        orchestrator, parts = _orchestrator(tmp_path, transcriber=transcriber, loader=loader, capture=capture)

        assert await orchestrator.start() is False
        assert orchestrator.phase is SessionPhase.ERROR
        assert orchestrator.state.error_reason.startswith(message("pipeline.download_failed", "zh"))
        assert "network down" in orchestrator.state.error_reason
        assert capture.count == 0
        assert orchestrator.readiness.get("tiny").status is ModelStatus.ERROR

    asyncio.run(scenario())


def test_microphone_failure_ends_in_error(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path, capture=_Capture(ok=False))
        assert await orchestrator.start() is False
        assert orchestrator.phase is SessionPhase.ERROR
        assert orchestrator.state.error_reason == message("pipeline.mic_failed", "zh")

    asyncio.run(scenario())


def test_transcription_error_ends_in_error(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path, transcriber=_Transcriber(error=RuntimeError("decoder crashed")))
        await orchestrator.start()
        await orchestrator.stop()

        assert orchestrator.phase is SessionPhase.ERROR
        assert "decoder crashed" in orchestrator.state.error_reason
        assert parts["inserter"].calls == []
        assert parts["capture"].cleaned == [Path("rec-1.wav")]

    asyncio.run(scenario())


def test_uncertain_insertion_still_done_and_copies_text(tmp_path):
    async def scenario():
        inserter = _Inserter(result=InsertResult.probably_failed("Could not activate target application"))
        orchestrator, parts = _orchestrator(tmp_path, inserter=inserter)
        await orchestrator.start()
        await orchestrator.stop()

        assert orchestrator.phase is SessionPhase.DONE
        assert inserter.clipboard == ["整理后的文本"]
        title, body = parts["ui"].calls[-1]
        assert title == message("pipeline.insert_failed_title", "zh")
        assert body.endswith("Could not activate target application")

    asyncio.run(scenario())


def test_done_returns_to_idle_after_display_delay(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path, display_delay=0.01)
        await orchestrator.start()
        await orchestrator.stop()
        assert orchestrator.phase is SessionPhase.DONE

        await asyncio.sleep(0.05)
        assert orchestrator.phase is SessionPhase.IDLE
        assert orchestrator.session.processed_text == ""

    asyncio.run(scenario())


def test_stale_display_timer_does_not_reset_new_session(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path, display_delay=0.01)
        await orchestrator.start()
        await orchestrator.stop()
        assert orchestrator.phase is SessionPhase.DONE

        await orchestrator.start()
        await asyncio.sleep(0.05)
        assert orchestrator.phase is SessionPhase.RECORDING

    asyncio.run(scenario())


def test_unload_speech_model_marks_downloaded(tmp_path):
    async def scenario():
        transcriber = _Transcriber(ready=False)
        loader = _Loader(transcriber)
        orchestrator, parts = _orchestrator(tmp_path, transcriber=transcriber, loader=loader)
        await orchestrator.warm_up()
        assert orchestrator.phase is SessionPhase.IDLE
        assert orchestrator.readiness.is_ready("tiny")

        assert orchestrator.unload_speech_model() is True
        assert loader.unloaded is True
        assert orchestrator.readiness.get("tiny").status is ModelStatus.DOWNLOADED

    asyncio.run(scenario())


def test_unready_engine_without_loader_ends_in_error(tmp_path):
    async def scenario():
        capture = _Capture()
        orchestrator, parts = _orchestrator(tmp_path, transcriber=_Transcriber(ready=False), capture=capture)

        assert await orchestrator.start() is False
        assert orchestrator.phase is SessionPhase.ERROR
        assert orchestrator.state.error_reason == message("pipeline.model_not_ready", "zh")
        assert capture.count == 0

        # still unavailable on the next attempt, from the error phase
        assert await orchestrator.start() is False
        assert orchestrator.phase is SessionPhase.ERROR

    asyncio.run(scenario())


def test_release_queued_behind_press_still_stops_recording(tmp_path):
    async def scenario():
        orchestrator, parts = _orchestrator(tmp_path)
        starts = []
        detector = ActivationDetector(
            ActivationMode.LONG_PRESS,
            on_start=lambda: starts.append(orchestrator.request_start()),
            on_stop=orchestrator.stop,
        )
        loop = asyncio.get_running_loop()
        loop.call_soon(detector.process_key_state, True)
        loop.call_soon(detector.process_key_state, False)
        await asyncio.sleep(0)

        assert len(starts) == 1
        assert await starts[0] is True
        await orchestrator.current_task

        assert orchestrator.phase is SessionPhase.DONE
        assert parts["capture"].stopped == 1
        assert parts["inserter"].calls == [("整理后的文本", "window-1")]

    asyncio.run(scenario())


def test_stop_during_model_load_is_applied_once_recording(tmp_path):
    async def scenario():
        transcriber = _Transcriber(ready=False)
        orchestrator, parts = _orchestrator(tmp_path, transcriber=transcriber, loader=_Loader(transcriber))

        start_task = orchestrator.request_start()
        assert orchestrator.stop() is None
        assert await start_task is True
        await orchestrator.current_task

        assert orchestrator.phase is SessionPhase.DONE
        assert parts["capture"].count == 1
        assert parts["capture"].stopped == 1

    asyncio.run(scenario())


def test_rejected_start_does_not_stop_a_later_session(tmp_path):
    async def scenario():
        gate = asyncio.Event()
        orchestrator, parts = _orchestrator(tmp_path, transcriber=_Transcriber(gate=gate))
        await orchestrator.start()
        task = orchestrator.stop()

        rejected = orchestrator.request_start()
        orchestrator.stop()
        assert await rejected is False

        gate.set()
        await task
        assert await orchestrator.request_start() is True
        assert orchestrator.phase is SessionPhase.RECORDING

    asyncio.run(scenario())


def test_unloaded_generation_model_reloads_for_next_session(tmp_path):
    async def scenario():
        model = _LocalModel(result="整理后的文本")
        orchestrator, parts = _orchestrator(tmp_path, generation=model)
        await orchestrator.warm_up()
        assert orchestrator.readiness.is_ready("local-llm")

        assert orchestrator.unload_generation_model() is True
        assert orchestrator.readiness.get("local-llm").status is ModelStatus.DOWNLOADED

        await orchestrator.start()
        await orchestrator.stop()

        assert model.loads == ["local-llm", "local-llm"]
        assert orchestrator.readiness.is_ready("local-llm")
        assert orchestrator.phase is SessionPhase.DONE
        assert parts["inserter"].calls == [("整理后的文本", "window-1")]

    asyncio.run(scenario())


def test_generation_load_failure_falls_back_to_cleanup(tmp_path):
    async def scenario():
        model = _LocalModel(error=DownloadFailed("offline"))
        orchestrator, parts = _orchestrator(
            tmp_path, transcriber=_Transcriber(texts=("嗯 这个 会议 记录 嗯",)), generation=model
        )
        await orchestrator.start()
        await orchestrator.stop()

        assert model.loads == ["local-llm"]
        assert orchestrator.readiness.get("local-llm").status is ModelStatus.ERROR
        assert orchestrator.phase is SessionPhase.DONE
        assert parts["inserter"].calls[0][0] == "会议 记录"

    asyncio.run(scenario())
