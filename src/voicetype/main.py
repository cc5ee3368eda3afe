#!/usr/bin/env python3
"""VoiceType: hold the hotkey, speak, release to insert the text"""

import argparse
import logging
import signal
import threading

from .adapters.config_env import load_app_config
from .adapters.generation import GenerationAdapter
from .adapters.transcription import TranscriptionAdapter
from .adapters.ui_feedback import UIFeedbackAdapter
from .async_bridge import get_async_bridge
from .audio_capture import AudioCapture
from .config import config
from .core.activation import ActivationDetector, ActivationMode, KeySource, KeyStateRouter
from .core.controller import SessionOrchestrator
from .core.readiness import ModelEntry, ModelStatus
from .core.state_machine import SessionPhase
from .dictionary import PersonalDictionary
from .history import InputHistory
from .hotkey import HotkeyListener
from .llm_factory import get_llm_provider
from .llm_provider import NullLLMProvider
from .messages import message
from .platform_utils import IS_WINDOWS
from .screen_context import ScreenContext
from .stt_factory import get_stt_provider_with_fallback
from .text_inserter import TextInserter
from .text_processor import TextProcessor

logger = logging.getLogger(__name__)


class VoiceType:
    """Main application: wires adapters, hotkey and the session orchestrator"""

    def __init__(self):
        config.create_dirs()
        self.settings = load_app_config()
        self.bridge = get_async_bridge()
        self.ui = UIFeedbackAdapter(self.settings.notifications_enabled)

        self.stt = get_stt_provider_with_fallback()
        self.llm = get_llm_provider() if self.settings.rewrites else NullLLMProvider()
        self.capture = AudioCapture(config.SAMPLE_RATE, config.CHUNK_SIZE)
        self.history = InputHistory()
        self.text_processor = TextProcessor(
            PersonalDictionary(),
            engine=GenerationAdapter(self.llm) if self.llm.is_available() else None,
            language=self.settings.input_language,
            max_tokens=config.LLM_MAX_TOKENS,
        )

        generation_loader = self.llm if self.llm.needs_model() else None
        self.orchestrator = SessionOrchestrator(
            transcriber=TranscriptionAdapter(self.stt),
            capture=self.capture,
            text_processor=self.text_processor,
            inserter=TextInserter(),
            ui=self.ui,
            settings=self.settings,
            screen=ScreenContext(),
            history=self.history,
            speech_loader=self.stt if self.stt.needs_model() else None,
            generation_loader=generation_loader,
            generation_model=config.LLM_MODEL if generation_loader else "",
        )
        self.orchestrator.state.add_listener(self._on_phase)
        self.orchestrator.readiness.subscribe(self._on_model)

        self.detector = ActivationDetector(
            ActivationMode.parse(config.ACTIVATION_MODE),
            on_start=self._on_start_intent,
            on_stop=self._on_stop_intent,
            tap_interval=config.TAP_INTERVAL,
        )
        self.router = KeyStateRouter(self.detector.process_key_state)
        self.hotkey = HotkeyListener(config.HOTKEY, self._on_key_sample, self._on_privileged_active)
        self._shutdown_event = threading.Event()

    # -- foreign threads -> owner loop ------------------------------------

    def _on_key_sample(self, source: KeySource, pressed: bool):
        self.bridge.call_soon(self.router.feed, source, pressed)

    def _on_privileged_active(self, active: bool):
        self.bridge.call_soon(self.router.set_privileged_active, active)

    # -- owner loop ---------------------------------------------------------

    def _on_start_intent(self):
        self.orchestrator.request_start()

    def _on_stop_intent(self):
        self.orchestrator.stop()

    def _on_phase(self, old: SessionPhase, new: SessionPhase):
        lang = self.settings.ui_language
        if new is SessionPhase.RECORDING:
            print(f"🎤 {message('pipeline.recording', lang)}")
        elif new is SessionPhase.TRANSCRIBING:
            print(f"⏳ {message('pipeline.transcribing', lang)}")
        elif new is SessionPhase.PROCESSING:
            print(f"✍ {message('pipeline.formatting', lang)}")
        elif new is SessionPhase.DONE:
            text = self.orchestrator.session.processed_text
            print(f"✓ {text[:50]}..." if len(text) > 50 else f"✓ {text}")
        elif new is SessionPhase.ERROR:
            print(f"❌ {self.orchestrator.state.error_reason}")

    def _on_model(self, entry: ModelEntry):
        if entry.status is ModelStatus.READY:
            print(f"✓ Model ready: {entry.id}")
        elif entry.status is ModelStatus.ERROR:
            print(f"❌ Model {entry.id}: {entry.error}")
        else:
            logger.debug("Model %s: %s %.0f%% %s", entry.id, entry.status.value, entry.progress * 100, entry.detail)

    def _refresh_cache_status(self):
        if self.stt.needs_model():
            cached = self.stt.is_cached(self.settings.speech_model)
            self.bridge.call_soon(self.orchestrator.readiness.refresh, self.settings.speech_model, cached)

    # -- lifecycle ----------------------------------------------------------

    def run(self):
        """Run the application"""
        print("\n" + "=" * 50)
        print("🚀 VoiceType")
        print("=" * 50)
        print(f"Hotkey: {self.hotkey.hotkey} ({self.detector.mode.value})")
        print(f"Speech: {self.stt.name} ({self.settings.speech_model})")
        print(f"Output: {self.settings.output_mode.value} via {self.llm.name}")
        print("\nPress Ctrl+C to quit")
        print("=" * 50 + "\n")

        self._refresh_cache_status()
        self.hotkey.start()
        self.bridge.submit(self.orchestrator.warm_up())
        self.ui.notify("VoiceType", message("status.ready", self.settings.ui_language))

        try:
            if IS_WINDOWS:
                self._shutdown_event.wait()
            else:
                # Wake up periodically so signal handlers get a chance to run
                while not self._shutdown_event.wait(0.5):
                    pass
        except KeyboardInterrupt:
            pass

        self.shutdown()

    def shutdown(self):
        """Clean shutdown"""
        print("\nShutting down...")
        self._shutdown_event.set()
        self.hotkey.stop()
        self.bridge.call_soon(self.orchestrator.cancel)
        self.bridge.stop()
        self.capture.terminate()
        self.history.close()
        print("✓ Done")

    def request_shutdown(self):
        """Request application shutdown (thread-safe)"""
        self._shutdown_event.set()


def list_models():
    from .llm_remote import PRESETS
    from .stt_factory import get_stt_provider
    from .stt_whisper import AVAILABLE_MODELS

    whisper = get_stt_provider("whisper")
    print("Speech models (faster-whisper):")
    for name in AVAILABLE_MODELS:
        marker = "→" if name == config.WHISPER_MODEL else " "
        cached = " [downloaded]" if whisper.needs_model() and whisper.is_cached(name) else ""
        print(f"  {marker} {name}{cached}")

    print(f"\nLocal LLM: {config.LLM_MODEL}")
    print("\nRemote providers:")
    for provider, preset in PRESETS.items():
        marker = "→" if provider.value == config.REMOTE_PROVIDER else " "
        model = preset.default_model or "(set REMOTE_MODEL)"
        print(f"  {marker} {provider.value:<15} {model}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="voicetype", description="Hotkey-driven voice typing")
    parser.add_argument("--mode", choices=["direct", "processed"], help="Output mode (overrides OUTPUT_MODE)")
    parser.add_argument(
        "--activation",
        choices=[m.value for m in ActivationMode],
        help="Hotkey activation (overrides ACTIVATION_MODE)",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging, including transcripts")
    parser.add_argument("--list-models", action="store_true", help="List models and providers, then exit")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.mode:
        config.OUTPUT_MODE = args.mode
    if args.activation:
        config.ACTIVATION_MODE = args.activation
    if args.debug:
        config.DEBUG = True

    logging.basicConfig(
        level=logging.DEBUG if config.DEBUG else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_models:
        list_models()
        return

    app = VoiceType()

    def signal_handler(sig, frame):
        app.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    if not IS_WINDOWS:
        signal.signal(signal.SIGTERM, signal_handler)

    app.run()


if __name__ == "__main__":
    main()
