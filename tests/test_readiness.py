import pytest

from voicetype.core.readiness import ModelKind, ModelReadinessTracker, ModelStatus


def _tracker_with_log():
    tracker = ModelReadinessTracker()
    log = []
    tracker.subscribe(lambda entry: log.append((entry.status, entry.progress)))
    return tracker, log


def test_full_speech_model_lifecycle_progress():
    tracker, log = _tracker_with_log()
    tracker.register("small", ModelKind.SPEECH)

    assert tracker.begin_download("small")
    tracker.update_progress("small", "downloading", 0.5)
    assert tracker.get("small").progress == pytest.approx(0.3)
    assert tracker.get("small").detail == "50%"

    tracker.update_progress("small", "compiling", 0.0)
    assert tracker.get("small").status is ModelStatus.COMPILING
    assert tracker.get("small").progress == pytest.approx(0.6)

    tracker.update_progress("small", "compiling", 2.0)  # clamped
    assert tracker.get("small").progress == pytest.approx(0.85)

    tracker.update_progress("small", "loading", 0.5)
    assert tracker.get("small").progress == pytest.approx(0.925)

    assert tracker.mark_ready("small")
    entry = tracker.get("small")
    assert entry.status is ModelStatus.READY
    assert entry.progress == 1.0

    progresses = [p for _, p in log]
    assert progresses[1:] == sorted(progresses[1:])


def test_progress_never_goes_backwards():
    tracker, _ = _tracker_with_log()
    tracker.begin_download("m")
    tracker.update_progress("m", "downloading", 0.8)
    tracker.update_progress("m", "downloading", 0.2)
    assert tracker.get("m").progress == pytest.approx(0.48)


def test_generation_model_skips_compiling():
    tracker, _ = _tracker_with_log()
    tracker.begin_download("qwen", ModelKind.GENERATION)
    tracker.update_progress("qwen", "downloading", 1.0)
    tracker.update_progress("qwen", "loading", 1.0)
    assert tracker.mark_ready("qwen")
    assert tracker.entries(ModelKind.GENERATION)[0].status is ModelStatus.READY
    assert tracker.entries(ModelKind.SPEECH) == []


def test_cached_model_goes_straight_to_ready():
    tracker, _ = _tracker_with_log()
    tracker.register("tiny")
    tracker.refresh("tiny", cached=True)
    assert tracker.get("tiny").status is ModelStatus.DOWNLOADED
    assert tracker.mark_ready("tiny")
    assert tracker.is_ready("tiny")


def test_error_then_retry_resets_progress():
    tracker, _ = _tracker_with_log()
    tracker.begin_download("m")
    tracker.update_progress("m", "downloading", 0.5)
    assert tracker.mark_error("m", "connection reset")
    entry = tracker.get("m")
    assert entry.status is ModelStatus.ERROR
    assert entry.error == "connection reset"

    assert tracker.begin_download("m")
    assert entry.status is ModelStatus.DOWNLOADING
    assert entry.progress == 0.0
    assert entry.error is None


def test_duplicate_download_is_rejected():
    tracker, _ = _tracker_with_log()
    assert tracker.begin_download("m")
    assert tracker.begin_download("m") is False


def test_invalid_transitions_are_refused():
    tracker, _ = _tracker_with_log()
    tracker.register("m")
    assert tracker.mark_ready("m") is False
    assert tracker.mark_error("m", "x") is False
    assert tracker.get("m").status is ModelStatus.NOT_DOWNLOADED


def test_unload_and_remove():
    tracker, _ = _tracker_with_log()
    tracker.register("m")
    tracker.refresh("m", cached=True)
    tracker.mark_ready("m")

    assert tracker.mark_downloaded("m")
    assert tracker.get("m").status is ModelStatus.DOWNLOADED
    assert tracker.mark_removed("m")
    assert tracker.get("m").status is ModelStatus.NOT_DOWNLOADED


def test_refresh_leaves_busy_and_ready_entries_alone():
    tracker, _ = _tracker_with_log()
    tracker.begin_download("m")
    tracker.refresh("m", cached=False)
    assert tracker.get("m").status is ModelStatus.DOWNLOADING


def test_unknown_model_updates_are_ignored():
    tracker, log = _tracker_with_log()
    tracker.update_progress("ghost", "downloading", 0.5)
    assert tracker.mark_ready("ghost") is False
    assert log == []
