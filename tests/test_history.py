from datetime import datetime, timedelta
import threading

from voicetype.history import InputHistory


def test_records_are_newest_first_and_capped(tmp_path):
    history = InputHistory(tmp_path, max_records=2)
    history.add_record("one", "One.", True)
    history.add_record("two", "Two.", True)
    history.add_record("three", "Three.", False)

    assert [r.raw_text for r in history.records] == ["three", "two"]


def test_history_persists(tmp_path):
    history = InputHistory(tmp_path)
    history.add_record("嗯 你好", "你好", True)
    history.flush()

    reloaded = InputHistory(tmp_path)
    assert len(reloaded.records) == 1
    record = reloaded.records[0]
    assert record.processed_text == "你好"
    assert record.was_processed is True
    assert record.id == history.records[0].id
    assert record.date == history.records[0].date


def test_recent_context_window_and_format(tmp_path):
    now = datetime(2025, 3, 1, 12, 0)
    history = InputHistory(tmp_path)
    for raw, processed, processed_flag, minutes_ago in [
        ("old raw", "old", True, 90),
        ("second raw", "second", True, 10),
        ("third raw", "third", False, 5),
    ]:
        history.add_record(raw, processed, processed_flag)
        history.records[0].date = now - timedelta(minutes=minutes_ago)

    context = history.recent_context(limit=5, window_minutes=30, now=now)
    assert context == "[11:50] second\n[11:55] third raw"


def test_recent_context_limit_keeps_newest(tmp_path):
    now = datetime(2025, 3, 1, 12, 0)
    history = InputHistory(tmp_path)
    for i in range(4):
        history.add_record(f"r{i}", f"p{i}", True)
        history.records[0].date = now - timedelta(minutes=4 - i)

    assert history.recent_context(limit=2, now=now) == "[11:58] p2\n[11:59] p3"


def test_recent_context_empty(tmp_path):
    assert InputHistory(tmp_path).recent_context() == ""


def test_stats_and_streak(tmp_path):
    today = datetime(2025, 3, 10, 18, 0)
    history = InputHistory(tmp_path)
    for days_ago, raw, processed in [(5, "aaaaaa", "aa"), (2, "bbbb", "bb"), (1, "cc", "cc"), (0, "dddd", "d")]:
        history.add_record(raw, processed, True)
        history.records[0].date = today - timedelta(days=days_ago)

    stats = history.stats(today=today)
    assert stats.total_inputs == 4
    assert stats.total_raw_chars == 16
    assert stats.total_processed_chars == 7
    assert stats.chars_saved == 9
    assert stats.today_inputs == 1
    assert stats.today_chars == 1
    assert stats.streak_days == 3
    assert abs(stats.efficiency_ratio - 9 / 16) < 1e-9


def test_stats_empty_history(tmp_path):
    stats = InputHistory(tmp_path).stats()
    assert stats.total_inputs == 0
    assert stats.streak_days == 0
    assert stats.efficiency_ratio == 0.0


def test_delete_and_clear(tmp_path):
    history = InputHistory(tmp_path)
    history.add_record("a", "a", False)
    history.add_record("b", "b", False)

    history.delete_record(history.records[0].id)
    assert [r.raw_text for r in history.records] == ["a"]

    history.clear()
    history.flush()
    assert InputHistory(tmp_path).records == []


def test_unreadable_history_is_ignored(tmp_path):
    (tmp_path / "input_history.json").write_text("[{\"raw_text\": 1}]", encoding="utf-8")
    assert InputHistory(tmp_path).records == []


def test_add_record_writes_off_the_calling_thread(tmp_path, monkeypatch):
    history = InputHistory(tmp_path)
    writers = []
    release = threading.Event()
    original = InputHistory._write

    def slow_write(self, data):
        writers.append(threading.current_thread().name)
        release.wait(2.0)
        original(self, data)

    monkeypatch.setattr(InputHistory, "_write", slow_write)

    history.add_record("a", "A.", True)
    # memory is updated even though the file write is still blocked
    assert [r.raw_text for r in history.records] == ["a"]
    assert not history.path.exists()

    release.set()
    history.flush(timeout=2.0)
    assert writers and writers[0].startswith("HistorySave")
    assert writers[0] != threading.current_thread().name
    assert [r.raw_text for r in InputHistory(tmp_path).records] == ["a"]
    history.close()
