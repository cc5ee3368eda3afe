"""Input history: persisted records, usage stats and recent context."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
import json
import logging
from pathlib import Path
import uuid

logger = logging.getLogger(__name__)

MAX_RECORDS = 500


@dataclass
class InputRecord:
    raw_text: str
    processed_text: str
    was_processed: bool
    date: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def raw_char_count(self) -> int:
        return len(self.raw_text)

    @property
    def processed_char_count(self) -> int:
        return len(self.processed_text)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        data["raw_char_count"] = self.raw_char_count
        data["processed_char_count"] = self.processed_char_count
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "InputRecord":
        return cls(
            raw_text=data["raw_text"],
            processed_text=data["processed_text"],
            was_processed=bool(data.get("was_processed", False)),
            date=datetime.fromisoformat(data["date"]),
            id=data.get("id") or str(uuid.uuid4()),
        )


@dataclass(frozen=True)
class InputStats:
    total_inputs: int
    total_raw_chars: int
    total_processed_chars: int
    chars_saved: int
    today_inputs: int
    today_chars: int
    streak_days: int

    @property
    def efficiency_ratio(self) -> float:
        if self.total_raw_chars <= 0:
            return 0.0
        return self.chars_saved / self.total_raw_chars


class InputHistory:
    """Newest-first list of inserted texts, capped at MAX_RECORDS.

    Mutations update memory at once; the JSON file is rewritten on a single
    background writer so callers on the owner loop never wait on disk.
    """

    def __init__(self, data_dir: Path | str | None = None, max_records: int = MAX_RECORDS):
        if data_dir is None:
            from .config import config

            data_dir = config.DATA_DIR
        self.path = Path(data_dir) / "input_history.json"
        self.max_records = max_records
        self.records: list[InputRecord] = []
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="HistorySave")
        self._pending: Future | None = None
        self._load()

    def add_record(self, raw_text: str, processed_text: str, was_processed: bool) -> None:
        record = InputRecord(raw_text=raw_text, processed_text=processed_text, was_processed=was_processed)
        self.records.insert(0, record)
        del self.records[self.max_records :]
        self._save()

    def delete_record(self, record_id: str) -> None:
        self.records = [r for r in self.records if r.id != record_id]
        self._save()

    def clear(self) -> None:
        self.records = []
        self._save()

    def recent_context(self, limit: int = 5, window_minutes: int = 30, now: datetime | None = None) -> str:
        """Recent inputs, oldest first, one ``[HH:MM] text`` line each."""
        now = now or datetime.now()
        cutoff = now - timedelta(minutes=window_minutes)
        recent = [r for r in self.records if r.date >= cutoff][:limit]
        lines = []
        for record in reversed(recent):
            text = record.processed_text if record.was_processed else record.raw_text
            lines.append(f"[{record.date:%H:%M}] {text}")
        return "\n".join(lines)

    def stats(self, today: datetime | None = None) -> InputStats:
        today_start = (today or datetime.now()).replace(hour=0, minute=0, second=0, microsecond=0)
        today_records = [r for r in self.records if r.date >= today_start]
        total_raw = sum(r.raw_char_count for r in self.records)
        total_processed = sum(r.processed_char_count for r in self.records)

        days = {r.date.date() for r in self.records}
        streak = 0
        day = today_start.date()
        while day in days:
            streak += 1
            day -= timedelta(days=1)

        return InputStats(
            total_inputs=len(self.records),
            total_raw_chars=total_raw,
            total_processed_chars=total_processed,
            chars_saved=max(0, total_raw - total_processed),
            today_inputs=len(today_records),
            today_chars=sum(r.processed_char_count for r in today_records),
            streak_days=streak,
        )

    def flush(self, timeout: float | None = None) -> None:
        """Wait for the last scheduled write to reach disk."""
        if self._pending is not None:
            self._pending.result(timeout)

    def close(self) -> None:
        self._writer.shutdown(wait=True)

    def _save(self) -> None:
        # Snapshot on the caller's thread; writes land in submission order.
        data = [r.to_dict() for r in self.records]
        self._pending = self._writer.submit(self._write, data)

    def _write(self, data: list[dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp.replace(self.path)
        except OSError as e:
            logger.warning("Could not save input history: %s", e)

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            self.records = [InputRecord.from_dict(item) for item in data]
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable input history: %s", e)
            self.records = []
