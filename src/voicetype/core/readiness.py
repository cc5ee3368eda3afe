"""Model readiness tracking.

Each speech or generation model moves through

    not-downloaded -> downloading -> compiling -> loading -> ready

with ``downloaded`` meaning "cached on disk but not in memory" and ``error``
reachable from any active state. Stage-local progress is mapped onto one
overall bar so observers see a single continuous fraction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class ModelKind(str, Enum):
    SPEECH = "speech"
    GENERATION = "generation"


class ModelStatus(str, Enum):
    NOT_DOWNLOADED = "not-downloaded"
    DOWNLOADING = "downloading"
    COMPILING = "compiling"
    LOADING = "loading"
    DOWNLOADED = "downloaded"
    READY = "ready"
    ERROR = "error"

    @property
    def is_busy(self) -> bool:
        return self in _STAGE_BANDS


# Overall progress band for each active stage.
_STAGE_BANDS = {
    ModelStatus.DOWNLOADING: (0.0, 0.6),
    ModelStatus.COMPILING: (0.6, 0.85),
    ModelStatus.LOADING: (0.85, 1.0),
}

_ALLOWED = {
    ModelStatus.NOT_DOWNLOADED: {ModelStatus.DOWNLOADING, ModelStatus.DOWNLOADED},
    ModelStatus.DOWNLOADED: {
        ModelStatus.DOWNLOADING,
        ModelStatus.COMPILING,
        ModelStatus.LOADING,
        ModelStatus.NOT_DOWNLOADED,
    },
    ModelStatus.DOWNLOADING: {
        ModelStatus.COMPILING,
        ModelStatus.LOADING,
        ModelStatus.DOWNLOADED,
        ModelStatus.NOT_DOWNLOADED,
        ModelStatus.ERROR,
    },
    ModelStatus.COMPILING: {ModelStatus.LOADING, ModelStatus.NOT_DOWNLOADED, ModelStatus.ERROR},
    ModelStatus.LOADING: {ModelStatus.READY, ModelStatus.NOT_DOWNLOADED, ModelStatus.ERROR},
    ModelStatus.READY: {ModelStatus.DOWNLOADED, ModelStatus.NOT_DOWNLOADED},
    ModelStatus.ERROR: {ModelStatus.DOWNLOADING, ModelStatus.NOT_DOWNLOADED},
}


@dataclass
class ModelEntry:
    id: str
    kind: ModelKind = ModelKind.SPEECH
    status: ModelStatus = ModelStatus.NOT_DOWNLOADED
    progress: float = 0.0
    error: str | None = None
    detail: str = ""


ModelObserver = Callable[[ModelEntry], None]


class ModelReadinessTracker:
    """Owns every ModelEntry; mutated only from the owner loop."""

    def __init__(self):
        self._entries: dict[str, ModelEntry] = {}
        self._observers: list[ModelObserver] = []

    def subscribe(self, observer: ModelObserver) -> None:
        self._observers.append(observer)

    def register(self, model_id: str, kind: ModelKind = ModelKind.SPEECH) -> ModelEntry:
        entry = self._entries.get(model_id)
        if entry is None:
            entry = ModelEntry(id=model_id, kind=kind)
            self._entries[model_id] = entry
        return entry

    def get(self, model_id: str) -> ModelEntry | None:
        return self._entries.get(model_id)

    def entries(self, kind: ModelKind | None = None) -> list[ModelEntry]:
        return [e for e in self._entries.values() if kind is None or e.kind is kind]

    def is_ready(self, model_id: str) -> bool:
        entry = self._entries.get(model_id)
        return entry is not None and entry.status is ModelStatus.READY

    # -- transitions --------------------------------------------------------

    def begin_download(self, model_id: str, kind: ModelKind = ModelKind.SPEECH) -> bool:
        entry = self.register(model_id, kind)
        if entry.status is ModelStatus.DOWNLOADING:
            return False
        return self._move(entry, ModelStatus.DOWNLOADING)

    def update_progress(self, model_id: str, stage: ModelStatus | str, fraction: float) -> None:
        """Report progress within ``stage``; advancing the stage is implicit."""
        entry = self._entries.get(model_id)
        if entry is None:
            return
        stage = ModelStatus(stage)
        if stage not in _STAGE_BANDS:
            logger.warning("Progress reported for non-active stage %s", stage.value)
            return
        if entry.status is not stage and not self._move(entry, stage):
            return

        low, high = _STAGE_BANDS[stage]
        fraction = min(max(fraction, 0.0), 1.0)
        overall = low + (high - low) * fraction
        if overall < entry.progress:
            return
        entry.progress = overall
        if stage is ModelStatus.DOWNLOADING:
            entry.detail = f"{int(fraction * 100)}%"
        self._emit(entry)

    def mark_ready(self, model_id: str) -> bool:
        entry = self._entries.get(model_id)
        if entry is None:
            return False
        if entry.status in (ModelStatus.DOWNLOADING, ModelStatus.COMPILING, ModelStatus.DOWNLOADED):
            # Generation models and cached speech models may skip straight to loading.
            self._move(entry, ModelStatus.LOADING)
        if not self._move(entry, ModelStatus.READY):
            return False
        entry.progress = 1.0
        self._emit(entry)
        return True

    def mark_downloaded(self, model_id: str) -> bool:
        entry = self._entries.get(model_id)
        return entry is not None and self._move(entry, ModelStatus.DOWNLOADED)

    def mark_error(self, model_id: str, message: str) -> bool:
        entry = self._entries.get(model_id)
        if entry is None:
            return False
        if not self._move(entry, ModelStatus.ERROR):
            return False
        entry.error = message
        self._emit(entry)
        return True

    def mark_removed(self, model_id: str) -> bool:
        entry = self._entries.get(model_id)
        return entry is not None and self._move(entry, ModelStatus.NOT_DOWNLOADED)

    def refresh(self, model_id: str, cached: bool) -> None:
        """Sync an idle entry with what is on disk."""
        entry = self._entries.get(model_id)
        if entry is None or entry.status.is_busy or entry.status is ModelStatus.READY:
            return
        target = ModelStatus.DOWNLOADED if cached else ModelStatus.NOT_DOWNLOADED
        if entry.status is not target:
            self._move(entry, target)

    def _move(self, entry: ModelEntry, status: ModelStatus) -> bool:
        if status not in _ALLOWED[entry.status]:
            logger.warning(
                "Invalid model transition for %s: %s -> %s",
                entry.id,
                entry.status.value,
                status.value,
            )
            return False
        entry.status = status
        if status in _STAGE_BANDS:
            entry.progress = max(entry.progress, _STAGE_BANDS[status][0])
            if status is ModelStatus.DOWNLOADING:
                entry.progress = 0.0
                entry.error = None
        else:
            entry.progress = 0.0 if status is not ModelStatus.READY else 1.0
        entry.detail = ""
        self._emit(entry)
        return True

    def _emit(self, entry: ModelEntry) -> None:
        for observer in list(self._observers):
            observer(entry)
