import json
import logging
import os
import threading
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from clipz.config import HISTORY_PATH, HISTORY_VERSION
from clipz.errors import LoadFailed, SaveFailed, StorageError
from clipz.history import StoreEvent
from clipz.models import ClipboardEntry, ContentKind

logger = logging.getLogger(__name__)


def entry_to_dict(entry: ClipboardEntry) -> dict:
    return {
        "content": entry.content,
        "timestamp": entry.timestamp,
        "type": entry.kind.value,
    }


def parse_document(doc: object) -> list[ClipboardEntry]:
    """Build entries from a decoded history document.

    Version 1 documents carry no type and load as text. Items with a
    missing or mistyped content/timestamp are skipped.
    """
    if not isinstance(doc, dict):
        raise LoadFailed("history document is not an object")
    version = doc.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        version = 1
    items = doc.get("entries")
    if items is None:
        return []
    if not isinstance(items, list):
        raise LoadFailed("history entries is not a list")

    entries = []
    for item in items:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        timestamp = item.get("timestamp")
        if not isinstance(content, str) or not isinstance(timestamp, int) or isinstance(timestamp, bool):
            continue
        kind = ContentKind.parse(item.get("type")) if version >= 2 else ContentKind.TEXT
        try:
            created_at = datetime.fromtimestamp(timestamp)
        except (OverflowError, OSError, ValueError):
            continue
        entries.append(ClipboardEntry(content=content, kind=kind, created_at=created_at))
    return entries


class HistoryFile:
    """The JSON document holding persisted history."""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else HISTORY_PATH

    @property
    def path(self) -> Path:
        return self._path

    def save(self, entries: list[ClipboardEntry]) -> None:
        doc = {
            "version": HISTORY_VERSION,
            "entries": [entry_to_dict(e) for e in entries],
        }
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(doc, f, ensure_ascii=False, indent=2)
                f.write("\n")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise SaveFailed(f"could not write {self._path}: {exc}") from exc

    def _read_document(self) -> object:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise LoadFailed(f"could not read {self._path}: {exc}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise LoadFailed(f"malformed history file {self._path}: {exc}") from exc

    def load(self) -> list[ClipboardEntry]:
        """Read persisted entries, oldest first. Never raises."""
        if not self._path.exists():
            return []
        try:
            entries = parse_document(self._read_document())
        except LoadFailed as exc:
            logger.warning("Starting with empty history: %s", exc)
            return []
        logger.info("Loaded %d entries from %s", len(entries), self._path)
        return entries

    def wipe(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise SaveFailed(f"could not delete {self._path}: {exc}") from exc


class BatchedSaver:
    """Store listener that writes history at most once per interval.

    Every store event marks the history dirty. maybe_flush() writes when
    dirty and the interval has passed since the last successful save;
    flush() writes whenever dirty and is meant for shutdown.
    """

    def __init__(self, history_file: HistoryFile, interval_sec: float, clock: Callable[[], float] = time.monotonic):
        self._file = history_file
        self._interval = interval_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._dirty = False
        self._pending: list[ClipboardEntry] = []
        self._last_save: float | None = None

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __call__(self, event: StoreEvent, entries: list[ClipboardEntry]) -> None:
        if event == StoreEvent.WIPED:
            with self._lock:
                self._dirty = False
                self._pending = []
                try:
                    self._file.wipe()
                except StorageError:
                    logger.error("Failed to delete history file", exc_info=True)
            return

        with self._lock:
            self._dirty = True
            self._pending = entries
        self.maybe_flush()

    def maybe_flush(self) -> bool:
        with self._lock:
            if not self._dirty:
                return False
            now = self._clock()
            if self._last_save is not None and now - self._last_save < self._interval:
                return False
            return self._write(now)

    def flush(self) -> bool:
        with self._lock:
            if not self._dirty:
                return False
            return self._write(self._clock())

    def _write(self, now: float) -> bool:
        try:
            self._file.save(self._pending)
        except SaveFailed:
            logger.warning("Failed to save clipboard history, will retry", exc_info=True)
            return False
        self._dirty = False
        self._last_save = now
        logger.debug("Saved %d entries to %s", len(self._pending), self._file.path)
        return True
