import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from enum import Enum

from clipz.classifier import ContentClassifier
from clipz.config import Config
from clipz.errors import InvalidIndex
from clipz.images import ImageStore
from clipz.models import ClipboardEntry, ContentKind, Payload

logger = logging.getLogger(__name__)


class StoreEvent(str, Enum):
    ADDED = "added"
    SELECTED = "selected"
    REMOVED = "removed"
    CLEARED = "cleared"
    WIPED = "wiped"


Listener = Callable[[StoreEvent, list[ClipboardEntry]], None]


class EntryStore:
    """Bounded, deduplicated clipboard history.

    Entries are kept oldest-first; the last entry is the current clipboard.
    Callers address entries by rank, counted from the most recent (rank 1)
    so rank ``r`` lives at index ``len - r``.

    Every public method holds one re-entrant lock, so the poller thread and
    the command loop can both mutate the store. Listeners are called after
    that lock is released with a snapshot of the entries. Mutations also
    hold a dispatch lock until their listeners return, so listeners see
    snapshots in the order the mutations happened.
    """

    def __init__(self, config: Config, image_store: ImageStore, classifier: ContentClassifier | None = None):
        self._config = config
        self._images = image_store
        self._classifier = classifier
        self._entries: list[ClipboardEntry] = []
        self._lock = threading.RLock()
        self._dispatch_lock = threading.RLock()
        self._listeners: list[Listener] = []

    @property
    def max_entries(self) -> int:
        return self._config.max_entries

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: StoreEvent, snapshot: list[ClipboardEntry]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, snapshot)
            except Exception:
                logger.exception("History listener failed on %s", event.value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(self) -> list[ClipboardEntry]:
        """Snapshot of the history, oldest first."""
        with self._lock:
            return list(self._entries)

    def ranked(self) -> list[tuple[int, ClipboardEntry]]:
        """Snapshot of the history as (rank, entry), most recent first."""
        with self._lock:
            return list(enumerate(reversed(self._entries), start=1))

    def _index_for(self, rank: int) -> int:
        count = len(self._entries)
        if rank < 1 or rank > count:
            raise InvalidIndex(rank, count)
        return count - rank

    def get(self, rank: int) -> ClipboardEntry:
        with self._lock:
            return self._entries[self._index_for(rank)]

    def load(self, entries: Iterable[ClipboardEntry]) -> None:
        """Replace the history with previously persisted entries.

        Duplicates keep their most recent position and only the newest
        max_entries survive. Listeners are not notified.
        """
        with self._lock:
            deduped: list[ClipboardEntry] = []
            seen: set[tuple[str, ContentKind]] = set()
            for entry in reversed(list(entries)):
                if entry.key in seen:
                    continue
                seen.add(entry.key)
                deduped.append(entry)
            deduped.reverse()
            overflow = len(deduped) - self.max_entries
            if overflow > 0:
                for entry in deduped[:overflow]:
                    self._release(entry)
                deduped = deduped[overflow:]
            self._entries = deduped

    def add(self, payload: Payload) -> bool:
        """Append a payload as the newest entry.

        Returns:
            True if the entry was added, False if it duplicated an existing
            entry (or a recent image) and was dropped.
        """
        with self._dispatch_lock:
            with self._lock:
                key = (payload.content, payload.kind)
                if any(e.key == key for e in self._entries):
                    return False

                if payload.kind == ContentKind.IMAGE and self._images.is_owned_path(payload.content):
                    match = self._recent_image_match(payload.content)
                    if match is not None:
                        logger.debug("Dropping duplicate image %s", payload.content)
                        self._images.discard(payload.content)
                        if self._classifier is not None:
                            self._classifier.redirect_image(payload.content, match.content)
                        return False

                if len(self._entries) >= self.max_entries:
                    evicted = self._entries.pop(0)
                    self._release(evicted)
                    logger.debug("Evicted oldest entry (%s)", evicted.kind.value)

                self._entries.append(ClipboardEntry.from_payload(payload))
                snapshot = list(self._entries)

            self._notify(StoreEvent.ADDED, snapshot)
        return True

    def select_by_rank(self, rank: int) -> ClipboardEntry:
        """Copy an entry back to the clipboard and make it the newest.

        Raises:
            InvalidIndex: If rank is outside 1..len.
            CommandFailed: If the clipboard could not be written.
        """
        with self._dispatch_lock:
            with self._lock:
                index = self._index_for(rank)
                entry = self._entries[index]
                if self._classifier is not None:
                    self._classifier.apply(entry.content, entry.kind)
                del self._entries[index]
                self._entries.append(entry)
                snapshot = list(self._entries)

            self._notify(StoreEvent.SELECTED, snapshot)
        return entry

    def remove_by_rank(self, rank: int) -> ClipboardEntry:
        """Delete one entry. Rank 1, the current clipboard, is removable too.

        Raises:
            InvalidIndex: If rank is outside 1..len.
        """
        with self._dispatch_lock:
            with self._lock:
                index = self._index_for(rank)
                entry = self._entries.pop(index)
                self._release(entry)
                snapshot = list(self._entries)

            self._notify(StoreEvent.REMOVED, snapshot)
        return entry

    def clear_history(self) -> None:
        """Delete everything except the current clipboard entry."""
        with self._dispatch_lock:
            with self._lock:
                if len(self._entries) <= 1:
                    return
                for entry in self._entries[:-1]:
                    self._release(entry)
                self._entries = self._entries[-1:]
                snapshot = list(self._entries)

            self._notify(StoreEvent.CLEARED, snapshot)

    def wipe(self) -> None:
        """Delete every entry and every scratch image."""
        with self._dispatch_lock:
            with self._lock:
                for entry in self._entries:
                    self._release(entry)
                self._entries = []
                self._images.clear()

            self._notify(StoreEvent.WIPED, [])

    def _release(self, entry: ClipboardEntry) -> None:
        if entry.kind == ContentKind.IMAGE and self._images.is_owned_path(entry.content):
            self._images.discard(entry.content)

    def _recent_image_match(self, path: str) -> ClipboardEntry | None:
        cutoff = datetime.now() - timedelta(seconds=self._config.image_dedup_window_sec)
        for entry in self._entries:
            if entry.kind != ContentKind.IMAGE or entry.created_at < cutoff:
                continue
            if self._images.compare(entry.content, path):
                return entry
        return None
