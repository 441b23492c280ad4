"""Newline-delimited JSON protocol used by GUI front-ends.

One command per input line; one JSON object per output line. Entries are
always listed most recent first with ``id`` equal to their rank.
"""

import json
import logging
import sys
import threading
from typing import TextIO

from clipz.errors import ClipzError
from clipz.history import EntryStore, StoreEvent
from clipz.models import ClipboardEntry

logger = logging.getLogger(__name__)

SELECT_PREFIX = "select-entry:"
REMOVE_PREFIX = "remove-entry:"


def render_entries(entries: list[ClipboardEntry]) -> dict:
    """Build an ``entries`` message from an oldest-first entry list."""
    data = []
    for rank, entry in enumerate(reversed(entries), start=1):
        data.append({
            "id": rank,
            "content": entry.content,
            "timestamp": entry.timestamp * 1000,
            "type": entry.kind.value,
            "isCurrent": rank == 1,
        })
    return {"type": "entries", "data": data}


def error_message(message: str) -> dict:
    return {"type": "error", "message": message}


def _parse_rank(arg: str) -> int | None:
    try:
        return int(arg.strip())
    except ValueError:
        return None


class ProtocolGateway:
    def __init__(self, store: EntryStore, input_stream: TextIO | None = None, output_stream: TextIO | None = None):
        self._store = store
        self._in = input_stream if input_stream is not None else sys.stdin
        self._out = output_stream if output_stream is not None else sys.stdout
        # poller pushes arrive on another thread
        self._write_lock = threading.Lock()

    def send(self, message: dict) -> None:
        line = json.dumps(message, ensure_ascii=False, separators=(",", ":"))
        with self._write_lock:
            self._out.write(line + "\n")
            self._out.flush()

    def send_entries(self) -> None:
        self.send(render_entries(self._store.entries()))

    def _on_store_event(self, event: StoreEvent, entries: list[ClipboardEntry]) -> None:
        if event == StoreEvent.ADDED:
            self.send(render_entries(entries))

    def handle(self, line: str) -> bool:
        """Process one command line. Returns False when the session should end."""
        command = line.strip()
        if not command:
            return True
        if command == "quit":
            return False

        if command == "get-entries":
            self.send_entries()
        elif command.startswith(SELECT_PREFIX):
            self._select(command[len(SELECT_PREFIX):])
        elif command.startswith(REMOVE_PREFIX):
            self._remove(command[len(REMOVE_PREFIX):])
        elif command == "clear":
            self._store.clear_history()
            self.send({"type": "success", "message": "History cleared"})
        else:
            logger.debug("Unknown command: %r", command)
            self.send(error_message("Unknown command"))
        return True

    def _select(self, arg: str) -> None:
        rank = _parse_rank(arg)
        if rank is None:
            self.send(error_message("Invalid index"))
            return
        try:
            self._store.select_by_rank(rank)
        except ClipzError as exc:
            logger.info("select-entry:%d failed: %s", rank, exc)
            self.send(error_message(str(exc)))
            return
        self.send({"type": "select-success", "index": rank})
        self.send_entries()

    def _remove(self, arg: str) -> None:
        rank = _parse_rank(arg)
        if rank is None:
            self.send(error_message("Invalid index"))
            return
        try:
            self._store.remove_by_rank(rank)
        except ClipzError as exc:
            logger.info("remove-entry:%d failed: %s", rank, exc)
            self.send(error_message(str(exc)))
            return
        self.send({"type": "remove-success", "index": rank})
        self.send_entries()

    def serve(self) -> None:
        """Announce readiness and process commands until quit or EOF."""
        self.send({"type": "ready"})
        self._store.subscribe(self._on_store_event)
        try:
            for line in self._in:
                if not self.handle(line):
                    break
        finally:
            self._store.unsubscribe(self._on_store_event)
