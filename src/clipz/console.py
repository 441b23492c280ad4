import logging
import sys
from datetime import datetime
from typing import TextIO

from clipz.config import PREVIEW_LENGTH
from clipz.errors import ClipzError
from clipz.history import EntryStore, StoreEvent
from clipz.models import ClipboardEntry
from clipz.monitor import ClipboardPoller
from clipz.utils import truncate_text

logger = logging.getLogger(__name__)

HELP = """Commands:
  get           Show all clipboard entries
  get <n>       Copy entry n to the clipboard
  rm <n>        Remove entry n
  clear         Remove every entry except the current one
  clean         Delete all history, including the saved file
  start         Start monitoring the clipboard
  stop          Stop monitoring the clipboard
  help          Show this help
  exit          Quit"""


def format_age(created_at: datetime, now: datetime | None = None) -> str:
    seconds = max(0, int(((now or datetime.now()) - created_at).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def format_entries(entries: list[ClipboardEntry], now: datetime | None = None) -> str:
    lines = [f"Clipboard History ({len(entries)} entries):", "-" * 40]
    for rank, entry in enumerate(reversed(entries), start=1):
        marker = " *" if rank == 1 else ""
        preview = truncate_text(entry.content, PREVIEW_LENGTH)
        lines.append(f"{rank:>3}. [{entry.kind.value}] {preview}  ({format_age(entry.created_at, now)}){marker}")
    lines.append("-" * 40)
    return "\n".join(lines)


class Console:
    """Interactive command console over a text stream."""

    def __init__(
        self,
        store: EntryStore,
        poller: ClipboardPoller | None = None,
        input_stream: TextIO | None = None,
        output_stream: TextIO | None = None,
    ):
        self._store = store
        self._poller = poller
        self._in = input_stream if input_stream is not None else sys.stdin
        self._out = output_stream if output_stream is not None else sys.stdout

    def _print(self, text: str = "") -> None:
        print(text, file=self._out, flush=True)

    def show(self) -> None:
        self._print(format_entries(self._store.entries()))

    def report(self, message: str) -> None:
        self._print()
        self._print(f"Error: {message}")

    def _on_store_event(self, event: StoreEvent, entries: list[ClipboardEntry]) -> None:
        if event == StoreEvent.ADDED:
            self._print()
            self._print(format_entries(entries))

    def _parse_rank(self, arg: str) -> int | None:
        try:
            return int(arg)
        except ValueError:
            self._print("Invalid index. Usage: get <number> or rm <number>")
            return None

    def handle(self, line: str) -> bool:
        """Run one console command. Returns False on exit."""
        parts = line.strip().split(maxsplit=1)
        if not parts:
            return True
        command, arg = parts[0].lower(), (parts[1] if len(parts) > 1 else "")

        try:
            if command in ("exit", "quit"):
                self._print("Goodbye!")
                return False
            elif command == "get" and not arg:
                self.show()
            elif command == "get":
                rank = self._parse_rank(arg)
                if rank is not None:
                    entry = self._store.select_by_rank(rank)
                    self._print(f"Copied entry {rank} ({entry.kind.value}) to clipboard.")
                    self.show()
            elif command == "rm":
                rank = self._parse_rank(arg)
                if rank is not None:
                    self._store.remove_by_rank(rank)
                    self.show()
            elif command == "clear":
                self._store.clear_history()
                self.show()
            elif command == "clean":
                self._print("Cleaning clipboard history...")
                self._store.wipe()
                self.show()
            elif command == "start":
                self._start()
            elif command == "stop":
                self._stop()
            elif command == "help":
                self._print(HELP)
            else:
                self._print("Unknown command.")
                self._print(HELP)
        except ClipzError as exc:
            self._print(f"Error: {exc}")
        return True

    def _start(self) -> None:
        if self._poller is None:
            self._print("Monitoring is not available.")
        elif self._poller.is_running:
            self._print("Already monitoring.")
        else:
            self._poller.start()
            self._print("Monitoring clipboard in background...")

    def _stop(self) -> None:
        if self._poller is None or not self._poller.is_running:
            self._print("Not monitoring.")
        else:
            self._poller.stop()
            self._print("Monitoring stopped.")

    def run(self) -> None:
        self._print("Clipz - Interactive Mode")
        self._print(HELP)
        self._print()
        self._store.subscribe(self._on_store_event)
        try:
            while True:
                print("> ", end="", file=self._out, flush=True)
                line = self._in.readline()
                if not line:
                    break
                if not self.handle(line):
                    break
        finally:
            self._store.unsubscribe(self._on_store_event)
