import logging
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from clipz.backends import ClipboardBackend, get_backend
from clipz.classifier import ContentClassifier
from clipz.config import HISTORY_PATH, IMAGE_DIR, STOP_GRACE_PERIOD, Config
from clipz.console import Console
from clipz.gateway import ProtocolGateway, error_message
from clipz.history import EntryStore
from clipz.images import ImageStore
from clipz.monitor import ClipboardPoller
from clipz.storage import BatchedSaver, HistoryFile

logger = logging.getLogger(__name__)


class ClipzApp:
    """Wires the history engine together and runs one front-end over it."""

    def __init__(
        self,
        config: Config,
        backend: ClipboardBackend | None = None,
        history_path: str | Path | None = None,
        image_dir: str | Path | None = None,
    ):
        self._config = config
        # front-end hook for problems found off the command loop
        self._report: Callable[[str], object] | None = None
        self._init_app(backend, history_path, image_dir)

    def _init_app(self, backend, history_path, image_dir) -> None:
        """Initialize app components. Separated for testability."""
        self.images = ImageStore(image_dir or IMAGE_DIR, compare_bytes=self._config.image_compare_bytes)
        self.classifier = ContentClassifier(backend or get_backend(), self.images, self._config)
        self.store = EntryStore(self._config, self.images, self.classifier)

        self.history_file = HistoryFile(history_path or HISTORY_PATH)
        self.store.load(self.history_file.load())
        self.saver = BatchedSaver(self.history_file, self._config.batch_save_interval_sec)
        self.store.subscribe(self.saver)

        self.poller = ClipboardPoller(
            self.classifier,
            self.store,
            self._config,
            on_tick=self.saver.maybe_flush,
            on_error=self._on_poller_error,
        )

    def _on_poller_error(self, exc: Exception) -> None:
        if self._report is not None:
            self._report(f"Clipboard monitoring stopped: {exc}")

    def run_gateway(self, input_stream: TextIO | None = None, output_stream: TextIO | None = None) -> bool:
        """Serve the JSON protocol until quit or EOF, then shut down."""
        gateway = ProtocolGateway(self.store, input_stream, output_stream)
        self._report = lambda message: gateway.send(error_message(message))
        self.poller.start()
        try:
            gateway.serve()
        finally:
            saved = self.shutdown()
        return saved

    def run_console(self, input_stream: TextIO | None = None, output_stream: TextIO | None = None) -> bool:
        console = Console(self.store, self.poller, input_stream, output_stream)
        self._report = console.report
        self.poller.start()
        try:
            console.run()
        finally:
            saved = self.shutdown()
        return saved

    def shutdown(self) -> bool:
        """Stop polling and write any unsaved history.

        Returns:
            False if history was left unsaved or monitoring died on an
            unexpected error.
        """
        self._report = None
        if not self.poller.stop(STOP_GRACE_PERIOD):
            logger.warning("Flushing history while the poller is still running")
        self.saver.flush()
        if self.saver.dirty:
            logger.error("Clipboard history could not be saved to %s", self.history_file.path)
            return False
        if self.poller.error is not None:
            logger.error("Exiting after clipboard monitoring failed: %s", self.poller.error)
            return False
        return True
