import logging
import threading
import time
from collections.abc import Callable

from clipz.classifier import ContentClassifier
from clipz.config import BACKOFF_STEP_MS, SLEEP_SLICE_MS, STOP_GRACE_PERIOD, Config
from clipz.errors import CommandFailed, NoContent
from clipz.history import EntryStore
from clipz.models import Payload

logger = logging.getLogger(__name__)


class ClipboardPoller:
    """Background loop feeding clipboard changes into the history.

    Polls every min_poll_interval_ms while the clipboard is changing and
    slows to max_poll_interval_ms once nothing new has been added for
    inactive_threshold_sec. Consecutive read failures back off linearly;
    any other error ends the loop, is kept in ``error`` and goes to on_error.
    Sleeps are cut into short slices so stop() takes effect quickly and so
    on_tick (the persistence flush check) runs every force_save_cycles slices.
    """

    def __init__(
        self,
        classifier: ContentClassifier,
        store: EntryStore,
        config: Config,
        on_tick: Callable[[], object] | None = None,
        on_error: Callable[[Exception], object] | None = None,
    ):
        self._classifier = classifier
        self._store = store
        self._config = config
        self._on_tick = on_tick
        self._on_error = on_error
        # set when the loop ended on an unexpected error
        self.error: Exception | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.failures = 0
        self._last_change = time.monotonic()
        self._last_change_count: int | None = None
        self._last_payload: Payload | None = None
        self._slice_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check_clipboard(self) -> bool:
        """Run one poll cycle.

        Returns:
            True if a new entry was added to the history.

        Raises:
            NoContent: Clipboard empty or over the size limit.
            CommandFailed: The OS clipboard read failed.
        """
        count = self._classifier.backend.change_count()
        if count is not None and count == self._last_change_count:
            return False

        payload = self._classifier.classify()
        self._last_change_count = count
        if payload == self._last_payload:
            return False
        self._last_payload = payload

        added = self._store.add(payload)
        if added:
            self._last_change = time.monotonic()
            logger.debug("Captured %s entry", payload.kind.value)
        return added

    def backoff_delay_ms(self) -> int:
        return min(
            self._config.max_poll_interval_ms,
            self._config.min_poll_interval_ms + self.failures * BACKOFF_STEP_MS,
        )

    def next_delay_ms(self) -> int:
        idle = time.monotonic() - self._last_change
        if idle > self._config.inactive_threshold_sec:
            return self._config.max_poll_interval_ms
        return self._config.min_poll_interval_ms

    def _sleep(self, delay_ms: int) -> None:
        slices = max(1, delay_ms // SLEEP_SLICE_MS)
        for _ in range(slices):
            if self._stop.wait(SLEEP_SLICE_MS / 1000):
                return
            self._slice_count += 1
            if self._slice_count >= self._config.force_save_cycles:
                self._slice_count = 0
                if self._on_tick is not None:
                    self._on_tick()

    def run(self) -> None:
        logger.info("Monitoring clipboard in background")
        while not self._stop.is_set():
            try:
                self.check_clipboard()
            except (NoContent, CommandFailed) as exc:
                self.failures += 1
                logger.debug("Clipboard read failed (%d in a row): %s", self.failures, exc)
                self._sleep(self.backoff_delay_ms())
                continue
            except Exception as exc:
                logger.exception("Clipboard poller stopped on unexpected error")
                self.error = exc
                if self._on_error is not None:
                    self._on_error(exc)
                return
            self.failures = 0
            self._sleep(self.next_delay_ms())
        logger.info("Clipboard monitoring stopped")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self.error = None
        self._thread = threading.Thread(target=self.run, name="clipz-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = STOP_GRACE_PERIOD) -> bool:
        """Signal the loop to stop and wait up to timeout seconds for it.

        Returns:
            True if the thread has exited.
        """
        if self._thread is None:
            return True
        self._stop.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Poller did not stop within %.1fs", timeout)
            return False
        self._thread = None
        return True
