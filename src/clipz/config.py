import os
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPZ_DATA_DIR", Path.home() / ".local" / "share" / "clipz"))
LOG_PATH = DATA_DIR / "clipz.log"
HISTORY_PATH = Path(os.environ.get("CLIPZ_HISTORY_PATH", Path.home() / ".clipz_history.json"))
IMAGE_DIR = Path(os.environ.get("CLIPZ_IMAGE_DIR", Path(tempfile.gettempdir()) / "clipz_images"))

HISTORY_VERSION = 2
SLEEP_SLICE_MS = 50  # granularity of poller sleeps
BACKOFF_STEP_MS = 50  # added per consecutive failure
STOP_GRACE_PERIOD = 2.0  # seconds to wait for the poller on shutdown
PREVIEW_LENGTH = 60  # characters shown per entry in the console
IMAGE_LABEL_MAX = 1024  # longest text accepted as an image label
MAX_PATH_LENGTH = 1024


@dataclass(frozen=True)
class Config:
    min_poll_interval_ms: int = 100
    max_poll_interval_ms: int = 250
    inactive_threshold_sec: int = 300
    batch_save_interval_sec: int = 5
    force_save_cycles: int = 200
    max_content_bytes: int = 100 * 1024
    max_fetch_bytes: int = 512 * 1024
    max_entries: int = 10
    # near-duplicate image suppression
    image_dedup_window_sec: int = 30
    image_compare_bytes: int = 1024

    @classmethod
    def balanced(cls) -> "Config":
        return cls()

    @classmethod
    def low_power(cls) -> "Config":
        return cls(
            min_poll_interval_ms=250,
            max_poll_interval_ms=1000,
            inactive_threshold_sec=180,
            batch_save_interval_sec=30,
            force_save_cycles=100,
        )

    @classmethod
    def ultra_low_power(cls) -> "Config":
        return cls(
            min_poll_interval_ms=500,
            max_poll_interval_ms=2000,
            inactive_threshold_sec=120,
            batch_save_interval_sec=60,
            force_save_cycles=50,
            max_entries=5,
        )

    @classmethod
    def responsive(cls) -> "Config":
        return cls(
            min_poll_interval_ms=50,
            max_poll_interval_ms=150,
            inactive_threshold_sec=600,
            batch_save_interval_sec=2,
            force_save_cycles=300,
        )


PRESETS = {
    "balanced": Config.balanced,
    "low-power": Config.low_power,
    "ultra-low-power": Config.ultra_low_power,
    "responsive": Config.responsive,
}


def _parse_max_entries() -> int | None:
    raw = os.environ.get("CLIPZ_MAX_ENTRIES")
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return max(1, min(1000, value))


def load_config(preset: str = "balanced") -> Config:
    """Build the startup configuration from a preset name and the environment.

    Args:
        preset: One of the keys of PRESETS.

    Returns:
        The immutable Config for this process.

    Raises:
        KeyError: If the preset name is unknown.
    """
    config = PRESETS[preset]()
    max_entries = _parse_max_entries()
    if max_entries is not None:
        config = replace(config, max_entries=max_entries)
    return config
