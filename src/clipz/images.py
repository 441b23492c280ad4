import logging
import secrets
import time
from pathlib import Path

from clipz.config import IMAGE_DIR
from clipz.errors import InvalidPath, SaveFailed
from clipz.utils import detect_image_format, image_extension

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "clipz_"


class ImageStore:
    """Scratch directory for raw image bytes taken from the clipboard.

    Image entries reference these files by path. Only files inside the
    store's own directory may be deleted through it.
    """

    def __init__(self, directory: str | Path | None = None, compare_bytes: int = 1024):
        self._dir = Path(directory) if directory else IMAGE_DIR
        self._compare_bytes = compare_bytes

    @property
    def directory(self) -> Path:
        return self._dir

    def persist(self, data: bytes, format_hint: str | None = None) -> str:
        """Write image bytes to a new scratch file and return its path.

        Raises:
            SaveFailed: If the directory or file cannot be written.
        """
        fmt = format_hint or detect_image_format(data) or "PNG"
        filename = f"{FILENAME_PREFIX}{int(time.time())}_{secrets.token_hex(8)}.{image_extension(fmt)}"
        path = self._dir / filename
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise SaveFailed(f"could not save image to {path}: {exc}") from exc
        logger.debug("Saved %d byte %s image to %s", len(data), fmt, path)
        return str(path)

    def compare(self, path_a: str, path_b: str) -> bool:
        """Cheap equality check: same size and same leading bytes.

        Good enough to catch the same screenshot copied twice; it is not
        byte-exact for files that only differ past the compared prefix.
        """
        try:
            size_a = Path(path_a).stat().st_size
            size_b = Path(path_b).stat().st_size
            if size_a != size_b:
                return False
            if size_a == 0:
                return True
            with open(path_a, "rb") as fa, open(path_b, "rb") as fb:
                return fa.read(self._compare_bytes) == fb.read(self._compare_bytes)
        except OSError:
            return False

    def is_owned_path(self, path: str) -> bool:
        try:
            resolved = Path(path).resolve()
        except (OSError, ValueError):
            return False
        return resolved.parent == self._dir.resolve()

    def delete(self, path: str) -> None:
        if not self.is_owned_path(path):
            raise InvalidPath(f"refusing to delete {path!r} outside {self._dir}")
        Path(path).unlink(missing_ok=True)

    def discard(self, path: str) -> None:
        """Delete an owned scratch file, logging instead of raising."""
        if not self.is_owned_path(path):
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not delete scratch image %s", path, exc_info=True)

    def clear(self) -> int:
        if not self._dir.exists():
            return 0
        deleted = 0
        for p in self._dir.glob(f"{FILENAME_PREFIX}*"):
            self.discard(str(p))
            deleted += 1
        return deleted
