import shutil
import sys

from clipz.backends.base import ClipboardBackend
from clipz.errors import UnsupportedPlatform

__all__ = ["ClipboardBackend", "get_backend"]


def get_backend() -> ClipboardBackend:
    """Return the clipboard backend for the running OS.

    Raises:
        UnsupportedPlatform: If no backend supports this platform.
    """
    if sys.platform == "darwin":
        from clipz.backends.macos import MacOSBackend

        return MacOSBackend()
    if sys.platform.startswith("linux"):
        if shutil.which("xclip") is None:
            raise UnsupportedPlatform("xclip is required on Linux but was not found on PATH")
        from clipz.backends.xclip import XclipBackend

        return XclipBackend()
    raise UnsupportedPlatform(f"no clipboard backend for platform {sys.platform!r}")
