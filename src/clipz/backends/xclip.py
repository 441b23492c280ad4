import logging
import subprocess
from pathlib import Path
from urllib.parse import quote, unquote, urlparse

from clipz.backends.base import ClipboardBackend
from clipz.errors import CommandFailed
from clipz.utils import validate_path

logger = logging.getLogger(__name__)

XCLIP = ["xclip", "-selection", "clipboard"]
WRITE_TIMEOUT = 5  # seconds
TARGETS_MAX_BYTES = 64 * 1024
URI_LIST_MAX_BYTES = 64 * 1024

URI_TARGETS = ("text/uri-list", "x-special/gnome-copied-files")
IMAGE_TARGETS = (("image/png", "PNG"), ("image/jpeg", "JPEG"))
TEXT_TARGETS = ("UTF8_STRING", "text/plain;charset=utf-8", "STRING", "TEXT")


def _read(args: list[str], max_bytes: int) -> bytes:
    """Run an xclip read and return at most max_bytes + 1 bytes of stdout.

    Output past the limit is not drained; the process is killed instead.
    """
    try:
        proc = subprocess.Popen(
            XCLIP + args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
    except OSError as exc:
        raise CommandFailed(f"could not run xclip: {exc}") from exc

    with proc:
        data = proc.stdout.read(max_bytes + 1)
        if len(data) > max_bytes:
            proc.kill()
            proc.wait()
            return data
        returncode = proc.wait()
    if returncode != 0:
        raise CommandFailed(f"xclip {' '.join(args)} exited {returncode}")
    return data


def _write(args: list[str], data: bytes) -> None:
    # xclip forks to own the selection, so its output pipes must not be captured
    try:
        result = subprocess.run(
            XCLIP + args,
            input=data,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=WRITE_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise CommandFailed(f"xclip write failed: {exc}") from exc
    if result.returncode != 0:
        raise CommandFailed(f"xclip {' '.join(args)} exited {result.returncode}")


class XclipBackend(ClipboardBackend):
    """X11 clipboard through the xclip command."""

    def targets(self) -> list[str]:
        raw = _read(["-o", "-t", "TARGETS"], TARGETS_MAX_BYTES)
        return raw.decode("utf-8", errors="replace").split()

    def file_reference(self) -> str | None:
        targets = self.targets()
        for target in URI_TARGETS:
            if target not in targets:
                continue
            raw = _read(["-o", "-t", target], URI_LIST_MAX_BYTES)
            for line in raw.decode("utf-8", errors="replace").splitlines():
                line = line.strip()
                if not line.startswith("file://"):
                    continue
                return unquote(urlparse(line).path)
        return None

    def image_data(self, max_bytes: int) -> tuple[bytes, str] | None:
        targets = self.targets()
        for target, fmt in IMAGE_TARGETS:
            if target not in targets:
                continue
            data = _read(["-o", "-t", target], max_bytes)
            if len(data) > max_bytes:
                logger.warning("Image larger than %d bytes, skipping", max_bytes)
                return None
            if data:
                return data, fmt
        return None

    def text(self, max_bytes: int) -> str | None:
        targets = self.targets()
        for target in TEXT_TARGETS:
            if target in targets:
                data = _read(["-o", "-t", target], max_bytes)
                return data.decode("utf-8", errors="replace") or None
        return None

    def set_text(self, text: str) -> None:
        _write(["-i", "-t", "UTF8_STRING"], text.encode("utf-8"))

    def set_image(self, path: str, format_hint: str) -> None:
        target = "image/jpeg" if format_hint.upper() in ("JPEG", "JPG") else "image/png"
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise CommandFailed(f"could not read image {path}: {exc}") from exc
        _write(["-i", "-t", target], data)

    def set_file(self, path: str) -> None:
        validate_path(path)
        uri = "file://" + quote(path)
        _write(["-i", "-t", "text/uri-list"], (uri + "\r\n").encode("utf-8"))
