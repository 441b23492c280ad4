import logging
import subprocess
from urllib.parse import unquote, urlparse

from AppKit import (
    NSFilenamesPboardType,
    NSPasteboard,
    NSPasteboardTypePNG,
    NSPasteboardTypeString,
    NSPasteboardTypeTIFF,
)
from Foundation import NSData

from clipz.backends.base import ClipboardBackend
from clipz.errors import CommandFailed
from clipz.utils import escape_applescript, validate_path

logger = logging.getLogger(__name__)

PASTEBOARD_TYPE_JPEG = "public.jpeg"
PASTEBOARD_TYPE_FILE_URL = "public.file-url"
OSASCRIPT_TIMEOUT = 5  # seconds


class MacOSBackend(ClipboardBackend):
    def __init__(self):
        self._pasteboard = NSPasteboard.generalPasteboard()

    def _types(self) -> list:
        types = self._pasteboard.types()
        return list(types) if types is not None else []

    def change_count(self) -> int | None:
        return int(self._pasteboard.changeCount())

    def file_reference(self) -> str | None:
        types = self._types()
        if NSFilenamesPboardType in types:
            filenames = self._pasteboard.propertyListForType_(NSFilenamesPboardType)
            if filenames:
                return str(list(filenames)[0])
        if PASTEBOARD_TYPE_FILE_URL in types:
            url = self._pasteboard.stringForType_(PASTEBOARD_TYPE_FILE_URL)
            if url:
                parsed = urlparse(str(url))
                if parsed.scheme == "file":
                    return unquote(parsed.path)
        return None

    def image_data(self, max_bytes: int) -> tuple[bytes, str] | None:
        types = self._types()
        for img_type, fmt in (
            (NSPasteboardTypePNG, "PNG"),
            (PASTEBOARD_TYPE_JPEG, "JPEG"),
            (NSPasteboardTypeTIFF, "TIFF"),
        ):
            if img_type not in types:
                continue
            data = self._pasteboard.dataForType_(img_type)
            if data is None:
                continue
            img_bytes = bytes(data)
            if len(img_bytes) > max_bytes:
                logger.warning("Image too large (%d bytes), skipping", len(img_bytes))
                return None
            return img_bytes, fmt
        return None

    def text(self, max_bytes: int) -> str | None:
        text = self._pasteboard.stringForType_(NSPasteboardTypeString)
        if not text:
            return None
        text = str(text)
        encoded = text.encode("utf-8")
        if len(encoded) > max_bytes:
            # keep one byte past the limit so callers can tell it was cut
            return encoded[: max_bytes + 1].decode("utf-8", errors="ignore")
        return text

    def set_text(self, text: str) -> None:
        self._pasteboard.clearContents()
        if not self._pasteboard.setString_forType_(text, NSPasteboardTypeString):
            raise CommandFailed("pasteboard rejected text")

    def set_image(self, path: str, format_hint: str) -> None:
        img_data = NSData.dataWithContentsOfFile_(path)
        if not img_data:
            raise CommandFailed(f"could not read image {path}")
        fmt = format_hint.upper()
        if fmt == "TIFF":
            img_type = NSPasteboardTypeTIFF
        elif fmt in ("JPEG", "JPG"):
            img_type = PASTEBOARD_TYPE_JPEG
        else:
            img_type = NSPasteboardTypePNG
        self._pasteboard.clearContents()
        if not self._pasteboard.setData_forType_(img_data, img_type):
            raise CommandFailed("pasteboard rejected image data")

    def set_file(self, path: str) -> None:
        validate_path(path)
        script = f'set the clipboard to (POSIX file "{escape_applescript(path)}")'
        try:
            result = subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                text=True,
                timeout=OSASCRIPT_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise CommandFailed(f"osascript failed: {exc}") from exc
        if result.returncode != 0:
            raise CommandFailed(f"osascript exited {result.returncode}: {result.stderr.strip()}")
