"""Turn whatever is on the system clipboard into a typed payload, and back."""

import logging
import os
import re
from pathlib import Path

from clipz.backends.base import ClipboardBackend
from clipz.config import IMAGE_LABEL_MAX, Config
from clipz.errors import ClipboardError, InvalidPath, NoContent, SaveFailed
from clipz.images import ImageStore
from clipz.models import ContentKind, Payload
from clipz.utils import compute_hash, detect_image_format, validate_path

logger = logging.getLogger(__name__)

URL_SCHEMES = ("http://", "https://", "ftp://", "ftps://", "file://", "ssh://", "git://", "mailto:")
HEX_COLOR_RE = re.compile(r"#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})")
FUNC_COLOR_RE = re.compile(r"(?:rgba?|hsla?)\([^()]*\)", re.IGNORECASE)
PLACEHOLDER_RE = re.compile(r"\[Image(?::[^\]]*)?\]")


def image_placeholder(format_hint: str) -> str:
    return f"[Image: {format_hint.upper()}]"


def is_placeholder(text: str) -> bool:
    return PLACEHOLDER_RE.fullmatch(text.strip()) is not None


def is_url(text: str) -> bool:
    if any(ch.isspace() for ch in text):
        return False
    lowered = text.lower()
    for scheme in URL_SCHEMES:
        if lowered.startswith(scheme) and len(text) > len(scheme):
            return True
    return False


def is_color(text: str) -> bool:
    return bool(HEX_COLOR_RE.fullmatch(text) or FUNC_COLOR_RE.fullmatch(text))


def reclassify_text(text: str) -> ContentKind:
    if is_url(text):
        return ContentKind.URL
    if is_color(text):
        return ContentKind.COLOR
    return ContentKind.TEXT


def trim_trailing_newline(text: str) -> str:
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n"):
        return text[:-1]
    return text


class ContentClassifier:
    def __init__(self, backend: ClipboardBackend, image_store: ImageStore, config: Config):
        self._backend = backend
        self._images = image_store
        self._config = config
        # (digest, path) of the last image written, so an unchanged image is not re-saved
        self._last_image: tuple[str, str] | None = None
        # entry last written back by apply(), so reading it again maps to that entry
        self._restored: Payload | None = None

    @property
    def backend(self) -> ClipboardBackend:
        return self._backend

    def classify(self) -> Payload:
        """Read the clipboard and decide what kind of content it holds.

        File references win over images, images win over text, and text is
        reclassified as URL or color when it matches those shapes.

        Raises:
            NoContent: Clipboard is empty or its text is over the size limit.
            CommandFailed: The backend reported an OS-level failure.
        """
        payload = self._read()
        restored = self._restored
        if restored is not None:
            if payload.content == restored.content:
                return restored
            self._restored = None
        return payload

    def _read(self) -> Payload:
        file_ref = self._backend.file_reference()
        if file_ref and os.path.exists(file_ref):
            return Payload(file_ref, ContentKind.FILE)

        image = self._backend.image_data(self._config.max_fetch_bytes)
        if image is not None:
            return self._classify_image(image[0], image[1], file_ref)

        return self._classify_text()

    def _classify_image(self, data: bytes, format_hint: str, file_ref: str | None) -> Payload:
        if file_ref:
            return Payload(file_ref, ContentKind.IMAGE)

        label = self._backend.text(IMAGE_LABEL_MAX * 4)
        if label:
            label = trim_trailing_newline(label)
            if label.strip() and len(label) <= IMAGE_LABEL_MAX and not is_placeholder(label):
                return Payload(label, ContentKind.IMAGE)

        digest = compute_hash(data)
        if self._last_image and self._last_image[0] == digest and os.path.exists(self._last_image[1]):
            return Payload(self._last_image[1], ContentKind.IMAGE)

        try:
            path = self._images.persist(data, format_hint)
        except SaveFailed:
            logger.warning("Could not persist clipboard image, storing placeholder", exc_info=True)
            fmt = format_hint or detect_image_format(data) or "PNG"
            return Payload(image_placeholder(fmt), ContentKind.IMAGE)
        self._last_image = (digest, path)
        return Payload(path, ContentKind.IMAGE)

    def redirect_image(self, discarded: str, kept: str) -> None:
        """Point the image memo at kept after discarded was dropped as its duplicate."""
        if self._last_image is not None and self._last_image[1] == discarded:
            self._last_image = (self._last_image[0], kept)

    def _classify_text(self) -> Payload:
        text = self._backend.text(self._config.max_fetch_bytes)
        if not text:
            raise NoContent("clipboard is empty")
        size = len(text.encode("utf-8"))
        if size > self._config.max_content_bytes:
            raise NoContent(f"clipboard text is {size} bytes, limit is {self._config.max_content_bytes}")
        text = trim_trailing_newline(text)
        if not text:
            raise NoContent("clipboard holds only a newline")
        return Payload(text, reclassify_text(text))

    @staticmethod
    def _image_format(path: str) -> str:
        with open(path, "rb") as f:
            header = f.read(16)
        return detect_image_format(header) or Path(path).suffix.lstrip(".").upper() or "PNG"

    def apply(self, content: str, kind: ContentKind) -> None:
        """Put an entry back on the clipboard.

        Images and files are restored as such when possible and fall back to
        plain text otherwise. The next classify() of what was written yields
        the same content and kind, so the poller does not capture it again.

        Raises:
            CommandFailed: If even the plain-text write fails.
        """
        self._restored = Payload(content, kind)
        if kind == ContentKind.IMAGE and Path(content).is_file():
            try:
                data = Path(content).read_bytes()
                self._backend.set_image(content, self._image_format(content))
                self._last_image = (compute_hash(data), content)
                return
            except (ClipboardError, OSError):
                logger.warning("Restoring image %s failed, falling back to text", content, exc_info=True)
        elif kind == ContentKind.FILE:
            try:
                self._backend.set_file(validate_path(content))
                return
            except (ClipboardError, InvalidPath):
                logger.warning("Restoring file reference %s failed, falling back to text", content, exc_info=True)

        self._backend.set_text(content)
