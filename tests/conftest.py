from datetime import datetime
from pathlib import Path

import pytest

from clipz.backends.base import ClipboardBackend
from clipz.classifier import ContentClassifier
from clipz.config import Config
from clipz.errors import CommandFailed
from clipz.history import EntryStore
from clipz.images import ImageStore
from clipz.models import ClipboardEntry, ContentKind

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


class FakeBackend(ClipboardBackend):
    """In-memory clipboard for tests."""

    def __init__(self):
        self.file_ref: str | None = None
        self.image: tuple[bytes, str] | None = None
        self.clip_text: str | None = None
        self.count: int | None = None
        self.error: Exception | None = None
        self.failing_writes: set[str] = set()
        self.writes: list[tuple[str, str]] = []

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def change_count(self) -> int | None:
        return self.count

    def file_reference(self) -> str | None:
        self._check()
        return self.file_ref

    def image_data(self, max_bytes: int) -> tuple[bytes, str] | None:
        self._check()
        if self.image is not None and len(self.image[0]) > max_bytes:
            return None
        return self.image

    def text(self, max_bytes: int) -> str | None:
        self._check()
        if self.clip_text is None:
            return None
        encoded = self.clip_text.encode("utf-8")
        return encoded[: max_bytes + 1].decode("utf-8", errors="ignore")

    def _write(self, kind: str, value: str) -> None:
        if kind in self.failing_writes:
            raise CommandFailed(f"fake {kind} write failed")
        self.writes.append((kind, value))
        if self.count is not None:
            self.count += 1

    def set_text(self, text: str) -> None:
        self._write("text", text)
        self.clip_text, self.file_ref, self.image = text, None, None

    def set_image(self, path: str, format_hint: str) -> None:
        self._write("image", path)
        self.image, self.clip_text, self.file_ref = (Path(path).read_bytes(), format_hint), None, None

    def set_file(self, path: str) -> None:
        self._write("file", path)
        self.file_ref, self.clip_text, self.image = path, None, None


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def config():
    return Config(max_entries=10)


@pytest.fixture
def image_store(tmp_path):
    return ImageStore(tmp_path / "images")


@pytest.fixture
def classifier(backend, image_store, config):
    return ContentClassifier(backend, image_store, config)


@pytest.fixture
def store(config, image_store, classifier):
    return EntryStore(config, image_store, classifier)


@pytest.fixture
def make_store(image_store, classifier):
    """Factory fixture for stores with a given capacity."""

    def _make_store(max_entries: int = 10, **overrides) -> EntryStore:
        return EntryStore(Config(max_entries=max_entries, **overrides), image_store, classifier)

    return _make_store


@pytest.fixture
def make_entry():
    """Factory fixture to create ClipboardEntry instances for testing."""

    def _make_entry(
        content: str = "hello world",
        kind: ContentKind = ContentKind.TEXT,
        created_at: datetime | None = None,
    ) -> ClipboardEntry:
        return ClipboardEntry(
            content=content,
            kind=kind,
            created_at=created_at or datetime.now().replace(microsecond=0),
        )

    return _make_entry


@pytest.fixture
def png_bytes():
    def _png_bytes(fill: bytes = b"\x00", size: int = 100) -> bytes:
        return PNG_HEADER + b"\x00\x00\x00\rIHDR" + fill * size

    return _png_bytes
