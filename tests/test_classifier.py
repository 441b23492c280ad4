from pathlib import Path

import pytest

from clipz.classifier import (
    image_placeholder,
    is_color,
    is_placeholder,
    is_url,
    reclassify_text,
    trim_trailing_newline,
)
from clipz.config import Config
from clipz.errors import CommandFailed, NoContent, SaveFailed
from clipz.models import ContentKind, Payload


class TestReclassifyText:
    @pytest.mark.parametrize("text", [
        "https://example.com",
        "http://example.com/path?q=1",
        "ftp://files.example.com/a.zip",
        "mailto:someone@example.com",
        "HTTPS://EXAMPLE.COM",
    ])
    def test_urls(self, text):
        assert is_url(text)
        assert reclassify_text(text) == ContentKind.URL

    @pytest.mark.parametrize("text", [
        "see https://example.com",
        "https://example.com and more",
        "https://",
        "example.com",
    ])
    def test_not_urls(self, text):
        assert not is_url(text)

    @pytest.mark.parametrize("text", [
        "#fff",
        "#A1B2C3",
        "#a1b2c3d4",
        "rgb(255, 0, 0)",
        "rgba(0,0,0,0.5)",
        "hsl(120, 100%, 50%)",
        "HSLA(120, 100%, 50%, 0.3)",
    ])
    def test_colors(self, text):
        assert is_color(text)
        assert reclassify_text(text) == ContentKind.COLOR

    @pytest.mark.parametrize("text", [
        "#ffff",
        "#12345",
        "#ggg",
        "rgb(255, 0, 0",
        "rgb((1,2,3))",
        "cmyk(0,0,0,0)",
        "  #fff",
        "rgb(1, 2, 3) ",
    ])
    def test_not_colors(self, text):
        assert not is_color(text)

    def test_plain_text(self):
        assert reclassify_text("just some words") == ContentKind.TEXT


class TestHelpers:
    def test_trim_one_newline(self):
        assert trim_trailing_newline("abc\n") == "abc"
        assert trim_trailing_newline("abc\n\n") == "abc\n"
        assert trim_trailing_newline("abc\r\n") == "abc"
        assert trim_trailing_newline("abc") == "abc"

    def test_placeholder_roundtrip(self):
        assert is_placeholder(image_placeholder("png"))
        assert image_placeholder("png") == "[Image: PNG]"
        assert is_placeholder("[Image]")
        assert not is_placeholder("Image of a cat")


class TestClassifyText:
    def test_text(self, classifier, backend):
        backend.clip_text = "hello world"
        assert classifier.classify() == Payload("hello world", ContentKind.TEXT)

    def test_trailing_newline_trimmed(self, classifier, backend):
        backend.clip_text = "line\n"
        assert classifier.classify().content == "line"

    def test_url(self, classifier, backend):
        backend.clip_text = "https://example.com\n"
        assert classifier.classify() == Payload("https://example.com", ContentKind.URL)

    def test_color(self, classifier, backend):
        backend.clip_text = "#ff8800"
        assert classifier.classify().kind == ContentKind.COLOR

    def test_padded_color_is_text(self, classifier, backend):
        backend.clip_text = " #ff8800"
        assert classifier.classify() == Payload(" #ff8800", ContentKind.TEXT)

    def test_empty_is_no_content(self, classifier, backend):
        backend.clip_text = ""
        with pytest.raises(NoContent):
            classifier.classify()

    def test_nothing_is_no_content(self, classifier):
        with pytest.raises(NoContent):
            classifier.classify()

    def test_only_newline_is_no_content(self, classifier, backend):
        backend.clip_text = "\n"
        with pytest.raises(NoContent):
            classifier.classify()

    def test_oversized_is_no_content(self, backend, image_store):
        from clipz.classifier import ContentClassifier

        small = ContentClassifier(backend, image_store, Config(max_content_bytes=10))
        backend.clip_text = "x" * 11
        with pytest.raises(NoContent):
            small.classify()

    def test_at_limit_accepted(self, backend, image_store):
        from clipz.classifier import ContentClassifier

        small = ContentClassifier(backend, image_store, Config(max_content_bytes=10))
        backend.clip_text = "x" * 10
        assert small.classify().content == "x" * 10

    def test_command_failed_propagates(self, classifier, backend):
        backend.error = CommandFailed("xclip exited 1")
        with pytest.raises(CommandFailed):
            classifier.classify()


class TestClassifierPrecedence:
    def test_existing_file_wins_over_image_and_text(self, classifier, backend, tmp_path, png_bytes):
        doc = tmp_path / "report.pdf"
        doc.write_bytes(b"%PDF")
        backend.file_ref = str(doc)
        backend.image = (png_bytes(), "PNG")
        backend.clip_text = "report.pdf"
        assert classifier.classify() == Payload(str(doc), ContentKind.FILE)

    def test_missing_file_reference_ignored(self, classifier, backend, tmp_path):
        backend.file_ref = str(tmp_path / "ghost.txt")
        backend.clip_text = "https://example.com"
        assert classifier.classify().kind == ContentKind.URL

    def test_image_wins_over_text(self, classifier, backend, png_bytes):
        backend.image = (png_bytes(), "PNG")
        payload = classifier.classify()
        assert payload.kind == ContentKind.IMAGE
        assert Path(payload.content).exists()

    def test_url_text_with_image_stays_image(self, classifier, backend, png_bytes):
        backend.image = (png_bytes(), "PNG")
        backend.clip_text = "https://example.com/cat.png"
        assert classifier.classify() == Payload("https://example.com/cat.png", ContentKind.IMAGE)


class TestClassifyImage:
    def test_dangling_file_reference_used_as_content(self, classifier, backend, tmp_path, png_bytes):
        ghost = str(tmp_path / "gone.png")
        backend.file_ref = ghost
        backend.image = (png_bytes(), "PNG")
        assert classifier.classify() == Payload(ghost, ContentKind.IMAGE)

    def test_short_text_used_as_label(self, classifier, backend, png_bytes):
        backend.image = (png_bytes(), "PNG")
        backend.clip_text = "diagram\n"
        assert classifier.classify() == Payload("diagram", ContentKind.IMAGE)

    def test_placeholder_text_ignored(self, classifier, backend, image_store, png_bytes):
        backend.image = (png_bytes(), "PNG")
        backend.clip_text = "[Image: PNG]"
        payload = classifier.classify()
        assert image_store.is_owned_path(payload.content)

    def test_long_text_ignored(self, classifier, backend, image_store, png_bytes):
        backend.image = (png_bytes(), "PNG")
        backend.clip_text = "w" * 5000
        assert image_store.is_owned_path(classifier.classify().content)

    def test_bytes_persisted(self, classifier, backend, image_store, png_bytes):
        backend.image = (png_bytes(), "PNG")
        payload = classifier.classify()
        assert Path(payload.content).read_bytes() == png_bytes()
        assert payload.content.endswith(".png")

    def test_unchanged_image_not_saved_twice(self, classifier, backend, image_store, png_bytes):
        backend.image = (png_bytes(), "PNG")
        first = classifier.classify()
        second = classifier.classify()
        assert first == second
        assert len(list(image_store.directory.iterdir())) == 1

    def test_save_failure_falls_back_to_placeholder(self, classifier, backend, image_store, png_bytes, monkeypatch):
        def fail(*_args, **_kwargs):
            raise SaveFailed("read-only")

        monkeypatch.setattr(image_store, "persist", fail)
        backend.image = (png_bytes(), "JPEG")
        assert classifier.classify() == Payload("[Image: JPEG]", ContentKind.IMAGE)

    def test_oversized_image_falls_through_to_text(self, backend, image_store, png_bytes):
        from clipz.classifier import ContentClassifier

        small = ContentClassifier(backend, image_store, Config(max_fetch_bytes=10))
        backend.image = (png_bytes(), "PNG")
        backend.clip_text = "caption"
        assert small.classify() == Payload("caption", ContentKind.TEXT)


class TestApply:
    def test_text(self, classifier, backend):
        classifier.apply("hello", ContentKind.TEXT)
        assert backend.writes == [("text", "hello")]

    def test_url_and_color_written_as_text(self, classifier, backend):
        classifier.apply("https://example.com", ContentKind.URL)
        classifier.apply("#fff", ContentKind.COLOR)
        assert [kind for kind, _ in backend.writes] == ["text", "text"]

    def test_image_restored(self, classifier, backend, image_store, png_bytes):
        path = image_store.persist(png_bytes(), "PNG")
        classifier.apply(path, ContentKind.IMAGE)
        assert backend.writes == [("image", path)]

    def test_image_without_file_falls_back_to_text(self, classifier, backend):
        classifier.apply("[Image: PNG]", ContentKind.IMAGE)
        assert backend.writes == [("text", "[Image: PNG]")]

    def test_image_write_failure_falls_back_to_text(self, classifier, backend, image_store, png_bytes):
        path = image_store.persist(png_bytes(), "PNG")
        backend.failing_writes.add("image")
        classifier.apply(path, ContentKind.IMAGE)
        assert backend.writes == [("text", path)]

    def test_file_restored(self, classifier, backend, tmp_path):
        doc = tmp_path / "notes.txt"
        classifier.apply(str(doc), ContentKind.FILE)
        assert backend.writes == [("file", str(doc))]

    def test_file_with_traversal_falls_back_to_text(self, classifier, backend):
        classifier.apply("/tmp/../etc/passwd", ContentKind.FILE)
        assert backend.writes == [("text", "/tmp/../etc/passwd")]

    def test_file_write_failure_falls_back_to_text(self, classifier, backend):
        backend.failing_writes.add("file")
        classifier.apply("/tmp/notes.txt", ContentKind.FILE)
        assert backend.writes == [("text", "/tmp/notes.txt")]

    def test_text_failure_raises(self, classifier, backend):
        backend.failing_writes.add("text")
        with pytest.raises(CommandFailed):
            classifier.apply("hello", ContentKind.TEXT)


class TestReadBack:
    def test_label_written_as_text_reads_back_as_image(self, classifier):
        classifier.apply("diagram", ContentKind.IMAGE)
        assert classifier.classify() == Payload("diagram", ContentKind.IMAGE)

    def test_restored_image_reads_back_as_same_path(self, classifier, backend, image_store, png_bytes):
        path = image_store.persist(png_bytes(), "PNG")
        backend.image = (png_bytes(fill=b"\x07"), "PNG")
        classifier.classify()
        classifier.apply(path, ContentKind.IMAGE)
        assert classifier.classify() == Payload(path, ContentKind.IMAGE)
        assert len(list(image_store.directory.iterdir())) == 2

    def test_forgotten_once_clipboard_changes(self, classifier, backend):
        classifier.apply("diagram", ContentKind.IMAGE)
        backend.clip_text = "something else"
        classifier.classify()
        backend.clip_text = "diagram"
        assert classifier.classify() == Payload("diagram", ContentKind.TEXT)

    def test_redirect_image_memo(self, classifier, backend, image_store, png_bytes):
        kept = image_store.persist(png_bytes(), "PNG")
        backend.image = (png_bytes(), "PNG")
        dropped = classifier.classify().content
        image_store.discard(dropped)
        classifier.redirect_image(dropped, kept)
        assert classifier.classify() == Payload(kept, ContentKind.IMAGE)
