import hashlib
from pathlib import PurePosixPath

from clipz.config import DATA_DIR, IMAGE_DIR, MAX_PATH_LENGTH
from clipz.errors import InvalidPath

_APPLESCRIPT_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_IMAGE_EXTENSIONS = {
    "PNG": "png",
    "PNGF": "png",
    "JPEG": "jpg",
    "JPG": "jpg",
    "TIFF": "tiff",
}


def compute_hash(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def truncate_text(text: str, max_len: int) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max_len - 3] + "..."


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    IMAGE_DIR.mkdir(parents=True, exist_ok=True)


def escape_applescript(text: str) -> str:
    """Escape text for use inside an AppleScript double-quoted string literal.

    Backslashes, quotes, newlines, carriage returns and tabs are escaped;
    any other control character is dropped since AppleScript has no escape
    sequence for it.
    """
    out = []
    for ch in text:
        if ch in _APPLESCRIPT_ESCAPES:
            out.append(_APPLESCRIPT_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            continue
        else:
            out.append(ch)
    return "".join(out)


def validate_path(path: str, max_len: int = MAX_PATH_LENGTH) -> str:
    """Check a path before it is passed to an OS clipboard call.

    Raises:
        InvalidPath: On empty paths, NUL bytes, ``..`` components, or
            paths longer than max_len.
    """
    if not path:
        raise InvalidPath("empty path")
    if "\x00" in path:
        raise InvalidPath("path contains NUL byte")
    if len(path) > max_len:
        raise InvalidPath(f"path longer than {max_len} characters")
    if ".." in PurePosixPath(path).parts:
        raise InvalidPath(f"path traversal in {path!r}")
    return path


def image_extension(format_hint: str) -> str:
    return _IMAGE_EXTENSIONS.get(format_hint.upper(), "png")


def detect_image_format(data: bytes) -> str | None:
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "PNG"
    if data[:3] == b"\xff\xd8\xff":
        return "JPEG"
    if data[:4] in (b"II*\x00", b"MM\x00*"):
        return "TIFF"
    return None
