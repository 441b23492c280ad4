"""Exception hierarchy shared by every Clipz component."""


class ClipzError(Exception):
    """Base class for all Clipz errors."""


class ClipboardError(ClipzError):
    """The system clipboard could not be read or written."""


class NoContent(ClipboardError):
    """Clipboard is empty or its content is over the size ceiling."""


class CommandFailed(ClipboardError):
    """An OS-level clipboard read or write reported failure."""


class UnsupportedPlatform(ClipboardError):
    """No clipboard backend exists for this operating system."""


class InvalidIndex(ClipzError, IndexError):
    """A rank outside 1..len(history) was requested."""

    def __init__(self, rank: int, count: int):
        super().__init__(f"Invalid index: {rank} (history has {count} entries)")
        self.rank = rank
        self.count = count


class InvalidPath(ClipzError, ValueError):
    """A path failed validation and must not be handed to the OS."""


class StorageError(ClipzError):
    """Base class for persistence failures."""


class SaveFailed(StorageError):
    """Writing history or a scratch image failed."""


class LoadFailed(StorageError):
    """Reading the history document failed."""
