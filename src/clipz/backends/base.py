from abc import ABC, abstractmethod


class ClipboardBackend(ABC):
    """Access to one operating system's clipboard.

    Read methods return None when the requested form is absent. Write
    methods raise CommandFailed when the OS rejects the change.
    """

    def change_count(self) -> int | None:
        """Counter that changes whenever the clipboard does, if the OS has one."""
        return None

    @abstractmethod
    def file_reference(self) -> str | None:
        ...

    @abstractmethod
    def image_data(self, max_bytes: int) -> tuple[bytes, str] | None:
        """Raw image bytes and their format name ("PNG", "JPEG", ...)."""

    @abstractmethod
    def text(self, max_bytes: int) -> str | None:
        ...

    @abstractmethod
    def set_text(self, text: str) -> None:
        ...

    @abstractmethod
    def set_image(self, path: str, format_hint: str) -> None:
        ...

    @abstractmethod
    def set_file(self, path: str) -> None:
        ...
