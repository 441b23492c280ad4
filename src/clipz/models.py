from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ContentKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    URL = "url"
    COLOR = "color"

    @classmethod
    def parse(cls, value: str | None) -> "ContentKind":
        """Map a persisted type string to a kind; unknown values become TEXT."""
        try:
            return cls(value)
        except ValueError:
            return cls.TEXT


@dataclass(frozen=True)
class Payload:
    content: str
    kind: ContentKind


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


@dataclass(frozen=True)
class ClipboardEntry:
    content: str
    kind: ContentKind
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def from_payload(cls, payload: Payload) -> "ClipboardEntry":
        return cls(content=payload.content, kind=payload.kind)

    @property
    def key(self) -> tuple[str, ContentKind]:
        return (self.content, self.kind)

    @property
    def timestamp(self) -> int:
        """Creation time as unix seconds."""
        return int(self.created_at.timestamp())
