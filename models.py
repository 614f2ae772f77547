"""models.py — Shared data types for quietread."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

LINE_SEPARATOR = " "


class SourceKind(str, Enum):
    FILE = "file"
    PASTED = "pastedText"


class DocumentStatus(str, Enum):
    ACTIVE = "active"
    MISSING = "missing"
    ERROR = "error"


def normalize_content(content: str | Iterable[str] | None) -> tuple[str, ...]:
    """Accept a line sequence or a pre-joined string; return trimmed non-blank lines."""
    if content is None:
        return ()
    if isinstance(content, str):
        content = content.split("\n")
    return tuple(line.strip() for line in content if line and line.strip())


def flatten_content(content: str | Iterable[str] | None) -> str:
    return LINE_SEPARATOR.join(normalize_content(content))


@dataclass(frozen=True)
class Chapter:
    title: str
    content: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "content", normalize_content(self.content))

    @property
    def text(self) -> str:
        """Flattened chapter text used for offset addressing."""
        return flatten_content(self.content)

    def __len__(self) -> int:
        return len(self.text)


@dataclass
class Document:
    id: str
    name: str
    source_kind: SourceKind
    path: str | None = None
    chapters: list[Chapter] = field(default_factory=list)
    status: DocumentStatus = DocumentStatus.ACTIVE
    source_format: str = ""         # "pdf", "txt", "epub", "paste"
    full_text: str = ""             # retained for pasted documents only
    page_count: int = 0
    added_time: float = field(default_factory=time.time)
    last_chapter_index: int | None = None
    last_offset: int = 0
    chapter_offsets: dict[int, int] = field(default_factory=dict)
    last_access_time: float | None = None
    error_message: str | None = None

    @property
    def is_pasted(self) -> bool:
        return self.source_kind == SourceKind.PASTED

    @property
    def is_usable(self) -> bool:
        return self.status == DocumentStatus.ACTIVE

    def mark_unavailable(self, status: DocumentStatus, reason: str | None = None) -> None:
        """Move to missing/error; an unavailable document never keeps chapters."""
        if status == DocumentStatus.ACTIVE:
            raise ValueError("mark_unavailable requires missing or error status")
        self.status = status
        self.chapters = []
        self.error_message = reason

    def validate_position(self) -> bool:
        """
        Reset stored position fields that no longer fit the current chapters.
        Returns True when something had to be reset.
        """
        count = len(self.chapters)
        stale = [i for i in self.chapter_offsets if not 0 <= i < count]
        for i in stale:
            del self.chapter_offsets[i]

        if self.last_chapter_index is None:
            return False
        if 0 <= self.last_chapter_index < count:
            return False
        self.last_chapter_index = 0 if count else None
        self.last_offset = 0
        return True
