"""cursor.py — The canonical reading cursor: chapter index plus character offset."""

import time
from typing import Callable, NamedTuple

from models import Chapter, Document

FINE_STEP = 10
PAGE_STEP = 80
WINDOW_WIDTH = 80


class Window(NamedTuple):
    text: str
    marker: str     # "{offset}-{end}/{total}", empty when the chapter fits
    start: int
    end: int
    total: int


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(int(value), high))


class ScrollCursor:
    """
    Single source of truth for the reading position inside the active document.

    Every mutation clamps the offset against the current chapter's flattened
    length before anything reads it, and then notifies ``on_change``.
    """

    def __init__(
        self,
        fine_step: int = FINE_STEP,
        page_step: int = PAGE_STEP,
        window_width: int = WINDOW_WIDTH,
        on_change: Callable[[], None] | None = None,
    ):
        self.fine_step = fine_step
        self.page_step = page_step
        self.window_width = window_width
        self.on_change = on_change
        self.document: Document | None = None
        self.chapter_index: int | None = None
        self.offset = 0

    # -- derived state -------------------------------------------------------

    @property
    def chapter(self) -> Chapter | None:
        if self.document is None or self.chapter_index is None:
            return None
        if not 0 <= self.chapter_index < len(self.document.chapters):
            return None
        return self.document.chapters[self.chapter_index]

    @property
    def text(self) -> str:
        chapter = self.chapter
        return chapter.text if chapter is not None else ""

    @property
    def max_offset(self) -> int:
        return max(0, len(self.text) - 1)

    @property
    def document_id(self) -> str | None:
        return self.document.id if self.document is not None else None

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # -- attach ----------------------------------------------------------------

    def attach(self, document: Document) -> bool:
        """
        Make ``document`` active and restore its saved position.
        Returns True if the saved position was out of range and had to be reset.
        """
        if self.document is not None:
            self.record_position()
        was_reset = document.validate_position()
        self.document = document
        if document.last_chapter_index is not None:
            self.chapter_index = document.last_chapter_index
            self.offset = document.last_offset or 0
        else:
            self.chapter_index = 0 if document.chapters else None
            self.offset = 0
        self.offset = clamp(self.offset, 0, self.max_offset)
        return was_reset

    def reset(self) -> None:
        """Forget the active document without writing anything back to it."""
        self.document = None
        self.chapter_index = None
        self.offset = 0

    def record_position(self) -> None:
        """Write the cursor back into the document's position fields."""
        document = self.document
        if document is None:
            return
        document.last_chapter_index = self.chapter_index
        document.last_offset = self.offset
        if self.chapter_index is not None:
            document.chapter_offsets[self.chapter_index] = self.offset
        document.last_access_time = time.time()

    # -- navigation ----------------------------------------------------------

    def set_chapter(self, index: int) -> bool:
        """Switch chapter; bounds-checked, no-op when out of range or unchanged."""
        document = self.document
        if document is None or not 0 <= index < len(document.chapters):
            return False
        if index == self.chapter_index:
            return False
        if self.chapter_index is not None:
            document.chapter_offsets[self.chapter_index] = self.offset
        self.chapter_index = index
        self.offset = clamp(document.chapter_offsets.get(index, 0), 0, self.max_offset)
        self._notify()
        return True

    def step_by(self, delta: int) -> bool:
        if self.chapter is None:
            return False
        new_offset = clamp(self.offset + delta, 0, self.max_offset)
        if new_offset == self.offset:
            return False
        self.offset = new_offset
        self._notify()
        return True

    def step_left(self) -> bool:
        return self.step_by(-self.fine_step)

    def step_right(self) -> bool:
        return self.step_by(self.fine_step)

    def page_left(self) -> bool:
        return self.step_by(-self.page_step)

    def page_right(self) -> bool:
        return self.step_by(self.page_step)

    def set_offset(self, offset: int) -> bool:
        """Jump to an absolute offset (clamped). Used by surface reconciliation."""
        if self.chapter is None:
            return False
        new_offset = clamp(offset, 0, self.max_offset)
        changed = new_offset != self.offset
        self.offset = new_offset
        self._notify()
        return changed

    def visible_window(self, width: int | None = None) -> Window:
        width = self.window_width if width is None else max(1, width)
        text = self.text
        total = len(text)
        self.offset = clamp(self.offset, 0, self.max_offset)
        end = min(self.offset + width, total)
        marker = f"{self.offset}-{end}/{total}" if total > width else ""
        return Window(text=text[self.offset:end], marker=marker, start=self.offset, end=end, total=total)

    def percentage(self) -> float:
        total = len(self.text)
        return self.offset / total if total else 0.0
