"""reconciler.py — Keep the wide panel and the canonical cursor eventually consistent."""

import math
from dataclasses import dataclass
from typing import Any, Callable

from cursor import ScrollCursor
from observability import get_logger
from surfaces import WidePanel

logger = get_logger(__name__)


@dataclass
class ScrollReport:
    """Last position the wide panel reported; cached, not yet committed."""
    scroll_top: float = 0.0
    percentage: float = 0.0
    char_offset: int = 0


def offset_from_report(report: ScrollReport, length: int) -> int:
    """A probed non-zero char offset wins; otherwise derive it from the percentage."""
    if report.char_offset > 0:
        return report.char_offset
    percentage = min(max(report.percentage, 0.0), 1.0)
    return math.floor(percentage * length)


class SurfaceReconciler:
    """
    Owns the wide-panel session.

    While the panel is open its scroll events only update a local cache. The
    cached position is committed into the cursor on close, on an explicit sync
    request, or when the document/chapter changes underneath the panel.
    """

    def __init__(self, cursor: ScrollCursor, on_commit: Callable[[], None] | None = None):
        self.cursor = cursor
        self.on_commit = on_commit
        self.panel: WidePanel | None = None
        self.report: ScrollReport | None = None
        self._session_key: tuple[str | None, int | None] | None = None

    @property
    def is_open(self) -> bool:
        return self.panel is not None

    def open(self, panel: WidePanel) -> None:
        """Seed the panel with the chapter and the canonical position."""
        if self.is_open:
            self.close()
        chapter = self.cursor.chapter
        if chapter is None:
            return
        text = chapter.text
        percentage = self.cursor.percentage()
        self.panel = panel
        self.report = ScrollReport(percentage=percentage, char_offset=self.cursor.offset)
        self._session_key = (self.cursor.document_id, self.cursor.chapter_index)
        panel.post_message({
            "command": "load",
            "title": chapter.title,
            "text": text,
            "offset": self.cursor.offset,
            "percentage": percentage,
            "length": len(text),
        })

    def handle_message(self, message: dict[str, Any]) -> None:
        command = message.get("command")
        if command == "scroll":
            self.report_scroll(
                message.get("scrollTop", 0.0),
                message.get("percentage", 0.0),
                message.get("charOffset"),
            )
        elif command == "syncNow":
            self.sync_now()
        elif command == "closed":
            self.close()
        else:
            logger.warning("wide_panel_unknown_message", command=command)

    def report_scroll(self, scroll_top: float, percentage: float, char_offset: int | None = None) -> None:
        if not self.is_open:
            return
        self.report = ScrollReport(
            scroll_top=float(scroll_top or 0.0),
            percentage=float(percentage or 0.0),
            char_offset=int(char_offset or 0),
        )

    def _commit(self) -> int | None:
        if self.report is None:
            return None
        if self._session_key != (self.cursor.document_id, self.cursor.chapter_index):
            # The cursor already moved to other content; the cache is stale.
            logger.warning("wide_panel_stale_commit_skipped", session=self._session_key)
            return None
        offset = offset_from_report(self.report, len(self.cursor.text))
        self.cursor.set_offset(offset)
        if self.on_commit is not None:
            self.on_commit()
        return self.cursor.offset

    def sync_now(self) -> int | None:
        """Commit the cached position without closing the panel."""
        if not self.is_open:
            return None
        return self._commit()

    def close(self) -> int | None:
        """Commit the cached position and end the session. Safe on a torn-down panel."""
        if not self.is_open:
            return None
        committed = self._commit()
        panel = self.panel
        self.panel = None
        self.report = None
        self._session_key = None
        if panel.is_alive:
            panel.dispose()
        return committed

    def toggle(self, panel_factory: Callable[[], WidePanel | None]) -> bool:
        """Open or close the panel; returns True when it ends up open."""
        if self.is_open:
            self.close()
            return False
        panel = panel_factory()
        if panel is None:
            return False
        self.open(panel)
        return self.is_open
