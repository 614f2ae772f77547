"""reader.py — The reader controller: every user-facing command, wired to the engine."""

from pathlib import Path
from typing import Any

from config import Settings
from cursor import ScrollCursor
from library import FORMAT_LABELS, Library, load_file_document, load_pasted_document
from models import Document, DocumentStatus
from observability import get_logger
from parsers import UnsupportedFormatError
from persistence import KeyValueStore, RestoreReport, SessionCoordinator
from reconciler import SurfaceReconciler
from surfaces import (
    HIDDEN_TEXT,
    READY_TEXT,
    Host,
    NarrowSurface,
    clamp_opacity,
    format_status,
    status_color,
)

logger = get_logger(__name__)

RELOAD = "Reload"
CANCEL = "Cancel"


class Reader:
    """
    Owns the library, the canonical cursor, the wide-panel reconciler and the
    session coordinator. Commands return quickly; the narrow surface is
    redrawn after each one.
    """

    def __init__(
        self,
        host: Host,
        surface: NarrowSurface,
        store: KeyValueStore,
        scheduler,
        settings: Settings | None = None,
        loader=load_file_document,
    ):
        settings = settings or Settings()
        self.host = host
        self.surface = surface
        self.loader = loader
        self.visible = True
        self.opacity = clamp_opacity(settings.opacity)
        self.cursor = ScrollCursor(
            fine_step=settings.fine_step,
            page_step=settings.page_step,
            window_width=settings.window_width,
            on_change=self._position_changed,
        )
        self.library = Library(on_change=self._library_changed)
        self.coordinator = SessionCoordinator(
            store, self.library, self.cursor, scheduler,
            delay=settings.save_delay, loader=loader,
        )
        self.reconciler = SurfaceReconciler(self.cursor, on_commit=self.refresh)

    def _position_changed(self) -> None:
        self.coordinator.notify_position_changed()

    def _library_changed(self) -> None:
        self.coordinator.notify_changed()

    @property
    def current_document(self) -> Document | None:
        return self.cursor.document

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> RestoreReport:
        report = self.coordinator.restore()
        self.opacity = clamp_opacity(self.coordinator.load_opacity(self.opacity))
        if report.failed:
            details = "; ".join(f"{name}: {reason}" for name, reason in report.failed)
            self.host.notify(
                "warning",
                f"Restored {report.restored + len(report.failed)} documents, "
                f"{len(report.failed)} failed to load ({details})",
            )
        if report.unavailable_active:
            self.host.notify(
                "warning",
                f'Last document "{report.unavailable_active}" cannot be opened; pick another one',
            )
        self.refresh()
        return report

    def shutdown(self) -> None:
        self.reconciler.close()
        self.coordinator.flush()

    # -- narrow surface ------------------------------------------------------

    def status_text(self) -> str:
        if not self.visible:
            return HIDDEN_TEXT
        document = self.cursor.document
        chapter = self.cursor.chapter
        if document is None:
            return READY_TEXT
        if chapter is None:
            return f"quietread: {document.name} [{FORMAT_LABELS.get(document.source_format, '')}]"
        window = self.cursor.visible_window()
        return format_status(chapter.title, window.marker, window.text)

    def refresh(self) -> None:
        self.surface.show(self.status_text(), status_color(self.opacity))

    def toggle_visibility(self) -> bool:
        self.visible = not self.visible
        self.refresh()
        return self.visible

    def set_opacity(self, value: int) -> int:
        """Set the status text opacity (percent, clamped to 5-100) and persist it."""
        self.opacity = clamp_opacity(value)
        self.coordinator.save_opacity(self.opacity)
        self.refresh()
        return self.opacity

    # -- stepping ------------------------------------------------------------

    def _step(self, moved: bool) -> bool:
        if moved:
            self.refresh()
        return moved

    def step_left(self) -> bool:
        return self._step(self.cursor.step_left())

    def step_right(self) -> bool:
        return self._step(self.cursor.step_right())

    def page_left(self) -> bool:
        return self._step(self.cursor.page_left())

    def page_right(self) -> bool:
        return self._step(self.cursor.page_right())

    # -- wide surface --------------------------------------------------------

    def toggle_wide_surface(self) -> bool:
        return self.reconciler.toggle(self.host.open_wide_panel)

    def sync_wide_surface(self) -> int | None:
        return self.reconciler.sync_now()

    def handle_panel_message(self, message: dict[str, Any]) -> None:
        self.reconciler.handle_message(message)

    # -- documents -----------------------------------------------------------

    def select_file(self) -> Document | None:
        path = self.host.prompt_open_file()
        if not path:
            return None
        return self.open_file(path)

    def open_file(self, path: str | Path) -> Document | None:
        """Load a file into the library, asking before replacing an existing copy."""
        try:
            document = self.loader(path)
        except UnsupportedFormatError as exc:
            self.host.notify("error", f"Failed to load file: {exc}")
            return None

        if document.status == DocumentStatus.MISSING:
            self.host.notify("error", f"Failed to load file: {path} does not exist")
            return None
        if document.status == DocumentStatus.ERROR:
            self.host.notify("error", f'Failed to parse "{document.name}": {document.error_message}')

        existing = self.library.find_by_path(document.path)
        if existing is None:
            self.library.add(document)
            if document.is_usable:
                self.host.notify("info", f"Loaded {FORMAT_LABELS.get(document.source_format, '')} file: {document.name}")
            self.refresh()
            return document

        choice = self.host.confirm(f'"{document.name}" is already in the library. Reload it?', [RELOAD, CANCEL])
        if choice != RELOAD:
            return None

        was_active = self.cursor.document is existing
        if was_active:
            self.reconciler.close()
            self.cursor.record_position()
            self.cursor.reset()
        replaced = self.library.replace(existing, document)
        if replaced.is_usable and replaced.last_chapter_index != existing.last_chapter_index:
            self.host.notify("info", "File content changed; reading position was reset to the beginning")
        if was_active and replaced.is_usable:
            self.cursor.attach(replaced)
            self._position_changed()
        self.host.notify("info", f"Reloaded {replaced.name}")
        self.refresh()
        return replaced

    def load_pasted_text(self, content: str) -> Document | None:
        if not content or not content.strip():
            return None
        document = load_pasted_document(content)
        self.library.add(document)
        self.reconciler.close()
        self.cursor.attach(document)
        self._position_changed()
        self.host.notify("info", f"Loaded pasted text, {len(document.chapters)} chapters")
        self.refresh()
        return document

    def select_document(self, doc_id: str) -> bool:
        document = self.library.get(doc_id)
        if document is None:
            return False
        if document.status == DocumentStatus.MISSING:
            self.host.notify("warning", f'"{document.name}" no longer exists and cannot be opened')
            return False
        if document.status == DocumentStatus.ERROR:
            self.host.notify("warning", f'"{document.name}" failed to parse and cannot be opened')
            return False

        if self.cursor.document is not document:
            self.reconciler.close()
        if self.cursor.attach(document):
            self.host.notify("warning", f'Reading position in "{document.name}" was no longer valid; reset to the beginning')
        self._position_changed()
        self.refresh()
        return True

    def select_chapter(self, index: int) -> bool:
        if self.cursor.document is None:
            return False
        if index != self.cursor.chapter_index and 0 <= index < len(self.cursor.document.chapters):
            self.reconciler.close()
        changed = self.cursor.set_chapter(index)
        if changed:
            self.refresh()
        return changed

    def remove_document(self, doc_id: str) -> Document | None:
        if self.cursor.document_id == doc_id:
            self.reconciler.close()
            self.cursor.reset()
        removed = self.library.remove(doc_id)
        if removed is not None:
            self.host.notify("info", f"Removed {removed.name}")
            self.refresh()
        return removed

    def cleanup_missing(self) -> list[Document]:
        removed = self.library.cleanup_unavailable()
        self.host.notify("info", f"Removed {len(removed)} unavailable documents")
        self.refresh()
        return removed

    def clear_library(self) -> None:
        self.reconciler.close()
        self.cursor.reset()
        self.library.clear()
        self.coordinator.clear()
        self.refresh()
