"""persistence.py — Key-value stores, debounced saving, and validated session restore."""

import heapq
import itertools
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Protocol

from cursor import ScrollCursor
from library import FORMAT_LABELS, Library, load_file_document
from models import Document, DocumentStatus, SourceKind
from observability import get_logger
from parsers import DocumentLoadError
from segmenter import segment_text

logger = get_logger(__name__)

FILES_KEY = "quietread.files"
STATE_KEY = "quietread.readingState"
OPACITY_KEY = "quietread.statusBarOpacity"
SAVE_DELAY_SECONDS = 0.5

_LABEL_FORMATS = {label: fmt for fmt, label in FORMAT_LABELS.items()}


class StoreError(Exception):
    """The durable store could not be read or written."""


# ==============================================================================
# STORES
# ==============================================================================
class KeyValueStore(Protocol):
    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class MemoryStore:
    """In-process store. Values pass through JSON, like any durable store would."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = json.dumps(value, ensure_ascii=False)


class JsonFileStore:
    """All keys live in one JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read {self.path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._read_all()
        except StoreError as exc:
            # Unreadable contents are overwritten.
            logger.warning("store_file_unreadable_overwriting", path=str(self.path), reason=str(exc))
            data = {}
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(f"Cannot write {self.path}: {exc}") from exc


# ==============================================================================
# RECORDS
# ==============================================================================
def document_to_record(document: Document) -> dict[str, Any]:
    """Serialize a document. File text is dropped; it is re-parsed from the path."""
    return {
        "id": document.id,
        "name": document.name,
        "type": FORMAT_LABELS.get(document.source_format, document.source_format.upper()),
        "path": document.path or "",
        "fullText": document.full_text if document.is_pasted else "",
        "addedTime": document.added_time,
        "status": document.status.value,
        "lastChapter": document.last_chapter_index,
        "lastScrollOffset": document.last_offset,
        "lastReadTime": document.last_access_time,
        "chapterOffsets": {str(i): offset for i, offset in document.chapter_offsets.items()},
    }


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def document_from_record(record: dict[str, Any]) -> Document:
    """Rebuild a document shell (no chapters yet) from a stored record."""
    label = record.get("type") or ""
    source_format = _LABEL_FORMATS.get(label, label.lower())
    is_pasted = source_format == "paste"
    return Document(
        id=str(record["id"]),
        name=record.get("name") or "Untitled",
        source_kind=SourceKind.PASTED if is_pasted else SourceKind.FILE,
        path=record.get("path") or None,
        source_format=source_format,
        full_text=record.get("fullText") or "" if is_pasted else "",
        added_time=record.get("addedTime") or time.time(),
        last_chapter_index=_optional_int(record.get("lastChapter")),
        last_offset=max(0, int(record.get("lastScrollOffset") or 0)),
        chapter_offsets={
            int(i): max(0, int(offset))
            for i, offset in (record.get("chapterOffsets") or {}).items()
        },
        last_access_time=record.get("lastReadTime"),
    )


# ==============================================================================
# SCHEDULING
# ==============================================================================
class _Handle:
    def __init__(self, when: float, callback: Callable[..., None], args: tuple):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic stand-in for an event loop's ``call_later``.
    Time only moves when ``advance`` is called.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: list[tuple[float, int, _Handle]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., None], *args) -> _Handle:
        handle = _Handle(self.now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def advance(self, seconds: float) -> None:
        deadline = self.now + seconds
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            self.now = when
            if not handle.cancelled:
                handle.callback(*handle.args)
        self.now = deadline

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class Debouncer:
    """Trailing-edge, single-slot: scheduling again cancels the pending call."""

    def __init__(self, delay: float, callback: Callable[[], None], scheduler):
        self.delay = delay
        self.callback = callback
        self.scheduler = scheduler
        self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        self._handle = self.scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        if self._handle is not None:
            self.cancel()
            self.callback()

    def _fire(self) -> None:
        self._handle = None
        self.callback()


# ==============================================================================
# COORDINATOR
# ==============================================================================
class CoordinatorState(str, Enum):
    IDLE = "idle"
    RESTORING = "restoring"


@dataclass
class RestoreReport:
    restored: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)
    active_document_id: str | None = None
    unavailable_active: str | None = None   # name of a last-read document that cannot open


class SessionCoordinator:
    """
    Saves the library and active document on a debounce; restores them at startup.

    While RESTORING, change notifications are ignored so half-restored state is
    never written back over the stored state.
    """

    def __init__(
        self,
        store: KeyValueStore,
        library: Library,
        cursor: ScrollCursor,
        scheduler,
        delay: float = SAVE_DELAY_SECONDS,
        loader: Callable[[str, str], Document] = load_file_document,
    ):
        self.store = store
        self.library = library
        self.cursor = cursor
        self.loader = loader
        self.state = CoordinatorState.IDLE
        self._debouncer = Debouncer(delay, self.save_now, scheduler)

    @property
    def is_restoring(self) -> bool:
        return self.state == CoordinatorState.RESTORING

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    def notify_changed(self) -> None:
        """Library changed: schedule a save without touching the reading position."""
        if self.is_restoring:
            return
        self._debouncer.schedule()

    def notify_position_changed(self) -> None:
        """Cursor moved: write it back into the active document, then schedule a save."""
        if self.is_restoring:
            return
        self.cursor.record_position()
        self._debouncer.schedule()

    def flush(self) -> None:
        self._debouncer.flush()

    def save_now(self) -> None:
        records = [document_to_record(d) for d in self.library]
        try:
            self.store.set(FILES_KEY, records)
            self.store.set(STATE_KEY, {
                "currentFileId": self.cursor.document_id,
                "lastSaveTime": time.time(),
            })
        except Exception:
            logger.exception("persist_failed", documents=len(records))

    def load_opacity(self, default: int) -> int:
        value = self._load(OPACITY_KEY, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("stored_opacity_invalid", value=repr(value))
            return default

    def save_opacity(self, value: int) -> None:
        """Display settings are written immediately and survive a library clear."""
        try:
            self.store.set(OPACITY_KEY, value)
        except Exception:
            logger.exception("persist_opacity_failed")

    def clear(self) -> None:
        self._debouncer.cancel()
        try:
            self.store.set(FILES_KEY, None)
            self.store.set(STATE_KEY, None)
        except Exception:
            logger.exception("persist_clear_failed")

    def _load(self, key: str, default: Any) -> Any:
        try:
            value = self.store.get(key)
        except Exception:
            logger.exception("persist_read_failed", key=key)
            return default
        return default if value is None else value

    # -- restore -------------------------------------------------------------

    def _restore_document(self, record: dict[str, Any]) -> Document:
        document = document_from_record(record)

        if document.is_pasted:
            document.chapters = segment_text(document.full_text, SourceKind.PASTED)
            document.page_count = len(document.chapters)
            document.validate_position()
            return document

        if not document.path or not Path(document.path).exists():
            document.mark_unavailable(DocumentStatus.MISSING, "File not found")
            return document

        try:
            loaded = self.loader(document.path, document.id)
        except (DocumentLoadError, OSError) as exc:
            document.mark_unavailable(DocumentStatus.ERROR, f"Parse failed: {exc}")
            return document

        if not loaded.is_usable:
            document.mark_unavailable(loaded.status, loaded.error_message)
            return document
        document.chapters = loaded.chapters
        document.page_count = loaded.page_count
        document.source_format = loaded.source_format
        document.validate_position()
        return document

    def restore(self) -> RestoreReport:
        """Rebuild the library from the store. One bad document never stops the rest."""
        self.state = CoordinatorState.RESTORING
        report = RestoreReport()
        try:
            records = self._load(FILES_KEY, [])
            documents = []
            for record in records if isinstance(records, list) else []:
                try:
                    document = self._restore_document(record)
                except (KeyError, TypeError, ValueError, AttributeError) as exc:
                    logger.warning("restore_record_skipped", reason=str(exc))
                    continue
                documents.append(document)
                if document.is_usable:
                    report.restored += 1
                else:
                    report.failed.append((document.name, document.error_message or document.status.value))
                    logger.warning(
                        "restore_document_unavailable",
                        document=document.name,
                        status=document.status.value,
                        reason=document.error_message,
                    )

            self.library.replace_all(documents)
            self.cursor.reset()

            state = self._load(STATE_KEY, {})
            active_id = state.get("currentFileId") if isinstance(state, dict) else None
            active = self.library.get(active_id)
            if active is not None and active.is_usable:
                self.cursor.attach(active)
                report.active_document_id = active.id
            elif active is not None:
                report.unavailable_active = active.name
        finally:
            self.state = CoordinatorState.IDLE
        return report
