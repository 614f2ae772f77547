"""library.py — The ordered document library and file/paste → Document loading."""

import time
import uuid
from pathlib import Path
from typing import Callable, Iterator

from models import Document, DocumentStatus, SourceKind
from observability import get_logger
from parsers import DecodeError, check_supported, parse_file
from segmenter import segment_text

logger = get_logger(__name__)

FORMAT_LABELS = {"pdf": "PDF", "txt": "TXT", "epub": "EPUB", "paste": "PASTE"}


def new_document_id() -> str:
    return uuid.uuid4().hex


def normalize_path(path: str | Path) -> str:
    """Absolute, user-expanded form used to store and compare source paths."""
    return str(Path(path).expanduser().resolve())


def load_file_document(file_path: str | Path, doc_id: str | None = None) -> Document:
    """
    Load and segment a file.

    Raises UnsupportedFormatError for unknown extensions (no document is made).
    A missing path gives a ``missing`` document; a decoder failure gives an
    ``error`` document carrying the message.
    """
    file_path = Path(normalize_path(file_path))
    check_supported(file_path)
    document = Document(
        id=doc_id or new_document_id(),
        name=file_path.name,
        source_kind=SourceKind.FILE,
        path=str(file_path),
        source_format=file_path.suffix.lower().lstrip("."),
    )

    if not file_path.exists():
        document.mark_unavailable(DocumentStatus.MISSING, "File not found")
        return document

    try:
        result = parse_file(file_path)
    except DecodeError as exc:
        logger.warning("decode_failed", path=str(file_path), reason=str(exc))
        document.mark_unavailable(DocumentStatus.ERROR, str(exc))
        return document
    except OSError as exc:
        logger.warning("read_failed", path=str(file_path), reason=str(exc))
        document.mark_unavailable(DocumentStatus.ERROR, str(exc))
        return document

    document.source_format = result.source_format
    document.page_count = result.page_count
    document.chapters = result.chapters or segment_text(result.text, SourceKind.FILE)
    return document


def load_pasted_document(content: str, doc_id: str | None = None, name: str | None = None) -> Document:
    chapters = segment_text(content, SourceKind.PASTED)
    return Document(
        id=doc_id or new_document_id(),
        name=name or f"Pasted_{time.strftime('%Y%m%d-%H%M%S')}",
        source_kind=SourceKind.PASTED,
        chapters=chapters,
        source_format="paste",
        full_text=content,
        page_count=len(chapters),
    )


class Library:
    """Documents in insertion order; file-backed documents are unique by path."""

    def __init__(self, on_change: Callable[[], None] | None = None):
        self.on_change = on_change
        self._documents: list[Document] = []

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents))

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc_id: str) -> bool:
        return self.get(doc_id) is not None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def get(self, doc_id: str | None) -> Document | None:
        for document in self._documents:
            if document.id == doc_id:
                return document
        return None

    def find_by_path(self, path: str | Path) -> Document | None:
        path = normalize_path(path)
        for document in self._documents:
            if document.source_kind == SourceKind.FILE and document.path == path:
                return document
        return None

    def add(self, document: Document) -> Document:
        if document.source_kind == SourceKind.FILE and self.find_by_path(document.path):
            raise ValueError(f"Document already in library: {document.path}")
        self._documents.append(document)
        self._changed()
        return document

    def replace(self, old: Document, new: Document) -> Document:
        """
        Swap ``new`` into ``old``'s slot, keeping old's identity and reading position.
        The carried-over position is revalidated against the new chapters.
        """
        index = next(i for i, d in enumerate(self._documents) if d.id == old.id)
        new.id = old.id
        new.added_time = old.added_time
        new.last_chapter_index = old.last_chapter_index
        new.last_offset = old.last_offset
        new.chapter_offsets = dict(old.chapter_offsets)
        new.last_access_time = old.last_access_time
        if new.is_usable:
            new.validate_position()
        self._documents[index] = new
        self._changed()
        return new

    def remove(self, doc_id: str) -> Document | None:
        document = self.get(doc_id)
        if document is None:
            return None
        self._documents.remove(document)
        self._changed()
        return document

    def cleanup_unavailable(self) -> list[Document]:
        """Drop every missing/error document; returns what was removed."""
        removed = [d for d in self._documents if not d.is_usable]
        if removed:
            self._documents = [d for d in self._documents if d.is_usable]
            self._changed()
        return removed

    def clear(self) -> None:
        self._documents = []
        self._changed()

    def replace_all(self, documents: list[Document]) -> None:
        """Install a restored library wholesale without notifying observers."""
        self._documents = list(documents)
