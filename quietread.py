#!/usr/bin/env python3
"""
quietread — Read long text a few dozen characters at a time, keeping your place.

Supported input formats: PDF, plain text (.txt), EPUB, or pasted text on stdin.
Reading state lives in a JSON file (QUIETREAD_STATE_PATH, default ~/.quietread/state.json).

Quick start:
  python quietread.py add "novel.txt"
  python quietread.py open <ID>
  python quietread.py next --page
  python quietread.py chapter 3
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Low-attention reader for PDF, TXT and EPUB files with persistent positions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Add a book and list the library:
  python quietread.py add book.epub
  python quietread.py list

  # Paste text from the clipboard:
  pbpaste | python quietread.py paste

  # Move 10 characters forward, or a whole window (80) back:
  python quietread.py next
  python quietread.py prev --page
        """,
    )
    parser.add_argument(
        "--state", type=Path, default=None, metavar="FILE",
        help="Reading state file (default: QUIETREAD_STATE_PATH or ~/.quietread/state.json)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Add a PDF, TXT or EPUB file to the library")
    add.add_argument("path", type=Path)
    add.add_argument("--replace", action="store_true", help="Reload if the path is already in the library")

    sub.add_parser("paste", help="Add text read from stdin")
    sub.add_parser("list", help="List documents in the library")

    chapters = sub.add_parser("chapters", help="List chapters of a document (default: current)")
    chapters.add_argument("doc_id", nargs="?", default=None)

    open_ = sub.add_parser("open", help="Make a document current")
    open_.add_argument("doc_id")

    chapter = sub.add_parser("chapter", help="Jump to a chapter of the current document (1-based)")
    chapter.add_argument("number", type=int)

    for name, help_text in (("next", "Move forward"), ("prev", "Move backward")):
        step = sub.add_parser(name, help=help_text)
        step.add_argument("--page", action="store_true", help="Move a whole window instead of a small step")
        step.add_argument("--count", type=int, default=1, metavar="N", help="Repeat N times")

    sub.add_parser("show", help="Show the current reading window")

    opacity = sub.add_parser("opacity", help="Show or set the status text opacity (5-100)")
    opacity.add_argument("value", type=int, nargs="?", default=None)

    remove = sub.add_parser("remove", help="Remove a document from the library")
    remove.add_argument("doc_id")

    sub.add_parser("cleanup", help="Remove missing or unreadable documents")
    sub.add_parser("clear", help="Remove every document and forget all positions")
    return parser.parse_args(argv)


def print_library(reader) -> None:
    from library import FORMAT_LABELS

    documents = list(reader.library)
    if not documents:
        print("Library is empty.")
        return
    print(f"\n{len(documents)} documents:")
    print("-" * 70)
    for doc in documents:
        marker = "*" if doc.id == reader.cursor.document_id else " "
        label = FORMAT_LABELS.get(doc.source_format, doc.source_format)
        status = "" if doc.is_usable else f"  ({doc.status.value})"
        print(f" {marker} {doc.id[:8]}  [{label:<5}] {doc.name:<40} {len(doc.chapters):>4} ch{status}")
    print("-" * 70)


def print_chapters(document, current_index=None) -> None:
    print(f"{document.name}: {len(document.chapters)} chapters")
    print("-" * 70)
    for i, ch in enumerate(document.chapters, start=1):
        marker = "*" if current_index == i - 1 else " "
        print(f" {marker}{i:4d}. {ch.title:<50} {len(ch.text):>7} chars")
    print("-" * 70)


def resolve_document_id(reader, prefix: str) -> str | None:
    matches = [d.id for d in reader.library if d.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    print(f"ERROR: {'no' if not matches else 'ambiguous'} document matches '{prefix}'")
    return None


def main(argv=None) -> int:
    args = parse_args(argv)
    load_dotenv()

    from config import Settings
    from observability import configure_logging
    from persistence import JsonFileStore, ManualScheduler
    from reader import Reader
    from surfaces import ConsoleHost, ConsoleSurface

    settings = Settings.from_env()
    if args.state:
        settings.state_path = args.state.expanduser()
    configure_logging(settings.log_level, settings.log_path)

    host = ConsoleHost(
        open_path=str(args.path) if args.command == "add" else None,
        replace_existing=getattr(args, "replace", False),
    )
    surface = ConsoleSurface(echo=False)
    reader = Reader(host, surface, JsonFileStore(settings.state_path), ManualScheduler(), settings)
    reader.start()

    exit_code = 0
    command = args.command
    if command == "add":
        document = reader.select_file()
        if document is None:
            exit_code = 1
        else:
            print(f"  id: {document.id[:8]}  chapters: {len(document.chapters)}")
    elif command == "paste":
        document = reader.load_pasted_text(sys.stdin.read())
        if document is None:
            print("ERROR: nothing to paste")
            exit_code = 1
        else:
            print(f"  id: {document.id[:8]}")
            print(reader.status_text())
    elif command == "list":
        print_library(reader)
    elif command == "chapters":
        doc_id = resolve_document_id(reader, args.doc_id) if args.doc_id else reader.cursor.document_id
        document = reader.library.get(doc_id)
        if document is None:
            print("No document selected.")
            exit_code = 1
        else:
            current = reader.cursor.chapter_index if document is reader.current_document else None
            print_chapters(document, current)
    elif command == "open":
        doc_id = resolve_document_id(reader, args.doc_id)
        if doc_id is None or not reader.select_document(doc_id):
            exit_code = 1
        else:
            print(reader.status_text())
    elif command == "chapter":
        if reader.select_chapter(args.number - 1) or reader.cursor.chapter_index == args.number - 1:
            print(reader.status_text())
        else:
            print(f"ERROR: no chapter {args.number} in the current document")
            exit_code = 1
    elif command in ("next", "prev"):
        if command == "next":
            step = reader.page_right if args.page else reader.step_right
        else:
            step = reader.page_left if args.page else reader.step_left
        for _ in range(max(1, args.count)):
            if not step():
                break
        print(reader.status_text())
    elif command == "show":
        print(reader.status_text())
    elif command == "opacity":
        if args.value is not None:
            reader.set_opacity(args.value)
        print(f"Status text opacity: {reader.opacity}%")
    elif command == "remove":
        doc_id = resolve_document_id(reader, args.doc_id)
        if doc_id is None or reader.remove_document(doc_id) is None:
            exit_code = 1
    elif command == "cleanup":
        reader.cleanup_missing()
    elif command == "clear":
        reader.clear_library()

    reader.shutdown()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
