"""parsers/text_parser.py — Decode plain-text files."""

import math
from pathlib import Path

from parsers.base import DecodeError, ParseResult

LINES_PER_PAGE = 50


def parse_text(file_path: Path) -> ParseResult:
    """Read a UTF-8 text file. Page count is a nominal 50 lines per page."""
    file_path = Path(file_path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"{file_path.name} is not valid UTF-8: {exc}") from exc

    content = content.replace("\r\n", "\n").replace("\r", "\n")
    line_count = len(content.split("\n"))
    return ParseResult(
        text=content,
        page_count=math.ceil(line_count / LINES_PER_PAGE),
        source_format="txt",
    )
