"""segmenter.py — Split raw text into titled chapters, with layered fallbacks."""

import re
from dataclasses import dataclass
from typing import Callable, Iterable

from models import Chapter, SourceKind

MIN_CONTENT_LENGTH = 5          # shorter non-title lines are treated as noise
TITLE_PREVIEW_LENGTH = 10
SENTINEL_TITLE = "Full Text"

_CN_NUMERALS = "一二三四五六七八九十百千零〇"
_TITLE_SEPARATORS = re.compile(r"^\s*[：:\-]\s*")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class BoundaryRule:
    """A chapter-boundary test: ``match`` returns the raw title or None."""
    name: str
    match: Callable[[str], str | None]


def _pattern_rule(name: str, pattern: str, flags: int = 0) -> BoundaryRule:
    regex = re.compile(pattern, flags)

    def match(line: str) -> str | None:
        m = regex.match(line)
        if not m:
            return None
        groups = [g for g in m.groups() if g]
        return groups[-1] if groups else m.group(0)

    return BoundaryRule(name, match)


def _short_line_rule(name: str, pattern: str, flags: int = 0) -> BoundaryRule:
    """Whole-line rules that only apply to lines of 3-49 characters."""
    regex = re.compile(pattern, flags)

    def match(line: str) -> str | None:
        if 2 < len(line) < 50 and regex.match(line):
            return line
        return None

    return BoundaryRule(name, match)


# Tried top to bottom for every line; the first match wins.
BOUNDARY_RULES: tuple[BoundaryRule, ...] = (
    _pattern_rule("cn_chapter", rf"^第[{_CN_NUMERALS}\d]+章\s*[：:\-]?\s*(.*)$"),
    _pattern_rule("cn_enumerated", rf"^[{_CN_NUMERALS}]+、\s*(.+)$"),
    _pattern_rule("decimal_heading", r"^\d+\s*[、．.]\s*(.+)$"),
    _pattern_rule(
        "en_chapter",
        r"^chapter\s+(?:\d+|[ivxlcdm]+)\b\s*[:.\-]?\s*(.*)$",
        re.IGNORECASE,
    ),
    _pattern_rule("banner_equals", r"^={3,}\s*(.+?)\s*={3,}$"),
    _pattern_rule("banner_dashes", r"^-{3,}\s*(.+?)\s*-{3,}$"),
    _pattern_rule("banner_stars", r"^\*{3,}\s*(.+?)\s*\*{3,}$"),
    _pattern_rule("lenticular_brackets", r"^【(.+)】$"),
    _pattern_rule("title_brackets", r"^《(.+)》$"),
    _pattern_rule("number_space", r"^\d+\s+(.+)$"),
    _short_line_rule("all_caps", r"^(?=.*[A-Z])[A-Z\s\d\-_]+$"),
    _short_line_rule("cn_matter_keyword", r"^(序言|前言|引言|结语|附录|目录|索引|参考文献|致谢)"),
    _short_line_rule(
        "en_matter_keyword",
        r"^(preface|prologue|epilogue|introduction|foreword|afterword|appendix"
        r"|contents|index|acknowledge?ments)\s*[:.]?$",
        re.IGNORECASE,
    ),
)


def _to_lines(text: str | Iterable[str]) -> list[str]:
    if isinstance(text, str):
        return text.split("\n")
    return list(text)


def match_boundary(line: str) -> str | None:
    """Return the chapter title if ``line`` is a chapter boundary, else None."""
    line = line.strip()
    if not line:
        return None
    for rule in BOUNDARY_RULES:
        raw = rule.match(line)
        if raw is None:
            continue
        title = _TITLE_SEPARATORS.sub("", raw).strip()
        return title or line
    return None


def extract_chapters(text: str | Iterable[str]) -> list[Chapter]:
    """
    Scan lines for chapter boundaries.

    Returns [] when no boundary fires; callers decide on the fallback.
    Lines seen before the first boundary are not kept.
    """
    chapters = []
    title = None
    content: list[str] = []

    for raw_line in _to_lines(text):
        line = raw_line.strip()
        if not line:
            continue
        boundary = match_boundary(line)
        if boundary is not None:
            if title is not None:
                chapters.append(Chapter(title=title, content=tuple(content)))
            title, content = boundary, []
        elif title is not None and len(line) > MIN_CONTENT_LENGTH:
            content.append(line)

    if title is not None:
        chapters.append(Chapter(title=title, content=tuple(content)))
    return chapters


def preview_title(line: str, length: int = TITLE_PREVIEW_LENGTH) -> str:
    """First ``length`` characters of a line, with '...' when truncated."""
    line = line.strip()
    if len(line) <= length:
        return line
    cut = length
    while cut < len(line) and line[cut - 1].isspace():
        cut += 1
    if cut >= len(line):
        return line
    return line[:cut] + "..."


def _chapters_by_paragraph(text: str) -> list[Chapter]:
    chapters = []
    for paragraph in _PARAGRAPH_BREAK.split(text):
        lines = [line.strip() for line in paragraph.split("\n") if line.strip()]
        if lines:
            chapters.append(Chapter(title=preview_title(lines[0]), content=tuple(lines)))
    return chapters


def _chapters_by_line(text: str) -> list[Chapter]:
    return [
        Chapter(title=preview_title(line), content=(line.strip(),))
        for line in text.split("\n")
        if line.strip()
    ]


_FALLBACK_STRATEGIES = (_chapters_by_paragraph, _chapters_by_line)


def fallback_chapters(text: str | Iterable[str] | None) -> list[Chapter]:
    """Never returns an empty list: blank input yields one sentinel chapter."""
    if text is None:
        text = ""
    elif not isinstance(text, str):
        text = "\n".join(text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    if text.strip():
        for strategy in _FALLBACK_STRATEGIES:
            chapters = strategy(text)
            if chapters:
                return chapters
    return [Chapter(title=SENTINEL_TITLE, content=())]


def _file_needs_fallback(chapters: list[Chapter]) -> bool:
    return not chapters


def _paste_needs_fallback(chapters: list[Chapter]) -> bool:
    # Pasted text accepts any heuristic result at all, even a single lucky match.
    return len(chapters) == 0


FALLBACK_POLICIES: dict[SourceKind, Callable[[list[Chapter]], bool]] = {
    SourceKind.FILE: _file_needs_fallback,
    SourceKind.PASTED: _paste_needs_fallback,
}


def segment_text(text: str | None, source_kind: SourceKind = SourceKind.FILE) -> list[Chapter]:
    """Segment text into chapters, falling back per the source kind's policy."""
    text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    chapters = extract_chapters(text)
    if FALLBACK_POLICIES[source_kind](chapters):
        return fallback_chapters(text)
    return chapters
