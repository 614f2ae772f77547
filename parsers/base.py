"""parsers/base.py — Shared parser utilities, result type, and errors."""

import html
import re
import warnings
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from models import Chapter


class DocumentLoadError(Exception):
    """Base class for anything that stops a file from becoming a readable document."""


class UnsupportedFormatError(DocumentLoadError):
    """The file extension has no decoder; no document is created."""


class DecodeError(DocumentLoadError):
    """The format library failed on the file's bytes."""


@dataclass
class ParseResult:
    """Standard return type for all parsers."""
    text: str
    page_count: int
    source_format: str
    # Set only when the format carries its own chapter structure (EPUB spine).
    chapters: list[Chapter] | None = field(default=None)


# Elements whose whole subtree is dropped: scripts, styles, media, embedded objects.
DROPPED_TAGS = (
    "script", "style", "img", "svg", "figure", "picture", "canvas",
    "video", "audio", "embed", "object", "iframe", "head",
)
LINE_BREAK_TAGS = ("br", "div", "li", "tr")
PARAGRAPH_TAGS = ("p", "h1", "h2", "h3", "h4", "h5", "h6")

_BASE64_IMAGE = re.compile(r"data:image/[a-zA-Z+]+;base64,[A-Za-z0-9+/=]+", re.IGNORECASE)
_IMAGE_URL = re.compile(
    r"https?://[^\s<>\"]+\.(?:jpg|jpeg|png|gif|bmp|webp|svg|ico)", re.IGNORECASE
)

# EPUB chapters are XHTML; they are parsed as HTML.
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)


def clean_text(text: str) -> str:
    """Normalize extracted text: decode entities, collapse spaces and blank lines."""
    text = html.unescape(text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\u00a0", " ").replace("\u00ad", "")
    text = text.replace("\u2018", "'").replace("\u2019", "'")
    text = text.replace("\u201c", '"').replace("\u201d", '"')
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.split("\n")]
    cleaned_lines = []
    prev_blank = False
    for line in lines:
        if not line:
            if not prev_blank:
                cleaned_lines.append("")
            prev_blank = True
        else:
            cleaned_lines.append(line)
            prev_blank = False
    return "\n".join(cleaned_lines).strip()


def strip_markup(markup: str | bytes) -> str:
    """Reduce (X)HTML to plain text with paragraph breaks, dropping media and scripts."""
    soup = BeautifulSoup(markup, features="lxml")
    for tag in soup.find_all(DROPPED_TAGS):
        tag.decompose()
    for tag in soup.find_all(LINE_BREAK_TAGS):
        tag.append("\n")
    for tag in soup.find_all(PARAGRAPH_TAGS):
        tag.append("\n\n")

    text = soup.get_text()
    text = _BASE64_IMAGE.sub("", text)
    text = _IMAGE_URL.sub("", text)
    return clean_text(text)
