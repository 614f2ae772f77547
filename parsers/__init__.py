"""parsers/ — Multi-format document decoder package."""

from pathlib import Path

from parsers.base import DecodeError, DocumentLoadError, ParseResult, UnsupportedFormatError

SUPPORTED_EXTENSIONS = {".epub", ".pdf", ".txt"}

__all__ = [
    "DecodeError",
    "DocumentLoadError",
    "ParseResult",
    "SUPPORTED_EXTENSIONS",
    "UnsupportedFormatError",
    "check_supported",
    "parse_file",
]


def check_supported(file_path: Path) -> str:
    """Return the lowercased suffix, or raise UnsupportedFormatError."""
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS and not file_path.is_dir():
        raise UnsupportedFormatError(
            f"Unsupported file format: '{suffix}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )
    return suffix


def parse_file(file_path: Path) -> ParseResult:
    """Dispatch to the appropriate parser based on file extension."""
    file_path = Path(file_path)
    suffix = check_supported(file_path)

    if suffix == ".epub" or file_path.is_dir():
        from parsers.epub_parser import parse_epub
        return parse_epub(file_path)
    elif suffix == ".pdf":
        from parsers.pdf_parser import parse_pdf
        return parse_pdf(file_path)
    else:
        from parsers.text_parser import parse_text
        return parse_text(file_path)
