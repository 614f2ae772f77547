"""parsers/pdf_parser.py — Flatten PDF files to text using pymupdf."""

from pathlib import Path

from parsers.base import DecodeError, ParseResult


def parse_pdf(file_path: Path) -> ParseResult:
    """
    Extract the text of every page, in page order.
    Layout, images and page boundaries are not preserved; only the line stream.
    """
    import fitz  # pymupdf

    file_path = Path(file_path)
    try:
        doc = fitz.open(str(file_path))
    except Exception as exc:  # pymupdf raises its own FileDataError / RuntimeError family
        raise DecodeError(f"Cannot open PDF {file_path.name}: {exc}") from exc

    try:
        page_count = doc.page_count
        text_parts = [doc[page_num].get_text("text") for page_num in range(page_count)]
    except Exception as exc:
        raise DecodeError(f"Cannot read PDF {file_path.name}: {exc}") from exc
    finally:
        doc.close()

    return ParseResult(
        text="\n".join(text_parts),
        page_count=page_count,
        source_format="pdf",
    )
