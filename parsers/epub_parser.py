"""parsers/epub_parser.py — Read EPUB (packed or directory) in reading order."""

import posixpath
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from models import Chapter
from parsers.base import DecodeError, ParseResult, strip_markup

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
NCX_NS = "http://www.daisy.org/z3986/2005/ncx/"
OPF_NS = "http://www.idpf.org/2007/opf"
XHTML_NS = "http://www.w3.org/1999/xhtml"


@dataclass
class EpubRecord:
    """One spine item: manifest id, TOC title (may be empty), raw XHTML."""
    id: str
    title: str
    raw_markup: bytes


class _EpubSource:
    """Uniform file access over a zipped .epub or an unpacked directory."""

    def __init__(self, epub_path: Path):
        self.path = epub_path
        if epub_path.is_dir():
            self._zip = None
        elif zipfile.is_zipfile(epub_path):
            self._zip = zipfile.ZipFile(epub_path)
        else:
            raise DecodeError(f"Cannot determine EPUB format for {epub_path.name}")

    def read(self, name: str) -> bytes:
        if self._zip is not None:
            return self._zip.read(name)
        return (self.path / name).read_bytes()

    def close(self):
        if self._zip is not None:
            self._zip.close()


def _resolve(base_dir: str, href: str) -> str:
    href = unquote(href.split("#")[0])
    return posixpath.normpath(posixpath.join(base_dir, href)) if base_dir else posixpath.normpath(href)


def _rootfile_path(source: _EpubSource) -> str:
    root = ET.fromstring(source.read("META-INF/container.xml"))
    rootfile = root.find(f".//{{{CONTAINER_NS}}}rootfile")
    if rootfile is None or not rootfile.get("full-path"):
        raise DecodeError("container.xml has no rootfile")
    return rootfile.get("full-path")


def _ncx_titles(source: _EpubSource, ncx_path: str) -> dict[str, str]:
    root = ET.fromstring(source.read(ncx_path))
    base_dir = posixpath.dirname(ncx_path)
    titles = {}
    for nav_point in root.iter(f"{{{NCX_NS}}}navPoint"):
        label = nav_point.find(f"{{{NCX_NS}}}navLabel/{{{NCX_NS}}}text")
        content = nav_point.find(f"{{{NCX_NS}}}content")
        if label is None or content is None or not label.text:
            continue
        titles.setdefault(_resolve(base_dir, content.get("src", "")), label.text.strip())
    return titles


def _nav_titles(source: _EpubSource, nav_path: str) -> dict[str, str]:
    root = ET.fromstring(source.read(nav_path))
    base_dir = posixpath.dirname(nav_path)
    titles = {}
    for anchor in root.iter(f"{{{XHTML_NS}}}a"):
        href = anchor.get("href")
        label = "".join(anchor.itertext()).strip()
        if href and label:
            titles.setdefault(_resolve(base_dir, href), label)
    return titles


def read_epub_records(epub_path: Path) -> list[EpubRecord]:
    """Return spine items in reading order with their TOC titles."""
    source = _EpubSource(Path(epub_path))
    try:
        opf_path = _rootfile_path(source)
        opf_dir = posixpath.dirname(opf_path)
        opf = ET.fromstring(source.read(opf_path))

        manifest = {}
        nav_path = None
        for item in opf.iter(f"{{{OPF_NS}}}item"):
            href = _resolve(opf_dir, item.get("href", ""))
            manifest[item.get("id")] = href
            if "nav" in (item.get("properties") or "").split():
                nav_path = href

        spine = opf.find(f"{{{OPF_NS}}}spine")
        if spine is None:
            raise DecodeError("content.opf has no spine")

        titles: dict[str, str] = {}
        toc_id = spine.get("toc")
        if toc_id and toc_id in manifest:
            titles = _ncx_titles(source, manifest[toc_id])
        elif nav_path:
            titles = _nav_titles(source, nav_path)

        records = []
        for itemref in spine.findall(f"{{{OPF_NS}}}itemref"):
            item_id = itemref.get("idref")
            href = manifest.get(item_id)
            if href is None:
                continue
            records.append(EpubRecord(id=item_id, title=titles.get(href, ""), raw_markup=source.read(href)))
        return records
    except (KeyError, OSError, ET.ParseError, zipfile.BadZipFile) as exc:
        raise DecodeError(f"EPUB parse error in {Path(epub_path).name}: {exc}") from exc
    finally:
        source.close()


def parse_epub(epub_path: Path) -> ParseResult:
    """Main entry point. Chapters follow the spine; empty spine items are skipped."""
    records = read_epub_records(epub_path)

    chapters = []
    texts = []
    for i, record in enumerate(records, start=1):
        text = strip_markup(record.raw_markup)
        if not text.strip():
            continue
        chapters.append(Chapter(title=record.title or f"Chapter {i}", content=text))
        texts.append(text)

    return ParseResult(
        text="\n".join(texts),
        page_count=len(chapters),
        source_format="epub",
        chapters=chapters or None,
    )
