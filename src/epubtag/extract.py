from __future__ import annotations

import re
import unicodedata
import warnings
from dataclasses import dataclass
from typing import Mapping, Sequence
from urllib.parse import quote, unquote, urljoin, urlsplit

from bs4 import (
    BeautifulSoup,
    Doctype,
    FeatureNotFound,
    NavigableString,
    XMLParsedAsHTMLWarning,
)  # type: ignore

from .archive import ArchiveReader
from .errors import NoExtractableContent
from .logging_utils import debug_log
from .package import ManifestEntry

# Base URL used only to resolve hrefs; never leaves this module.
_RESOLVE_BASE = "file:///"

# Block elements that should start on a new line when collapsing to text.
BLOCK_LEVEL_TAGS = {
    "address",
    "article",
    "aside",
    "blockquote",
    "dd",
    "div",
    "dl",
    "dt",
    "figcaption",
    "figure",
    "footer",
    "form",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "header",
    "hgroup",
    "hr",
    "li",
    "main",
    "nav",
    "ol",
    "p",
    "pre",
    "section",
    "table",
    "td",
    "th",
    "ul",
    "tr",
}
# Tags that should force a break even when nested inside another block.
FORCE_BREAK_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "li", "p", "dt", "dd", "tr", "td", "th"}
INVISIBLE_TAGS = ["head", "script", "style", "title", "noscript", "template"]


@dataclass(slots=True)
class ChapterText:
    path: str
    text: str


def resolve_href(manifest_path: str, href: str) -> str:
    """Resolve a manifest href to an archive-root path.

    The href is treated as a URL reference relative to the package document:
    dot segments collapse, the fragment and query are dropped and the result is
    percent-decoded.
    """
    base = urljoin(_RESOLVE_BASE, quote(manifest_path, safe="/"))
    path = urlsplit(urljoin(base, href)).path
    if path.startswith("/"):
        path = path[1:]
    return unquote(path, encoding="utf-8", errors="replace")


def _soup_from_html(html: str) -> BeautifulSoup:
    # XHTML chapters go through the HTML parsers too, so named entities like
    # &nbsp; resolve and unclosed tags are recovered without losing text.
    for parser in ("html5lib", "lxml", "html.parser"):
        try:
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
                return BeautifulSoup(html, parser)
        except FeatureNotFound:
            continue

    # html.parser ships with Python, so this is only reached if bs4 is broken.
    return BeautifulSoup(html, "html.parser")


def html_to_text(html: str) -> str:
    """Collapse an (X)HTML document to its visible text."""
    soup = _soup_from_html(html)
    for node in list(soup.contents):
        if isinstance(node, Doctype):
            node.extract()
        elif isinstance(node, NavigableString):
            stripped = str(node).strip()
            if stripped and stripped.upper().startswith("HTML PUBLIC"):
                node.extract()
    for t in soup.find_all(INVISIBLE_TAGS):
        t.decompose()
    root = soup.find("body") or soup
    for br in root.find_all("br"):
        br.replace_with("\n")
    # Ensure block-level elements start on a new line, but avoid double-
    # counting nested blocks except for the small set that should always break.
    for tag in root.find_all(BLOCK_LEVEL_TAGS):
        if tag.name in FORCE_BREAK_TAGS or not tag.find_parent(BLOCK_LEVEL_TAGS):
            tag.insert_before("\n")
    txt = root.get_text(separator="")
    txt = unicodedata.normalize("NFKC", txt)
    txt = re.sub(r"[ \t]+\n", "\n", txt)
    txt = re.sub(r"\n{3,}", "\n\n", txt).strip()
    return txt


def extract_chapters(
    archive: ArchiveReader,
    manifest_path: str,
    entries: Mapping[str, ManifestEntry],
    order: Sequence[str],
) -> list[ChapterText]:
    """Return the text of each distinct spine document in reading order.

    Resolution is best-effort: unknown ids, empty hrefs, repeated documents and
    hrefs pointing at missing entries are skipped without raising.
    """
    chapters: list[ChapterText] = []
    seen: set[str] = set()
    for idref in order:
        entry = entries.get(idref)
        if entry is None or not entry.path:
            debug_log(f"Spine reference {idref!r} has no text entry; skipped")
            continue
        path = resolve_href(manifest_path, entry.path)
        if path in seen:
            continue
        seen.add(path)
        if not archive.has_entry(path):
            debug_log(f"Spine document {path} missing from archive; skipped")
            continue
        text = html_to_text(archive.read_text(path))
        debug_log(f"Extracted {len(text)} character(s) from {path}")
        chapters.append(ChapterText(path=path, text=text))
    return chapters


def join_chapters(chapters: Sequence[ChapterText]) -> str:
    corpus = " ".join(chapter.text for chapter in chapters if chapter.text)
    if not corpus.strip():
        raise NoExtractableContent(
            "Could not extract any text content from the ePub spine files."
        )
    return corpus


def extract_text(
    archive: ArchiveReader,
    manifest_path: str,
    entries: Mapping[str, ManifestEntry],
    order: Sequence[str],
) -> str:
    """Concatenate the visible text of the reading order into one corpus."""
    return join_chapters(extract_chapters(archive, manifest_path, entries, order))
