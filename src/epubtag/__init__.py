from .archive import Archive, ArchiveReader
from .core import AnalysisResult, analyze_epub, analyze_epub_bytes
from .errors import (
    ArchiveError,
    EntryNotFound,
    EpubAnalysisError,
    MalformedContainer,
    MalformedManifest,
    ManifestNotFound,
    MissingContainer,
    MissingRootfilePath,
    NoExtractableContent,
)
from .extract import extract_text, html_to_text, resolve_href
from .keywords import GENRE_KEYWORDS, TAG_KEYWORDS, load_keyword_table
from .package import ManifestEntry, locate_manifest, parse_manifest
from .scoring import AggregateHit, CategoryResult, aggregate_hits, score_table

__all__ = [
    "Archive",
    "ArchiveReader",
    "AnalysisResult",
    "analyze_epub",
    "analyze_epub_bytes",
    "ArchiveError",
    "EntryNotFound",
    "EpubAnalysisError",
    "MalformedContainer",
    "MalformedManifest",
    "ManifestNotFound",
    "MissingContainer",
    "MissingRootfilePath",
    "NoExtractableContent",
    "extract_text",
    "html_to_text",
    "resolve_href",
    "GENRE_KEYWORDS",
    "TAG_KEYWORDS",
    "load_keyword_table",
    "ManifestEntry",
    "locate_manifest",
    "parse_manifest",
    "AggregateHit",
    "CategoryResult",
    "aggregate_hits",
    "score_table",
]
