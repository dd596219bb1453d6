from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from .archive import Archive
from .extract import extract_chapters, join_chapters
from .keywords import GENRE_KEYWORDS, TAG_KEYWORDS
from .logging_utils import debug_log
from .package import PackageMetadata, locate_manifest, parse_manifest
from .scoring import (
    AggregateHit,
    CategoryResult,
    ScanTable,
    aggregate_hits,
    rank,
    score_category,
    score_table,
)

CUSTOM_CATEGORY = "Custom keywords"


@dataclass(slots=True)
class AnalysisResult:
    genres: list[CategoryResult]
    tags: list[CategoryResult]
    all_hits: list[AggregateHit]
    metadata: PackageMetadata = field(default_factory=PackageMetadata)
    chapter_count: int = 0
    corpus_length: int = 0
    custom: CategoryResult | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "genres": [result.to_dict() for result in self.genres],
            "tags": [result.to_dict() for result in self.tags],
            "allHits": [hit.to_dict() for hit in self.all_hits],
            "metadata": self.metadata.to_dict(),
            "chapterCount": self.chapter_count,
            "corpusLength": self.corpus_length,
        }
        if self.custom is not None:
            payload["custom"] = self.custom.to_dict()
        return payload


def analyze_epub_bytes(
    data: bytes,
    genres: ScanTable | None = None,
    tags: ScanTable | None = None,
    *,
    custom_keywords: Sequence[str] | None = None,
    max_bytes: int | None = None,
) -> AnalysisResult:
    """
    Score an EPUB held in memory against the genre and tag keyword tables.

    Either a complete result is returned or a single EpubAnalysisError is
    raised; nothing is kept between calls.
    """
    genre_table = GENRE_KEYWORDS if genres is None else genres
    tag_table = TAG_KEYWORDS if tags is None else tags
    with Archive.load(data, max_bytes=max_bytes) as archive:
        manifest_path = locate_manifest(archive)
        manifest = parse_manifest(archive, manifest_path)
        chapters = extract_chapters(archive, manifest_path, manifest.entries, manifest.order)
    corpus = join_chapters(chapters)
    debug_log(f"Corpus built from {len(chapters)} document(s), {len(corpus)} character(s)")

    # Both tables only read the corpus.
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="epubtag-score") as pool:
        genre_future = pool.submit(score_table, corpus, genre_table)
        tag_future = pool.submit(score_table, corpus, tag_table)
        genre_results = genre_future.result()
        tag_results = tag_future.result()

    # Aggregate before ranking so ties keep first-encountered order.
    all_hits = aggregate_hits(genre_results, tag_results)
    custom = None
    if custom_keywords:
        custom = score_category(corpus, CUSTOM_CATEGORY, custom_keywords)
    return AnalysisResult(
        genres=rank(genre_results),
        tags=rank(tag_results),
        all_hits=all_hits,
        metadata=manifest.metadata,
        chapter_count=len(chapters),
        corpus_length=len(corpus),
        custom=custom,
    )


def analyze_epub(
    inp_epub: str | os.PathLike[str],
    genres: ScanTable | None = None,
    tags: ScanTable | None = None,
    *,
    custom_keywords: Sequence[str] | None = None,
    max_bytes: int | None = None,
) -> AnalysisResult:
    """Read an EPUB from disk and run analyze_epub_bytes on it."""
    data = Path(inp_epub).read_bytes()
    return analyze_epub_bytes(
        data,
        genres,
        tags,
        custom_keywords=custom_keywords,
        max_bytes=max_bytes,
    )
