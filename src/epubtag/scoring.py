from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, Mapping, Sequence

WILDCARD = "*"
# Matches one word character; \w under re.ASCII is [A-Za-z0-9_].
_WILDCARD_PATTERN = r"\w"
_KEYWORD_FLAGS = re.IGNORECASE | re.ASCII

ScanTable = Mapping[str, Sequence[str]]


@dataclass(slots=True)
class CategoryResult:
    name: str
    score: int = 0
    hits: dict[str, int] = field(default_factory=dict)

    def top_hits(self, limit: int | None = 5) -> list[tuple[str, int]]:
        """Return the strongest keywords, ties kept in keyword-list order."""
        ranked = sorted(self.hits.items(), key=lambda item: -item[1])
        return ranked if limit is None else ranked[:limit]

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "score": self.score, "hits": dict(self.hits)}


@dataclass(slots=True, frozen=True)
class AggregateHit:
    keyword: str
    count: int

    def to_dict(self) -> dict[str, object]:
        return {"keyword": self.keyword, "count": self.count}


def keyword_pattern(keyword: str) -> str:
    """Translate a keyword into a word-start anchored prefix pattern."""
    parts = [
        _WILDCARD_PATTERN if ch == WILDCARD else re.escape(ch)
        for ch in keyword
    ]
    return r"\b" + "".join(parts)


@lru_cache(maxsize=4096)
def compile_keyword(keyword: str) -> re.Pattern[str]:
    return re.compile(keyword_pattern(keyword), _KEYWORD_FLAGS)


def count_keyword(corpus: str, keyword: str) -> int:
    """Count non-overlapping case-insensitive prefix matches of keyword."""
    if not keyword:
        return 0
    return sum(1 for _ in compile_keyword(keyword).finditer(corpus))


def score_category(corpus: str, name: str, keywords: Iterable[str]) -> CategoryResult:
    result = CategoryResult(name=name)
    for keyword in keywords:
        count = count_keyword(corpus, keyword)
        if count > 0:
            result.hits[keyword] = count
            result.score += count
    return result


def score_table(corpus: str, table: ScanTable) -> list[CategoryResult]:
    """Score every category of table, in table order, zero scores included."""
    return [score_category(corpus, name, keywords) for name, keywords in table.items()]


def rank(results: Iterable[CategoryResult]) -> list[CategoryResult]:
    # sorted() is stable, so equal scores keep their definition order.
    return sorted(results, key=lambda result: -result.score)


def positive(results: Iterable[CategoryResult]) -> list[CategoryResult]:
    return [result for result in results if result.score > 0]


def aggregate_hits(*result_lists: Iterable[CategoryResult]) -> list[AggregateHit]:
    """Sum keyword counts across categories, most frequent first.

    Keywords sharing the same text in different categories merge into one
    entry; ties keep the order in which keywords were first encountered.
    """
    totals: dict[str, int] = {}
    for results in result_lists:
        for result in results:
            for keyword, count in result.hits.items():
                if count > 0:
                    totals[keyword] = totals.get(keyword, 0) + count
    ranked = sorted(totals.items(), key=lambda item: -item[1])
    return [AggregateHit(keyword=keyword, count=count) for keyword, count in ranked]


def parse_keyword_list(raw: str | None) -> list[str]:
    """Split a comma-separated keyword string, e.g. ``"magic, wom*n"``."""
    if not raw:
        return []
    keywords: list[str] = []
    for piece in raw.split(","):
        keyword = piece.strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords
