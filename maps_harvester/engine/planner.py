"""Expand segments and search terms into the initial crawl task list."""

from __future__ import annotations

from typing import Iterable, Sequence
from urllib.parse import quote

from ..errors import InvalidInputError
from .models import CrawlTask, Segment

SEARCH_BASE_URL = "https://www.google.com/maps/search/"


def search_url(segment: Segment, search_term: str, language: str = "en") -> str:
    query = quote(search_term, safe="")
    return f"{SEARCH_BASE_URL}{query}/@{segment.latitude},{segment.longitude},{segment.zoom}z?hl={language}"


def normalise_terms(search_terms: Iterable[str]) -> list[str]:
    terms: list[str] = []
    for term in search_terms:
        cleaned = (term or "").strip()
        if cleaned and cleaned not in terms:
            terms.append(cleaned)
    return terms


def plan(
    segments: Sequence[Segment],
    search_terms: Iterable[str],
    max_segments_per_term: int,
    *,
    language: str = "en",
) -> list[CrawlTask]:
    """Return one depth-1 task per (segment, term) pair.

    Only the first ``max_segments_per_term`` segments are used for each term,
    in the order the tiler emitted them.
    """

    terms = normalise_terms(search_terms)
    if not terms:
        raise InvalidInputError("at least one search term is required")
    if max_segments_per_term < 1:
        raise InvalidInputError("max_segments_per_term must be >= 1")
    selected = list(segments)[:max_segments_per_term]
    return [
        CrawlTask(
            segment=segment,
            search_term=term,
            url=search_url(segment, term, language),
            pagination_depth=1,
        )
        for term in terms
        for segment in selected
    ]


__all__ = ["SEARCH_BASE_URL", "normalise_terms", "plan", "search_url"]
