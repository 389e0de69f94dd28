"""Deduplication and filter gate applied to every harvested record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .models import PlaceRecord
from .state import RunState
from .stats import Outcome


@dataclass(frozen=True)
class RecordFilters:
    """Record-level filters configured for a run."""

    min_rating: float = 0.0
    category_filter: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, min_rating: float = 0.0, categories: Iterable[str] | None = None) -> "RecordFilters":
        cleaned = frozenset(c.strip() for c in categories or () if c and c.strip())
        return cls(min_rating=float(min_rating), category_filter=cleaned)


class DedupFilterPipeline:
    """Stateful gate deciding whether a record is kept.

    Checks run in a fixed order and the first match wins: duplicates are never
    filtered further, so a repeated low-rated record counts as a duplicate
    rather than as a rating rejection. Only an accepted record changes
    ``seen_keys``; evaluating the same record twice therefore yields
    ``ACCEPTED`` then ``DUPLICATE``.
    """

    def evaluate(self, record: PlaceRecord, run_state: RunState, filters: RecordFilters) -> Outcome:
        key = record.dedup_key
        with run_state.lock:
            if key in run_state.seen_keys:
                outcome = Outcome.DUPLICATE
            elif record.within_area is False:
                outcome = Outcome.OUT_OF_AREA
            elif (record.rating or 0.0) < filters.min_rating:
                outcome = Outcome.REJECTED_BY_RATING
            elif filters.category_filter and record.category not in filters.category_filter:
                outcome = Outcome.REJECTED_BY_CATEGORY
            else:
                run_state.seen_keys.add(key)
                run_state.accepted_count += 1
                if record.search_term is not None:
                    term = record.search_term
                    run_state.per_term_accepted[term] = run_state.per_term_accepted.get(term, 0) + 1
                outcome = Outcome.ACCEPTED
            run_state.stats.record_outcome(outcome, record.search_term)
        return outcome


__all__ = ["DedupFilterPipeline", "RecordFilters"]
