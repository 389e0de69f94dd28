"""Run counters observed by every stage of a harvest."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from threading import Lock
from typing import Any

import structlog


class Outcome(str, Enum):
    """Result of pushing one record through the dedup/filter gate."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    OUT_OF_AREA = "out_of_area"
    REJECTED_BY_RATING = "rejected_by_rating"
    REJECTED_BY_CATEGORY = "rejected_by_category"


@dataclass
class StatsCounters:
    """Named counters; all of them only ever grow during a run."""

    seen: int = 0
    unique: int = 0
    duplicate: int = 0
    out_of_area: int = 0
    below_min_rating: int = 0
    category_rejected: int = 0
    paginations: int = 0
    search_pages: int = 0
    reached_max_results: int = 0
    failed_requests: int = 0
    retried_requests: int = 0
    skipped_tasks: int = 0
    per_search_term: dict[str, int] = field(default_factory=dict)


_OUTCOME_COUNTERS: dict[Outcome, str] = {
    Outcome.ACCEPTED: "unique",
    Outcome.DUPLICATE: "duplicate",
    Outcome.OUT_OF_AREA: "out_of_area",
    Outcome.REJECTED_BY_RATING: "below_min_rating",
    Outcome.REJECTED_BY_CATEGORY: "category_rejected",
}


class StatsAggregator:
    """Accumulate counters; never raises into the caller."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._counters = StatsCounters()
        self._lock = Lock()
        self.logger = logger or structlog.get_logger("maps_harvester.stats")

    def increment(self, name: str, amount: int = 1) -> None:
        if not isinstance(name, str):
            self.logger.warning("stats_unknown_counter", counter=repr(name))
            return
        if not _is_count(amount):
            self.logger.warning("stats_invalid_increment_ignored", counter=name, amount=repr(amount))
            return
        if amount < 0:
            self.logger.warning("stats_negative_increment_ignored", counter=name, amount=amount)
            return
        with self._lock:
            current = getattr(self._counters, name, None)
            if name == "per_search_term" or not isinstance(current, int):
                self.logger.warning("stats_unknown_counter", counter=name)
                return
            setattr(self._counters, name, current + amount)

    def record_seen(self, count: int) -> None:
        self.increment("seen", count)

    def record_outcome(self, outcome: Any, search_term: str | None = None) -> None:
        try:
            counter = _OUTCOME_COUNTERS.get(Outcome(outcome))
        except (TypeError, ValueError):
            counter = None
        if counter is None:
            self.logger.warning("stats_unknown_outcome", outcome=str(outcome))
            return
        self.increment(counter)
        if counter == "unique" and isinstance(search_term, str):
            with self._lock:
                per_term = self._counters.per_search_term
                per_term[search_term] = per_term.get(search_term, 0) + 1

    def record_search_page(self) -> None:
        self.increment("search_pages")

    def record_pagination(self) -> None:
        self.increment("paginations")

    def record_failure(self, retried: bool) -> None:
        self.increment("failed_requests")
        if retried:
            self.increment("retried_requests")

    def record_skipped(self, count: int = 1) -> None:
        self.increment("skipped_tasks", count)

    def mark_reached_max_results(self, accepted: int) -> None:
        """Store the accepted total once the run hit its cap."""

        if not _is_count(accepted):
            self.logger.warning("stats_invalid_reached_max_results", accepted=repr(accepted))
            return
        with self._lock:
            if accepted > self._counters.reached_max_results:
                self._counters.reached_max_results = accepted

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            data = asdict(self._counters)
        data["per_search_term"] = dict(data["per_search_term"])
        return data

    def log_stats(self) -> None:
        self.logger.info("stats", **self.snapshot())


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


__all__ = ["Outcome", "StatsAggregator", "StatsCounters"]
