"""Per-run shared state guarded by a single lock."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import RLock

from .stats import StatsAggregator


class TaskStatus(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunState:
    """Mutable state of one harvest run.

    ``lock`` is re-entrant so the dedup gate can take it on its own while the
    scheduler already holds it for a whole page batch. Queue bookkeeping in the
    scheduler shares the same lock.
    """

    stats: StatsAggregator = field(default_factory=StatsAggregator)
    accepted_count: int = 0
    seen_keys: set[str] = field(default_factory=set)
    per_term_accepted: dict[str, int] = field(default_factory=dict)
    per_task_outcome: dict[str, TaskStatus] = field(default_factory=dict)
    lock: RLock = field(default_factory=RLock, repr=False)

    def term_accepted(self, search_term: str) -> int:
        with self.lock:
            return self.per_term_accepted.get(search_term, 0)

    def set_task_status(self, task_id: str, status: TaskStatus) -> None:
        with self.lock:
            self.per_task_outcome[task_id] = status


__all__ = ["RunState", "TaskStatus"]
