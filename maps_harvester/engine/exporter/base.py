"""Sink contract for accepted place records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from ..models import PlaceRecord


class BaseExporter(ABC):
    """Append-only destination for accepted records.

    Delivery is at-least-once; records reaching a sink are already unique
    within the run.
    """

    @abstractmethod
    def emit(self, record: PlaceRecord) -> None:
        """Persist a single record."""

    def emit_many(self, records: Iterable[PlaceRecord]) -> None:
        for record in records:
            self.emit(record)

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseExporter"]
