"""Shared fixtures: isolated home directory, fake fetchers and sinks."""

from __future__ import annotations

from itertools import count
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable, Sequence

import pytest

from maps_harvester.config import ConfigLocator, ConfigRepository, RunConfig
from maps_harvester.engine import Coordinate, CrawlTask, PlaceRecord, Segment
from maps_harvester.engine.exporter import BaseExporter
from maps_harvester.engine.planner import search_url


class FakeFetcher:
    """Return whatever ``handler`` produces for a task, raising exceptions it returns."""

    def __init__(self, handler: Callable[[CrawlTask], Any]) -> None:
        self.handler = handler
        self.calls: list[CrawlTask] = []
        self.closed = False
        self._lock = Lock()

    def fetch(self, task: CrawlTask) -> Sequence[PlaceRecord]:
        with self._lock:
            self.calls.append(task)
        result = self.handler(task)
        if isinstance(result, BaseException):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


class ListSink(BaseExporter):
    def __init__(self) -> None:
        self.records: list[PlaceRecord] = []
        self.flushed = 0
        self.closed = False

    def emit(self, record: PlaceRecord) -> None:
        self.records.append(record)

    def flush(self) -> None:
        self.flushed += 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("MAPS_HARVESTER_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def berlin() -> Coordinate:
    return Coordinate(latitude=52.52, longitude=13.405)


@pytest.fixture
def make_record() -> Callable[..., PlaceRecord]:
    def _builder(name: str = "Cafe Central", **overrides: Any) -> PlaceRecord:
        base: dict[str, Any] = {
            "name": name,
            "address": "Main St 1",
            "rating": 4.5,
            "category": "Cafe",
        }
        base.update(overrides)
        return PlaceRecord(**base)

    return _builder


@pytest.fixture
def unique_records(make_record) -> Callable[[CrawlTask, int], list[PlaceRecord]]:
    """Build ``n`` records that never collide with earlier calls."""

    counter = count()
    lock = Lock()

    def _builder(task: CrawlTask, n: int) -> list[PlaceRecord]:
        with lock:
            ids = [next(counter) for _ in range(n)]
        return [make_record(f"{task.search_term} place {i}", address=f"{i} Unique Rd") for i in ids]

    return _builder


@pytest.fixture
def make_task() -> Callable[..., CrawlTask]:
    def _builder(
        search_term: str = "coffee",
        latitude: float = 52.52,
        longitude: float = 13.405,
        zoom: int = 15,
        depth: int = 1,
    ) -> CrawlTask:
        segment = Segment(latitude=latitude, longitude=longitude, zoom=zoom)
        return CrawlTask(
            segment=segment,
            search_term=search_term,
            url=search_url(segment, search_term),
            pagination_depth=depth,
        )

    return _builder


@pytest.fixture
def sample_run_config() -> Callable[..., RunConfig]:
    def _builder(**overrides: Any) -> RunConfig:
        base: dict[str, Any] = {
            "run_name": "coffee-berlin",
            "search_terms": ["coffee"],
            "location": "Berlin",
            "zoom": 11,
            "max_results": 20,
            "max_concurrency": 1,
            "max_request_retries": 0,
            "output_format": "json",
        }
        base.update(overrides)
        return RunConfig(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def fake_fetcher_factory() -> Callable[[Callable[[CrawlTask], Any]], FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def list_sink() -> ListSink:
    return ListSink()
