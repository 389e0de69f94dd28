"""Bounded-concurrency crawl scheduler with retry and pagination requeue."""

from __future__ import annotations

import time
from collections import Counter, deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field, replace
from threading import Condition, Lock
from typing import Callable, Iterable

import structlog

from ..errors import FetchError, FetchTimeoutError, InvalidInputError
from .dedup import DedupFilterPipeline, RecordFilters
from .exporter import BaseExporter
from .fetcher import PageFetcher
from .models import CrawlTask, PlaceRecord
from .state import RunState, TaskStatus
from .stats import Outcome

DEFAULT_MAX_PAGINATION_DEPTH = 4
DEFAULT_MAX_CONCURRENCY = 2


@dataclass(slots=True)
class TaskReport:
    """Terminal outcome of one crawl task, handed to progress callbacks."""

    task: CrawlTask
    status: TaskStatus
    attempts: int = 0
    accepted: int = 0
    error: str | None = None
    reason: str | None = None


@dataclass
class SchedulerResult:
    finished: int = 0
    failed: int = 0
    skipped: int = 0
    retries: int = 0
    reached_max_results: bool = False
    elapsed_seconds: float = 0.0
    failures: list[TaskReport] = field(default_factory=list)


@dataclass(slots=True)
class _QueuedTask:
    task: CrawlTask
    retries_remaining: int
    attempt: int = 1


class CrawlScheduler:
    """Drive crawl tasks through a fixed pool of worker threads.

    Queue access and every ``RunState`` mutation happen under the run-state
    lock (wrapped in a ``Condition``). Workers release it only while fetching
    a page and while sleeping between retries.

    A page's records are evaluated as one batch with the lock held, and the
    global and per-term caps are checked before each record, so the number of
    accepted records never exceeds ``max_results``. Fetches already in flight
    when the cap is hit still complete; their records count as seen and are
    dropped.

    A fetch that exceeds ``request_timeout_secs`` fails its task at once, but
    the retry of that task is only queued after the abandoned fetch returns,
    so a (segment, term) lineage never has two fetches running. ``run`` joins
    the fetch pool before returning.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        pipeline: DedupFilterPipeline,
        sink: BaseExporter,
        run_state: RunState,
        filters: RecordFilters,
        *,
        max_results: int = 50,
        max_crawled_places_per_search: int = 50,
        max_pagination_depth: int = DEFAULT_MAX_PAGINATION_DEPTH,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_request_retries: int = 2,
        request_timeout_secs: float | None = 30.0,
        retry_backoff_secs: float = 0.0,
        logger: structlog.BoundLogger | None = None,
        on_task_done: Callable[[TaskReport], None] | None = None,
    ) -> None:
        if max_results < 1:
            raise InvalidInputError("max_results must be >= 1")
        if max_crawled_places_per_search < 1:
            raise InvalidInputError("max_crawled_places_per_search must be >= 1")
        if max_pagination_depth < 1:
            raise InvalidInputError("max_pagination_depth must be >= 1")
        if max_concurrency < 1:
            raise InvalidInputError("max_concurrency must be >= 1")
        if max_request_retries < 0:
            raise InvalidInputError("max_request_retries must be >= 0")
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.sink = sink
        self.state = run_state
        self.filters = filters
        self.max_results = max_results
        self.max_crawled_places_per_search = max_crawled_places_per_search
        self.max_pagination_depth = max_pagination_depth
        self.max_concurrency = max_concurrency
        self.max_request_retries = max_request_retries
        self.request_timeout_secs = request_timeout_secs
        self.retry_backoff_secs = retry_backoff_secs
        self.logger = logger or structlog.get_logger("maps_harvester.scheduler")
        self.on_task_done = on_task_done
        self._cond = Condition(run_state.lock)
        self._sink_lock = Lock()
        self._queue: deque[_QueuedTask] = deque()
        self._in_flight = 0
        self._aborted = False
        self._result = SchedulerResult()

    # ------------------------------------------------------------------
    def run(self, tasks: Iterable[CrawlTask]) -> SchedulerResult:
        started = time.monotonic()
        with self._cond:
            self._result = SchedulerResult()
            self._in_flight = 0
            self._aborted = False
            self._queue = deque(_QueuedTask(task, self.max_request_retries) for task in tasks)
            for item in self._queue:
                self.state.set_task_status(item.task.task_id, TaskStatus.PENDING)
        self.logger.info(
            "crawler_starting",
            tasks=len(self._queue),
            max_concurrency=self.max_concurrency,
            max_results=self.max_results,
        )
        # timed-out fetches hold a thread until they return
        fetch_pool = ThreadPoolExecutor(
            max_workers=self.max_concurrency * 2, thread_name_prefix="harvester-fetch"
        )
        workers = ThreadPoolExecutor(
            max_workers=self.max_concurrency, thread_name_prefix="harvester"
        )
        try:
            futures = [
                workers.submit(self._worker_loop, fetch_pool) for _ in range(self.max_concurrency)
            ]
            for future in futures:
                future.result()
        finally:
            workers.shutdown(wait=True)
            fetch_pool.shutdown(wait=True, cancel_futures=True)

        with self._cond:
            result = self._result
            result.reached_max_results = self.state.accepted_count >= self.max_results
            if result.reached_max_results:
                self.state.stats.mark_reached_max_results(self.state.accepted_count)
        result.elapsed_seconds = time.monotonic() - started
        self.logger.info(
            "crawler_finished",
            finished=result.finished,
            failed=result.failed,
            skipped=result.skipped,
            retries=result.retries,
            elapsed_seconds=round(result.elapsed_seconds, 3),
        )
        return result

    # ------------------------------------------------------------------
    def _worker_loop(self, fetch_pool: ThreadPoolExecutor) -> None:
        while True:
            with self._cond:
                item, skipped = self._next_dispatchable()
            self._notify(skipped)
            if item is None:
                return
            try:
                self._process(item, fetch_pool)
            except BaseException:
                with self._cond:
                    self._aborted = True
                    self._queue.clear()
                    self._cond.notify_all()
                raise

    def _next_dispatchable(self) -> tuple[_QueuedTask | None, list[TaskReport]]:
        """Pop the next task allowed to run; lock must be held."""

        skipped: list[TaskReport] = []
        while True:
            while not self._queue and self._in_flight > 0 and not self._aborted:
                self._cond.wait()
            if self._aborted or not self._queue:
                self._cond.notify_all()
                return None, skipped
            if self.state.accepted_count >= self.max_results:
                skipped.extend(self._drain("max_results"))
                continue
            item = self._queue.popleft()
            term = item.task.search_term
            if self.state.term_accepted(term) >= self.max_crawled_places_per_search:
                self.logger.info(
                    "search_term_limit_reached",
                    search_term=term,
                    limit=self.max_crawled_places_per_search,
                    url=item.task.url,
                )
                skipped.append(self._mark_skipped(item, "max_crawled_places_per_search"))
                continue
            self._in_flight += 1
            self.state.set_task_status(item.task.task_id, TaskStatus.FETCHING)
            return item, skipped

    def _drain(self, reason: str) -> list[TaskReport]:
        self.logger.info(
            "draining_queue",
            reason=reason,
            accepted=self.state.accepted_count,
            remaining=len(self._queue),
        )
        self.state.stats.mark_reached_max_results(self.state.accepted_count)
        reports = [self._mark_skipped(item, reason) for item in self._queue]
        self._queue.clear()
        return reports

    def _mark_skipped(self, item: _QueuedTask, reason: str) -> TaskReport:
        self.state.set_task_status(item.task.task_id, TaskStatus.SKIPPED)
        self.state.stats.record_skipped()
        self._result.skipped += 1
        return TaskReport(
            task=item.task,
            status=TaskStatus.SKIPPED,
            attempts=item.attempt - 1,
            reason=reason,
        )

    # ------------------------------------------------------------------
    def _process(self, item: _QueuedTask, fetch_pool: ThreadPoolExecutor) -> None:
        task = item.task
        future = fetch_pool.submit(self.fetcher.fetch, task)
        try:
            records = list(future.result(timeout=self.request_timeout_secs or None))
        except FuturesTimeoutError:
            error = FetchTimeoutError(
                f"Fetch exceeded {self.request_timeout_secs}s: {task.url}", url=task.url
            )
            # cancel() only succeeds while the fetch is still queued
            pending = None if future.cancel() or future.done() else future
            self._handle_failure(item, error, pending=pending)
            return
        except FetchError as exc:
            self._handle_failure(item, exc)
            return
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("fetch_unexpected_error", url=task.url, task=task.task_id)
            self._handle_failure(item, FetchError(str(exc), kind="network", url=task.url))
            return
        self._handle_success(item, records)

    def _handle_success(self, item: _QueuedTask, records: list[PlaceRecord]) -> None:
        task = item.task
        accepted: list[PlaceRecord] = []
        outcomes: Counter[Outcome] = Counter()
        dropped = 0
        with self._cond:
            stats = self.state.stats
            stats.record_search_page()
            stats.record_seen(len(records))
            for index, record in enumerate(records):
                if (
                    self.state.accepted_count >= self.max_results
                    or self.state.term_accepted(task.search_term) >= self.max_crawled_places_per_search
                ):
                    dropped = len(records) - index
                    break
                if record.search_term is None:
                    record.search_term = task.search_term
                if record.source_url is None:
                    record.source_url = task.url
                outcome = self.pipeline.evaluate(record, self.state, self.filters)
                outcomes[outcome] += 1
                if outcome is Outcome.ACCEPTED:
                    accepted.append(record)
            if self.state.accepted_count >= self.max_results:
                stats.mark_reached_max_results(self.state.accepted_count)
            if self._should_paginate(task, len(accepted)):
                next_task = replace(task, pagination_depth=task.pagination_depth + 1)
                self._queue.append(_QueuedTask(next_task, self.max_request_retries))
                self.state.set_task_status(next_task.task_id, TaskStatus.PENDING)
                stats.record_pagination()
            self.state.set_task_status(task.task_id, TaskStatus.SUCCEEDED)
            self._result.finished += 1
            self._in_flight -= 1
            self._cond.notify_all()

        self._emit(accepted)
        self.logger.info(
            "search_page_processed",
            search_term=task.search_term,
            segment=task.segment.label,
            scroll=task.pagination_depth,
            unique=outcomes[Outcome.ACCEPTED],
            duplicates=outcomes[Outcome.DUPLICATE],
            out_of_area=outcomes[Outcome.OUT_OF_AREA],
            below_min_rating=outcomes[Outcome.REJECTED_BY_RATING],
            category_rejected=outcomes[Outcome.REJECTED_BY_CATEGORY],
            dropped_over_limit=dropped,
            url=task.url,
        )
        self.state.stats.log_stats()
        self._notify(
            [
                TaskReport(
                    task=task,
                    status=TaskStatus.SUCCEEDED,
                    attempts=item.attempt,
                    accepted=len(accepted),
                )
            ]
        )

    def _should_paginate(self, task: CrawlTask, accepted_on_page: int) -> bool:
        return (
            self.state.accepted_count < self.max_results
            and accepted_on_page > 0
            and task.pagination_depth < self.max_pagination_depth
            and self.state.term_accepted(task.search_term) < self.max_crawled_places_per_search
        )

    def _handle_failure(
        self, item: _QueuedTask, error: FetchError, pending: Future | None = None
    ) -> None:
        task = item.task
        will_retry = item.retries_remaining > 0
        self.state.stats.record_failure(retried=will_retry)
        self.logger.warning(
            "fetch_failed",
            url=task.url,
            task=task.task_id,
            attempt=item.attempt,
            kind=error.kind,
            error=str(error),
            will_retry=will_retry,
        )
        if will_retry:
            delay = self.retry_backoff_secs * item.attempt
            if delay > 0:
                time.sleep(delay)
            retry = _QueuedTask(task, item.retries_remaining - 1, attempt=item.attempt + 1)
            if pending is None:
                self._requeue(retry)
            else:
                self.logger.info("retry_waiting_for_fetch", url=task.url, task=task.task_id)
                pending.add_done_callback(lambda _: self._requeue(retry))
            return

        report = TaskReport(
            task=task,
            status=TaskStatus.FAILED,
            attempts=item.attempt,
            error=str(error),
            reason=error.kind,
        )
        with self._cond:
            self.state.set_task_status(task.task_id, TaskStatus.FAILED)
            self._result.failed += 1
            self._result.failures.append(report)
            self._in_flight -= 1
            self._cond.notify_all()
        self.logger.error(
            "request_failed",
            url=task.url,
            task=task.task_id,
            attempts=item.attempt,
            kind=error.kind,
            error=str(error),
        )
        self._notify([report])

    def _requeue(self, item: _QueuedTask) -> None:
        """Append a retry; the task stays in flight until this runs."""

        with self._cond:
            if not self._aborted:
                self._queue.append(item)
                self.state.set_task_status(item.task.task_id, TaskStatus.PENDING)
                self._result.retries += 1
            self._in_flight -= 1
            self._cond.notify_all()

    def _emit(self, records: list[PlaceRecord]) -> None:
        if not records:
            return
        with self._sink_lock:
            for record in records:
                try:
                    self.sink.emit(record)
                except Exception:  # noqa: BLE001
                    self.logger.exception("sink_emit_failed", place=record.name, url=record.source_url)

    def _notify(self, reports: list[TaskReport]) -> None:
        if self.on_task_done is None:
            return
        for report in reports:
            self.on_task_done(report)


__all__ = ["CrawlScheduler", "SchedulerResult", "TaskReport"]
