"""Run orchestrator wiring geocoding, tiling, planning, scheduling and export."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import structlog

from .config import ConfigRepository, GlobalConfig, RunConfig, validate_run_config
from .engine import (
    CrawlScheduler,
    DedupFilterPipeline,
    GeoResolver,
    MapsPageFetcher,
    NominatimResolver,
    PageFetcher,
    PlaceParser,
    RecordFilters,
    RunState,
    SearchArea,
    StatsAggregator,
    TaskReport,
    plan,
    tile,
)
from .engine.exporter import BaseExporter, FileExporter, MongoExporter, SQLiteExporter
from .engine.tiler import estimate_area_km2, search_area
from .infra import RotatingPool
from .logging_conf import configure_logging, run_logger
from .ui import ProgressReporter

FetcherFactory = Callable[[GlobalConfig, SearchArea, structlog.BoundLogger], PageFetcher]
SinkFactory = Callable[[RunConfig, str], BaseExporter]


@dataclass(slots=True)
class RunSummary:
    """What a finished run reports back, even when nothing was accepted."""

    run_name: str
    finished: int = 0
    failed: int = 0
    skipped: int = 0
    retries: int = 0
    elapsed_seconds: float = 0.0
    reached_max_results: bool = False
    accepted: int = 0
    segments: int = 0
    tasks: int = 0
    output: str | None = None
    stats: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "run_name": self.run_name,
            "finished": self.finished,
            "failed": self.failed,
            "skipped": self.skipped,
            "retries": self.retries,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "reached_max_results": self.reached_max_results,
            "accepted": self.accepted,
            "segments": self.segments,
            "tasks": self.tasks,
            "output": self.output,
            "stats": dict(self.stats),
        }


class Orchestrator:
    """Central coordinator running one harvest from config to summary."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        resolver: GeoResolver | None = None,
        fetcher_factory: FetcherFactory | None = None,
        sink_factory: SinkFactory | None = None,
    ) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self._resolver = resolver
        self._fetcher_factory = fetcher_factory or self._default_fetcher
        self._sink_factory = sink_factory or self._create_exporter
        self.logger = configure_logging().bind(component="orchestrator")

    # ------------------------------------------------------------------
    def run(
        self,
        run_config: RunConfig | dict[str, Any],
        progress_enabled: bool | None = None,
        progress_factory: Callable[[str], ProgressReporter] | None = None,
    ) -> RunSummary:
        """Execute one run.

        Configuration and location errors propagate before any page is
        fetched. Once scheduling starts, per-task failures only show up in
        the summary.
        """

        config = run_config if isinstance(run_config, RunConfig) else validate_run_config(run_config)
        log = run_logger(config.run_name)
        log.info(
            "run_starting",
            search_terms=config.search_terms,
            location=config.location,
            zoom=config.zoom,
            max_results=config.max_results,
        )

        resolver = self._resolver or NominatimResolver(self.global_config.geocoder, logger=log)
        try:
            center = resolver.resolve(config.location)
        finally:
            if self._resolver is None:
                resolver.close()

        segments = tile(center, config.zoom)
        area = search_area(center, config.zoom)
        log.info(
            "area_tiled",
            segments=len(segments),
            area_km2=round(estimate_area_km2(segments), 3),
        )
        tasks = plan(
            segments,
            config.search_terms,
            config.max_segments_per_term,
            language=config.language,
        )
        log.info("tasks_planned", tasks=len(tasks), segments_used=min(len(segments), config.max_segments_per_term))

        state = RunState(stats=StatsAggregator(logger=log))
        filters = RecordFilters.build(config.min_stars, config.category_filter)
        progress_flag = self.global_config.enable_progress_bar if progress_enabled is None else progress_enabled
        if progress_factory and progress_flag:
            progress = progress_factory(config.run_name)
        else:
            progress = ProgressReporter(enabled=progress_flag, label=config.run_name)

        summary = RunSummary(run_name=config.run_name, segments=len(segments), tasks=len(tasks))
        run_tag = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        sink = self._sink_factory(config, run_tag)
        fetcher: PageFetcher | None = None
        try:
            fetcher = self._fetcher_factory(self.global_config, area, log)
            scheduler = CrawlScheduler(
                fetcher,
                DedupFilterPipeline(),
                sink,
                state,
                filters,
                max_results=config.max_results,
                max_crawled_places_per_search=config.max_crawled_places_per_search,
                max_pagination_depth=config.max_pagination_depth,
                max_concurrency=config.max_concurrency,
                max_request_retries=config.max_request_retries,
                request_timeout_secs=config.request_timeout_secs,
                retry_backoff_secs=config.retry_backoff_secs,
                logger=log,
                on_task_done=lambda report: self._advance(progress, report),
            )
            progress.start(total=len(tasks))
            result = scheduler.run(tasks)
            summary.finished = result.finished
            summary.failed = result.failed
            summary.skipped = result.skipped
            summary.retries = result.retries
            summary.elapsed_seconds = result.elapsed_seconds
            summary.reached_max_results = result.reached_max_results
        finally:
            progress.close()
            sink.flush()
            sink.close()
            close = getattr(fetcher, "close", None)
            if callable(close):
                close()

        summary.accepted = state.accepted_count
        summary.stats = state.stats.snapshot()
        summary.output = _describe_sink(sink)
        state.stats.log_stats()
        log.info("run_finished", **{k: v for k, v in summary.as_dict().items() if k != "stats"})
        return summary

    def run_profile(self, profile_name: str, progress_enabled: bool | None = None) -> RunSummary:
        return self.run(self.config_repository.load_profile(profile_name), progress_enabled=progress_enabled)

    # ------------------------------------------------------------------
    @staticmethod
    def _advance(progress: ProgressReporter, report: TaskReport) -> None:
        progress.advance(report)

    def _default_fetcher(
        self, global_config: GlobalConfig, area: SearchArea, logger: structlog.BoundLogger
    ) -> PageFetcher:
        browser = global_config.browser
        ua_pool = RotatingPool(browser.user_agent_list, mode="random") if browser.user_agent_list else None
        proxy_pool = RotatingPool(browser.proxies) if browser.proxies else None
        return MapsPageFetcher(
            options=browser,
            parser=PlaceParser(global_config.selectors),
            area=area,
            ua_pool=ua_pool,
            proxy_pool=proxy_pool,
            logger=logger,
        )

    def _create_exporter(self, config: RunConfig, run_tag: str) -> BaseExporter:
        base_dir = self.config_repository.resolve_dir(Path(self.global_config.outputs_dir))
        base_dir.mkdir(parents=True, exist_ok=True)
        if config.output_format in {"json", "csv"}:
            return FileExporter(base_dir, config.run_name, config.output_format, run_tag=run_tag)
        if config.output_format == "sqlite":
            return SQLiteExporter(base_dir / f"{config.run_name}.db")
        if config.output_format == "mongodb":
            return MongoExporter(
                self.global_config.mongo_uri,
                database=self.global_config.mongo_database,
                collection=config.run_name,
            )
        raise ValueError(f"Unsupported output format: {config.output_format}")


def _describe_sink(sink: BaseExporter) -> str | None:
    path = getattr(sink, "path", None)
    return str(path) if path is not None else None


__all__ = ["Orchestrator", "RunSummary"]
