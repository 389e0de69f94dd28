"""Engine components: tile → plan → schedule → fetch → dedup/filter → export."""

from .dedup import DedupFilterPipeline, RecordFilters
from .fetcher import MapsPageFetcher, PageFetcher
from .geocoder import GeoResolver, NominatimResolver
from .models import Coordinate, CrawlTask, PlaceRecord, SearchArea, Segment
from .parser import PlaceParser
from .planner import plan
from .scheduler import CrawlScheduler, SchedulerResult, TaskReport
from .state import RunState, TaskStatus
from .stats import Outcome, StatsAggregator, StatsCounters
from .tiler import tile

__all__ = [
    "Coordinate",
    "CrawlScheduler",
    "CrawlTask",
    "DedupFilterPipeline",
    "GeoResolver",
    "MapsPageFetcher",
    "NominatimResolver",
    "Outcome",
    "PageFetcher",
    "PlaceParser",
    "PlaceRecord",
    "RecordFilters",
    "RunState",
    "SchedulerResult",
    "SearchArea",
    "Segment",
    "StatsAggregator",
    "StatsCounters",
    "TaskReport",
    "TaskStatus",
    "plan",
    "tile",
]
