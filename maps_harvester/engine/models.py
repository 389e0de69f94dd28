"""Value objects flowing between tiler, planner, scheduler and fetcher."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..errors import InvalidInputError


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidInputError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidInputError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True, slots=True)
class Segment:
    """One map tile: the search origin for a single request per term."""

    latitude: float
    longitude: float
    zoom: int
    # cell size in degrees, informational only
    lat_span: float = field(default=0.0, compare=False)
    lng_span: float = field(default=0.0, compare=False)

    @property
    def key(self) -> tuple[float, float, int]:
        return (round(self.latitude, 4), round(self.longitude, 4), self.zoom)

    @property
    def label(self) -> str:
        return f"{self.latitude}|{self.longitude}"


@dataclass(frozen=True, slots=True)
class SearchArea:
    """Box searched around a tiling center, used for out-of-area checks.

    It reaches a full ``lat_range``/``lng_range`` on each side of the center,
    which keeps every rounded segment center and the strip just past the
    outer rows inside.
    """

    center: Coordinate
    lat_range: float
    lng_range: float
    # slack for coordinate rounding
    margin: float = 0.0

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Return (lat_min, lat_max, lng_min, lng_max)."""

        half_lat = self.lat_range + self.margin
        half_lng = self.lng_range + self.margin
        return (
            self.center.latitude - half_lat,
            self.center.latitude + half_lat,
            self.center.longitude - half_lng,
            self.center.longitude + half_lng,
        )

    def contains(self, coordinate: Coordinate) -> bool:
        lat_min, lat_max, lng_min, lng_max = self.bounds
        return lat_min <= coordinate.latitude <= lat_max and lng_min <= coordinate.longitude <= lng_max


@dataclass(frozen=True, slots=True)
class CrawlTask:
    """Unit of scheduling work: one search page for one segment and term."""

    segment: Segment
    search_term: str
    url: str
    pagination_depth: int = 1

    @property
    def lineage(self) -> tuple[tuple[float, float, int], str]:
        return (self.segment.key, self.search_term)

    @property
    def task_id(self) -> str:
        lat, lng, zoom = self.segment.key
        return f"{self.search_term}@{lat},{lng},{zoom}z#p{self.pagination_depth}"


@dataclass(slots=True)
class PlaceRecord:
    """A harvested business listing."""

    name: str
    address: str = ""
    rating: float | None = None
    review_count: int | None = None
    category: str | None = None
    coordinates: Coordinate | None = None
    phone: str | None = None
    website: str | None = None
    price_level: int | None = None
    is_open: bool | None = None
    source_url: str | None = None
    extracted_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )
    search_term: str | None = None
    within_area: bool | None = None

    @property
    def dedup_key(self) -> str:
        return f"{self.name}-{self.address}"

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        coordinates = payload.pop("coordinates")
        payload["latitude"] = coordinates["latitude"] if coordinates else None
        payload["longitude"] = coordinates["longitude"] if coordinates else None
        return payload


__all__ = ["Coordinate", "CrawlTask", "PlaceRecord", "SearchArea", "Segment"]
