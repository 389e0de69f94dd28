"""Split a search center into a deterministic grid of map segments."""

from __future__ import annotations

import math

from ..errors import InvalidInputError
from .models import Coordinate, SearchArea, Segment

BASE_ZOOM = 10
BASE_RANGE_DEG = 0.15
MIN_ZOOM = 1
MAX_ZOOM = 21
KM_PER_DEGREE = 111.0
COORD_PRECISION = 4


def zoom_factor(zoom: int) -> float:
    return 2.0 ** (zoom - BASE_ZOOM)


def grid_size(zoom: int) -> int:
    return max(1, math.ceil(math.sqrt(zoom_factor(zoom) * 2)))


def search_area(center: Coordinate, zoom: int) -> SearchArea:
    """Return the box covered by ``tile(center, zoom)``."""

    _check_zoom(zoom)
    coverage = BASE_RANGE_DEG / zoom_factor(zoom)
    return SearchArea(
        center=center,
        lat_range=coverage,
        lng_range=coverage,
        margin=0.5 * 10 ** -COORD_PRECISION,
    )


def tile(center: Coordinate, zoom: int) -> list[Segment]:
    """Return ``grid_size(zoom) ** 2`` segments arranged around ``center``.

    Segments are emitted row by row (latitude outer, longitude inner) and
    their coordinates are rounded to four decimals (about 11 m) so that the
    same inputs always produce identical, hashable segment identities.
    """

    _check_zoom(zoom)
    area = search_area(center, zoom)
    size = grid_size(zoom)
    lat_span = area.lat_range / size
    lng_span = area.lng_range / size
    if size == 1:
        return [
            Segment(
                latitude=round(center.latitude, COORD_PRECISION),
                longitude=round(center.longitude, COORD_PRECISION),
                zoom=zoom,
                lat_span=lat_span,
                lng_span=lng_span,
            )
        ]

    segments: list[Segment] = []
    for i in range(size):
        lat = center.latitude + area.lat_range * (i - size / 2) / size
        for j in range(size):
            lng = center.longitude + area.lng_range * (j - size / 2) / size
            segments.append(
                Segment(
                    latitude=round(lat, COORD_PRECISION),
                    longitude=round(lng, COORD_PRECISION),
                    zoom=zoom,
                    lat_span=lat_span,
                    lng_span=lng_span,
                )
            )
    return segments


def estimate_area_km2(segments: list[Segment]) -> float:
    """Rough flat-earth estimate of the area covered by ``segments``."""

    return sum(s.lat_span * s.lng_span * KM_PER_DEGREE * KM_PER_DEGREE for s in segments)


def _check_zoom(zoom: int) -> None:
    if isinstance(zoom, bool) or not isinstance(zoom, int):
        raise InvalidInputError(f"zoom must be an integer, got {zoom!r}")
    if not MIN_ZOOM <= zoom <= MAX_ZOOM:
        raise InvalidInputError(f"zoom must be between {MIN_ZOOM} and {MAX_ZOOM}, got {zoom}")


__all__ = ["estimate_area_km2", "grid_size", "search_area", "tile", "zoom_factor"]
