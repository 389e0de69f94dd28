from __future__ import annotations

import httpx
import pytest

from maps_harvester.engine import Coordinate, NominatimResolver
from maps_harvester.errors import LocationNotFoundError


def make_resolver(handler) -> NominatimResolver:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return NominatimResolver(client=client)


def test_resolve_returns_first_match() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(
            200,
            json=[
                {"lat": "52.5170365", "lon": "13.3888599", "display_name": "Berlin, Deutschland"},
                {"lat": "0", "lon": "0"},
            ],
        )

    resolver = make_resolver(handler)
    coordinate = resolver.resolve("  Berlin ")
    assert coordinate == Coordinate(52.5170365, 13.3888599)
    assert resolver.display_name == "Berlin, Deutschland"
    assert seen == {"format": "json", "limit": "1", "q": "Berlin"}


def test_resolve_without_match_raises() -> None:
    resolver = make_resolver(lambda request: httpx.Response(200, json=[]))
    with pytest.raises(LocationNotFoundError) as excinfo:
        resolver.resolve("Atlantis")
    assert excinfo.value.location == "Atlantis"


def test_resolve_http_error_raises() -> None:
    resolver = make_resolver(lambda request: httpx.Response(503, text="busy"))
    with pytest.raises(LocationNotFoundError):
        resolver.resolve("Berlin")


def test_resolve_malformed_payload_raises() -> None:
    resolver = make_resolver(lambda request: httpx.Response(200, json=[{"lat": "north"}]))
    with pytest.raises(LocationNotFoundError):
        resolver.resolve("Berlin")


def test_resolve_empty_location_skips_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(LocationNotFoundError):
        make_resolver(handler).resolve("   ")
