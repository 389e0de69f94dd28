from __future__ import annotations

import pytest

from maps_harvester.engine import Coordinate, Segment, plan, tile
from maps_harvester.engine.planner import normalise_terms, search_url
from maps_harvester.errors import InvalidInputError


def test_search_url_encodes_term_and_position() -> None:
    segment = Segment(latitude=52.52, longitude=13.405, zoom=15)
    url = search_url(segment, "coffee shop")
    assert url == "https://www.google.com/maps/search/coffee%20shop/@52.52,13.405,15z?hl=en"
    assert search_url(segment, "bäckerei", language="de").endswith("15z?hl=de")
    assert "b%C3%A4ckerei" in search_url(segment, "bäckerei")


def test_plan_limits_segments_per_term(berlin: Coordinate) -> None:
    segments = tile(berlin, 15)
    tasks = plan(segments, ["coffee", "bakery"], 10)
    assert len(tasks) == 20
    assert [t.search_term for t in tasks[:10]] == ["coffee"] * 10
    assert [t.segment for t in tasks[:10]] == segments[:10]
    assert [t.segment for t in tasks[10:]] == segments[:10]
    assert {t.pagination_depth for t in tasks} == {1}
    assert len({t.task_id for t in tasks}) == 20


def test_plan_with_fewer_segments_than_limit(berlin: Coordinate) -> None:
    segments = tile(berlin, 9)
    tasks = plan(segments, ["coffee"], 10)
    assert len(tasks) == 1
    assert tasks[0].url == search_url(segments[0], "coffee")


def test_terms_are_stripped_and_deduplicated() -> None:
    assert normalise_terms([" coffee ", "coffee", "", "  ", "tea"]) == ["coffee", "tea"]


def test_plan_rejects_empty_terms(berlin: Coordinate) -> None:
    with pytest.raises(InvalidInputError):
        plan(tile(berlin, 15), ["  "], 10)


def test_plan_rejects_non_positive_segment_limit(berlin: Coordinate) -> None:
    with pytest.raises(InvalidInputError):
        plan(tile(berlin, 15), ["coffee"], 0)


def test_task_identity_includes_depth(make_task) -> None:
    first = make_task(depth=1)
    second = make_task(depth=2)
    assert first.lineage == second.lineage
    assert first.task_id != second.task_id
    assert first.task_id == "coffee@52.52,13.405,15z#p1"
