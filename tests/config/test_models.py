from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from maps_harvester.config import BrowserOptions, ResultSelectors, RunConfig


def test_run_config_defaults() -> None:
    config = RunConfig(search_terms="coffee", location="Berlin")
    assert config.search_terms == ["coffee"]
    assert config.max_results == 50
    assert config.zoom == 15
    assert config.min_stars == 0.0
    assert config.category_filter == []
    assert config.max_crawled_places_per_search == 50
    assert config.max_pagination_depth == 4
    assert config.max_segments_per_term == 10
    assert config.max_concurrency == 2
    assert config.max_request_retries == 2
    assert config.request_timeout_secs == 30.0
    assert config.output_format == "json"
    assert config.run_name == "coffee-berlin"


def test_run_name_slug_from_terms_and_location() -> None:
    config = RunConfig(search_terms=["  pizza place ", "pasta"], location="New York, NY")
    assert config.search_terms == ["pizza place", "pasta"]
    assert config.run_name == "pizza-place-new-york-ny"


@pytest.mark.parametrize(
    "overrides",
    [
        {"search_terms": []},
        {"search_terms": ["  "]},
        {"location": "   "},
        {"max_results": 0},
        {"zoom": 0},
        {"zoom": 22},
        {"min_stars": 5.5},
        {"max_concurrency": 0},
        {"max_request_retries": -1},
        {"request_timeout_secs": 0},
        {"output_format": "xml"},
    ],
)
def test_run_config_rejects_invalid_values(overrides) -> None:
    payload = {"search_terms": ["coffee"], "location": "Berlin"}
    payload.update(overrides)
    with pytest.raises(ValidationError):
        RunConfig(**payload)


def test_browser_options_load_user_agents_from_file(tmp_path: Path) -> None:
    ua_file = tmp_path / "ua.txt"
    ua_file.write_text("UA-1\n\n  UA-2  \n", encoding="utf-8")
    options = BrowserOptions(user_agent_list=ua_file)
    assert options.user_agent_list == ["UA-1", "UA-2"]


def test_browser_options_missing_ua_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        BrowserOptions(user_agent_list=tmp_path / "missing.txt")


def test_selectors_reject_negative_container_levels() -> None:
    with pytest.raises(ValidationError):
        ResultSelectors(card_container_levels=-1)


@pytest.mark.parametrize(
    ("given", "expected"),
    [
        ("Weekly Coffee", "weekly-coffee"),
        ("../../etc/passwd", "etc-passwd"),
        ("runs/berlin: cafés", "runs-berlin-caf-s"),
        ("already_clean-name", "already_clean-name"),
        ("///", "coffee-berlin"),
    ],
)
def test_user_run_name_is_file_safe(given: str, expected: str) -> None:
    config = RunConfig(search_terms="coffee", location="Berlin", run_name=given)
    assert config.run_name == expected
