"""Pydantic models used across maps-harvester configuration flow."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

_SLUG_PATTERN = re.compile(r"[^0-9A-Za-z_-]+")


def _slug(label: str) -> str:
    return _SLUG_PATTERN.sub("-", label).strip("-").lower()


class GeocoderConfig(BaseModel):
    """Settings for the Nominatim geocoding endpoint."""

    base_url: str = "https://nominatim.openstreetmap.org/search"
    user_agent: str = "maps-harvester/0.1"
    timeout: float = 15.0


class ResultSelectors(BaseModel):
    """CSS selectors locating place cards inside the results feed."""

    feed: str = "div[role='feed']"
    card: str = "div[role='feed'] a.hfpxzc"
    card_container_levels: int = 1
    rating: str = "span.MW4etd"
    review_count: str = "span.UY7F9"
    details: str = "div.W4Efsd"
    website: str = "a[data-value='Website']"
    phone: str = "span.UsdlK"

    @field_validator("card_container_levels")
    @classmethod
    def _check_levels(cls, value: int) -> int:
        if value < 0:
            raise ValueError("card_container_levels must be >= 0")
        return value


class BrowserOptions(BaseModel):
    """Playwright session parameters for rendering search pages."""

    headless: bool = True
    locale: str = "en-US"
    viewport_size: tuple[int, int] = (1366, 900)
    navigation_timeout_ms: int = 30000
    scroll_pause_ms: int = 800
    scrolls_per_page: int = 3
    user_agent_list: list[str] | Path | None = None
    proxies: list[str] = Field(default_factory=list)

    @field_validator("scroll_pause_ms", "scrolls_per_page", "navigation_timeout_ms")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("browser timings must be >= 0")
        return value

    @model_validator(mode="after")
    def _apply_user_agents(self) -> "BrowserOptions":
        if isinstance(self.user_agent_list, Path):
            if not self.user_agent_list.exists():
                raise ValueError(f"UA file not found: {self.user_agent_list}")
            content = self.user_agent_list.read_text(encoding="utf-8").splitlines()
            self.user_agent_list = [line.strip() for line in content if line.strip()]
        return self


class RunConfig(BaseModel):
    """Inputs of one harvest run."""

    run_name: str = ""
    search_terms: list[str]
    location: str
    max_results: int = Field(default=50, ge=1)
    zoom: int = Field(default=15, ge=1, le=21)
    min_stars: float = Field(default=0.0, ge=0.0, le=5.0)
    category_filter: list[str] = Field(default_factory=list)
    max_crawled_places_per_search: int = Field(default=50, ge=1)
    max_pagination_depth: int = Field(default=4, ge=1)
    max_segments_per_term: int = Field(default=10, ge=1)
    max_concurrency: int = Field(default=2, ge=1)
    max_request_retries: int = Field(default=2, ge=0)
    request_timeout_secs: float = Field(default=30.0, gt=0)
    retry_backoff_secs: float = Field(default=0.0, ge=0)
    language: str = "en"
    output_format: Literal["json", "csv", "sqlite", "mongodb"] = "json"

    @field_validator("search_terms", mode="before")
    @classmethod
    def _coerce_terms(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError("search_terms expects a string or a list of strings")
        terms = [str(term).strip() for term in value if str(term).strip()]
        if not terms:
            raise ValueError("at least one search term is required")
        return terms

    @field_validator("location")
    @classmethod
    def _require_location(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("location cannot be empty")
        return value

    @field_validator("category_filter", mode="before")
    @classmethod
    def _coerce_categories(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("run_name")
    @classmethod
    def _slug_run_name(cls, value: str) -> str:
        # run names become log and output file names
        return _slug(value)

    @model_validator(mode="after")
    def _default_run_name(self) -> "RunConfig":
        if not self.run_name:
            self.run_name = _slug(f"{self.search_terms[0]} {self.location}") or "run"
        return self


class GlobalConfig(BaseModel):
    """Global controls shared across runs."""

    geocoder: GeocoderConfig = Field(default_factory=GeocoderConfig)
    browser: BrowserOptions = Field(default_factory=BrowserOptions)
    selectors: ResultSelectors = Field(default_factory=ResultSelectors)
    enable_progress_bar: bool = True
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_database: str = "maps_harvester"
    outputs_dir: Path = Field(default=Path("data/outputs"))
    profiles_dir: Path = Field(default=Path("data/profiles"))

    @field_validator("outputs_dir", "profiles_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)


__all__ = [
    "BrowserOptions",
    "GeocoderConfig",
    "GlobalConfig",
    "ResultSelectors",
    "RunConfig",
]
