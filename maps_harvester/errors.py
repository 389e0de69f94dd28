"""Exception hierarchy shared by the harvesting engine."""

from __future__ import annotations

from typing import Literal

FetchErrorKind = Literal["timeout", "network", "blocked"]


class MapsHarvesterError(Exception):
    """Base class for all errors raised by maps-harvester."""


class ConfigurationError(MapsHarvesterError):
    """Missing or invalid run input; fatal before scheduling starts."""


class InvalidInputError(ConfigurationError):
    """A value handed to the core is out of its accepted domain."""


class LocationNotFoundError(MapsHarvesterError):
    """The geocoder could not match the requested location."""

    def __init__(self, location: str, reason: str | None = None) -> None:
        self.location = location
        self.reason = reason
        message = f"Location not found: {location!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class FetchError(MapsHarvesterError):
    """A single search page could not be fetched; recoverable by retry."""

    def __init__(self, message: str, kind: FetchErrorKind = "network", url: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url


class FetchTimeoutError(FetchError):
    """Fetch did not complete within the configured task timeout."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message, kind="timeout", url=url)


__all__ = [
    "ConfigurationError",
    "FetchError",
    "FetchErrorKind",
    "FetchTimeoutError",
    "InvalidInputError",
    "LocationNotFoundError",
    "MapsHarvesterError",
]
