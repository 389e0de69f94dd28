"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, validate_run_config
from .models import (
    BrowserOptions,
    GeocoderConfig,
    GlobalConfig,
    ResultSelectors,
    RunConfig,
)

__all__ = [
    "BrowserOptions",
    "ConfigLocator",
    "ConfigRepository",
    "GeocoderConfig",
    "GlobalConfig",
    "ResultSelectors",
    "RunConfig",
    "validate_run_config",
]
