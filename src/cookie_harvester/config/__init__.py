"""
Configuration module for the Cookie Harvester.

Provides Pydantic-based settings management with YAML file support
and environment variable overrides.
"""

from cookie_harvester.config.settings import (
    Settings,
    BrowserSettings,
    CrawlerSettings,
    OutputSettings,
    LoggingSettings,
    DedupKey,
)
from cookie_harvester.config.loader import (
    load_config,
    apply_overrides,
    get_default_config_path,
)

__all__ = [
    "Settings",
    "BrowserSettings",
    "CrawlerSettings",
    "OutputSettings",
    "LoggingSettings",
    "DedupKey",
    "load_config",
    "apply_overrides",
    "get_default_config_path",
]
