"""
Core module for the Cookie Harvester.

Contains the exception hierarchy used throughout the application.
"""

from cookie_harvester.core.exceptions import (
    CookieHarvesterError,
    ConfigurationError,
    BrowserError,
    BrowserLaunchError,
    VisitError,
    NavigationError,
    PageLoadError,
    CrawlerError,
    OutputError,
    RetryableError,
    is_retryable,
    get_retry_delay,
)

__all__ = [
    # Base
    "CookieHarvesterError",
    "ConfigurationError",
    # Browser
    "BrowserError",
    "BrowserLaunchError",
    "VisitError",
    "NavigationError",
    "PageLoadError",
    # Crawler
    "CrawlerError",
    # Output
    "OutputError",
    # Retry
    "RetryableError",
    "is_retryable",
    "get_retry_delay",
]
