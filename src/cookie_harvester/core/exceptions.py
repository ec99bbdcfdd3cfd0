"""
Exceptions raised by the Cookie Harvester.

Errors fall into two groups. Visit errors (VisitError and subclasses)
concern a single page: the visitor reports them in its outcome and the
crawl moves on. Everything else is fatal for the run and propagates to
the caller.

Exception Hierarchy:
    CookieHarvesterError (base)
    ├── ConfigurationError
    ├── BrowserError
    │   ├── BrowserLaunchError        fatal
    │   └── VisitError                recoverable, retryable
    │       ├── NavigationError
    │       └── PageLoadError
    ├── CrawlerError
    └── OutputError                   fatal
"""

from typing import Any


class CookieHarvesterError(Exception):
    """
    Base exception for all Cookie Harvester errors.

    Attributes:
        message: Human-readable error description
        details: Extra context rendered after the message, e.g. the URL
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({context})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, details={self.details!r})"


class RetryableError(CookieHarvesterError):
    """
    Marker for failures worth another attempt.

    Attributes:
        retry_after: Delay in seconds the raiser asks for; None lets the
            caller pick its own backoff
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, details)
        self.retry_after = retry_after


class ConfigurationError(CookieHarvesterError):
    """
    Settings could not be loaded or are invalid.

    Raised for a missing or malformed YAML file, values failing
    validation, and a crawl started without a start URL.
    """


# =============================================================================
# Browser Errors
# =============================================================================


class BrowserError(CookieHarvesterError):
    """Base error for the Playwright browsing engine."""


class BrowserLaunchError(BrowserError):
    """The browser process could not be started. Ends the run."""


class VisitError(BrowserError, RetryableError):
    """
    A single page visit could not be completed.

    The visit is abandoned, its session released, and the URL stays in
    the visited list. Never aborts the crawl.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        details = dict(details or {})
        if url:
            details["url"] = url
        super().__init__(message, details, retry_after)
        self.url = url


class NavigationError(VisitError):
    """Navigation to the URL failed or timed out."""


class PageLoadError(VisitError):
    """
    The page became unusable after navigation.

    Raised when reading cookies or extracting links fails, e.g. because
    the page crashed or was closed underneath the visit.
    """


# =============================================================================
# Crawl and Output Errors
# =============================================================================


class CrawlerError(CookieHarvesterError):
    """
    The frontier was misused or the crawl could not be seeded.

    Pushing a URL that was never claimed raises this.
    """


class OutputError(CookieHarvesterError):
    """
    The result document could not be persisted. Ends the run.

    Attributes:
        path: File or directory that could not be written
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


# =============================================================================
# Retry Helpers
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """True if another attempt at the failed operation may succeed."""
    return isinstance(error, RetryableError)


def get_retry_delay(
    error: BaseException,
    default: float = 1.0,
    attempt: int = 0,
) -> float:
    """
    Seconds to wait before the next attempt.

    An explicit retry_after on the error wins. Otherwise the default is
    doubled for every attempt already made.

    Args:
        error: Failure being retried
        default: Base delay in seconds
        attempt: Number of retries already performed

    Returns:
        Delay in seconds
    """
    if isinstance(error, RetryableError) and error.retry_after is not None:
        return error.retry_after
    return default * (2 ** attempt)
