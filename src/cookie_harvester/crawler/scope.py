"""
Domain scoping for crawl traversal.

Restricts traversal to the seed hostname and its subdomains when
enabled; admits every well-formed absolute URL when disabled.
"""

from urllib.parse import urlsplit


def hostname_of(url: str) -> str | None:
    """Lower-cased hostname of a URL, or None if it has none or is malformed."""
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


class ScopePolicy:
    """
    Hostname-based scope check.

    A hostname is in scope if it equals the seed hostname or ends with
    "." + seed hostname.

    Example:
        >>> scope = ScopePolicy("https://example.com/", enabled=True)
        >>> scope.is_in_scope("https://blog.example.com/post")
        True
        >>> scope.is_in_scope("https://notexample.com/")
        False
    """

    def __init__(self, seed_url: str, enabled: bool = True) -> None:
        """
        Initialize scope policy.

        Args:
            seed_url: Crawl seed; its hostname anchors the scope
            enabled: When False every URL with a hostname is in scope
        """
        self.enabled = enabled
        self.seed_hostname = hostname_of(seed_url) or ""

    def is_in_scope(self, url: str) -> bool:
        """
        Check whether a URL may be claimed and visited.

        Args:
            url: Absolute URL

        Returns:
            True if the URL is eligible for traversal
        """
        hostname = hostname_of(url)
        if not hostname:
            return False

        if not self.enabled:
            return True

        return (
            hostname == self.seed_hostname
            or hostname.endswith("." + self.seed_hostname)
        )
