"""
Frontier and visited registry for crawl traversal.

The registry is the single source of truth for which URLs have been
claimed; the frontier is the FIFO of claimed URLs still waiting for a
visit. A URL must be claimed before it is enqueued, and the page budget
is enforced by the claim itself.
"""

import asyncio
from collections import deque
from urllib.parse import urljoin, urlsplit, urlunsplit

from cookie_harvester.core.exceptions import CrawlerError
from cookie_harvester.crawler.scope import ScopePolicy
from cookie_harvester.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def resolve_url(href: str, base_url: str) -> str | None:
    """
    Resolve a link target against the page address.

    Applies only the serialization a browser's URL parser would:
    lower-cased scheme and host, default port dropped, empty path
    becomes "/". Query and fragment are kept as-is.

    Args:
        href: Raw href attribute value
        base_url: Current address of the page the link was found on

    Returns:
        Absolute http(s) URL, or None if the target is malformed or uses
        another scheme (mailto:, javascript:, ...)
    """
    try:
        parts = urlsplit(urljoin(base_url, href.strip()))
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS or not parts.hostname:
        return None

    userinfo, at, hostport = parts.netloc.rpartition("@")
    hostport = hostport.lower()
    if port is not None and port == DEFAULT_PORTS[scheme]:
        hostport = hostport.rsplit(":", 1)[0]

    return urlunsplit((
        scheme,
        f"{userinfo}{at}{hostport}",
        parts.path or "/",
        parts.query,
        parts.fragment,
    ))


class VisitedRegistry:
    """
    Set of claimed URLs, bounded by the page budget.

    claim() is a single test-and-mark step: it fails for URLs already
    claimed and for every URL once max_claims claims exist.

    Example:
        >>> registry = VisitedRegistry(max_claims=2)
        >>> registry.claim("https://a.example/")
        True
        >>> registry.claim("https://a.example/")
        False
    """

    def __init__(self, max_claims: int | None = None) -> None:
        """
        Initialize registry.

        Args:
            max_claims: Page budget; None means unbounded
        """
        self.max_claims = max_claims
        # dict keeps claim order
        self._claimed: dict[str, None] = {}

    def claim(self, url: str) -> bool:
        """
        Mark url as claimed if it is new and the budget allows.

        Returns:
            True if the caller now owns the URL and may enqueue it
        """
        if url in self._claimed:
            return False
        if self.budget_exhausted:
            return False
        self._claimed[url] = None
        return True

    @property
    def budget_exhausted(self) -> bool:
        """True once no further claim can succeed."""
        return self.max_claims is not None and len(self._claimed) >= self.max_claims

    @property
    def urls(self) -> list[str]:
        """Claimed URLs in claim order."""
        return list(self._claimed)

    def __contains__(self, url: object) -> bool:
        return url in self._claimed

    def __len__(self) -> int:
        return len(self._claimed)


class Frontier:
    """
    FIFO work queue of claimed URLs pending a visit.

    All mutation goes through an asyncio lock, so concurrent producers
    (completed visits feeding discoveries back) cannot both claim the
    same URL.

    Example:
        >>> frontier = Frontier(VisitedRegistry(max_claims=10))
        >>> await frontier.offer("https://a.example/")
        True
        >>> await frontier.pop()
        'https://a.example/'
    """

    def __init__(
        self,
        registry: VisitedRegistry,
        scope: ScopePolicy | None = None,
    ) -> None:
        """
        Initialize frontier.

        Args:
            registry: Visited registry consulted for every claim
            scope: Optional scope policy applied by offer()
        """
        self.registry = registry
        self.scope = scope
        self._pending: deque[str] = deque()
        self._lock = asyncio.Lock()

    async def claim(self, url: str) -> bool:
        """Atomically test and mark url in the registry."""
        async with self._lock:
            return self.registry.claim(url)

    async def push(self, url: str) -> None:
        """
        Append a claimed URL to the pending sequence.

        Raises:
            CrawlerError: If url was never claimed
        """
        async with self._lock:
            if url not in self.registry:
                raise CrawlerError(
                    "URL must be claimed before it is enqueued",
                    details={"url": url},
                )
            self._enqueue(url)

    def _enqueue(self, url: str) -> None:
        # Caller holds the lock. A claim succeeds once per URL, so each URL
        # is appended at most once.
        self._pending.append(url)
        logger.debug(f"Queued: {url}")

    async def pop(self) -> str | None:
        """
        Remove and return the oldest pending URL.

        Returns:
            URL, or None if nothing is pending
        """
        async with self._lock:
            if not self._pending:
                return None
            return self._pending.popleft()

    async def offer(self, url: str) -> bool:
        """
        Scope-check, claim and enqueue a discovered URL as one step.

        Returns:
            True if the URL was enqueued
        """
        if self.scope is not None and not self.scope.is_in_scope(url):
            return False

        async with self._lock:
            if not self.registry.claim(url):
                return False
            self._enqueue(url)
        return True

    async def offer_many(self, urls: list[str]) -> int:
        """
        Offer several URLs in order.

        Returns:
            Number of URLs actually enqueued
        """
        added = 0
        for url in urls:
            if await self.offer(url):
                added += 1
        return added

    def has_pending(self) -> bool:
        """Check if there are URLs waiting to be visited."""
        return len(self._pending) > 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def __len__(self) -> int:
        return len(self._pending)
