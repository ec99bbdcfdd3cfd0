"""
Crawler module for the Cookie Harvester.

Provides the crawl orchestration core:
- Visited registry and FIFO frontier with claim-before-enqueue
- Domain scoping
- Cookie ledger with deduplication
- Per-URL page visitor
- Bounded-concurrency orchestrator
"""

from cookie_harvester.crawler.scope import ScopePolicy, hostname_of
from cookie_harvester.crawler.frontier import (
    Frontier,
    VisitedRegistry,
    resolve_url,
)
from cookie_harvester.crawler.ledger import (
    CookieEvent,
    CookieLedger,
    CookieStep,
    cookie_key,
    format_timestamp,
)
from cookie_harvester.crawler.visitor import (
    PageVisitor,
    VisitOutcome,
    VisitStatus,
)
from cookie_harvester.crawler.orchestrator import (
    CrawlOrchestrator,
    CrawlProgress,
    CrawlResult,
    CrawlStatus,
    crawl_website,
)

__all__ = [
    # Scope
    "ScopePolicy",
    "hostname_of",
    # Frontier
    "Frontier",
    "VisitedRegistry",
    "resolve_url",
    # Ledger
    "CookieEvent",
    "CookieLedger",
    "CookieStep",
    "cookie_key",
    "format_timestamp",
    # Visitor
    "PageVisitor",
    "VisitOutcome",
    "VisitStatus",
    # Orchestrator
    "CrawlOrchestrator",
    "CrawlProgress",
    "CrawlResult",
    "CrawlStatus",
    "crawl_website",
]
