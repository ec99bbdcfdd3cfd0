"""
Crawl orchestration for the Cookie Harvester.

Runs a bounded-concurrency traversal: pops claimed URLs from the
frontier in FIFO order, keeps at most max_concurrency visits in flight,
feeds each finished visit's discoveries back through claim-then-push,
and stops once the frontier is empty and nothing is in flight. The page
budget is enforced at claim time, so the traversal is finite even when
the link graph is not.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from cookie_harvester.browser.manager import BrowserManager
from cookie_harvester.config.settings import BrowserSettings, CrawlerSettings
from cookie_harvester.core.exceptions import (
    ConfigurationError,
    CrawlerError,
    get_retry_delay,
    is_retryable,
)
from cookie_harvester.crawler.frontier import Frontier, VisitedRegistry, resolve_url
from cookie_harvester.crawler.ledger import (
    CookieEvent,
    CookieLedger,
    format_timestamp,
    utc_now,
)
from cookie_harvester.crawler.scope import ScopePolicy
from cookie_harvester.crawler.visitor import PageVisitor, VisitOutcome, VisitStatus
from cookie_harvester.utils.logging import get_logger
from cookie_harvester.utils.metrics import (
    COOKIE_EVENTS,
    COOKIES_RECORDED,
    LINKS_QUEUED,
    PAGES_VISITED,
    RETRIES,
    VISIT_MS,
    VISITS_FAILED,
    VISITS_OUT_OF_SCOPE,
    Metrics,
)

logger = get_logger(__name__)


class CrawlStatus(str, Enum):
    """Lifecycle state of a crawl run."""

    PENDING = "pending"
    SEEDING = "seeding"
    RUNNING = "running"
    DRAINING = "draining"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CrawlProgress:
    """
    Current progress of a crawl run.

    Updated in real-time during crawling.
    """

    status: CrawlStatus = CrawlStatus.PENDING
    pages_dispatched: int = 0
    pages_succeeded: int = 0
    pages_failed: int = 0
    pages_out_of_scope: int = 0
    pages_pending: int = 0
    in_flight: int = 0
    peak_in_flight: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None

    @property
    def pages_finished(self) -> int:
        return self.pages_succeeded + self.pages_failed + self.pages_out_of_scope

    @property
    def elapsed_seconds(self) -> float:
        """Seconds elapsed since crawl started."""
        if self.started_at is None:
            return 0.0
        end = self.completed_at or utc_now()
        return (end - self.started_at).total_seconds()


@dataclass
class CrawlResult:
    """
    Terminal artifact of a crawl run.

    to_dict() produces the persisted document; the remaining fields are
    run statistics for reporting.
    """

    seed_url: str
    started_at: datetime
    completed_at: datetime
    visited: list[str]
    cookie_log: list[CookieEvent]
    status: CrawlStatus = CrawlStatus.COMPLETED
    pages_succeeded: int = 0
    pages_failed: int = 0
    pages_out_of_scope: int = 0
    peak_in_flight: int = 0
    metrics: dict = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def cookies_recorded(self) -> int:
        return sum(len(event.cookies) for event in self.cookie_log)

    def to_dict(self) -> dict[str, Any]:
        """Serialize as the result document."""
        return {
            "startedAt": format_timestamp(self.started_at),
            "visited": list(self.visited),
            "cookieLog": [event.to_dict() for event in self.cookie_log],
        }


class CrawlOrchestrator:
    """
    Worker-pool scheduler driving one crawl run.

    Example:
        >>> orchestrator = CrawlOrchestrator(crawler_settings, browser_settings)
        >>> result = await orchestrator.crawl()
        >>> result.visited
        ['https://example.com/', ...]
    """

    def __init__(
        self,
        crawler_settings: CrawlerSettings,
        browser_settings: BrowserSettings | None = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            crawler_settings: Crawl budget for this run
            browser_settings: Browser configuration used by crawl()
        """
        self.crawler_settings = crawler_settings
        self.browser_settings = browser_settings or BrowserSettings()

        # Per-run components (initialized on run start)
        self._registry: VisitedRegistry | None = None
        self._frontier: Frontier | None = None
        self._ledger: CookieLedger | None = None
        self._visitor: PageVisitor | None = None
        self._metrics = Metrics()

        self._progress = CrawlProgress()

    @property
    def progress(self) -> CrawlProgress:
        """Get current crawl progress."""
        return self._progress

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def _require_seed(self) -> str:
        """
        The start URL in the same normalized form as discovered links.

        "https://A.example" and a link to "/" on that page must claim the
        same registry entry.
        """
        raw_url = self.crawler_settings.start_url
        if not raw_url:
            raise ConfigurationError(
                "A start URL is required (set START_URL or pass it on the command line)")

        seed_url = resolve_url(raw_url, raw_url)
        if seed_url is None:
            raise ConfigurationError(
                "Start URL must be an absolute http(s) URL", details={"url": raw_url})
        return seed_url

    def _init_components(self, seed_url: str, engine: BrowserManager) -> None:
        """Create fresh per-run state; nothing survives between runs."""
        settings = self.crawler_settings

        scope = ScopePolicy(seed_url, enabled=settings.same_domain_only)
        self._registry = VisitedRegistry(max_claims=settings.max_pages)
        self._frontier = Frontier(self._registry, scope=scope)
        self._ledger = CookieLedger(dedup_key=settings.dedup_key)
        self._visitor = PageVisitor(
            engine,
            self._ledger,
            settings,
            scope,
            navigation_timeout_ms=self.browser_settings.navigation_timeout_ms,
            click_timeout_ms=self.browser_settings.timeout_ms,
        )
        self._metrics = Metrics()
        self._progress = CrawlProgress()

    async def crawl(self) -> CrawlResult:
        """
        Launch the browser, run the crawl and release the browser.

        Returns:
            CrawlResult

        Raises:
            ConfigurationError: If no start URL is configured
            BrowserLaunchError: If the browser cannot be launched
        """
        self._require_seed()

        async with BrowserManager(self.browser_settings) as engine:
            return await self.run(engine)

    async def run(self, engine: BrowserManager) -> CrawlResult:
        """
        Run the traversal on an already started engine.

        Args:
            engine: Anything providing new_session() like BrowserManager

        Returns:
            CrawlResult assembled once every visit has finished
        """
        seed_url = self._require_seed()
        self._init_components(seed_url, engine)
        settings = self.crawler_settings

        logger.info(
            f"Starting crawl from: {seed_url} "
            f"(max_pages={settings.max_pages}, "
            f"concurrency={settings.max_concurrency}, "
            f"same_domain_only={settings.same_domain_only}, "
            f"interact={settings.interact})"
        )
        self._progress.started_at = utc_now()
        self._progress.status = CrawlStatus.SEEDING

        if not await self._frontier.claim(seed_url):
            raise CrawlerError("Seed URL could not be claimed", details={"url": seed_url})
        await self._frontier.push(seed_url)

        self._progress.status = CrawlStatus.RUNNING

        try:
            await self._crawl_loop()
        except BaseException as e:
            self._progress.status = CrawlStatus.FAILED
            self._progress.error_message = str(e)
            logger.error(f"Crawl failed: {e}")
            raise
        finally:
            self._progress.completed_at = utc_now()

        self._progress.status = CrawlStatus.COMPLETED
        result = self._build_result(seed_url)

        logger.info(
            f"Crawl finished: {len(result.visited)} visited, "
            f"{result.pages_failed} failed, "
            f"{len(result.cookie_log)} cookie event(s), "
            f"{result.duration_seconds:.1f}s"
        )
        return result

    async def _crawl_loop(self) -> None:
        """Dispatch up to the concurrency cap, then wait for a finisher."""
        cap = self.crawler_settings.max_concurrency
        in_flight: dict[asyncio.Task, str] = {}

        try:
            while self._frontier.has_pending() or in_flight:
                while self._frontier.has_pending() and len(in_flight) < cap:
                    url = await self._frontier.pop()
                    if url is None:
                        break
                    task = asyncio.create_task(self._visit(url), name=f"visit {url}")
                    in_flight[task] = url
                    self._progress.pages_dispatched += 1

                self._update_in_flight(len(in_flight))
                self._update_drain_state(len(in_flight))

                done, _ = await asyncio.wait(
                    in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)

                for task in done:
                    url = in_flight.pop(task)
                    try:
                        outcome = task.result()
                    except Exception as e:
                        self._progress.pages_failed += 1
                        self._metrics.increment(VISITS_FAILED)
                        logger.error(f"Failed to process {url}: {e}")
                        continue
                    await self._handle_outcome(outcome)

                self._update_in_flight(len(in_flight))

        finally:
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)

    def _update_drain_state(self, in_flight: int) -> None:
        """
        DRAINING while nothing is pending and visits are still running.

        An exhausted frontier can refill from the visits still in flight,
        which returns the crawl to RUNNING; once the budget is spent it
        cannot.
        """
        status = self._progress.status
        draining = in_flight > 0 and not self._frontier.has_pending()

        if draining and status is CrawlStatus.RUNNING:
            if self._registry.budget_exhausted:
                reason = f"reached page limit {self.crawler_settings.max_pages}"
            else:
                reason = "frontier exhausted"
            logger.info(f"{reason.capitalize()}, draining {in_flight} visit(s)")
            self._progress.status = CrawlStatus.DRAINING
        elif not draining and status is CrawlStatus.DRAINING:
            self._progress.status = CrawlStatus.RUNNING

    def _update_in_flight(self, count: int) -> None:
        self._progress.in_flight = count
        self._progress.peak_in_flight = max(self._progress.peak_in_flight, count)
        self._progress.pages_pending = self._frontier.pending_count

    async def _visit(self, url: str) -> VisitOutcome:
        """Visit url, retrying retryable failures up to max_retries times."""
        max_retries = self.crawler_settings.max_retries
        attempt = 0

        while True:
            with self._metrics.timer(VISIT_MS):
                outcome = await self._visitor.visit(url)
            outcome.attempts = attempt + 1

            if (
                outcome.status is not VisitStatus.FAILED
                or attempt >= max_retries
                or outcome.error is None
                or not is_retryable(outcome.error)
            ):
                return outcome

            delay = get_retry_delay(
                outcome.error,
                default=self.crawler_settings.retry_delay_seconds,
                attempt=attempt,
            )
            attempt += 1
            self._metrics.increment(RETRIES)
            logger.warning(
                f"Retrying in {delay:.1f}s ({attempt}/{max_retries}): {url}")
            await asyncio.sleep(delay)

    async def _handle_outcome(self, outcome: VisitOutcome) -> None:
        """Account for a finished visit and offer its discoveries."""
        self._metrics.increment(COOKIE_EVENTS, len(outcome.events))
        self._metrics.increment(
            COOKIES_RECORDED, sum(len(event.cookies) for event in outcome.events))

        if outcome.status is VisitStatus.SUCCESS:
            self._progress.pages_succeeded += 1
            self._metrics.increment(PAGES_VISITED)
            added = await self._frontier.offer_many(outcome.discovered)
            self._metrics.increment(LINKS_QUEUED, added)
            logger.info(
                f"[{self._progress.pages_finished}/{self.crawler_settings.max_pages}] "
                f"Visited: {outcome.url} "
                f"({len(outcome.events)} cookie event(s), "
                f"{added}/{len(outcome.discovered)} link(s) queued)"
            )

        elif outcome.status is VisitStatus.OUT_OF_SCOPE:
            self._progress.pages_out_of_scope += 1
            self._metrics.increment(VISITS_OUT_OF_SCOPE)

        else:
            self._progress.pages_failed += 1
            self._metrics.increment(VISITS_FAILED)
            logger.warning(f"Giving up on: {outcome.url} ({outcome.error})")

    def _build_result(self, seed_url: str) -> CrawlResult:
        return CrawlResult(
            seed_url=seed_url,
            started_at=self._progress.started_at,
            completed_at=self._progress.completed_at,
            visited=self._registry.urls,
            cookie_log=list(self._ledger.events),
            status=self._progress.status,
            pages_succeeded=self._progress.pages_succeeded,
            pages_failed=self._progress.pages_failed,
            pages_out_of_scope=self._progress.pages_out_of_scope,
            peak_in_flight=self._progress.peak_in_flight,
            metrics=self._metrics.snapshot(),
        )


async def crawl_website(
    crawler_settings: CrawlerSettings,
    browser_settings: BrowserSettings | None = None,
) -> CrawlResult:
    """
    Convenience function to run a full crawl with its own browser.

    Args:
        crawler_settings: Crawl budget including start_url
        browser_settings: Browser configuration

    Returns:
        CrawlResult
    """
    orchestrator = CrawlOrchestrator(crawler_settings, browser_settings)
    return await orchestrator.crawl()
