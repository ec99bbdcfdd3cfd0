"""
Page visitor: the per-URL visit protocol.

Opens an isolated session, navigates, records cookies after the initial
load and after an optional interaction pass, and returns the links
found on the page. The visitor never enqueues anything itself; claim
and dedup decisions stay with the frontier.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from cookie_harvester.browser.actions import is_clickable, safe_click
from cookie_harvester.config.settings import CrawlerSettings
from cookie_harvester.core.exceptions import BrowserError, CookieHarvesterError
from cookie_harvester.crawler.frontier import resolve_url
from cookie_harvester.crawler.ledger import CookieEvent, CookieLedger, CookieStep
from cookie_harvester.crawler.scope import ScopePolicy
from cookie_harvester.utils.logging import VisitLogAdapter, visit_logger

if TYPE_CHECKING:
    from cookie_harvester.browser.manager import BrowserManager
    from cookie_harvester.browser.page_context import PageSession


class VisitStatus(str, Enum):
    """Outcome of a single visit."""

    SUCCESS = "success"
    FAILED = "failed"
    OUT_OF_SCOPE = "out_of_scope"


@dataclass
class VisitOutcome:
    """
    What one visit reports back to the orchestrator.

    discovered is only populated for successful visits.
    """

    url: str
    status: VisitStatus = VisitStatus.FAILED
    final_url: str | None = None
    discovered: list[str] = field(default_factory=list)
    events: list[CookieEvent] = field(default_factory=list)
    clicks: int = 0
    attempts: int = 1
    error: CookieHarvesterError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is VisitStatus.SUCCESS


class PageVisitor:
    """
    Visits exactly one URL per call.

    Example:
        >>> visitor = PageVisitor(manager, ledger, crawler_settings, scope)
        >>> outcome = await visitor.visit("https://example.com/")
        >>> outcome.discovered
        ['https://example.com/about', ...]
    """

    def __init__(
        self,
        engine: "BrowserManager",
        ledger: CookieLedger,
        settings: CrawlerSettings,
        scope: ScopePolicy,
        navigation_timeout_ms: int = 30000,
        click_timeout_ms: int | None = None,
    ) -> None:
        """
        Initialize visitor.

        Args:
            engine: Provides isolated sessions via new_session()
            ledger: Shared cookie ledger
            settings: Crawl budget (interaction toggle, selector, click delay)
            scope: Applied to the post-redirect URL
            navigation_timeout_ms: Bound on each navigation
            click_timeout_ms: Bound on each click; None uses the context default
        """
        self.engine = engine
        self.ledger = ledger
        self.settings = settings
        self.scope = scope
        self.navigation_timeout_ms = navigation_timeout_ms
        self.click_timeout_ms = click_timeout_ms

    async def visit(self, url: str) -> VisitOutcome:
        """
        Run the visit protocol for one URL.

        Recoverable failures (navigation errors, a page that dies
        mid-visit, session creation failures) are reported in the
        outcome, never raised.

        Args:
            url: Claimed URL to visit

        Returns:
            VisitOutcome with status, cookie events and discovered links
        """
        log = visit_logger(__name__, url)
        outcome = VisitOutcome(url=url)

        try:
            async with self.engine.new_session() as session:
                await self._run(session, outcome, log)

        except BrowserError as e:
            outcome.status = VisitStatus.FAILED
            outcome.error = e
            outcome.discovered = []
            log.warning(f"Visit failed: {e}")

        return outcome

    async def _run(
        self,
        session: "PageSession",
        outcome: VisitOutcome,
        log: VisitLogAdapter,
    ) -> None:
        final_url = await session.navigate(
            outcome.url,
            wait_until="domcontentloaded",
            timeout_ms=self.navigation_timeout_ms,
        )
        outcome.final_url = final_url

        if not self.scope.is_in_scope(final_url):
            outcome.status = VisitStatus.OUT_OF_SCOPE
            log.info(f"Redirected out of scope to {final_url}, skipping")
            return

        await self._capture(session, CookieStep.INITIAL_LOAD, outcome)

        if self.settings.interact:
            outcome.clicks = await self._interact(session, log)
            await self._capture(session, CookieStep.AFTER_INTERACTION, outcome)

        outcome.discovered = await self._extract_links(session, log)
        outcome.status = VisitStatus.SUCCESS

    async def _capture(
        self,
        session: "PageSession",
        step: CookieStep,
        outcome: VisitOutcome,
    ) -> None:
        cookies = await session.cookies()
        event = await self.ledger.record_if_new(
            cookies, url=session.current_url, step=step)
        if event is not None:
            outcome.events.append(event)

    async def _interact(self, session: "PageSession", log: VisitLogAdapter) -> int:
        """
        Click every visible, enabled element matching the interaction selector.

        Best-effort: failed clicks are logged and skipped.

        Returns:
            Number of successful clicks
        """
        handles = await session.query_all(self.settings.interaction_selector)
        clicked = 0

        for handle in handles:
            if not await is_clickable(handle):
                continue
            if not await safe_click(handle, timeout_ms=self.click_timeout_ms):
                continue
            clicked += 1
            await session.wait(self.settings.wait_after_click_ms)

        if handles:
            log.debug(f"Clicked {clicked}/{len(handles)} interactive element(s)")
        return clicked

    async def _extract_links(
        self,
        session: "PageSession",
        log: VisitLogAdapter,
    ) -> list[str]:
        """Resolve anchor targets against the current address, dropping malformed ones."""
        base_url = session.current_url
        links: list[str] = []
        seen: set[str] = set()

        for href in await session.link_targets():
            absolute = resolve_url(href, base_url)
            if absolute is None:
                log.debug(f"Ignoring link target: {href!r}")
                continue
            if absolute in seen:
                continue
            seen.add(absolute)
            links.append(absolute)

        return links
