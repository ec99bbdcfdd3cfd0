"""
Isolated page session wrapper.

A PageSession owns one Playwright BrowserContext and the single Page
opened in it. It exposes exactly the operations the crawl core needs:
navigation, cookie introspection, DOM queries, waiting and link
extraction, with Playwright errors mapped onto the application's
exception hierarchy.
"""

import asyncio
import time

from playwright.async_api import (
    BrowserContext,
    ElementHandle,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from cookie_harvester.core.exceptions import NavigationError, PageLoadError
from cookie_harvester.utils.logging import get_logger

logger = get_logger(__name__)

LINK_SELECTOR = "a[href]"


class PageSession:
    """
    One isolated browsing context and its page.

    Sessions are created by BrowserManager.new_session() and are never
    shared between visits. close() is idempotent and safe to call while
    unwinding from an error.

    Example:
        >>> async with manager.new_session() as session:
        ...     final_url = await session.navigate("https://example.com")
        ...     cookies = await session.cookies()
    """

    def __init__(self, context: BrowserContext, page: Page) -> None:
        """
        Initialize page session.

        Args:
            context: Playwright context owning the cookie jar
            page: Playwright page opened in that context
        """
        self.context = context
        self.page = page
        self._closed = False

    @property
    def current_url(self) -> str:
        """Get the current page URL (after redirects and click navigations)."""
        return self.page.url

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def navigate(
        self,
        url: str,
        wait_until: str = "domcontentloaded",
        timeout_ms: int | None = None,
    ) -> str:
        """
        Navigate to URL and wait for the given load state.

        Args:
            url: Target URL
            wait_until: Load state to wait for ("domcontentloaded", "load",
                "networkidle")
            timeout_ms: Navigation timeout; None uses the context default

        Returns:
            The page URL once navigation settled (post-redirect)

        Raises:
            NavigationError: If navigation fails or times out
        """
        start_time = time.perf_counter()

        try:
            logger.debug(f"Navigating to: {url}")
            await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)

        except PlaywrightTimeoutError as e:
            raise NavigationError(
                f"Navigation timeout: {e.message}",
                url=url,
            ) from e

        except PlaywrightError as e:
            raise NavigationError(
                f"Navigation failed: {e.message}",
                url=url,
            ) from e

        elapsed = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Navigation complete in {elapsed:.0f}ms")

        return self.page.url

    async def cookies(self) -> list[dict]:
        """
        Read every cookie visible in this session's context.

        Raises:
            PageLoadError: If the context can no longer be queried
        """
        try:
            return [dict(cookie) for cookie in await self.context.cookies()]
        except PlaywrightError as e:
            raise PageLoadError(
                f"Failed to read cookies: {e.message}",
                url=self.page.url,
            ) from e

    async def query_all(self, selector: str) -> list[ElementHandle]:
        """
        Find all elements matching a CSS selector.

        Returns an empty list when the query itself fails, e.g. because
        the page navigated away mid-query.
        """
        try:
            return await self.page.query_selector_all(selector)
        except PlaywrightError as e:
            logger.debug(f"Query failed for {selector}: {e.message}")
            return []

    async def wait(self, ms: int) -> None:
        """
        Pause for the given number of milliseconds.

        Falls back to a plain sleep if the page can no longer wait,
        e.g. after a click closed it.
        """
        if ms <= 0:
            return
        try:
            await self.page.wait_for_timeout(ms)
        except PlaywrightError as e:
            logger.debug(f"Page wait failed, sleeping instead: {e.message}")
            await asyncio.sleep(ms / 1000)

    async def link_targets(self) -> list[str]:
        """
        Return the raw href attribute of every anchor on the page.

        Raises:
            PageLoadError: If the DOM cannot be evaluated
        """
        try:
            hrefs = await self.page.eval_on_selector_all(
                LINK_SELECTOR,
                "els => els.map(el => el.getAttribute('href'))",
            )
        except PlaywrightError as e:
            raise PageLoadError(
                f"Failed to extract links: {e.message}",
                url=self.page.url,
            ) from e

        return [href for href in hrefs or [] if href]

    async def close(self) -> None:
        """Close the page and its context; errors are logged, not raised."""
        if self._closed:
            return
        self._closed = True

        try:
            await self.page.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing page: {e.message}")

        try:
            await self.context.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing browser context: {e.message}")
