"""
Playwright browsing engine for the crawler.

One browser process is launched per crawl. Each page visit receives its
own BrowserContext through new_session(), so cookie jars never mix
between pages visited concurrently.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Playwright,
)

from cookie_harvester.browser.page_context import PageSession
from cookie_harvester.config.settings import BrowserSettings
from cookie_harvester.core.exceptions import BrowserError, BrowserLaunchError
from cookie_harvester.utils.logging import get_logger

logger = get_logger(__name__)


class BrowserManager:
    """
    Owns the browser process and hands out isolated page sessions.

    Sessions still open when the manager stops are closed before the
    browser itself, so an aborted crawl leaves no contexts behind.

    Example:
        >>> async with BrowserManager(settings) as engine:
        ...     async with engine.new_session() as session:
        ...         await session.navigate("https://example.com")
    """

    def __init__(self, settings: BrowserSettings) -> None:
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._sessions: set[PageSession] = set()
        self._sessions_opened = 0

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    @property
    def active_sessions(self) -> int:
        """Sessions handed out and not yet closed."""
        return len(self._sessions)

    @property
    def sessions_opened(self) -> int:
        """Sessions handed out since the manager was created."""
        return self._sessions_opened

    async def start(self) -> None:
        """
        Launch the configured browser engine.

        Raises:
            BrowserLaunchError: Playwright or the browser binary failed
                to start
        """
        if self._browser is not None:
            logger.warning("Browser already running, ignoring start()")
            return

        browser_type = self.settings.browser_type
        logger.info(f"Launching {browser_type} (headless={self.settings.headless})")

        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, browser_type)
            self._browser = await launcher.launch(
                headless=self.settings.headless,
                args=list(self.settings.launch_args),
            )
        except Exception as e:
            await self._shutdown()
            raise BrowserLaunchError(
                f"Could not launch {browser_type}: {e}",
                details={"browser_type": browser_type, "headless": self.settings.headless},
            ) from e

        logger.debug("Browser launched")

    async def stop(self) -> None:
        """Close leftover sessions, the browser and Playwright. Idempotent."""
        leftover = list(self._sessions)
        for session in leftover:
            await session.close()
        self._sessions.clear()

        if leftover:
            logger.warning(f"Closed {len(leftover)} session(s) still open at shutdown")

        await self._shutdown()
        logger.info(f"Browser stopped after {self._sessions_opened} session(s)")

    async def _shutdown(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self._playwright = None

    def _context_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "viewport": {
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            },
            "ignore_https_errors": self.settings.ignore_https_errors,
        }
        if self.settings.user_agent:
            options["user_agent"] = self.settings.user_agent
        return options

    async def new_context(self) -> BrowserContext:
        """
        Create a context with its own cookie jar, cache and storage.

        Raises:
            BrowserError: Browser not started, or Playwright refused the
                context
        """
        if self._browser is None:
            raise BrowserError("Browser not started. Call start() first.")

        try:
            context = await self._browser.new_context(**self._context_options())
        except PlaywrightError as e:
            raise BrowserError(f"Failed to create browser context: {e.message}") from e

        context.set_default_timeout(self.settings.timeout_ms)
        context.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        return context

    @asynccontextmanager
    async def new_session(self) -> AsyncIterator[PageSession]:
        """
        Open a fresh context and page for exactly one visit.

        The session is closed on every exit path, including cancellation.

        Raises:
            BrowserError: The context or page could not be created
        """
        context = await self.new_context()

        try:
            page = await context.new_page()
        except PlaywrightError as e:
            try:
                await context.close()
            except PlaywrightError as close_error:
                logger.warning(f"Error closing browser context: {close_error.message}")
            raise BrowserError(f"Failed to open page: {e.message}") from e

        session = PageSession(context, page)
        self._sessions.add(session)
        self._sessions_opened += 1
        try:
            yield session
        finally:
            self._sessions.discard(session)
            await session.close()

    async def __aenter__(self) -> "BrowserManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
