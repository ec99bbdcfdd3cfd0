"""
Shared pytest fixtures for Cookie Harvester tests.

Provides reusable fixtures for:
- Isolated environment and logging state
- Temporary directories
- An in-memory fake browsing engine that serves scripted pages
"""

import asyncio
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Generator

import pytest

from cookie_harvester.config import CrawlerSettings
from cookie_harvester.config.loader import ENV_PREFIX, LEGACY_ENV_VARS
from cookie_harvester.core.exceptions import NavigationError
from cookie_harvester.utils.logging import reset_logging


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Remove configuration variables so tests never see the host's settings."""
    for name in LEGACY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith(f"{ENV_PREFIX}__"):
            monkeypatch.delenv(name, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def make_cookie(
    name: str,
    value: str = "1",
    domain: str = "a.example",
    path: str = "/",
) -> dict:
    """Cookie mapping shaped like Playwright's context.cookies() entries."""
    return {
        "name": name,
        "value": value,
        "domain": domain,
        "path": path,
        "expires": -1,
        "httpOnly": False,
        "secure": True,
        "sameSite": "Lax",
    }


# =============================================================================
# Fake browsing engine
# =============================================================================


class FakeElement:
    """Element handle stand-in with the methods the visitor uses."""

    def __init__(
        self,
        on_click: Callable[[], None] | None = None,
        width: float = 40,
        height: float = 20,
        visible: bool = True,
        disabled: bool = False,
        detached: bool = False,
    ) -> None:
        self.on_click = on_click
        self.width = width
        self.height = height
        self.visible = visible
        self.disabled = disabled
        self.detached = detached
        self.clicks = 0

    async def bounding_box(self):
        return {"x": 0, "y": 0, "width": self.width, "height": self.height}

    async def is_visible(self) -> bool:
        return self.visible

    async def get_attribute(self, name: str):
        if name == "disabled" and self.disabled:
            return ""
        return None

    async def click(self, timeout=None) -> None:
        if self.detached:
            raise RuntimeError("Element is not attached to the DOM")
        self.clicks += 1
        if self.on_click is not None:
            self.on_click()


@dataclass
class FakePage:
    """Scripted behaviour of one URL."""

    links: list[str] = field(default_factory=list)
    cookies: list[dict] = field(default_factory=list)
    click_cookies: list[dict] = field(default_factory=list)
    extra_elements: list[FakeElement] = field(default_factory=list)
    redirect_to: str | None = None
    fail: bool = False
    delay: float = 0.0


class FakeSession:
    """Isolated session over a FakePage; owns its own cookie jar."""

    def __init__(self, engine: "FakeEngine") -> None:
        self.engine = engine
        self.page: FakePage | None = None
        self.jar: list[dict] = []
        self._url = "about:blank"
        self.closed = False

    @property
    def current_url(self) -> str:
        return self._url

    async def navigate(self, url, wait_until="domcontentloaded", timeout_ms=None) -> str:
        self.engine.navigations.append(url)
        page = self.engine.page_for(url)
        if page is None or page.fail:
            await asyncio.sleep(0)
            raise NavigationError("Navigation failed: net::ERR_CONNECTION_REFUSED", url=url)
        await asyncio.sleep(page.delay)
        self.page = page
        self._url = page.redirect_to or url
        self.jar.extend(page.cookies)
        return self._url

    async def cookies(self) -> list[dict]:
        return [dict(cookie) for cookie in self.jar]

    async def query_all(self, selector: str) -> list:
        self.engine.selectors.append(selector)
        elements = list(self.page.extra_elements)
        if self.page.click_cookies:
            elements.append(FakeElement(
                on_click=lambda: self.jar.extend(self.page.click_cookies)))
        return elements

    async def wait(self, ms: int) -> None:
        self.engine.waits.append(ms)
        await asyncio.sleep(0)

    async def link_targets(self) -> list[str]:
        return list(self.page.links)

    async def close(self) -> None:
        self.closed = True


class FakeEngine:
    """
    Browsing engine stand-in providing new_session().

    Tracks how many sessions are open at once, which is the number of
    visits in flight.
    """

    def __init__(
        self,
        pages: dict[str, FakePage] | None = None,
        default_page: Callable[[str], FakePage | None] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.default_page = default_page
        self.navigations: list[str] = []
        self.selectors: list[str] = []
        self.waits: list[int] = []
        self.sessions: list[FakeSession] = []
        self.open_sessions = 0
        self.peak_open_sessions = 0

    def page_for(self, url: str) -> FakePage | None:
        if url in self.pages:
            return self.pages[url]
        if self.default_page is not None:
            return self.default_page(url)
        return None

    @asynccontextmanager
    async def new_session(self):
        session = FakeSession(self)
        self.sessions.append(session)
        self.open_sessions += 1
        self.peak_open_sessions = max(self.peak_open_sessions, self.open_sessions)
        try:
            yield session
        finally:
            self.open_sessions -= 1
            await session.close()


@pytest.fixture
def fake_engine_factory():
    """Build a FakeEngine from a mapping of URL to FakePage."""
    return FakeEngine


@pytest.fixture
def crawler_settings() -> CrawlerSettings:
    """Crawl budget used by most tests: fast clicks, default scoping."""
    return CrawlerSettings(
        start_url="https://a.example/",
        max_pages=5,
        wait_after_click_ms=0,
        max_concurrency=2,
    )
