"""
Browser module for the Cookie Harvester.

Provides Playwright-based browser automation with:
- Browser lifecycle management
- Isolated per-visit page sessions
- Best-effort element interaction helpers
"""

from cookie_harvester.browser.manager import BrowserManager
from cookie_harvester.browser.page_context import PageSession
from cookie_harvester.browser.actions import is_clickable, safe_click

__all__ = [
    "BrowserManager",
    "PageSession",
    "is_clickable",
    "safe_click",
]
