"""
Cookie Harvester - crawl a website and record cookie-setting behaviour.

Starting from one seed URL, visits reachable pages with a headless
browser under a page budget and a concurrency cap, records the cookies
each page sets on load and after clicking interactive elements, and
writes the observations to a JSON document.
"""

from cookie_harvester.config import Settings, load_config
from cookie_harvester.utils.logging import setup_logging, get_logger
from cookie_harvester.core.exceptions import CookieHarvesterError

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "load_config",
    "setup_logging",
    "get_logger",
    "CookieHarvesterError",
]
