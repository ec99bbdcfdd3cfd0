"""
Cookie ledger: deduplicated, append-only log of cookie observations.

Each visit reports the cookies visible in its context at a given step;
the ledger keeps only the ones it has not seen before and records them
as an immutable CookieEvent.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from cookie_harvester.config.settings import DedupKey
from cookie_harvester.utils.logging import get_logger

logger = get_logger(__name__)


class CookieStep(str, Enum):
    """Point in the visit protocol at which cookies were read."""

    INITIAL_LOAD = "initial load"
    AFTER_INTERACTION = "after interaction"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    return (
        value.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def cookie_key(cookie: dict[str, Any], dedup_key: DedupKey) -> tuple:
    """
    Identity of a cookie under the given dedup policy.

    Args:
        cookie: Cookie mapping as reported by the browser
        dedup_key: NAME or NAME_DOMAIN_PATH

    Returns:
        Hashable key
    """
    name = cookie.get("name", "")
    if dedup_key is DedupKey.NAME:
        return (name,)
    return (name, cookie.get("domain", ""), cookie.get("path", "/"))


@dataclass(frozen=True)
class CookieEvent:
    """
    Newly observed cookies at one step of one visit.

    Never mutated after it is appended to the ledger.
    """

    url: str
    step: CookieStep
    timestamp: datetime
    cookies: tuple[dict[str, Any], ...]

    def to_dict(self) -> dict[str, Any]:
        """Serialize as a cookieLog entry."""
        return {
            "url": self.url,
            "step": self.step.value,
            "timestamp": format_timestamp(self.timestamp),
            "cookies": [dict(cookie) for cookie in self.cookies],
        }


class CookieLedger:
    """
    Shared, append-only record of cookie events for one crawl.

    The dedup check and the append happen under one lock, so two
    concurrent visits can never both record the same cookie as new.

    Example:
        >>> ledger = CookieLedger()
        >>> event = await ledger.record_if_new(
        ...     [{"name": "session", "value": "1", "domain": "a.example", "path": "/"}],
        ...     url="https://a.example/",
        ...     step=CookieStep.INITIAL_LOAD,
        ... )
        >>> len(event.cookies)
        1
    """

    def __init__(self, dedup_key: DedupKey = DedupKey.NAME_DOMAIN_PATH) -> None:
        """
        Initialize ledger.

        Args:
            dedup_key: Cookie identity; NONE records every non-empty snapshot
        """
        self.dedup_key = dedup_key
        self._seen: set[tuple] = set()
        self._events: list[CookieEvent] = []
        self._lock = asyncio.Lock()

    async def record_if_new(
        self,
        cookies: Iterable[dict[str, Any]],
        url: str,
        step: CookieStep,
    ) -> CookieEvent | None:
        """
        Append an event for the cookies not seen before in this run.

        Args:
            cookies: Cookies currently visible in the visit's context
            url: Page address the cookies were observed on
            step: Visit step

        Returns:
            The appended event, or None if nothing new was observed
        """
        async with self._lock:
            if self.dedup_key is DedupKey.NONE:
                new_cookies = [dict(cookie) for cookie in cookies]
            else:
                new_cookies = []
                for cookie in cookies:
                    key = cookie_key(cookie, self.dedup_key)
                    if key in self._seen:
                        continue
                    self._seen.add(key)
                    new_cookies.append(dict(cookie))

            if not new_cookies:
                return None

            event = CookieEvent(
                url=url,
                step=step,
                timestamp=utc_now(),
                cookies=tuple(new_cookies),
            )
            self._events.append(event)

        logger.debug(
            f"Recorded {len(new_cookies)} new cookie(s) at {step.value}: {url}")
        return event

    @property
    def events(self) -> tuple[CookieEvent, ...]:
        """Events in append order."""
        return tuple(self._events)

    @property
    def seen_count(self) -> int:
        """Number of distinct cookie keys recorded so far."""
        return len(self._seen)

    def __len__(self) -> int:
        return len(self._events)
