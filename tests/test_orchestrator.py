"""
Tests for crawl orchestration.

Tests budget enforcement, scoping, bounded concurrency, failure
isolation and the result document, using an in-memory browsing engine.
"""

import asyncio
from unittest.mock import patch

import pytest

from cookie_harvester.config import BrowserSettings, CrawlerSettings
from cookie_harvester.core.exceptions import ConfigurationError
from cookie_harvester.crawler import (
    CrawlOrchestrator,
    CrawlResult,
    CrawlStatus,
    crawl_website,
)
from tests.conftest import FakeEngine, FakePage, make_cookie

SEED = "https://a.example/"


def settings(**overrides) -> CrawlerSettings:
    values = {
        "start_url": SEED,
        "max_pages": 10,
        "wait_after_click_ms": 0,
        "max_concurrency": 2,
    }
    values.update(overrides)
    return CrawlerSettings(**values)


def endless_site(url: str) -> FakePage:
    """Every page links to two fresh pages."""
    return FakePage(links=[url.rstrip("/") + "/l", url.rstrip("/") + "/r"])


class TestCrawlResult:
    """Tests for CrawlResult."""

    @pytest.mark.asyncio
    async def test_document_shape(self):
        engine = FakeEngine({SEED: FakePage(cookies=[make_cookie("session")])})

        result = await CrawlOrchestrator(settings()).run(engine)
        document = result.to_dict()

        assert list(document) == ["startedAt", "visited", "cookieLog"]
        assert document["startedAt"].endswith("Z")
        assert document["visited"] == [SEED]
        assert document["cookieLog"][0]["step"] == "initial load"
        assert result.cookies_recorded == 1
        assert result.duration_seconds >= 0


class TestCrawlOrchestrator:
    """Tests for CrawlOrchestrator.run()."""

    @pytest.mark.asyncio
    async def test_single_page_budget(self):
        """With max_pages=1 only the seed is visited."""
        engine = FakeEngine({
            SEED: FakePage(links=["/a", "/b"], cookies=[make_cookie("session")]),
        })

        result = await CrawlOrchestrator(settings(max_pages=1)).run(engine)

        assert result.visited == [SEED]
        assert engine.navigations == [SEED]
        assert result.status is CrawlStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_breadth_first_order(self):
        engine = FakeEngine({
            SEED: FakePage(links=["/a", "/b"]),
            "https://a.example/a": FakePage(links=["/c"]),
            "https://a.example/b": FakePage(),
            "https://a.example/c": FakePage(),
        })

        result = await CrawlOrchestrator(settings(max_concurrency=1)).run(engine)

        assert result.visited == [
            SEED,
            "https://a.example/a",
            "https://a.example/b",
            "https://a.example/c",
        ]
        assert engine.navigations == result.visited

    @pytest.mark.asyncio
    async def test_domain_scoping(self):
        """Links leaving the seed domain are never visited."""
        engine = FakeEngine({
            SEED: FakePage(links=["https://b.other/", "https://sub.a.example/"]),
            "https://sub.a.example/": FakePage(),
            "https://b.other/": FakePage(),
        })

        result = await CrawlOrchestrator(settings()).run(engine)

        assert "https://b.other/" not in result.visited
        assert "https://b.other/" not in engine.navigations
        assert result.visited == [SEED, "https://sub.a.example/"]

    @pytest.mark.asyncio
    async def test_any_domain(self):
        engine = FakeEngine({
            SEED: FakePage(links=["https://b.other/"]),
            "https://b.other/": FakePage(),
        })

        result = await CrawlOrchestrator(settings(same_domain_only=False)).run(engine)

        assert result.visited == [SEED, "https://b.other/"]

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        """No more than max_concurrency visits are ever in flight."""
        children = [f"https://a.example/{i}" for i in range(3)]
        pages = {SEED: FakePage(links=children)}
        pages.update({url: FakePage(delay=0.01) for url in children})
        engine = FakeEngine(pages)

        result = await CrawlOrchestrator(settings(max_concurrency=2)).run(engine)

        assert len(result.visited) == 4
        assert engine.peak_open_sessions <= 2
        assert result.peak_in_flight == 2

    @pytest.mark.asyncio
    async def test_endless_site_terminates(self):
        """An unbounded link graph still stops at the page budget."""
        engine = FakeEngine(default_page=endless_site)

        result = await CrawlOrchestrator(settings(max_pages=7, max_concurrency=3)).run(engine)

        assert len(result.visited) == 7
        assert len(engine.navigations) == 7

    @pytest.mark.asyncio
    async def test_no_duplicate_visits(self):
        """Pages linking to each other are each visited once."""
        engine = FakeEngine({
            SEED: FakePage(links=["/a", "/b", "/"]),
            "https://a.example/a": FakePage(links=["/", "/b"]),
            "https://a.example/b": FakePage(links=["/a", "/"]),
        })

        result = await CrawlOrchestrator(settings(max_concurrency=3)).run(engine)

        assert len(result.visited) == len(set(result.visited)) == 3
        assert sorted(engine.navigations) == sorted(result.visited)

    @pytest.mark.asyncio
    async def test_seed_normalized_like_links(self):
        """A seed spelt differently from its own links is visited once."""
        engine = FakeEngine({SEED: FakePage(links=["/", "https://A.EXAMPLE:443/"])})

        result = await CrawlOrchestrator(settings(start_url="https://A.example")).run(engine)

        assert result.visited == [SEED]
        assert engine.navigations == [SEED]

    @pytest.mark.asyncio
    async def test_cookies_deduplicated_across_pages(self):
        engine = FakeEngine({
            SEED: FakePage(links=["/a"], cookies=[make_cookie("session")]),
            "https://a.example/a": FakePage(
                cookies=[make_cookie("session"), make_cookie("cart")]),
        })

        result = await CrawlOrchestrator(settings(max_concurrency=1)).run(engine)

        names = [
            [cookie["name"] for cookie in event.cookies]
            for event in result.cookie_log
        ]
        assert names == [["session"], ["cart"]]

    @pytest.mark.asyncio
    async def test_failure_does_not_halt_crawl(self):
        """A page that fails to load is still listed as visited."""
        engine = FakeEngine({
            SEED: FakePage(links=["/broken", "/ok"]),
            "https://a.example/broken": FakePage(fail=True),
            "https://a.example/ok": FakePage(),
        })
        orchestrator = CrawlOrchestrator(settings())

        result = await orchestrator.run(engine)

        assert result.visited == [
            SEED,
            "https://a.example/broken",
            "https://a.example/ok",
        ]
        assert result.pages_failed == 1
        assert result.pages_succeeded == 2
        assert orchestrator.metrics.get_counter("visits_failed") == 1
        assert engine.open_sessions == 0

    @pytest.mark.asyncio
    async def test_seed_failure_completes(self):
        engine = FakeEngine({SEED: FakePage(fail=True)})

        result = await CrawlOrchestrator(settings()).run(engine)

        assert result.visited == [SEED]
        assert result.cookie_log == []
        assert result.status is CrawlStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unexpected_error_counted_as_failure(self):
        def pages(url: str) -> FakePage:
            if url.endswith("/boom"):
                raise RuntimeError("engine exploded")
            return FakePage()

        engine = FakeEngine({SEED: FakePage(links=["/boom", "/fine"])}, default_page=pages)

        result = await CrawlOrchestrator(settings()).run(engine)

        assert result.pages_failed == 1
        assert "https://a.example/fine" in result.visited

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self):
        engine = FakeEngine({SEED: FakePage(fail=True)})

        await CrawlOrchestrator(settings()).run(engine)

        assert engine.navigations == [SEED]

    @pytest.mark.asyncio
    async def test_retries_bounded(self):
        """Retryable failures are retried max_retries times without re-claiming."""
        engine = FakeEngine({SEED: FakePage(fail=True)})

        result = await CrawlOrchestrator(
            settings(max_retries=2, retry_delay_seconds=0)).run(engine)

        assert engine.navigations == [SEED, SEED, SEED]
        assert result.visited == [SEED]
        assert result.pages_failed == 1

    @pytest.mark.asyncio
    async def test_out_of_scope_redirect_counted(self):
        engine = FakeEngine({
            SEED: FakePage(links=["/away"]),
            "https://a.example/away": FakePage(redirect_to="https://b.other/", links=["/z"]),
        })

        result = await CrawlOrchestrator(settings()).run(engine)

        assert result.visited == [SEED, "https://a.example/away"]
        assert result.pages_out_of_scope == 1

    @pytest.mark.asyncio
    async def test_missing_start_url(self):
        orchestrator = CrawlOrchestrator(CrawlerSettings())

        with pytest.raises(ConfigurationError):
            await orchestrator.run(FakeEngine())

    @pytest.mark.asyncio
    async def test_progress_tracked(self):
        engine = FakeEngine({SEED: FakePage(links=["/a"]), "https://a.example/a": FakePage()})
        orchestrator = CrawlOrchestrator(settings())

        await orchestrator.run(engine)

        progress = orchestrator.progress
        assert progress.status is CrawlStatus.COMPLETED
        assert progress.pages_dispatched == 2
        assert progress.pages_finished == 2
        assert progress.in_flight == 0
        assert progress.elapsed_seconds >= 0

    @pytest.mark.asyncio
    async def test_drains_when_frontier_exhausted(self):
        """With budget left but nothing pending, the last visit is drained."""
        engine = FakeEngine({SEED: FakePage(delay=0.2)})
        orchestrator = CrawlOrchestrator(settings(max_pages=10))

        task = asyncio.create_task(orchestrator.run(engine))
        await asyncio.sleep(0.05)

        assert orchestrator.progress.status is CrawlStatus.DRAINING
        assert orchestrator.progress.in_flight == 1

        result = await task
        assert result.status is CrawlStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_refilled_frontier_resumes_running(self):
        """Links found by the seed move the crawl from draining back to running."""
        statuses = []
        orchestrator = CrawlOrchestrator(settings(max_concurrency=1))

        def child(url: str) -> FakePage:
            statuses.append(orchestrator.progress.status)
            return FakePage()

        engine = FakeEngine({SEED: FakePage(links=["/a", "/b"])}, default_page=child)

        result = await orchestrator.run(engine)

        assert result.visited == [SEED, "https://a.example/a", "https://a.example/b"]
        # /b still pending while /a runs; nothing left once /b runs
        assert statuses == [CrawlStatus.RUNNING, CrawlStatus.DRAINING]
        assert orchestrator.progress.status is CrawlStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_runs_are_independent(self):
        """Running twice starts from an empty registry and ledger."""
        engine = FakeEngine({SEED: FakePage(cookies=[make_cookie("session")])})
        orchestrator = CrawlOrchestrator(settings())

        first = await orchestrator.run(engine)
        second = await orchestrator.run(engine)

        assert first.visited == second.visited == [SEED]
        assert len(second.cookie_log) == 1

    @pytest.mark.asyncio
    async def test_metrics_snapshot(self):
        engine = FakeEngine({SEED: FakePage(cookies=[make_cookie("session")])})

        result = await CrawlOrchestrator(settings()).run(engine)

        assert result.metrics["counters"]["pages_visited"] == 1
        assert result.metrics["counters"]["cookie_events"] == 1
        assert result.metrics["timings"]["visit_ms"]["count"] == 1


class TestCrawlWithBrowser:
    """Tests for crawl() and crawl_website() browser handling."""

    @pytest.mark.asyncio
    async def test_crawl_uses_browser_manager(self):
        engine = FakeEngine({SEED: FakePage()})

        with patch("cookie_harvester.crawler.orchestrator.BrowserManager") as manager_cls:
            manager_cls.return_value.__aenter__.return_value = engine
            result = await crawl_website(settings(), BrowserSettings(headless=True))

        assert isinstance(result, CrawlResult)
        assert result.visited == [SEED]
        manager_cls.return_value.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_crawl_without_seed_never_launches(self):
        with patch("cookie_harvester.crawler.orchestrator.BrowserManager") as manager_cls:
            with pytest.raises(ConfigurationError):
                await CrawlOrchestrator(CrawlerSettings()).crawl()

        manager_cls.assert_not_called()
