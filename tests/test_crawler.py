"""End-to-end behaviour of the worker pool and run controller against in-memory sites."""

from __future__ import annotations

import threading
import time

import pytest

from emailscrape.crawler import CrawlController, CrawlWorker
from emailscrape.errors import ConnectionFailed, HTTPStatusError, TooLarge
from emailscrape.extractor import Extractor, HTMLExtractor
from emailscrape.models import CrawlTarget, RunConfig, RunState
from tests.util_factories import FakeFetcher, RecordingExtractor, link_page

SEED = "https://example.com"


def _scenario_site():
    return {
        SEED: link_page("/contact"),
        f"{SEED}/contact": "<p>Reach a@example.com or b@other.com</p>",
    }


def test_example_scenario_without_strict(run_crawl):
    result, fetcher, emitted = run_crawl(_scenario_site(), seed="example.com", max_depth=1)

    assert result.state is RunState.COMPLETED
    matches = {record.address: record.is_domain_match for record in result.emails}
    assert matches == {"a@example.com": True, "b@other.com": False}
    assert {record.address for record in emitted} == {"a@example.com", "b@other.com"}
    assert result.emails[0].source_url == f"{SEED}/contact"


def test_example_scenario_with_strict(run_crawl):
    result, _fetcher, _emitted = run_crawl(_scenario_site(), seed="example.com", max_depth=1, strict=True)

    assert result.addresses == {"a@example.com"}
    # strict mode only filters the output
    assert {record.address for record in result.records} == {"a@example.com", "b@other.com"}


def test_strict_output_is_the_matching_subset(run_crawl):
    pages = {
        SEED: link_page("/a", "/b", text="root@example.com"),
        f"{SEED}/a": "x@other.org y@example.com",
        f"{SEED}/b": "z@www.example.com w@partner.net",
    }
    loose, _, _ = run_crawl(pages)
    strict, _, _ = run_crawl(pages, strict=True)

    expected = {record.address for record in loose.emails if record.is_domain_match}
    assert strict.addresses == expected
    assert strict.addresses < loose.addresses


def test_max_depth_zero_fetches_only_the_seed(run_crawl):
    pages = {
        SEED: link_page("/next", text="seed@example.com"),
        f"{SEED}/next": "next@example.com",
    }
    result, fetcher, _ = run_crawl(pages, max_depth=0)

    assert fetcher.calls == [SEED]
    assert result.addresses == {"seed@example.com"}
    assert result.visited == [SEED]


def test_depth_budget_is_respected(run_crawl):
    pages = {
        SEED: link_page("/d1"),
        f"{SEED}/d1": link_page("/d2", text="one@example.com"),
        f"{SEED}/d2": link_page("/d3", text="two@example.com"),
        f"{SEED}/d3": "three@example.com",
    }
    result, fetcher, _ = run_crawl(pages, max_depth=2)

    assert set(fetcher.calls) == {SEED, f"{SEED}/d1", f"{SEED}/d2"}
    assert result.addresses == {"one@example.com", "two@example.com"}


def test_no_url_is_fetched_twice_and_visited_is_bounded(run_crawl):
    # a densely linked site where every page links to every other page
    paths = [f"/p{i}" for i in range(12)]
    pages = {SEED: link_page(*paths)}
    for i, path in enumerate(paths):
        pages[SEED + path] = link_page(*paths, "/", text=f"user{i}@example.com")

    extractor = RecordingExtractor(SEED)
    result, fetcher, _ = run_crawl(pages, extractor=extractor, max_depth=3, worker_count=6)

    assert result.state is RunState.COMPLETED
    assert len(fetcher.calls) == len(set(fetcher.calls))
    assert len(result.visited) <= len(extractor.links | {SEED})
    assert len(result.visited) == 13
    assert result.addresses == {f"user{i}@example.com" for i in range(12)}


def test_each_address_is_reported_once(run_crawl):
    pages = {
        SEED: link_page("/a", "/b", text="dup@example.com"),
        f"{SEED}/a": "DUP@example.com",
        f"{SEED}/b": "dup@example.com other@example.com",
    }
    result, _, emitted = run_crawl(pages)

    assert sorted(record.address for record in emitted) == ["dup@example.com", "other@example.com"]
    assert len(result.records) == 2


def test_failing_seed_completes_with_no_results(run_crawl):
    result, fetcher, emitted = run_crawl({SEED: ConnectionFailed(SEED)})

    assert result.state is RunState.COMPLETED
    assert result.emails == []
    assert emitted == []
    assert fetcher.calls == [SEED]
    assert result.stats["fetch_failures"] == 1
    assert result.stats["failures_by_kind"] == {"ConnectionFailed": 1}


def test_fetch_errors_are_skipped(run_crawl):
    pages = {
        SEED: link_page("/missing", "/big", "/gone", "/ok"),
        f"{SEED}/big": TooLarge(f"{SEED}/big", 10),
        f"{SEED}/gone": HTTPStatusError(f"{SEED}/gone", 404),
        f"{SEED}/ok": "ok@example.com",
    }
    result, fetcher, _ = run_crawl(pages)

    assert result.state is RunState.COMPLETED
    assert result.addresses == {"ok@example.com"}
    assert result.stats["fetch_failures"] == 3
    assert result.stats["pages_fetched"] == 2


def test_timeout_returns_partial_results_promptly(run_crawl):
    paths = [f"/p{i}" for i in range(50)]
    pages = {SEED: link_page(*paths)}
    for i, path in enumerate(paths):
        pages[SEED + path] = f"user{i}@example.com"

    started = time.monotonic()
    result, fetcher, emitted = run_crawl(
        pages, delay=0.2, worker_count=2, timeout=0.5, grace_period=0.1, max_depth=1,
    )
    elapsed = time.monotonic() - started

    assert result.state is RunState.TIMED_OUT
    assert result.timed_out
    assert elapsed < 2.0
    assert 0 < len(fetcher.calls) < len(pages)
    assert len(result.emails) < 50
    assert {record.address for record in emitted} == result.addresses


def test_unresponsive_fetch_is_abandoned_after_grace_period():
    release = threading.Event()

    class HangingFetcher(FakeFetcher):
        def fetch(self, url, deadline):
            release.wait(5)
            return super().fetch(url, deadline)

    config = RunConfig(seed_url=SEED, max_depth=1, worker_count=1, timeout=0.2, grace_period=0.1)
    fetcher = HangingFetcher({SEED: "late@example.com"})
    emitted = []
    controller = CrawlController(config, fetcher, HTMLExtractor(SEED), on_email=emitted.append)

    started = time.monotonic()
    result = controller.run()
    elapsed = time.monotonic() - started
    release.set()

    assert result.state is RunState.TIMED_OUT
    assert elapsed < 1.5
    assert result.emails == []
    assert result.stats["workers_abandoned"] == 1

    # the abandoned worker finishes later without reporting anything
    controller.workers[0].join(timeout=2)
    assert emitted == []


def test_extractor_errors_do_not_stall_the_run(run_crawl):
    class BrokenOnContact(HTMLExtractor):
        def extract_emails(self, page):
            if page.url.endswith("/contact"):
                raise RuntimeError("boom")
            return super().extract_emails(page)

    pages = {
        SEED: link_page("/contact", "/team"),
        f"{SEED}/contact": "lost@example.com",
        f"{SEED}/team": "team@example.com",
    }
    result, _, _ = run_crawl(pages, extractor=BrokenOnContact(SEED))

    assert result.state is RunState.COMPLETED
    assert result.addresses == {"team@example.com"}


def test_worker_validates_candidates_from_any_extractor(run_crawl):
    class LooseExtractor(Extractor):
        def extract_links(self, page):
            return {"next"} if page.url == SEED else set()

        def extract_emails(self, page):
            return {" Mixed@Example.com ", "not-an-email", "x@y.zzz"}

    pages = {SEED: "", f"{SEED}/next": ""}
    result, fetcher, _ = run_crawl(pages, extractor=LooseExtractor())

    assert result.addresses == {"mixed@example.com"}
    # relative links from the extractor are resolved against the page URL
    assert f"{SEED}/next" in fetcher.calls


def test_max_pages_limits_the_crawl(run_crawl):
    paths = [f"/p{i}" for i in range(10)]
    pages = {SEED: link_page(*paths)}
    pages.update({SEED + path: "" for path in paths})
    result, fetcher, _ = run_crawl(pages, max_pages=4)

    assert len(fetcher.calls) == 4
    assert len(result.visited) == 4


def test_run_can_only_happen_once():
    config = RunConfig(seed_url=SEED, max_depth=0, worker_count=1, timeout=5)
    controller = CrawlController(config, FakeFetcher({SEED: ""}), HTMLExtractor(SEED))
    assert controller.state is RunState.IDLE
    controller.run()
    assert controller.state is RunState.COMPLETED
    with pytest.raises(RuntimeError):
        controller.run()


def test_stop_cancels_a_running_crawl():
    paths = [f"/p{i}" for i in range(30)]
    pages = {SEED: link_page(*paths)}
    pages.update({SEED + path: "" for path in paths})
    config = RunConfig(seed_url=SEED, max_depth=1, worker_count=2, timeout=30, grace_period=0.5)
    controller = CrawlController(config, FakeFetcher(pages, delay=0.05), HTMLExtractor(SEED))

    timer = threading.Timer(0.2, controller.stop)
    timer.start()
    started = time.monotonic()
    result = controller.run()
    timer.join()

    assert result.state is RunState.CANCELLED
    assert time.monotonic() - started < 5


def test_worker_does_not_fetch_once_cancelled():
    config = RunConfig(seed_url=SEED, max_depth=1, worker_count=1, timeout=5)
    fetcher = FakeFetcher({SEED: "seed@example.com"})
    controller = CrawlController(config, fetcher, HTMLExtractor(SEED))
    worker = CrawlWorker(0, controller)

    controller.cancelled.set()
    worker.process(CrawlTarget(SEED, 0))

    assert fetcher.calls == []
    assert len(controller.store) == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_depth": -1},
        {"worker_count": 0},
        {"timeout": 0},
        {"timeout": float("inf")},
        {"timeout": float("nan")},
        {"timeout": 1e12},
        {"request_timeout": float("inf")},
        {"grace_period": 1e12},
        {"delay": -0.5},
        {"delay": 1e12},
        {"max_pages": -1},
    ],
)
def test_run_config_rejects_unusable_values(overrides):
    with pytest.raises(ValueError):
        RunConfig(seed_url=SEED, **overrides)


def test_run_config_accepts_zero_delay_and_grace():
    config = RunConfig(seed_url=SEED, delay=0, grace_period=0)
    assert config.delay == 0
    assert config.grace_period == 0
