"""Test configuration and shared fixtures."""

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from emailscrape.crawler import CrawlController
from emailscrape.extractor import HTMLExtractor
from emailscrape.models import RunConfig
from tests.util_factories import FakeFetcher


@pytest.fixture
def make_site():
    def factory(pages, delay=0.0):
        return FakeFetcher(pages, delay=delay)
    return factory


@pytest.fixture
def run_crawl():
    """Run a crawl against an in-memory site; returns (result, fetcher, emitted)."""

    def runner(pages, seed="https://example.com", delay=0.0, extractor=None, **overrides):
        options = dict(seed_url=seed, max_depth=2, worker_count=4, timeout=10, grace_period=0.5)
        options.update(overrides)
        config = RunConfig(**options)
        fetcher = FakeFetcher(pages, delay=delay)
        emitted = []
        controller = CrawlController(
            config,
            fetcher,
            extractor or HTMLExtractor(seed),
            on_email=emitted.append,
        )
        result = controller.run()
        return result, fetcher, emitted

    return runner
