"""EmailScrape - concurrent website crawler that reports the email addresses it finds."""

__version__ = "1.0.0"

from emailscrape.classifier import DomainClassifier, is_match
from emailscrape.crawler import CrawlController, CrawlWorker
from emailscrape.errors import (
    ConnectionFailed,
    FetchError,
    FetchTimeout,
    HTTPStatusError,
    MalformedURL,
    TooLarge,
)
from emailscrape.extractor import Extractor, HTMLExtractor
from emailscrape.fetcher import Fetcher, RequestsFetcher
from emailscrape.frontier import EmailStore, Frontier
from emailscrape.models import CrawlResult, CrawlTarget, EmailRecord, Page, RunConfig, RunState
from emailscrape.urls import normalize_url, registered_domain

__all__ = [
    "ConnectionFailed",
    "CrawlController",
    "CrawlResult",
    "CrawlTarget",
    "CrawlWorker",
    "DomainClassifier",
    "EmailRecord",
    "EmailStore",
    "Extractor",
    "FetchError",
    "FetchTimeout",
    "Fetcher",
    "Frontier",
    "HTMLExtractor",
    "HTTPStatusError",
    "MalformedURL",
    "Page",
    "RequestsFetcher",
    "RunConfig",
    "RunState",
    "TooLarge",
    "is_match",
    "normalize_url",
    "registered_domain",
]
