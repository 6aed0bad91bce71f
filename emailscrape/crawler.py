"""Concurrent crawl engine: the worker pool and the run controller that owns it."""

from __future__ import annotations

import logging
import threading
import time

from emailscrape.classifier import DomainClassifier
from emailscrape.errors import FetchError, MalformedURL
from emailscrape.extractor import is_valid_email
from emailscrape.frontier import EmailStore, Frontier
from emailscrape.models import CrawlResult, CrawlTarget, RunConfig, RunState
from emailscrape.urls import normalize_url

logger = logging.getLogger(__name__)


class CrawlWorker(threading.Thread):
    """One member of the pool: dequeue, fetch, extract, enqueue, repeat.

    Workers are daemon threads so a fetch that outlives the grace period can
    be abandoned without holding up the interpreter.
    """

    def __init__(self, worker_id: int, controller: CrawlController):
        super().__init__(name=f"crawl-worker-{worker_id}", daemon=True)
        self.controller = controller
        self.frontier = controller.frontier
        self.cancelled = controller.cancelled

    def run(self) -> None:
        delay = self.controller.config.delay
        while not self.cancelled.is_set():
            target = self.frontier.dequeue()
            if target is None:
                break
            try:
                self.process(target)
            except Exception:
                logger.exception("Unexpected error while processing %s", target.url)
            finally:
                self.frontier.task_done()
            if delay and self.cancelled.wait(delay):
                break
        logger.debug("%s exiting", self.name)

    def process(self, target: CrawlTarget) -> None:
        controller = self.controller
        config = controller.config

        remaining = controller.remaining()
        if remaining <= 0 or self.cancelled.is_set():
            return
        deadline = min(config.request_timeout, remaining)

        try:
            page = controller.fetcher.fetch(target.url, deadline)
        except FetchError as e:
            logger.debug("Fetch failed for %s: %s", target.url, e)
            controller.record_failure(e)
            return
        controller.increment('pages_fetched')

        for candidate in controller.extractor.extract_emails(page):
            address = candidate.strip().lower()
            if not is_valid_email(address):
                continue
            record = controller.classifier.classify(address, target.url)
            controller.store.add(record, on_new=controller.emit)

        if target.depth >= config.max_depth or self.cancelled.is_set():
            return

        for link in controller.extractor.extract_links(page):
            try:
                url = normalize_url(link, base=page.url)
            except MalformedURL:
                continue
            if self.frontier.try_enqueue(CrawlTarget(url, target.depth + 1)):
                controller.increment('links_enqueued')


class CrawlController:
    """Owns a single crawl run from seeding to the final result.

    ``run()`` moves the controller from ``IDLE`` to ``RUNNING`` and returns a
    :class:`CrawlResult` once the frontier is exhausted (``COMPLETED``), the
    run timeout elapses (``TIMED_OUT``) or :meth:`stop` is called
    (``CANCELLED``). Only the first two are reached in normal operation and
    neither is an error.
    """

    def __init__(self, config: RunConfig, fetcher, extractor, on_email=None, classifier=None):
        self.config = config
        self.fetcher = fetcher
        self.extractor = extractor
        self.on_email = on_email
        self.classifier = classifier or DomainClassifier(config.seed_url)
        self.frontier = Frontier(config.max_depth, config.max_pages)
        self.store = EmailStore()
        self.cancelled = threading.Event()
        self.state = RunState.IDLE
        self.workers: list[CrawlWorker] = []

        self._state_lock = threading.Lock()
        self._stop_requested = False
        self._stats_lock = threading.Lock()
        self._stats = {
            'pages_fetched': 0,
            'fetch_failures': 0,
            'failures_by_kind': {},
            'links_enqueued': 0,
        }
        self._started = None
        self._deadline = None
        self._seed = None

    def remaining(self) -> float:
        if self._deadline is None:
            return self.config.timeout
        return max(0.0, self._deadline - time.monotonic())

    def increment(self, key, amount=1):
        with self._stats_lock:
            self._stats[key] += amount

    def record_failure(self, error: FetchError):
        kind = type(error).__name__
        with self._stats_lock:
            self._stats['fetch_failures'] += 1
            by_kind = self._stats['failures_by_kind']
            by_kind[kind] = by_kind.get(kind, 0) + 1

    def emit(self, record):
        if self.on_email is None:
            return
        try:
            self.on_email(record)
        except Exception:
            logger.exception("on_email callback failed for %s", record.address)

    def run(self) -> CrawlResult:
        seed = normalize_url(self.config.seed_url)

        with self._state_lock:
            if self.state is not RunState.IDLE:
                raise RuntimeError("a CrawlController can only run once")
            self.state = RunState.RUNNING

        self._seed = seed
        self._started = time.monotonic()
        self._deadline = self._started + self.config.timeout

        self.frontier.try_enqueue(CrawlTarget(seed, 0))
        logger.debug("Seeded frontier with %s, starting %d workers",
                     seed, self.config.worker_count)

        self.workers = [CrawlWorker(i, self) for i in range(self.config.worker_count)]
        for worker in self.workers:
            worker.start()

        try:
            finished = self.frontier.wait_closed(timeout=self.config.timeout)
        except KeyboardInterrupt:
            logger.debug("Interrupted, stopping workers")
            self._stop_requested = True
            finished = False

        if self._stop_requested:
            final_state = RunState.CANCELLED
        elif finished:
            final_state = RunState.COMPLETED
        else:
            final_state = RunState.TIMED_OUT
            logger.debug("Run timeout of %ss reached", self.config.timeout)

        self._shutdown()
        with self._state_lock:
            self.state = final_state
        return self._result()

    def stop(self) -> None:
        """Ask a running crawl to wind down; ``run()`` then returns ``CANCELLED``."""
        self._stop_requested = True
        self.cancelled.set()
        self.frontier.close()

    def _shutdown(self):
        self.cancelled.set()
        self.frontier.close()

        grace_ends = time.monotonic() + self.config.grace_period
        for worker in self.workers:
            worker.join(max(0.0, grace_ends - time.monotonic()))

        abandoned = [worker.name for worker in self.workers if worker.is_alive()]
        if abandoned:
            logger.debug("Abandoning %d workers still busy after grace period: %s",
                         len(abandoned), ", ".join(abandoned))
        # Late results from abandoned workers are dropped.
        self.store.seal()
        with self._stats_lock:
            self._stats['workers_abandoned'] = len(abandoned)

    def _result(self) -> CrawlResult:
        with self._stats_lock:
            stats = dict(self._stats, failures_by_kind=dict(self._stats['failures_by_kind']))
        records = self.store.records()
        stats['emails_found'] = len(records)
        return CrawlResult(
            state=self.state,
            seed_url=self._seed,
            seed_domain=self.classifier.seed_domain,
            strict=self.config.strict,
            records=records,
            visited=self.frontier.visited(),
            stats=stats,
            duration=time.monotonic() - self._started,
        )
