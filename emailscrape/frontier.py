"""Thread-safe shared state of a crawl: the URL frontier and the found emails."""

from __future__ import annotations

import logging
import threading
from collections import deque

from emailscrape.errors import MalformedURL
from emailscrape.models import CrawlTarget, EmailRecord
from emailscrape.urls import normalize_url

logger = logging.getLogger(__name__)


class Frontier:
    """Visited set plus a closeable blocking queue of pending targets.

    Every target handed out by :meth:`dequeue` must be acknowledged with
    :meth:`task_done`. When nothing is queued and nothing is in flight the
    frontier closes itself, which is how the pool knows the crawl is over.
    """

    def __init__(self, max_depth: int, max_pages: int = 0):
        self.max_depth = max_depth
        self.max_pages = max_pages
        self._visited: set[str] = set()
        self._pending: deque[CrawlTarget] = deque()
        self._unfinished = 0
        self._closed = False
        self._cond = threading.Condition()

    def try_enqueue(self, target: CrawlTarget) -> bool:
        """Queue ``target`` unless its URL was seen before. Returns True if queued."""
        if target.depth > self.max_depth:
            return False
        try:
            url = normalize_url(target.url)
        except MalformedURL:
            logger.debug("Dropping malformed URL %r", target.url)
            return False

        with self._cond:
            if self._closed or url in self._visited:
                return False
            if self.max_pages and len(self._visited) >= self.max_pages:
                return False
            self._visited.add(url)
            if url != target.url:
                target = CrawlTarget(url, target.depth)
            self._pending.append(target)
            self._unfinished += 1
            self._cond.notify()
        return True

    def dequeue(self) -> CrawlTarget | None:
        """Block until a target is available; ``None`` once the frontier is closed."""
        with self._cond:
            while not self._pending and not self._closed:
                self._cond.wait()
            if self._closed:
                return None
            return self._pending.popleft()

    def task_done(self) -> None:
        with self._cond:
            if self._unfinished <= 0:
                raise ValueError("task_done() called more times than targets were dequeued")
            self._unfinished -= 1
            if self._unfinished == 0 and not self._pending:
                self._close_locked()

    def close(self) -> None:
        """Refuse all further work. Queued targets are discarded."""
        with self._cond:
            self._close_locked()

    def _close_locked(self):
        if self._closed:
            return
        dropped = len(self._pending)
        self._pending.clear()
        self._closed = True
        self._cond.notify_all()
        if dropped:
            logger.debug("Frontier closed with %d pending targets discarded", dropped)

    def wait_closed(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._closed, timeout=timeout)

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def visited(self) -> list[str]:
        with self._cond:
            return sorted(self._visited)

    def __contains__(self, url) -> bool:
        try:
            url = normalize_url(url)
        except MalformedURL:
            return False
        with self._cond:
            return url in self._visited

    def __len__(self) -> int:
        with self._cond:
            return len(self._pending)


class EmailStore:
    """Append-only set of :class:`EmailRecord`, keyed by address.

    Once sealed, further additions are refused so that results arriving after
    the run has been reported are neither stored nor emitted.
    """

    def __init__(self):
        self._records: dict[str, EmailRecord] = {}
        self._sealed = False
        self._lock = threading.Lock()

    def add(self, record: EmailRecord, on_new=None) -> bool:
        """Store ``record`` unless its address is known. Returns True if stored.

        ``on_new`` runs under the store lock, so nothing is emitted after
        :meth:`seal` returns.
        """
        key = record.address.lower()
        with self._lock:
            if self._sealed or key in self._records:
                return False
            self._records[key] = record
            if on_new is not None:
                on_new(record)
            return True

    def seal(self) -> None:
        with self._lock:
            self._sealed = True

    def records(self, strict: bool = False) -> list[EmailRecord]:
        with self._lock:
            records = list(self._records.values())
        if strict:
            records = [record for record in records if record.is_domain_match]
        return sorted(records, key=lambda record: record.address)

    def __contains__(self, address) -> bool:
        with self._lock:
            return address.lower() in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
