"""Value types shared by the crawl engine, its ports and the CLI."""

from __future__ import annotations

import enum
import math
import threading
from dataclasses import dataclass, field

# Longest wait the threading primitives accept.
MAX_SECONDS = threading.TIMEOUT_MAX


def check_seconds(name, value, allow_zero=False):
    """Reject durations that are negative, not finite or too long to wait on."""
    if not math.isfinite(value) or value < 0 or (value == 0 and not allow_zero):
        bound = '>= 0' if allow_zero else '> 0'
        raise ValueError(f"{name} must be a finite number {bound}, got {value}")
    if value > MAX_SECONDS:
        raise ValueError(f"{name} must be at most {MAX_SECONDS:g} seconds, got {value}")


@dataclass(frozen=True)
class CrawlTarget:
    url: str
    depth: int = 0

    def __post_init__(self) -> None:
        if self.depth < 0:
            raise ValueError(f"depth must be >= 0, got {self.depth}")


@dataclass(frozen=True)
class EmailRecord:
    address: str
    source_url: str
    is_domain_match: bool


@dataclass(frozen=True)
class Page:
    """A successfully fetched page; ``url`` is the final URL after redirects."""

    url: str
    text: str
    status: int = 200


@dataclass(frozen=True)
class RunConfig:
    """Settings for a single crawl. Read-only once the run starts."""

    seed_url: str
    max_depth: int = 2
    worker_count: int = 4
    timeout: float = 60.0
    strict: bool = False
    request_timeout: float = 10.0
    grace_period: float = 2.0
    max_pages: int = 0
    delay: float = 0.0
    same_domain: bool = False

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.worker_count < 1:
            raise ValueError("worker_count must be >= 1")
        check_seconds("timeout", self.timeout)
        check_seconds("request_timeout", self.request_timeout)
        check_seconds("grace_period", self.grace_period, allow_zero=True)
        check_seconds("delay", self.delay, allow_zero=True)
        if self.max_pages < 0:
            raise ValueError("max_pages must be >= 0")


class RunState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class CrawlResult:
    state: RunState
    seed_url: str
    seed_domain: str
    strict: bool
    records: list[EmailRecord] = field(default_factory=list)
    visited: list[str] = field(default_factory=list)
    stats: dict = field(default_factory=dict)
    duration: float = 0.0

    @property
    def emails(self) -> list[EmailRecord]:
        """Records to report: everything, or only domain matches in strict mode."""
        if not self.strict:
            return list(self.records)
        return [record for record in self.records if record.is_domain_match]

    @property
    def addresses(self) -> set[str]:
        return {record.address for record in self.emails}

    @property
    def timed_out(self) -> bool:
        return self.state is RunState.TIMED_OUT
