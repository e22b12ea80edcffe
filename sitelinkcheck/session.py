"""Crawl session state machine and the public start/cancel interface."""

import dataclasses
import enum
import threading

from .collector import ErrorCollector, ErrorRecord
from .config import CrawlConfig
from .dispatcher import CrawlListener, WorkerPool
from .fetcher import ResourceFetcher
from .frontier import Frontier
from .url_resolver import MalformedURL, get_host, is_fetchable, resolve_url


class CrawlStatus(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATES = (CrawlStatus.COMPLETED, CrawlStatus.CANCELLED)


class InvalidSeed(ValueError):
    """The seed URL cannot start a crawl."""


class CrawlStateError(RuntimeError):
    """An operation was attempted in a state that does not allow it."""


def validate_seed(seed_url: str) -> tuple[str, str]:
    """Normalise a seed URL and return it with its origin host.

    Raises:
        InvalidSeed: If the URL is not an absolute http(s) URL with a host.
    """
    if not seed_url or not seed_url.strip():
        raise InvalidSeed("Seed URL is empty")
    seed_url = seed_url.strip()
    try:
        url = resolve_url(seed_url, seed_url)
    except MalformedURL as e:
        raise InvalidSeed(f"Invalid URL: {e}") from e
    host = get_host(url)
    if not is_fetchable(url) or not host:
        raise InvalidSeed(f"Invalid URL: {seed_url!r} is not an absolute http(s) URL")
    return url, host


class CrawlSession:
    """Owns the frontier, visited set and error collector of one crawl.

    States go Idle -> Running -> Completed | Cancelled. A terminal session
    can be started again; each start begins with fresh state. Workers run
    on background threads and report through the listener.
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        listener: CrawlListener | None = None,
        fetcher_factory=ResourceFetcher,
    ):
        self.config = config
        self.listener = listener or CrawlListener()
        self.fetcher_factory = fetcher_factory

        self.start_url: str | None = None
        self.origin_host: str | None = None
        self._status = CrawlStatus.IDLE
        self._frontier: Frontier | None = None
        self._collector = ErrorCollector()
        self._cancel_event = threading.Event()
        self._runner: threading.Thread | None = None
        self._fetcher = None
        self._lock = threading.Lock()
        self._done = threading.Event()

    @property
    def status(self) -> CrawlStatus:
        with self._lock:
            return self._status

    @property
    def visited_count(self) -> int:
        frontier = self._frontier
        return frontier.visited_count if frontier is not None else 0

    @property
    def page_limit(self) -> int | None:
        return self.config.page_limit if self.config is not None else None

    def start(self, seed_url: str | None = None) -> "CrawlSession":
        """Begin a crawl from seed_url (defaults to config.start_url).

        Raises:
            InvalidSeed: If the seed cannot be parsed; the session is unchanged.
            CrawlStateError: If a crawl is already running.
        """
        if seed_url is None:
            if self.config is None:
                raise InvalidSeed("No seed URL given")
            seed_url = self.config.start_url

        with self._lock:
            if self._status is CrawlStatus.RUNNING:
                raise CrawlStateError("A crawl is already running")

            start_url, origin_host = validate_seed(seed_url)

            if self.config is None:
                self.config = CrawlConfig(start_url=start_url)
            else:
                self.config = dataclasses.replace(self.config, start_url=start_url)

            self.start_url = start_url
            self.origin_host = origin_host
            self._frontier = Frontier(self.config.page_limit)
            self._collector = ErrorCollector()
            self._cancel_event = threading.Event()
            self._done = threading.Event()
            self._frontier.enqueue(start_url)
            self._fetcher = self.fetcher_factory(self.config)

            pool = WorkerPool(
                config=self.config,
                origin_host=origin_host,
                frontier=self._frontier,
                collector=self._collector,
                fetcher=self._fetcher,
                listener=self.listener,
                cancel_event=self._cancel_event,
            )
            self._status = CrawlStatus.RUNNING
            self._runner = threading.Thread(
                target=self._run, args=(pool, self._done), name="crawl-session", daemon=True
            )
            self._runner.start()
        return self

    def _run(self, pool: WorkerPool, done: threading.Event) -> None:
        try:
            pool.run()
        finally:
            pool.fetcher.close()
            with self._lock:
                if pool.stopped_by_cancel:
                    self._status = CrawlStatus.CANCELLED
                else:
                    self._status = CrawlStatus.COMPLETED
                status = self._status
            try:
                self.listener.on_finished(status, pool.frontier.visited_count, len(pool.collector))
            finally:
                done.set()

    def cancel(self) -> None:
        """Ask the workers to stop.

        Cooperative: status turns Cancelled only after every worker has
        exited. Use wait() to block until then.

        Raises:
            CrawlStateError: If no crawl is running.
        """
        with self._lock:
            if self._status is not CrawlStatus.RUNNING:
                raise CrawlStateError(f"Cannot cancel a crawl in state {self._status.value}")
            self._cancel_event.set()
            frontier = self._frontier
            fetcher = self._fetcher
        frontier.wake_all()
        fetcher.abort()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the crawl reaches a terminal state.

        Returns True if it did within timeout.
        """
        with self._lock:
            if self._status is CrawlStatus.IDLE:
                return True
            done = self._done
        return done.wait(timeout)

    def snapshot(self) -> tuple[ErrorRecord, ...]:
        """Error records collected so far, in the order they were found."""
        return self._collector.snapshot()


def start_crawl(
    seed_url: str,
    page_limit: int = 10000,
    concurrency: int = 10,
    listener: CrawlListener | None = None,
    fetcher_factory=ResourceFetcher,
    **options,
) -> CrawlSession:
    """Validate the seed and start a crawl on background threads.

    Extra keyword options are passed to CrawlConfig (timeout, verbose, ...).

    Raises:
        InvalidSeed: If the seed URL cannot be parsed.
    """
    validate_seed(seed_url)
    config = CrawlConfig(
        start_url=seed_url,
        page_limit=page_limit,
        concurrency=concurrency,
        **options,
    )
    session = CrawlSession(config, listener=listener, fetcher_factory=fetcher_factory)
    return session.start()


def cancel_crawl(session: CrawlSession) -> None:
    """Cancel a running crawl; returns before the workers have exited."""
    session.cancel()
