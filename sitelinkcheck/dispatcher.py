"""Worker pool that drives the crawl: fetch, extract, validate, enqueue."""

import threading

from .collector import ErrorCollector, ErrorRecord
from .config import CrawlConfig
from .fetcher import FetchCancelled, FetchError, ResourceFetcher, ResourceOutcome
from .frontier import Frontier
from .html_extractor import extract_links
from .url_resolver import is_in_scope


class CrawlListener:
    """Observer for crawl events. Override the hooks you need.

    Hooks are called from worker threads (on_finished from the session's
    runner thread), so implementations must be thread-safe.
    """

    def on_progress(self, visited_count: int, page_limit: int, url: str = "") -> None:
        pass

    def on_error(self, record: ErrorRecord) -> None:
        pass

    def on_diagnostic(self, url: str, message: str) -> None:
        pass

    def on_finished(self, status, visited_count: int, error_count: int) -> None:
        pass


class WorkerPool:
    """Runs config.concurrency workers against a shared frontier.

    Each worker issues one request at a time, so no more than
    config.concurrency requests are in flight. Workers stop when the
    frontier is exhausted, the page limit is reached, or the cancel event
    is set.
    """

    def __init__(
        self,
        config: CrawlConfig,
        origin_host: str,
        frontier: Frontier,
        collector: ErrorCollector,
        fetcher: ResourceFetcher,
        listener: CrawlListener,
        cancel_event: threading.Event,
    ):
        self.config = config
        self.origin_host = origin_host
        self.frontier = frontier
        self.collector = collector
        self.fetcher = fetcher
        self.listener = listener
        self.cancel_event = cancel_event
        self.workers: list[threading.Thread] = []
        self.stopped_by_cancel = False  # True once any worker quits on the cancel signal

    def run(self) -> None:
        """Start the workers and block until all of them have exited."""
        self.workers = [
            threading.Thread(target=self._worker_loop, name=f"crawl-worker-{i}", daemon=True)
            for i in range(self.config.concurrency)
        ]
        for worker in self.workers:
            worker.start()
        for worker in self.workers:
            worker.join()

    def _worker_loop(self) -> None:
        while True:
            if self.cancel_event.is_set():
                self.stopped_by_cancel = True
                break
            if self.frontier.limit_reached():
                break

            url = self.frontier.dequeue(timeout=self.config.poll_interval)
            if url is None:
                if self.frontier.is_exhausted():
                    break
                continue

            try:
                self._crawl_step(url)
            except FetchCancelled:
                self.stopped_by_cancel = True
                break
            except Exception as e:
                # A failure on one page must not take the worker down
                self.listener.on_diagnostic(url, f"Unexpected {type(e).__name__}: {e}")
            finally:
                self.frontier.task_done()

    def _crawl_step(self, url: str) -> None:
        # Scope and visited state are re-checked here: membership may have
        # changed since the URL was enqueued.
        if not is_in_scope(url, self.origin_host):
            return
        visit_number = self.frontier.admit(url)
        if visit_number is None:
            return

        self.listener.on_progress(visit_number, self.frontier.page_limit, url)

        try:
            page = self.fetcher.fetch_page(url, self.cancel_event)
        except FetchError as e:
            self.listener.on_diagnostic(url, e.message)
            return

        if not page.ok:
            self.listener.on_diagnostic(url, f"Page returned HTTP {page.status_code}")
            return
        if page.body is None:
            self.listener.on_diagnostic(url, f"Non-HTML content: {page.content_type}")
            return

        links = extract_links(url, page.body)

        for resource in links.resource_links:
            if not is_in_scope(resource.url, self.origin_host):
                continue
            result = self.fetcher.check_resource(resource.url, self.cancel_event)
            if self.cancel_event.is_set():
                raise FetchCancelled(resource.url)
            if result.is_broken:
                record = ErrorRecord(
                    page_url=url,
                    resource_url=resource.url,
                    error_code=result.status_code,
                )
                self.collector.record(record)
                self.listener.on_error(record)
            elif result.outcome is ResourceOutcome.UNREACHABLE:
                self.listener.on_diagnostic(
                    resource.url, f"Unreachable {resource.kind.value} ({result.failure})"
                )

        for link in links.nav_links:
            if is_in_scope(link, self.origin_host) and link not in self.frontier:
                self.frontier.enqueue(link)
