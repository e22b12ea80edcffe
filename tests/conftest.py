"""Shared fixtures: an in-memory site served by a fake fetcher."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from sitelinkcheck.dispatcher import CrawlListener
from sitelinkcheck.fetcher import CheckResult, FetchCancelled, NetworkError, PageResponse


class FakeFetcher:
    """Stands in for ResourceFetcher, serving pages and resources from dicts.

    pages maps URL -> HTML string (served as 200 text/html) or a ready
    PageResponse; unknown pages raise NetworkError. resources maps
    URL -> status code, or None to simulate a transport failure; unknown
    resources answer 200. URLs listed in blocking are held until the
    cancel event fires.
    """

    def __init__(self, pages=None, resources=None, delay=0.0, blocking=()):
        self.pages = pages or {}
        self.resources = resources or {}
        self.delay = delay
        self.blocking = set(blocking)
        self.page_requests = []
        self.resource_requests = []
        self.active = 0
        self.max_active = 0
        self.closed = False
        self.aborted = False
        self._lock = threading.Lock()

    def __call__(self, config):
        # Lets the instance itself be passed as a fetcher_factory
        return self

    def _enter(self, log, url):
        with self._lock:
            log.append(url)
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def _exit(self):
        with self._lock:
            self.active -= 1

    def _pause(self, url, cancel_event):
        if url in self.blocking:
            cancel_event.wait(10)
        elif self.delay:
            time.sleep(self.delay)
        if cancel_event is not None and cancel_event.is_set():
            raise FetchCancelled(url)

    def fetch_page(self, url, cancel_event=None):
        if cancel_event is not None and cancel_event.is_set():
            raise FetchCancelled(url)
        self._enter(self.page_requests, url)
        try:
            self._pause(url, cancel_event)
            page = self.pages.get(url)
            if page is None:
                raise NetworkError(url, "Connection refused")
            if isinstance(page, PageResponse):
                return page
            return PageResponse(
                url=url,
                status_code=200,
                content_type="text/html; charset=utf-8",
                body=page.encode("utf-8"),
            )
        finally:
            self._exit()

    def check_resource(self, url, cancel_event=None):
        if cancel_event is not None and cancel_event.is_set():
            raise FetchCancelled(url)
        self._enter(self.resource_requests, url)
        try:
            self._pause(url, cancel_event)
            status = self.resources.get(url, 200)
            if status is None:
                return CheckResult(url=url, failure="ConnectionError")
            return CheckResult(url=url, status_code=status)
        finally:
            self._exit()

    def abort(self):
        self.aborted = True

    def close(self):
        self.closed = True


class RecordingListener(CrawlListener):
    def __init__(self):
        self.progress = []
        self.errors = []
        self.diagnostics = []
        self.finished = []
        self._lock = threading.Lock()

    def on_progress(self, visited_count, page_limit, url=""):
        with self._lock:
            self.progress.append((visited_count, page_limit, url))

    def on_error(self, record):
        with self._lock:
            self.errors.append(record)

    def on_diagnostic(self, url, message):
        with self._lock:
            self.diagnostics.append((url, message))

    def on_finished(self, status, visited_count, error_count):
        self.finished.append((status, visited_count, error_count))


def wait_until(predicate, timeout=5.0):
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def listener():
    return RecordingListener()


class LocalSite:
    """A real HTTP server on 127.0.0.1 serving a small fixed site.

    routes maps path -> (status, content_type, body). Paths in slow are
    held until release is set, so a client sits waiting for the response
    headers. Every request is logged as (method, path).
    """

    def __init__(self, routes, slow=()):
        self.routes = routes
        self.slow = set(slow)
        self.release = threading.Event()
        self.requests = []
        self._lock = threading.Lock()
        self.server = ThreadingHTTPServer(("127.0.0.1", 0), self._handler_class())
        self.server.daemon_threads = True
        self.server.handle_error = lambda request, client_address: None
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    @property
    def base_url(self):
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}"

    def url(self, path):
        return self.base_url + path

    def seen(self, method, path):
        with self._lock:
            return (method, path) in self.requests

    def request_count(self):
        with self._lock:
            return len(self.requests)

    def _handler_class(self):
        site = self

        class Handler(BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"

            def log_message(self, format, *args):
                pass

            def _reply(self, send_body):
                with site._lock:
                    site.requests.append((self.command, self.path))
                if self.path in site.slow:
                    site.release.wait(30)
                status, content_type, body = site.routes.get(self.path, (404, "text/plain", b"missing"))
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                if send_body:
                    self.wfile.write(body)

            def do_GET(self):
                self._reply(send_body=True)

            def do_HEAD(self):
                self._reply(send_body=False)

        return Handler

    def start(self):
        self.thread.start()
        return self

    def stop(self):
        self.release.set()
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def local_site(monkeypatch):
    """Factory for LocalSite servers, stopped when the test ends."""
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
    sites = []

    def make(routes, slow=()):
        site = LocalSite(routes, slow).start()
        sites.append(site)
        return site

    yield make
    for site in sites:
        site.stop()
