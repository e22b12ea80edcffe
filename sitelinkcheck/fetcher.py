"""HTTP access for the crawl: page GETs and resource HEAD checks."""

import enum
import socket
import threading
import time
import weakref
from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from .config import CrawlConfig

CHUNK_SIZE = 8192
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class FetchError(Exception):
    """Transport-level failure while talking to a server."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message}: {url}")
        self.url = url
        self.message = message


class NetworkError(FetchError):
    """Connection failure, DNS error, broken transfer and the like."""


class FetchTimeout(FetchError):
    """No complete response before the deadline."""


class FetchCancelled(Exception):
    """The crawl was cancelled while the request was pending."""

    def __init__(self, url: str):
        super().__init__(f"Cancelled: {url}")
        self.url = url


@dataclass
class PageResponse:
    """Result of a page GET.

    body is only populated for successful HTML responses; other responses
    are closed without transferring their content.
    """

    url: str
    status_code: int
    content_type: str = ""
    body: bytes | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return _is_html(self.content_type)


class ResourceOutcome(enum.Enum):
    OK = "ok"
    HTTP_ERROR = "http_error"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a HEAD check: a status code, or the transport failure."""

    url: str
    status_code: int | None = None
    failure: str | None = None

    @property
    def outcome(self) -> ResourceOutcome:
        if self.status_code is None:
            return ResourceOutcome.UNREACHABLE
        if 400 <= self.status_code <= 599:
            return ResourceOutcome.HTTP_ERROR
        return ResourceOutcome.OK

    @property
    def is_broken(self) -> bool:
        return self.outcome is ResourceOutcome.HTTP_ERROR


class _ConnectionRegistry:
    """Live connections of one fetcher, so cancellation can shut their sockets."""

    def __init__(self):
        self._connections = weakref.WeakSet()
        self._lock = threading.Lock()
        self.aborted = False

    def add(self, conn) -> None:
        with self._lock:
            self._connections.add(conn)
            aborted = self.aborted
        # A connection opened after abort_all() is shut as soon as it exists
        if aborted:
            _shutdown(conn)

    def abort_all(self) -> None:
        with self._lock:
            self.aborted = True
            connections = list(self._connections)
        for conn in connections:
            _shutdown(conn)


def _shutdown(conn) -> None:
    """Shut a connection's socket down, waking any thread blocked reading it."""
    sock = getattr(conn, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass  # Already closed by the owning thread


def _tracked_pool(pool_cls, conn_cls, registry: _ConnectionRegistry):
    """Build a pool class whose connections register themselves on connect."""

    class TrackedConnection(conn_cls):
        def connect(self):
            super().connect()
            registry.add(self)

    return type(pool_cls.__name__, (pool_cls,), {"ConnectionCls": TrackedConnection})


class AbortableAdapter(HTTPAdapter):
    """HTTPAdapter whose open sockets can be shut from another thread."""

    def __init__(self, registry: _ConnectionRegistry, **kwargs):
        self.registry = registry
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _tracked_pool(HTTPConnectionPool, HTTPConnection, self.registry),
            "https": _tracked_pool(HTTPSConnectionPool, HTTPSConnection, self.registry),
        }


class ResourceFetcher:
    """Performs GET and HEAD requests with cancellation support.

    Each worker thread gets its own requests.Session so connection pools
    are never shared between threads. The cancel event is checked before a
    request is sent, between body chunks and once the response arrives.
    abort() shuts the sockets of every open connection, so a request
    blocked on the server fails at once and surfaces as FetchCancelled.
    """

    def __init__(self, config: CrawlConfig):
        self.config = config
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()
        self._connections = _ConnectionRegistry()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            adapter = AbortableAdapter(self._connections)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            session.headers.update({
                "User-Agent": self.config.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
                "Accept-Encoding": "gzip, deflate",
            })
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def fetch_page(self, url: str, cancel_event: threading.Event | None = None) -> PageResponse:
        """Download a page body with GET.

        Args:
            url: Page URL.
            cancel_event: Set by the session to abort the transfer.

        Returns:
            PageResponse; body is None for non-2xx or non-HTML responses.

        Raises:
            NetworkError, FetchTimeout: On transport failure.
            FetchCancelled: If the cancel event is set before completion.
        """
        _raise_if_cancelled(url, cancel_event)
        deadline = time.monotonic() + self.config.timeout

        try:
            response = self._session().get(
                url,
                timeout=self.config.timeout,
                allow_redirects=True,
                stream=True,
            )
        except requests.exceptions.Timeout as e:
            _raise_if_cancelled(url, cancel_event)
            raise FetchTimeout(url, "Timed out waiting for page") from e
        except requests.exceptions.RequestException as e:
            _raise_if_cancelled(url, cancel_event)
            raise NetworkError(url, f"GET failed ({type(e).__name__})") from e

        with response:
            _raise_if_cancelled(url, cancel_event)
            page = PageResponse(
                url=url,
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type", ""),
            )
            if not page.ok or not page.is_html:
                return page

            chunks = []
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    _raise_if_cancelled(url, cancel_event)
                    if time.monotonic() > deadline:
                        raise FetchTimeout(url, "Page transfer exceeded deadline")
                    chunks.append(chunk)
            except requests.exceptions.RequestException as e:
                _raise_if_cancelled(url, cancel_event)
                raise NetworkError(url, f"Transfer failed ({type(e).__name__})") from e

            page.body = b"".join(chunks)
            return page

    def check_resource(self, url: str, cancel_event: threading.Event | None = None) -> CheckResult:
        """Probe a resource with HEAD.

        Any HTTP response counts as a completed check, including 4xx and
        5xx. Transport failures produce an UNREACHABLE result instead of
        raising.

        Raises:
            FetchCancelled: If the cancel event is set.
        """
        _raise_if_cancelled(url, cancel_event)

        try:
            response = self._session().head(
                url,
                timeout=self.config.timeout,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout:
            _raise_if_cancelled(url, cancel_event)
            return CheckResult(url=url, failure="Timeout")
        except requests.exceptions.RequestException as e:
            _raise_if_cancelled(url, cancel_event)
            return CheckResult(url=url, failure=type(e).__name__)

        response.close()
        _raise_if_cancelled(url, cancel_event)
        return CheckResult(url=url, status_code=response.status_code)

    def abort(self) -> None:
        """Shut every open connection; later connections are shut on open.

        Called from the cancelling thread. Requests blocked in other
        threads fail immediately.
        """
        self._connections.abort_all()

    def close(self) -> None:
        """Close the sessions opened by every worker thread."""
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()


def _raise_if_cancelled(url: str, cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise FetchCancelled(url)


def _is_html(content_type: str) -> bool:
    # Servers that omit the header usually serve HTML
    if not content_type:
        return True
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime in HTML_CONTENT_TYPES
