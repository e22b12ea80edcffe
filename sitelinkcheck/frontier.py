"""Thread-safe BFS frontier with an atomic visited set and page ceiling."""

import threading
from collections import deque


class Frontier:
    """Pending-URL queue plus the set of URLs already dispatched.

    All state is guarded by one condition variable, so admission (the
    visited check, the insert and the page-count increment) is a single
    atomic step. A URL handed out by dequeue() counts as in flight until
    the caller reports task_done(); the frontier is exhausted only when
    the queue is empty and nothing is in flight, because an in-flight
    page may still enqueue new links.
    """

    def __init__(self, page_limit: int):
        if page_limit < 1:
            raise ValueError(f"page_limit must be at least 1, got {page_limit}")
        self.page_limit = page_limit
        self._queue: deque[str] = deque()
        self._queued: set[str] = set()   # URLs currently waiting in the queue
        self._visited: set[str] = set()
        self._in_flight = 0
        self._cond = threading.Condition()

    def try_admit(self, url: str) -> bool:
        """Mark a URL as visited.

        Returns True iff the URL was not visited before and the page limit
        has not been reached; the caller then owns processing it.
        """
        return self.admit(url) is not None

    def admit(self, url: str) -> int | None:
        """Like try_admit(), but returns the visit number given to the URL."""
        with self._cond:
            if len(self._visited) >= self.page_limit:
                return None
            if url in self._visited:
                return None
            self._visited.add(url)
            return len(self._visited)

    def enqueue(self, url: str) -> bool:
        """Queue a discovered URL unless it is visited, pending, or over the limit."""
        with self._cond:
            if len(self._visited) >= self.page_limit:
                return False
            if url in self._visited or url in self._queued:
                return False
            self._queue.append(url)
            self._queued.add(url)
            self._cond.notify()
            return True

    def dequeue(self, timeout: float | None = None) -> str | None:
        """Pop the oldest pending URL, waiting up to timeout seconds.

        Returns None if nothing became available in time, or immediately
        once the frontier is exhausted.
        """
        with self._cond:
            if not self._queue and self._in_flight > 0:
                self._cond.wait(timeout)
            if not self._queue:
                return None
            url = self._queue.popleft()
            self._queued.discard(url)
            self._in_flight += 1
            return url

    def task_done(self) -> None:
        """Report that a URL returned by dequeue() is fully processed."""
        with self._cond:
            if self._in_flight <= 0:
                raise ValueError("task_done() called more times than dequeue()")
            self._in_flight -= 1
            if self._in_flight == 0 and not self._queue:
                self._cond.notify_all()

    def wake_all(self) -> None:
        """Wake every waiting worker so it can re-check stop conditions."""
        with self._cond:
            self._cond.notify_all()

    def is_exhausted(self) -> bool:
        with self._cond:
            return not self._queue and self._in_flight == 0

    def limit_reached(self) -> bool:
        with self._cond:
            return len(self._visited) >= self.page_limit

    @property
    def visited_count(self) -> int:
        with self._cond:
            return len(self._visited)

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def __contains__(self, url: str) -> bool:
        with self._cond:
            return url in self._visited
