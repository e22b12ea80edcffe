"""CLI entry point for SiteLinkCheck.

Usage:
    python -m sitelinkcheck --url URL [options]
"""

import argparse
import sys
import threading

from .collector import ErrorRecord
from .config import CrawlConfig
from .dispatcher import CrawlListener
from .report import save_report
from .session import CrawlSession, CrawlStateError, CrawlStatus, InvalidSeed


def _flush() -> None:
    """Flush stdout so output appears immediately in piped/buffered contexts."""
    sys.stdout.flush()


class ConsoleListener(CrawlListener):
    """Prints crawl events to stdout as they arrive from the workers."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._lock = threading.Lock()

    def _print(self, message: str) -> None:
        with self._lock:
            print(message)
            _flush()

    def on_progress(self, visited_count: int, page_limit: int, url: str = "") -> None:
        self._print(f"[{visited_count}/{page_limit}] {url}")

    def on_error(self, record: ErrorRecord) -> None:
        self._print(f"  [BROKEN] HTTP {record.error_code}: {record.resource_url}")
        if self.verbose:
            self._print(f"    on page {record.page_url}")

    def on_diagnostic(self, url: str, message: str) -> None:
        if self.verbose:
            self._print(f"  [WARN] {message}: {url}")

    def on_finished(self, status, visited_count: int, error_count: int) -> None:
        label = "Crawl complete" if status is CrawlStatus.COMPLETED else "Crawl cancelled"
        self._print(f"\n[DONE] {label}. {visited_count} page(s), {error_count} broken resource(s).")


def parse_args(argv: list[str] | None = None) -> CrawlConfig:
    """Parse command-line arguments into a CrawlConfig.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Populated CrawlConfig instance.
    """
    parser = argparse.ArgumentParser(
        prog="sitelinkcheck",
        description="SiteLinkCheck - Crawl one site and report broken stylesheets, scripts, images, videos and iframes.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check a whole site
  python -m sitelinkcheck --url "https://example.com/"

  # Stop after 200 pages, 20 parallel workers
  python -m sitelinkcheck --url "https://example.com/" --max-pages 200 --concurrency 20

  # Write the report somewhere else and show per-URL warnings
  python -m sitelinkcheck --url "https://example.com/" --output reports/example.csv --verbose
        """,
    )

    parser.add_argument(
        "--url",
        required=True,
        help="Starting URL; only pages on the same host are crawled (e.g., https://example.com/)",
    )

    parser.add_argument(
        "--max-pages",
        type=int,
        default=10000,
        help="Maximum number of pages to visit (default: 10000)",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        default=10,
        help="Number of parallel workers (default: 10)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=30,
        help="Request timeout in seconds (default: 30)",
    )

    parser.add_argument(
        "--output",
        default="error_details.csv",
        help="Report file for broken resources (default: error_details.csv)",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Show per-URL warnings (failed pages, unreachable resources, non-HTML content)",
    )

    args = parser.parse_args(argv)

    try:
        return CrawlConfig(
            start_url=args.url,
            page_limit=args.max_pages,
            concurrency=args.concurrency,
            timeout=args.timeout,
            output_file=args.output,
            verbose=args.verbose,
        )
    except ValueError as e:
        parser.error(str(e))


def _print_summary(session: CrawlSession, records: tuple[ErrorRecord, ...]) -> None:
    """Print a crawl summary after completion."""
    print()
    print("=" * 70)
    print(f"  Status:            {session.status.value}")
    print(f"  Pages visited:     {session.visited_count}")
    print(f"  Broken resources:  {len(records)}")
    print("=" * 70)

    if records:
        print()
        print("  Broken resources:")
        for record in records:
            print(f"    [{record.error_code}] {record.resource_url}")
            print(f"          on {record.page_url}")
        print()
    _flush()


def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    config = parse_args(argv)
    session = CrawlSession(config, listener=ConsoleListener(verbose=config.verbose))

    try:
        session.start()
    except InvalidSeed as e:
        print(f"[ERROR] {e}")
        return 2

    print("=" * 70)
    print("  SiteLinkCheck - Starting crawl")
    print(f"  URL:         {session.start_url}")
    print(f"  Host:        {session.origin_host}")
    print(f"  Max pages:   {config.page_limit}")
    print(f"  Concurrency: {config.concurrency} | Timeout: {config.timeout}s")
    print(f"  Report:      {config.output_file}")
    print("=" * 70)
    print()
    _flush()

    try:
        while not session.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("\n\n[INTERRUPTED] Cancelling crawl, waiting for workers to stop...")
        _flush()
        try:
            session.cancel()
        except CrawlStateError:
            pass  # Finished on its own in the meantime
        session.wait()

    records = session.snapshot()
    _print_summary(session, records)

    if records:
        if save_report(records, config.output_file):
            print(f"[SAVED] {config.output_file}")
    else:
        print("No error pages to save.")
    _flush()

    if session.status is CrawlStatus.CANCELLED or records:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
