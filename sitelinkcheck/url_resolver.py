"""URL resolution, normalisation and same-origin scope checking."""

from urllib.parse import urljoin, urlparse, urlunparse

FETCHABLE_SCHEMES = ("http", "https")


class MalformedURL(ValueError):
    """Raised when a reference cannot be parsed as a URL or URL reference."""


def resolve_url(base_url: str, href: str) -> str:
    """Resolve a potentially relative href against a base URL.

    Examples:
        base = "http://x.test/docs/index.html"
        href = "../img/logo.png"
        result = "http://x.test/img/logo.png"

        base = "http://x.test/a/b"
        href = "//cdn.x.test/app.js"
        result = "http://cdn.x.test/app.js"

    Args:
        base_url: The page URL where the href was found.
        href: The raw attribute value.

    Returns:
        Fully resolved absolute URL with the fragment removed.

    Raises:
        MalformedURL: If the href is empty or cannot be parsed.
    """
    if href is None:
        raise MalformedURL("missing reference")

    href = href.strip()
    if not href:
        raise MalformedURL("empty reference")
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in href):
        raise MalformedURL(f"control character in reference: {href!r}")

    try:
        resolved = urljoin(base_url, href)
        parsed = urlparse(resolved)
        # Accessing .port validates it; urlparse alone does not.
        parsed.port
    except ValueError as e:
        raise MalformedURL(f"cannot parse {href!r}: {e}") from e

    if parsed.scheme in FETCHABLE_SCHEMES and not parsed.hostname:
        raise MalformedURL(f"no host in {resolved!r}")

    return _normalize_url(resolved)


def _normalize_url(url: str) -> str:
    """Normalize a URL for consistent comparison.

    Removes the fragment and collapses repeated slashes in the path.

    Args:
        url: URL to normalize.

    Returns:
        Normalized URL string.
    """
    parsed = urlparse(url)

    path = parsed.path
    while "//" in path:
        path = path.replace("//", "/")

    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        path,
        parsed.params,
        parsed.query,
        "",  # Remove fragment
    ))


def get_host(url: str) -> str | None:
    """Return the lower-cased host of a URL, without port.

    Returns None when the URL has no host or cannot be parsed.
    """
    if not url:
        return None
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def is_in_scope(url: str, origin_host: str) -> bool:
    """Check if a URL belongs to the crawl origin.

    The host must equal origin_host exactly: subdomains are different
    origins and the scheme is not compared.

    Args:
        url: URL to check.
        origin_host: Host component of the seed URL.

    Returns:
        True if the URL is within scope.
    """
    host = get_host(url)
    return host is not None and host == origin_host


def is_fetchable(url: str) -> bool:
    """Return True if the URL uses a scheme the fetcher can request."""
    try:
        return urlparse(url).scheme in FETCHABLE_SCHEMES
    except ValueError:
        return False
