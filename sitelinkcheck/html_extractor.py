"""Navigation link and embedded resource extraction from HTML pages."""

import enum
from dataclasses import dataclass

from bs4 import BeautifulSoup

from .url_resolver import MalformedURL, is_fetchable, resolve_url


class ResourceKind(enum.Enum):
    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    IMAGE = "image"
    VIDEO = "video"
    IFRAME = "iframe"


@dataclass(frozen=True)
class ResourceLink:
    """A non-navigable reference embedded in a page."""

    kind: ResourceKind
    raw_href: str
    url: str


@dataclass(frozen=True)
class ExtractedLinks:
    """Links found on one page, in a deterministic order."""

    nav_links: tuple[str, ...] = ()
    resource_links: tuple[ResourceLink, ...] = ()


def parse_html(html: str | bytes) -> BeautifulSoup:
    """Parse HTML with lxml, falling back to the stdlib parser."""
    try:
        return BeautifulSoup(html, "lxml")
    except Exception:
        return BeautifulSoup(html, "html.parser")


def extract_links(page_url: str, html: str | bytes | None) -> ExtractedLinks:
    """Extract navigation links and resource links from a page.

    Resource selectors are applied independently, so one element may only
    contribute once but a document may match several kinds. Resources are
    deduplicated by resolved URL (the first selector to produce a URL wins);
    navigation links are deduplicated as well.

    References that are empty, malformed or use a non-HTTP scheme
    (mailto:, javascript:, data:) are dropped silently.

    Args:
        page_url: URL the page was fetched from, used as the base.
        html: Raw page body.

    Returns:
        ExtractedLinks, empty if the body cannot be parsed.
    """
    if not isinstance(html, (str, bytes)) or not html:
        return ExtractedLinks()

    try:
        soup = parse_html(html)
    except Exception:
        return ExtractedLinks()

    base_url = _document_base(soup, page_url)

    resources: list[ResourceLink] = []
    seen_resources: set[str] = set()
    for kind, raw_href in _resource_references(soup):
        url = _resolve(base_url, raw_href)
        if url is None or url in seen_resources:
            continue
        seen_resources.add(url)
        resources.append(ResourceLink(kind=kind, raw_href=raw_href, url=url))

    nav_links: list[str] = []
    seen_nav: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        url = _resolve(base_url, anchor["href"])
        if url is None or url in seen_nav:
            continue
        seen_nav.add(url)
        nav_links.append(url)

    return ExtractedLinks(nav_links=tuple(nav_links), resource_links=tuple(resources))


def _resource_references(soup: BeautifulSoup):
    """Yield (kind, raw_href) pairs grouped by kind, in document order."""
    for link in soup.find_all("link", href=True):
        if _is_stylesheet(link.get("rel")):
            yield ResourceKind.STYLESHEET, link["href"]

    for script in soup.find_all("script", src=True):
        yield ResourceKind.SCRIPT, script["src"]

    for img in soup.find_all("img", src=True):
        yield ResourceKind.IMAGE, img["src"]

    for video in soup.find_all("video"):
        if video.get("src"):
            yield ResourceKind.VIDEO, video["src"]
        for source in video.find_all("source", src=True):
            yield ResourceKind.VIDEO, source["src"]

    for iframe in soup.find_all("iframe", src=True):
        yield ResourceKind.IFRAME, iframe["src"]


def _is_stylesheet(rel) -> bool:
    # 'rel' is multi-valued in BeautifulSoup, but may come back as a string
    if not rel:
        return False
    if isinstance(rel, str):
        rel = rel.split()
    return any(str(value).lower() == "stylesheet" for value in rel)


def _document_base(soup: BeautifulSoup, page_url: str) -> str:
    """Honour a <base href> element when the page declares one."""
    base = soup.find("base", href=True)
    if base is None:
        return page_url
    try:
        return resolve_url(page_url, base["href"])
    except MalformedURL:
        return page_url


def _resolve(base_url: str, raw_href) -> str | None:
    if not isinstance(raw_href, str):
        return None
    try:
        url = resolve_url(base_url, raw_href)
    except MalformedURL:
        return None
    if not is_fetchable(url):
        return None
    return url
