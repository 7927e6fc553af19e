"""Full-article extraction: fetch a page and pull out its readable content.

Uses ``urllib.request`` for HTTP fetching, ``trafilatura`` for main
content extraction and BeautifulSoup for structural fallbacks and URL
rewriting. Every network problem ends in an empty string so callers can
fall back to the summary the feed supplied.
"""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.error import URLError
from urllib.parse import urljoin, urlparse, urlunparse
from urllib.request import Request, urlopen

import trafilatura
from bs4 import BeautifulSoup
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Some publishers reject anything that does not look like a browser.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

ERROR_INDICATORS = (
    "access denied",
    "forbidden",
    "not found",
    "page not found",
    "404",
    "403",
    "401",
)

CHROME_SELECTOR = (
    "script, style, iframe, svg, .ad, .ads, .advertisement, "
    "div[class*='ad-'], div[id*='ad-'], div[class*='ads-'], div[id*='ads-']"
)

PRIMARY_CONTENT_SELECTOR = (
    "main, article, .content, .post-content, .entry-content, .article-content, .full-text"
)

SECONDARY_CONTENT_SELECTORS = (
    ".article-body",
    ".article-text",
    ".fulltext",
    ".full-text",
    ".content-body",
    ".main-content",
    'section[role="main"]',
    ".article",
)

_APP_SCHEME = "app://"
_SRCSET_PART = re.compile(r"^(\S+)(\s+\d+(?:\.\d+)?[wx])?$")


class UrlRewriteFallback(BaseModel):
    """Alternate URL to try when a publisher refuses the original.

    Applies when ``host_fragment`` and ``path_fragment`` both occur in
    the URL; the fallback replaces ``path_fragment`` with ``replacement``.
    """

    host_fragment: str
    path_fragment: str
    replacement: str

    def applies(self, url: str) -> bool:
        return self.host_fragment in url and self.path_fragment in url

    def rewrite(self, url: str) -> str:
        return url.replace(self.path_fragment, self.replacement, 1)


DEFAULT_FALLBACKS: list[UrlRewriteFallback] = [
    # Full-text pages are paywalled; the abstract page is public.
    UrlRewriteFallback(
        host_fragment="journals.sagepub.com",
        path_fragment="/doi/full/",
        replacement="/doi/abs/",
    ),
]


def fallback_url(url: str, fallbacks: list[UrlRewriteFallback]) -> str | None:
    """Return the first applicable fallback URL, if any."""
    for strategy in fallbacks:
        if strategy.applies(url):
            return strategy.rewrite(url)
    return None


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def _http_get(url: str, timeout: float | None = None) -> str:
    """Blocking GET returning the decoded body."""
    request = Request(url, headers=BROWSER_HEADERS)  # noqa: S310
    kwargs = {"timeout": timeout} if timeout is not None else {}
    with urlopen(request, **kwargs) as response:  # noqa: S310
        raw = response.read()
        charset = response.headers.get_content_charset() or "utf-8"
    return raw.decode(charset, errors="replace")


async def _fetch_html(url: str, timeout: float | None) -> str:
    try:
        return await asyncio.to_thread(_http_get, url, timeout)
    except (URLError, TimeoutError, OSError, ValueError) as exc:
        logger.debug("Failed to fetch %s: %s", url, exc)
        return ""


# ---------------------------------------------------------------------------
# HTML cleanup
# ---------------------------------------------------------------------------


def strip_chrome(soup: BeautifulSoup) -> BeautifulSoup:
    """Remove scripts, styles, frames, SVG and ad containers in place."""
    for element in soup.select(CHROME_SELECTOR):
        # Nested matches go with their parent.
        if not element.decomposed:
            element.decompose()
    return soup


def clean_html(html: str, base_url: str = "") -> str:
    """Tidy a feed-supplied HTML body before markdown conversion."""
    if not html:
        return ""
    soup = strip_chrome(BeautifulSoup(html, "html.parser"))
    for img in soup.find_all("img"):
        src = img.get("src", "")
        if src and base_url and src.startswith("/") and not src.startswith("//"):
            img["src"] = to_absolute_url(src, base_url)
        if not img.has_attr("alt"):
            img["alt"] = "Image"
    return str(soup)


def has_error_indicators(html: str) -> bool:
    """Whether the page's visible text looks like an error page."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.select("script, style, noscript"):
        element.decompose()
    root = soup.body or soup
    text = root.get_text(" ").lower()
    return any(indicator in text for indicator in ERROR_INDICATORS)


# ---------------------------------------------------------------------------
# URL rewriting
# ---------------------------------------------------------------------------


def to_absolute_url(url: str, base_url: str) -> str:
    """Resolve ``url`` against ``base_url``, leaving absolute URLs alone."""
    if not url or not base_url:
        return url
    if url.startswith(_APP_SCHEME):
        return "https://" + url[len(_APP_SCHEME):]
    if url.startswith("//"):
        return "https:" + url
    if url.startswith(("http://", "https://")):
        return url
    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


def _image_url(src: str, base_url: str, base_host: str) -> str:
    if src.startswith("data:"):
        return src
    resolved = to_absolute_url(src, base_url)
    parsed = urlparse(resolved)
    if base_host and parsed.netloc and parsed.netloc != base_host:
        parsed = parsed._replace(scheme="https", netloc=base_host)
    return urlunparse(parsed)


def _rewrite_srcset(srcset: str, base_url: str, base_host: str) -> str:
    parts: list[str] = []
    for part in srcset.split(","):
        candidate = part.strip()
        if not candidate:
            continue
        m = _SRCSET_PART.match(candidate)
        if m:
            parts.append(_image_url(m.group(1), base_url, base_host) + (m.group(2) or ""))
        else:
            parts.append(candidate)
    return ", ".join(parts)


def absolutize_urls(content: str, base_url: str) -> str:
    """Rewrite image, source and link URLs in ``content`` to absolute form.

    Images and ``<source>`` candidates that resolve to a different host
    than the page are pinned to the page host over https; relative
    paths on article pages often resolve onto the wrong CDN otherwise.
    """
    if not content or not base_url:
        return content
    content = content.replace(_APP_SCHEME, "https://")
    base_host = urlparse(base_url).netloc
    soup = BeautifulSoup(content, "html.parser")

    for img in soup.find_all("img", src=True):
        img["src"] = _image_url(img["src"], base_url, base_host)
    for source in soup.find_all("source", srcset=True):
        source["srcset"] = _rewrite_srcset(source["srcset"], base_url, base_host)
    for link in soup.find_all("a", href=True):
        link["href"] = to_absolute_url(link["href"], base_url)

    return str(soup)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _readable_content(html: str, url: str) -> str | None:
    """Main-content extraction via trafilatura, as HTML."""
    try:
        return trafilatura.extract(
            html,
            url=url,
            output_format="html",
            include_comments=False,
            include_tables=True,
            include_images=True,
            include_links=True,
            include_formatting=True,
        )
    except Exception as exc:
        logger.debug("Readable extraction failed for %s: %s", url, exc)
        return None


def extract_main_content(html: str, url: str) -> str:
    """Pick the article body out of a full page and absolutize its URLs.

    Tries trafilatura first, then the structural selectors in order,
    then the whole ``<body>``.
    """
    soup = strip_chrome(BeautifulSoup(html, "html.parser"))

    readable = _readable_content(str(soup), url)
    if readable:
        return absolutize_urls(readable, url)

    node = soup.select_one(PRIMARY_CONTENT_SELECTOR)
    if node is None:
        for selector in SECONDARY_CONTENT_SELECTORS:
            node = soup.select_one(selector)
            if node is not None:
                break
    if node is None:
        node = soup.body or soup

    return absolutize_urls(str(node), url)


async def fetch_full_content(
    url: str,
    *,
    fallbacks: list[UrlRewriteFallback] | None = None,
    timeout: float | None = None,
) -> str:
    """Fetch an article page and return its main content as HTML.

    A single fallback URL (see :data:`DEFAULT_FALLBACKS`) is tried when
    the page comes back empty or reads like an error page.

    Args:
        url: Article URL.
        fallbacks: Fallback strategies; defaults to ``DEFAULT_FALLBACKS``.
        timeout: HTTP timeout in seconds; None uses the client default.

    Returns:
        Extracted HTML, or an empty string on any failure.
    """
    if not url:
        return ""
    strategies = DEFAULT_FALLBACKS if fallbacks is None else fallbacks
    alternate = fallback_url(url, strategies)

    page_url = url
    html = await _fetch_html(url, timeout)
    if not html:
        if alternate is None:
            return ""
        logger.debug("Empty response from %s, trying %s", url, alternate)
        page_url = alternate
        html = await _fetch_html(alternate, timeout)
        if not html:
            return ""

    try:
        if has_error_indicators(html):
            if alternate is None or page_url == alternate:
                logger.debug("Error page at %s, no fallback left", page_url)
                return ""
            logger.debug("Error page at %s, trying %s", url, alternate)
            page_url = alternate
            html = await _fetch_html(alternate, timeout)
            if not html or has_error_indicators(html):
                return ""
        return extract_main_content(html, page_url)
    except Exception as exc:
        logger.debug("Extraction failed for %s: %s", page_url, exc)
        return ""
