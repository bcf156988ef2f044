"""
Source type detection.

Probes a URL and decides whether it is a feed (RSS, Atom or JSON Feed),
a website, or unknown. Websites are searched for a
``<link rel="alternate">`` feed so that processing can read the feed
instead of scraping pages.
"""

import json
import logging
from urllib.parse import urljoin

import feedparser
from bs4 import BeautifulSoup

from newsflow.backend.http_client import HTTPClient
from newsflow.sources.schemas import DetectionResult, SourceType

logger = logging.getLogger(__name__)

FEED_MIME_TYPES = frozenset({
    "application/rss+xml",
    "application/atom+xml",
    "application/feed+json",
    "application/json",
    "application/xml",
    "text/xml",
})


def _is_json_feed(text: str) -> dict | None:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, dict) and "jsonfeed.org" in str(data.get("version", "")):
        return data
    return None


def detect_from_content(url: str, text: str, content_type: str = "") -> DetectionResult:
    """Classify an already-downloaded document.

    Args:
        url: URL the document was fetched from (used to resolve relative links).
        text: Response body.
        content_type: Response Content-Type header, if known.
    """
    json_feed = _is_json_feed(text)
    if json_feed is not None:
        return DetectionResult(
            type=SourceType.FEED,
            feed_url=url,
            title=json_feed.get("title"),
            entry_count=len(json_feed.get("items") or []),
        )

    parsed = feedparser.parse(text)
    if parsed.get("version") or parsed.get("entries"):
        return DetectionResult(
            type=SourceType.FEED,
            feed_url=url,
            title=parsed.get("feed", {}).get("title"),
            entry_count=len(parsed.get("entries", [])),
        )

    if "html" in content_type or "<html" in text[:2000].lower():
        soup = BeautifulSoup(text, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else None
        for link in soup.find_all("link", rel="alternate"):
            link_type = (link.get("type") or "").lower()
            href = link.get("href")
            if href and link_type in FEED_MIME_TYPES:
                return DetectionResult(
                    type=SourceType.WEBSITE,
                    feed_url=urljoin(url, href),
                    title=title,
                )
        return DetectionResult(type=SourceType.WEBSITE, title=title)

    return DetectionResult(type=SourceType.UNKNOWN)


async def detect_source_type(
    url: str,
    http: HTTPClient,
    timeout: float = 30.0,
) -> DetectionResult:
    """Fetch ``url`` and classify it.

    Transport errors propagate to the caller; an unreadable document is
    reported as UNKNOWN rather than raised.
    """
    response = await http.get(url, timeout=timeout)
    content_type = response.headers.get("content-type", "").lower()
    result = detect_from_content(url, response.text, content_type)
    logger.info(
        "Detected source type %s for %s (feed_url=%s)",
        result.type.value,
        url,
        result.feed_url,
    )
    return result
