"""
Origin fetching for feed sources.

FeedFetcher downloads a source's feed, parses it with feedparser (or as a
JSON Feed), orders entries by publish date and returns the requested
``[offset, offset + limit)`` window as CandidateArticle records.
"""

import hashlib
import html
import json
import logging
import re
from calendar import timegm
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Literal

import feedparser
from bs4 import BeautifulSoup

from newsflow.backend.http_client import HTTPClient, HTTPClientError
from newsflow.errors import ErrorKind, OriginError, classify_http_error
from newsflow.sources.detection import detect_from_content
from newsflow.sources.schemas import Source

logger = logging.getLogger(__name__)

SortOrder = Literal["desc", "asc"]

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def stable_hash(value: str) -> str:
    """
    Deterministic short id for an origin identity.

    SHA256 truncated to 16 hex characters; unlike ``hash()`` it is stable
    across processes, so the same entry maps to the same id on every run.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def clean_html(content: str) -> str:
    """Strip markup from a feed summary and collapse whitespace."""
    if not content:
        return ""
    soup = BeautifulSoup(content, "html.parser")
    for element in soup(["script", "style", "nav", "footer", "header"]):
        element.decompose()
    text = html.unescape(soup.get_text(separator=" "))
    return re.sub(r"\s+", " ", text).strip()


@dataclass
class CandidateArticle:
    """An item read from an origin, not yet stored."""

    origin_id: str
    title: str
    url: str
    content: str = ""
    summary: str = ""
    image_url: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    tags: list[str] = field(default_factory=list)

    def to_article_fields(self, source_id: str) -> dict[str, Any]:
        """Body for creating the article record."""
        return {
            "news_source_id": source_id,
            "title": self.title,
            "original_url": self.url,
            "origin_id": self.origin_id,
            "original_content": self.content or self.summary,
            "image_url": self.image_url,
            "status": "pending",
            "metadata": {
                "source_id": source_id,
                "author": self.author,
                "tags": self.tags,
                "published_date": self.published_at.isoformat() if self.published_at else None,
            },
        }


@dataclass
class FeedBatch:
    """One window of a feed.

    Attributes:
        entries: Candidates in the requested order, at most ``limit`` of them.
        total_entries: Usable entries in the whole feed.
        feed_title: Title the feed declares, if any.
    """

    entries: list[CandidateArticle]
    total_entries: int
    feed_title: str | None = None


class FeedFetcher:
    """Fetches and windows a source's feed.

    Args:
        http: Open HTTP client used for origin requests.
        timeout: Per-request timeout for origin fetches.
    """

    def __init__(self, http: HTTPClient, timeout: float = 120.0) -> None:
        self._http = http
        self._timeout = timeout

    async def fetch(
        self,
        source: Source,
        limit: int,
        offset: int = 0,
        sort_order: SortOrder = "desc",
    ) -> FeedBatch:
        """
        Read ``limit`` candidates starting at ``offset``.

        Raises:
            OriginError: ``timeout`` or ``origin-unreachable`` for transport
                failures, ``malformed-feed`` when no feed can be parsed.
        """
        text, content_type = await self._download(source.fetch_url)

        entries, title = self._parse(text)
        if entries is None:
            # A website URL: look for an advertised feed and read that instead
            detection = detect_from_content(source.fetch_url, text, content_type)
            if detection.feed_url and detection.feed_url != source.fetch_url:
                logger.info("Following feed link %s for source %s", detection.feed_url, source.id)
                text, _ = await self._download(detection.feed_url)
                entries, title = self._parse(text)
        if entries is None:
            raise OriginError(
                f"No parseable feed at {source.fetch_url}",
                kind=ErrorKind.MALFORMED_FEED,
                details={"source_id": source.id, "url": source.fetch_url},
            )

        candidates = [c for c in entries if c.url and c.title]
        candidates.sort(
            key=lambda c: c.published_at or _EPOCH,
            reverse=(sort_order == "desc"),
        )
        window = candidates[offset:offset + limit]
        logger.debug(
            "Feed %s: %d usable entries, window [%d, %d) -> %d",
            source.fetch_url,
            len(candidates),
            offset,
            offset + limit,
            len(window),
        )
        return FeedBatch(entries=window, total_entries=len(candidates), feed_title=title)

    async def _download(self, url: str) -> tuple[str, str]:
        try:
            response = await self._http.get(url, timeout=self._timeout)
        except HTTPClientError as e:
            kind = classify_http_error(e, fallback=ErrorKind.ORIGIN_UNREACHABLE)
            raise OriginError(
                f"Could not fetch {url}: {e}",
                kind=kind,
                details={"url": url, "status_code": e.status_code},
            ) from e
        return response.text, response.headers.get("content-type", "").lower()

    def _parse(self, text: str) -> tuple[list[CandidateArticle] | None, str | None]:
        """Entries and feed title, or ``(None, None)`` if ``text`` is not a feed."""
        try:
            data = json.loads(text)
        except ValueError:
            data = None
        if isinstance(data, dict) and "jsonfeed.org" in str(data.get("version", "")):
            items = data.get("items") or []
            return [self._from_json_item(item) for item in items], data.get("title")

        feed = feedparser.parse(text)
        if not feed.get("version") and not feed.get("entries"):
            return None, None
        entries = [self._from_entry(entry) for entry in feed.get("entries", [])]
        return entries, feed.get("feed", {}).get("title")

    def _from_entry(self, entry: dict[str, Any]) -> CandidateArticle:
        content = ""
        if entry.get("content"):
            content = entry["content"][0].get("value", "")
        summary = entry.get("summary", "")

        image_url = None
        for media in entry.get("media_content", []) or entry.get("media_thumbnail", []):
            if media.get("url"):
                image_url = media["url"]
                break

        return CandidateArticle(
            origin_id=self._entry_id(entry),
            title=clean_html(entry.get("title", "")),
            url=entry.get("link", ""),
            content=clean_html(content),
            summary=clean_html(summary),
            image_url=image_url,
            author=entry.get("author"),
            published_at=self._parse_timestamp(entry),
            tags=[t.get("term", "") for t in entry.get("tags", []) if t.get("term")],
        )

    def _from_json_item(self, item: dict[str, Any]) -> CandidateArticle:
        published = None
        raw_date = item.get("date_published") or item.get("date_modified")
        if isinstance(raw_date, str):
            try:
                published = _aware(datetime.fromisoformat(raw_date.replace("Z", "+00:00")))
            except ValueError:
                published = None
        author = item.get("author")
        author = author.get("name") if isinstance(author, dict) else None
        identity = str(item.get("id") or item.get("url") or item.get("title", ""))
        return CandidateArticle(
            origin_id=stable_hash(identity),
            title=clean_html(item.get("title") or ""),
            url=item.get("url") or item.get("external_url") or "",
            content=clean_html(item.get("content_html") or item.get("content_text") or ""),
            summary=clean_html(item.get("summary") or ""),
            image_url=item.get("image"),
            author=author,
            published_at=published,
            tags=list(item.get("tags") or []),
        )

    def _parse_timestamp(self, entry: dict[str, Any]) -> datetime | None:
        for name in ("published", "updated", "created"):
            parsed = entry.get(f"{name}_parsed")
            if parsed:
                return datetime.fromtimestamp(timegm(parsed), tz=timezone.utc)
            if entry.get(name):
                try:
                    return _aware(parsedate_to_datetime(entry[name]))
                except (TypeError, ValueError):
                    continue
        return None

    def _entry_id(self, entry: dict[str, Any]) -> str:
        for name in ("id", "guid", "link"):
            if entry.get(name):
                return stable_hash(str(entry[name]))
        return stable_hash(entry.get("title", ""))
