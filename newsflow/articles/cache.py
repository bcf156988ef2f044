"""In-memory grouping of articles by source.

The dashboard keeps one list of articles per source so that a source's
panel can render without re-listing. This is a derived projection: it can
be rebuilt from the article store at any time, which is why the integrity
validator is allowed to drop groups from it.
"""

import time
from collections.abc import Iterable, Iterator, Mapping, MutableMapping

from newsflow.articles.schemas import Article, resolve_source_id
from newsflow.ids import normalize_id


class SourceArticleCache(MutableMapping[str, list[Article]]):
    """Articles grouped by source id, with a per-group TTL.

    Keys are normalized ids, so ``cache[12]`` and ``cache["12"]`` address
    the same group. Expired groups behave as missing.
    """

    def __init__(self, ttl_seconds: float | None = None) -> None:
        self._ttl = ttl_seconds
        self._groups: dict[str, list[Article]] = {}
        self._stored_at: dict[str, float] = {}

    @classmethod
    def from_articles(
        cls,
        articles: Iterable[Article],
        monitoring_sources: Mapping[str, str] | None = None,
        ttl_seconds: float | None = None,
    ) -> "SourceArticleCache":
        """Group ``articles`` by resolved source; unresolvable ones are skipped."""
        cache = cls(ttl_seconds=ttl_seconds)
        grouped: dict[str, list[Article]] = {}
        for article in articles:
            source_id = resolve_source_id(article, monitoring_sources)
            if source_id:
                grouped.setdefault(source_id, []).append(article)
        for source_id, group in grouped.items():
            cache[source_id] = group
        return cache

    def _key(self, key: object) -> str:
        normalized = normalize_id(key)
        if normalized is None:
            raise KeyError(key)
        return normalized

    def _expired(self, key: str) -> bool:
        if self._ttl is None:
            return False
        return time.monotonic() - self._stored_at.get(key, 0.0) >= self._ttl

    def __getitem__(self, key: object) -> list[Article]:
        k = self._key(key)
        if k not in self._groups or self._expired(k):
            raise KeyError(key)
        return self._groups[k]

    def __setitem__(self, key: object, value: list[Article]) -> None:
        k = self._key(key)
        self._groups[k] = list(value)
        self._stored_at[k] = time.monotonic()

    def __delitem__(self, key: object) -> None:
        k = self._key(key)
        del self._groups[k]
        self._stored_at.pop(k, None)

    def __iter__(self) -> Iterator[str]:
        return iter([k for k in self._groups if not self._expired(k)])

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def add(self, source_id: str, article: Article) -> None:
        """Append to a group, creating it if needed."""
        group = self.get(source_id)
        if group is None:
            self[source_id] = [article]
        else:
            group.append(article)

    def update_article(self, article: Article) -> int:
        """Replace every cached copy of ``article``; returns copies replaced."""
        replaced = 0
        for group in self._groups.values():
            for i, cached in enumerate(group):
                if cached.id == article.id:
                    group[i] = article
                    replaced += 1
        return replaced

    def purge_expired(self) -> list[str]:
        """Drop expired groups and return their keys."""
        expired = [k for k in self._groups if self._expired(k)]
        for k in expired:
            del self[k]
        return expired
