"""
Per-source execution counter for manual "fetch more" pagination.

Each successful manual run of a source advances its counter by one; the
next run starts at ``count * batch_size``. Resetting returns the source
to offset 0 (the most recent items).

Three stores are provided: an in-process dict for tests and embedding,
a JSON file so consecutive CLI invocations continue where the last one
stopped, and Redis for counters shared across hosts.
"""

import json
import logging
import os
from pathlib import Path
from typing import Protocol

import redis.asyncio as redis

from newsflow.ids import normalize_id

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    async def get(self, key: str) -> int: ...

    async def increment(self, key: str) -> int: ...

    async def reset(self, key: str) -> None: ...


class InMemoryCounterStore:
    """Counters held in a dict for the lifetime of the process."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    async def get(self, key: str) -> int:
        return self._counts.get(key, 0)

    async def increment(self, key: str) -> int:
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]

    async def reset(self, key: str) -> None:
        self._counts.pop(key, None)


class FileCounterStore:
    """Counters persisted to a JSON object of ``{source_id: count}``.

    The file is rewritten atomically on every change. Not safe for
    concurrent writers; use Redis when several processes share counters.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, int]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except ValueError:
            logger.warning("Ignoring unreadable execution counter file %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): int(v) for k, v in data.items()}

    def _save(self, counts: dict[str, int]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(counts, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)

    async def get(self, key: str) -> int:
        return self._load().get(key, 0)

    async def increment(self, key: str) -> int:
        counts = self._load()
        counts[key] = counts.get(key, 0) + 1
        self._save(counts)
        return counts[key]

    async def reset(self, key: str) -> None:
        counts = self._load()
        if counts.pop(key, None) is not None:
            self._save(counts)


class RedisCounterStore:
    """Counters in Redis under ``<key_prefix><source_id>``.

    INCR is atomic, so two sessions advancing the same source never lose
    an increment.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "newsflow:executions:",
        client: redis.Redis | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._redis: redis.Redis | None = client

    async def connect(self) -> None:
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Connected to Redis for execution counters")

    async def close(self) -> None:
        if self._redis:
            await self._redis.close()
            self._redis = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            raise RuntimeError("RedisCounterStore is not connected; call connect() first")
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> int:
        value = await self._client().get(self._key(key))
        return int(value) if value is not None else 0

    async def increment(self, key: str) -> int:
        return int(await self._client().incr(self._key(key)))

    async def reset(self, key: str) -> None:
        await self._client().delete(self._key(key))


class ExecutionCounter:
    """Offset bookkeeping for manual source runs.

    Args:
        store: Where counts are kept.
        batch_size: Items per run; offsets are multiples of it.
    """

    def __init__(self, store: CounterStore | None = None, batch_size: int = 10) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._store = store or InMemoryCounterStore()
        self.batch_size = batch_size

    @staticmethod
    def _key(source_id: str) -> str:
        key = normalize_id(source_id)
        if key is None:
            raise ValueError("source_id must not be empty")
        return key

    async def execution_count(self, source_id: str) -> int:
        return await self._store.get(self._key(source_id))

    async def next_offset(self, source_id: str) -> int:
        """Offset for the next run: ``executions * batch_size``."""
        return await self.execution_count(source_id) * self.batch_size

    async def record_execution(self, source_id: str) -> int:
        """Advance after a successful run. Returns the new count."""
        count = await self._store.increment(self._key(source_id))
        logger.debug("Source %s execution count -> %d", source_id, count)
        return count

    async def reset(self, source_id: str) -> None:
        await self._store.reset(self._key(source_id))
        logger.info("Reset execution counter for source %s", source_id)
