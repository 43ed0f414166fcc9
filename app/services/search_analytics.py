from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import Settings

log = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


def normalize_search_term(query: str | None) -> str | None:
    if not query:
        return None
    q = query.strip().lower()
    if len(q) < MIN_QUERY_LENGTH:
        return None
    return q


class SearchAnalytics(Protocol):
    async def track(self, query: str | None, results_count: int, duration_ms: int) -> None:
        ...

    async def popular(self, limit: int = 10) -> list[str]:
        ...

    async def suggestions(self, partial: str, limit: int = 5) -> list[str]:
        ...

    async def aclose(self) -> None:
        ...


@dataclass
class QueryStats:
    query: str
    count: int
    first_searched: float
    last_searched: float
    avg_results: float
    avg_duration_ms: float


class InMemorySearchAnalytics:
    """
    Per-process query counters. Lost on restart; use the redis backend
    when several workers should share popular searches.
    """

    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._queries: dict[str, QueryStats] = {}

    async def track(self, query: str | None, results_count: int, duration_ms: int) -> None:
        q = normalize_search_term(query)
        if q is None:
            return

        now = self._clock()
        with self._lock:
            st = self._queries.get(q)
            if st is None:
                self._queries[q] = QueryStats(
                    query=q,
                    count=1,
                    first_searched=now,
                    last_searched=now,
                    avg_results=float(results_count),
                    avg_duration_ms=float(duration_ms),
                )
                return
            n = st.count
            st.count = n + 1
            st.last_searched = now
            st.avg_results = (st.avg_results * n + results_count) / (n + 1)
            st.avg_duration_ms = (st.avg_duration_ms * n + duration_ms) / (n + 1)

    def _ranked(self) -> list[QueryStats]:
        with self._lock:
            values = list(self._queries.values())
        return sorted(values, key=lambda s: (-s.count, s.query))

    async def popular(self, limit: int = 10) -> list[str]:
        return [s.query for s in self._ranked()[: max(0, limit)]]

    async def suggestions(self, partial: str, limit: int = 5) -> list[str]:
        needle = (partial or "").strip().lower()
        if not needle:
            return []
        matches = [s.query for s in self._ranked() if needle in s.query]
        return matches[: max(0, limit)]

    async def aclose(self) -> None:
        return None


POPULAR_KEY = "search:popular"
STATS_KEY_PREFIX = "search:stats:"
# candidates scanned for substring suggestions
SUGGESTION_SCAN = 200


class RedisSearchAnalytics:
    """
    Shared counters: a sorted set of query -> count plus a stats hash per query.
    Redis failures never fail a search; they are logged and ignored.
    """

    def __init__(self, redis_url: str | None = None, *, client=None):
        self.r = client if client is not None else redis.from_url(redis_url, decode_responses=True)

    async def track(self, query: str | None, results_count: int, duration_ms: int) -> None:
        q = normalize_search_term(query)
        if q is None:
            return

        now = int(time.time())
        skey = f"{STATS_KEY_PREFIX}{q}"
        try:
            pipe = self.r.pipeline()
            pipe.zincrby(POPULAR_KEY, 1, q)
            pipe.hsetnx(skey, "first_searched", now)
            pipe.hset(skey, "last_searched", now)
            pipe.hincrby(skey, "count", 1)
            pipe.hincrby(skey, "total_results", int(results_count))
            pipe.hincrby(skey, "total_duration_ms", int(duration_ms))
            await pipe.execute()
        except RedisError as e:
            log.warning("search analytics: track failed query=%s err=%s", q, e)

    async def popular(self, limit: int = 10) -> list[str]:
        if limit <= 0:
            return []
        try:
            return list(await self.r.zrevrange(POPULAR_KEY, 0, limit - 1))
        except RedisError as e:
            log.warning("search analytics: popular failed err=%s", e)
            return []

    async def suggestions(self, partial: str, limit: int = 5) -> list[str]:
        needle = (partial or "").strip().lower()
        if not needle or limit <= 0:
            return []
        try:
            candidates = await self.r.zrevrange(POPULAR_KEY, 0, SUGGESTION_SCAN - 1)
        except RedisError as e:
            log.warning("search analytics: suggestions failed err=%s", e)
            return []
        return [q for q in candidates if needle in q][:limit]

    async def aclose(self) -> None:
        await self.r.aclose()


def build_search_analytics(cfg: Settings) -> SearchAnalytics:
    if cfg.search_analytics_backend == "redis":
        log.info("search analytics: redis backend")
        return RedisSearchAnalytics(cfg.redis_url)
    return InMemorySearchAnalytics()
