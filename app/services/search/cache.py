from __future__ import annotations

import hashlib
import json
import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from app.services.search.query_builder import SearchQuery

log = logging.getLogger(__name__)


def _stable_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def build_cache_key(query: SearchQuery, now: float, ttl_seconds: int) -> str:
    """
    Canonical key for a normalized query within the current TTL bucket.
    """
    bucket = math.floor(now / ttl_seconds) if ttl_seconds > 0 else 0
    payload = {"q": query.model_dump(mode="json"), "bucket": bucket}
    return _sha256_hex(_stable_json(payload))


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float


class ResultCache:
    """
    Bounded, in-process LRU cache for search responses.

    Entries expire on read once older than the TTL; the key also rolls over
    with the TTL bucket, so stale responses are never served across buckets.
    """

    def __init__(
        self,
        *,
        max_entries: int,
        ttl_seconds: int,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.max_entries = max(1, max_entries)
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def key_for(self, query: SearchQuery) -> str:
        return build_cache_key(query, self._clock(), self.ttl_seconds)

    def get(self, key: str) -> Any | None:
        if not self.enabled:
            return None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if self._clock() - entry.created_at >= self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return

        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, created_at=self._clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug("search cache: evicted %s", evicted)

    def clear(self) -> int:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
        log.info("search cache: cleared %d entries", n)
        return n

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "enabled": self.enabled,
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hits": self.hits,
                "misses": self.misses,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
