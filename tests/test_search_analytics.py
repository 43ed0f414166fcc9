from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.config import Settings
from app.services.search_analytics import (
    InMemorySearchAnalytics,
    RedisSearchAnalytics,
    build_search_analytics,
)


class FakePipeline:
    def __init__(self, r):
        self.r = r
        self.ops = []

    def __getattr__(self, name):
        def queue(*args):
            self.ops.append((name, args))
            return self
        return queue

    async def execute(self):
        if self.r.fail:
            raise RedisConnectionError("down")
        return [await getattr(self.r, name)(*args) for name, args in self.ops]


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.zsets: dict[str, dict[str, float]] = {}
        self.hashes: dict[str, dict[str, int]] = {}
        self.closed = False

    def pipeline(self):
        return FakePipeline(self)

    async def zincrby(self, key, amount, member):
        z = self.zsets.setdefault(key, {})
        z[member] = z.get(member, 0) + amount
        return z[member]

    async def hsetnx(self, key, field, value):
        h = self.hashes.setdefault(key, {})
        if field in h:
            return 0
        h[field] = value
        return 1

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value
        return 1

    async def hincrby(self, key, field, amount):
        h = self.hashes.setdefault(key, {})
        h[field] = int(h.get(field, 0)) + amount
        return h[field]

    async def zrevrange(self, key, start, end):
        if self.fail:
            raise RedisConnectionError("down")
        z = self.zsets.get(key, {})
        ordered = sorted(z, key=lambda m: (-z[m], m))
        return ordered[start : end + 1]

    async def aclose(self):
        self.closed = True


async def test_in_memory_tracks_counts_and_running_average():
    a = InMemorySearchAnalytics()
    await a.track("Whiskey", 10, 5)
    await a.track("  whiskey ", 20, 15)
    await a.track("whiskey", 30, 10)

    st = a._queries["whiskey"]
    assert st.count == 3
    assert st.avg_results == 20
    assert st.avg_duration_ms == 10


async def test_short_queries_ignored():
    a = InMemorySearchAnalytics()
    await a.track("a", 1, 1)
    await a.track("", 1, 1)
    await a.track(None, 1, 1)
    assert await a.popular() == []


async def test_popular_and_suggestions():
    a = InMemorySearchAnalytics()
    for q, n in [("red wine", 3), ("white wine", 1), ("whiskey", 2)]:
        for _ in range(n):
            await a.track(q, 1, 1)

    assert await a.popular() == ["red wine", "whiskey", "white wine"]
    assert await a.popular(limit=1) == ["red wine"]
    assert await a.suggestions("WINE") == ["red wine", "white wine"]
    assert await a.suggestions("wh", limit=1) == ["whiskey"]
    assert await a.suggestions("  ") == []


async def test_redis_backend():
    r = FakeRedis()
    a = RedisSearchAnalytics(client=r)
    await a.track("Gin", 4, 2)
    await a.track("gin", 6, 2)
    await a.track("rum", 1, 1)

    assert r.zsets["search:popular"] == {"gin": 2, "rum": 1}
    assert r.hashes["search:stats:gin"]["count"] == 2
    assert r.hashes["search:stats:gin"]["total_results"] == 10
    assert await a.popular() == ["gin", "rum"]
    assert await a.suggestions("gi") == ["gin"]

    await a.aclose()
    assert r.closed


async def test_redis_failures_are_swallowed_with_empty_results():
    a = RedisSearchAnalytics(client=FakeRedis(fail=True))
    await a.track("gin", 1, 1)
    assert await a.popular() == []
    assert await a.suggestions("gin") == []


def test_backend_selection():
    assert isinstance(build_search_analytics(Settings(search_analytics_backend="memory")), InMemorySearchAnalytics)
    assert isinstance(build_search_analytics(Settings(search_analytics_backend="redis")), RedisSearchAnalytics)
