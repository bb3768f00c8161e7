import asyncio
from datetime import datetime, timedelta, timezone

from redis.exceptions import WatchError

from experience_ai.cache.analysis_cache import AnalysisCache
from experience_ai.cache.query_cache import QueryCache
from experience_ai.schemas import ActivityQuery, ContentAnalysis, MatchResult, Mode

from conftest import external


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


def _result(*codes):
    return MatchResult.from_candidates([external(code, f"Experience {code}") for code in codes])


# ============================================
# Query cache
# ============================================

def test_query_cache_key_uses_base_location_and_mode():
    query = ActivityQuery(raw_activity="Surfing", normalized_base="surf", target_location="Lisbon", mode=Mode.NEAR_YOU)
    label_only = ActivityQuery(full_activity_label="Something Odd", target_location="Lisbon")

    assert QueryCache.key_for(query) == ("surf", "lisbon", "near_you")
    assert QueryCache.key_for(label_only) == ("something odd", "lisbon", "near_you")


def test_query_cache_hit_then_expiry():
    clock = FakeClock(1000.0)
    cache = QueryCache(ttl_seconds=600, clock=clock)
    key = ("surf", "lisbon", "near_you")

    cache.put(key, _result("P1"))
    clock.now += 599
    assert [c.id for c in cache.get(key).candidates] == ["P1"]

    clock.now += 2
    assert cache.get(key) is None
    assert len(cache) == 0
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1


def test_query_cache_returns_copies():
    cache = QueryCache(ttl_seconds=600)
    key = ("surf", "lisbon", "near_you")
    original = _result("P1")
    cache.put(key, original)

    original.candidates.clear()
    first = cache.get(key)
    first.candidates.clear()

    assert [c.id for c in cache.get(key).candidates] == ["P1"]


def test_query_cache_put_drops_expired_entries_for_other_keys():
    clock = FakeClock(1000.0)
    cache = QueryCache(ttl_seconds=600, clock=clock)

    cache.put(("surf", "lisbon", "near_you"), _result("P1"))
    cache.put(("yoga", "bali", "near_you"), _result("P2"))
    clock.now += 601
    cache.put(("dive", "cairns", "as_seen_on_reel"), _result("P3"))

    assert len(cache) == 1
    assert cache.stats()["misses"] == 0


def test_query_cache_keeps_at_most_max_entries():
    cache = QueryCache(ttl_seconds=600, max_entries=2)

    cache.put(("surf", "lisbon", "near_you"), _result("P1"))
    cache.put(("yoga", "bali", "near_you"), _result("P2"))
    cache.put(("surf", "lisbon", "near_you"), _result("P1", "P4"))
    cache.put(("dive", "cairns", "near_you"), _result("P3"))

    assert len(cache) == 2
    assert cache.get(("yoga", "bali", "near_you")) is None
    assert [c.id for c in cache.get(("surf", "lisbon", "near_you")).candidates] == ["P1", "P4"]
    assert cache.get(("dive", "cairns", "near_you")) is not None


# ============================================
# Analysis cache (in-memory backend)
# ============================================

ANALYSIS = ContentAnalysis(type="activity", activity="surfing", location="Lisbon", confidence=0.9)
URL = "https://www.instagram.com/reel/abc123/"


def test_analysis_cache_counts_hits():
    cache = AnalysisCache(use_redis=False)

    async def run():
        assert await cache.get(URL) is None
        stored = await cache.put(URL, ANALYSIS, _result("P1"), Mode.AS_SEEN_ON_REEL)
        first = await cache.get(URL)
        second = await cache.get(URL)
        return stored, first, second, await cache.stats()

    stored, first, second, stats = asyncio.run(run())

    assert stored.hit_count == 0
    assert stored.expires_at - stored.created_at == timedelta(days=30)
    assert first.hit_count == 1
    assert second.hit_count == 2
    assert second.analysis.activity == "surfing"
    assert [c.id for c in second.result.candidates] == ["P1"]
    assert stats == {"backend": "memory", "entries": 1, "total_hits": 2, "ttl_days": 30}


def test_analysis_cache_expires_by_ttl_not_hits():
    clock = FakeClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
    cache = AnalysisCache(use_redis=False, ttl_days=30, clock=clock)

    async def run():
        await cache.put(URL, ANALYSIS, _result("P1"), Mode.AS_SEEN_ON_REEL)
        for _ in range(50):
            await cache.get(URL)
        clock.now += timedelta(days=29, hours=23)
        still_there = await cache.get(URL)
        clock.now += timedelta(hours=2)
        gone = await cache.get(URL)
        return still_there, gone

    still_there, gone = asyncio.run(run())

    assert still_there is not None
    assert gone is None


def test_analysis_cache_sweep_and_clear():
    clock = FakeClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
    cache = AnalysisCache(use_redis=False, ttl_days=1, clock=clock)

    async def run():
        await cache.put("https://a", ANALYSIS, _result("P1"), Mode.NEAR_YOU)
        clock.now += timedelta(hours=12)
        await cache.put("https://b", ANALYSIS, _result("P2"), Mode.NEAR_YOU)
        clock.now += timedelta(hours=13)
        swept = await cache.sweep_expired()
        cleared = await cache.clear()
        return swept, cleared

    assert asyncio.run(run()) == (1, 1)


def test_analysis_cache_sweep_task_starts_and_stops():
    cache = AnalysisCache(use_redis=False, sweep_interval=3600)

    async def run():
        await cache.start()
        running = cache._running
        await cache.stop()
        return running, cache._running

    assert asyncio.run(run()) == (True, False)


class BrokenRedis:
    """Pings fine, fails every real command"""

    async def ping(self):
        return True

    async def hgetall(self, key):
        raise ConnectionError("redis went away")

    def pipeline(self, transaction=True):
        raise ConnectionError("redis went away")


def test_analysis_cache_store_errors_are_misses():
    cache = AnalysisCache(redis_client=BrokenRedis(), use_redis=True)

    async def run():
        stored = await cache.put(URL, ANALYSIS, _result("P1"), Mode.AS_SEEN_ON_REEL)
        return stored, await cache.get(URL)

    stored, fetched = asyncio.run(run())

    assert cache.backend == "redis"
    assert stored.source_url == URL
    assert fetched is None


class FakeRedis:
    """Dict-backed hashes behind a WATCH/MULTI pipeline"""

    def __init__(self):
        self.hashes = {}
        self.expire_during_read = False

    async def ping(self):
        return True

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.watched = None
        self.queued = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def watch(self, key):
        self.watched = key

    async def hgetall(self, key):
        data = dict(self.redis.hashes.get(key, {}))
        if self.redis.expire_during_read:
            # Redis expires the key right after this read
            self.redis.hashes.pop(key, None)
        return data

    async def delete(self, key):
        return int(self.redis.hashes.pop(key, None) is not None)

    def multi(self):
        pass

    def hset(self, key, mapping):
        def run():
            self.redis.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})
            return len(mapping)
        self.queued.append(run)

    def expire(self, key, seconds):
        self.queued.append(lambda: True)

    def hincrby(self, key, field, amount):
        def run():
            fields = self.redis.hashes.setdefault(key, {})
            fields[field] = str(int(fields.get(field, 0)) + amount)
            return int(fields[field])
        self.queued.append(run)

    async def execute(self):
        queued, self.queued = self.queued, []
        if self.watched is not None and self.watched not in self.redis.hashes:
            raise WatchError("watched key was touched")
        return [run() for run in queued]


def test_analysis_cache_redis_hits_are_counted_in_a_transaction():
    fake = FakeRedis()
    cache = AnalysisCache(redis_client=fake, use_redis=True)

    async def run():
        await cache.put(URL, ANALYSIS, _result("P1"), Mode.AS_SEEN_ON_REEL)
        first = await cache.get(URL)
        second = await cache.get(URL)
        return first, second

    first, second = asyncio.run(run())

    assert (first.hit_count, second.hit_count) == (1, 2)
    assert [c.id for c in second.result.candidates] == ["P1"]
    assert fake.hashes[AnalysisCache._get_key(URL)]["hits"] == "2"


def test_analysis_cache_key_expiring_during_read_is_not_recreated():
    fake = FakeRedis()
    cache = AnalysisCache(redis_client=fake, use_redis=True)

    async def run():
        await cache.put(URL, ANALYSIS, _result("P1"), Mode.AS_SEEN_ON_REEL)
        fake.expire_during_read = True
        return await cache.get(URL)

    assert asyncio.run(run()) is None
    assert fake.hashes == {}
