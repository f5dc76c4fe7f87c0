"""
Tests unitaires — cache de réponses (local et Redis avec repli).
"""

import json
from unittest.mock import MagicMock

import redis

from shambasmart.services.retriever import RetrievalContext
from shambasmart.services.utils.cache import ResponseCache, make_cache_key
from shambasmart.services.utils.redis_cache import KEY_PREFIX, RedisResponseCache, build_response_cache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestCacheKey:

    def test_key_ignores_case_and_spacing(self):
        assert make_cache_key("How  to plant MAIZE") == make_cache_key("how to plant maize")

    def test_key_depends_on_coarse_context(self):
        nakuru = RetrievalContext(crop="maize", region="nakuru")
        kisumu = RetrievalContext(crop="maize", region="kisumu")
        assert make_cache_key("q", nakuru) != make_cache_key("q", kisumu)

    def test_key_depends_on_scope(self):
        assert make_cache_key("q", None, "crop") != make_cache_key("q", None, "pest")

    def test_dict_and_object_contexts_agree(self):
        assert make_cache_key("q", {"crop": "Maize", "farmStage": "planting"}) == \
            make_cache_key("q", RetrievalContext(crop="maize", farm_stage="planting"))


class TestResponseCache:

    def test_round_trip(self):
        cache = ResponseCache()
        cache.set("how to plant maize", "Plant in April.", {"crop": "maize"})
        assert cache.get("How to plant maize", {"crop": "maize"}) == "Plant in April."
        assert cache.get("how to plant maize", {"crop": "beans"}) is None

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=60, clock=clock)
        cache.set("q", "answer")
        clock.now += 59
        assert cache.get("q") == "answer"
        clock.now += 2
        assert cache.get("q") is None
        assert len(cache) == 0

    def test_contains_does_not_count_hits(self):
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=60, clock=clock)
        cache.set("q", "answer")
        assert cache.contains("q")
        assert cache.get_stats()["totalHits"] == 0
        clock.now += 61
        assert not cache.contains("q")

    def test_oldest_entry_is_evicted_at_capacity(self):
        clock = FakeClock()
        cache = ResponseCache(max_size=2, clock=clock)
        cache.set("first", "1")
        clock.now += 1
        cache.set("second", "2")
        clock.now += 1
        cache.set("third", "3")
        assert len(cache) == 2
        assert cache.get("first") is None
        assert cache.get("third") == "3"

    def test_clear_expired_counts_removed_entries(self):
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=10, clock=clock)
        cache.set("a", "1")
        cache.set("b", "2")
        clock.now += 11
        cache.set("c", "3")
        assert cache.clear_expired() == 2
        assert len(cache) == 1

    def test_stats_report_hits(self):
        cache = ResponseCache()
        cache.set("maize price", "KES 50/kg")
        cache.get("maize price")
        cache.get("maize price")
        stats = cache.get_stats()
        assert stats["type"] == "memory"
        assert stats["size"] == 1
        assert stats["totalHits"] == 2
        assert stats["entries"][0] == {"query": "maize price", "hits": 2}

    def test_failures_become_misses(self):
        cache = ResponseCache(clock=MagicMock(side_effect=RuntimeError("clock broken")))
        cache.set("q", "a")
        assert cache.get("q") is None


class TestRedisResponseCache:

    def test_set_writes_to_redis_and_local(self):
        client = MagicMock()
        cache = RedisResponseCache(client=client, ttl_seconds=60)
        cache.set("q", "answer", scope="crop")

        key, payload = client.set.call_args[0]
        assert key.startswith(KEY_PREFIX)
        assert json.loads(payload)["response"] == "answer"
        assert client.set.call_args[1]["px"] == 60000
        assert cache.fallback.get("q", scope="crop") == "answer"

    def test_get_reads_from_redis(self):
        clock = FakeClock()
        client = MagicMock()
        client.get.return_value = json.dumps({"response": "from redis", "timestamp": clock.now, "hitCount": 0})
        cache = RedisResponseCache(client=client, ttl_seconds=60, clock=clock)
        assert cache.get("q") == "from redis"

    def test_redis_hits_are_not_counted_locally(self):
        clock = FakeClock()
        client = MagicMock()
        client.get.return_value = json.dumps({"response": "from redis", "timestamp": clock.now, "hitCount": 0})
        cache = RedisResponseCache(client=client, ttl_seconds=60, clock=clock)
        for _ in range(3):
            assert cache.get("q") == "from redis"

        assert cache.fallback.contains("q")
        assert cache.fallback.get_stats()["totalHits"] == 0
        assert json.loads(client.set.call_args[0][1])["hitCount"] == 1

    def test_redis_outage_falls_back_to_local(self):
        client = MagicMock()
        cache = RedisResponseCache(client=client)
        cache.set("q", "answer")

        client.get.side_effect = redis.ConnectionError("down")
        assert cache.get("q") == "answer"
        assert cache.backend == "redis"

    def test_set_survives_redis_outage(self):
        client = MagicMock()
        client.set.side_effect = redis.TimeoutError("slow")
        cache = RedisResponseCache(client=client)
        cache.set("q", "answer")
        assert cache.fallback.get("q") == "answer"

    def test_stats_fall_back_to_memory(self):
        client = MagicMock()
        client.scan_iter.side_effect = redis.ConnectionError("down")
        cache = RedisResponseCache(client=client)
        assert cache.get_stats()["type"] == "memory"


class TestBuildResponseCache:

    def test_without_url_uses_memory(self):
        cache = build_response_cache("", max_size=10, fallback_max_size=20, ttl_seconds=60)
        assert isinstance(cache, ResponseCache)
        assert cache.max_size == 10
