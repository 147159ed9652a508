"""Benchmarks for cache key derivation and cache operations."""

from rpcproxy.application.cache import ResponseCache
from rpcproxy.application.cache_keys import derive_cache_key

BODY = b'{"jsonrpc":"2.0","id":0,"result":"0x10"}'


class TestCacheKeyDerivation:
    """Benchmark canonical key derivation."""

    def test_scalar_params(self, benchmark):
        request = {"jsonrpc": "2.0", "id": 0, "method": "eth_blockNumber", "params": []}
        key = benchmark(derive_cache_key, request)
        assert key == "eth_blockNumber-[]"

    def test_nested_object_params(self, benchmark):
        request = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [
                {
                    "to": "0x4200000000000000000000000000000000000006",
                    "data": "0x70a08231" + "0" * 64,
                    "from": "0x0000000000000000000000000000000000000000",
                },
                "latest",
            ],
        }
        key = benchmark(derive_cache_key, request)
        assert key.startswith("eth_call-")


class TestCacheOperations:
    """Benchmark LRU cache management operations."""

    def test_cache_hit(self, benchmark):
        cache = ResponseCache(max_size=1000, ttl_seconds=60)
        cache.store("eth_blockNumber-[]", BODY)

        result = benchmark(cache.lookup, "eth_blockNumber-[]")
        assert result == BODY

    def test_cache_miss(self, benchmark):
        cache = ResponseCache(max_size=1000, ttl_seconds=60)

        result = benchmark(cache.lookup, "missing")
        assert result is None

    def test_lru_eviction(self, benchmark):
        """Benchmark insertion that triggers eviction when cache is full."""
        cache = ResponseCache(max_size=10, ttl_seconds=60)
        for i in range(10):
            cache.store(f"key-{i}", BODY)

        counter = {"n": 0}

        def insert_with_eviction():
            counter["n"] += 1
            cache.store(f"new-{counter['n']}", BODY)

        benchmark(insert_with_eviction)
        assert len(cache) == 10
