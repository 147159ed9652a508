"""Benchmark suite for the RPCProxy hot path.

Benchmark Modules:
    - bench_cache_ops: cache key derivation, cache lookup/store, LRU eviction

Usage:
    pytest benchmarks/ --benchmark-only
"""

__all__ = []
