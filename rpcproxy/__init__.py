"""RPCProxy: caching, round-robin reverse proxy for JSON-RPC upstreams."""

__version__ = "1.0.0"
