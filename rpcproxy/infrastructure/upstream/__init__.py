"""Outbound transport to the upstream JSON-RPC endpoints."""

from .forwarder import UpstreamForwarder
from .http_client_factory import HttpClientFactory

__all__ = ["UpstreamForwarder", "HttpClientFactory"]
