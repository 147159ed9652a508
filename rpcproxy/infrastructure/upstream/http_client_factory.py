"""
HTTP client factory for the upstream forwarder.
Builds the pooled synchronous httpx client shared by all worker threads.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ...config import Settings
from ...logging import info, LogRecord, LogEvent


@dataclass
class ConnectionLimits:
    """Connection pool configuration."""

    max_keepalive: int
    max_connections: int
    keepalive_expiry: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionLimits":
        # Every worker may hold a connection at once
        return cls(
            max_keepalive=settings.pool_max_keepalive_connections,
            max_connections=max(settings.pool_max_connections, settings.worker_pool_size),
            keepalive_expiry=settings.pool_keepalive_expiry,
        )


class HttpClientFactory:
    """Factory for the upstream ``httpx.Client``."""

    @staticmethod
    def create_client(settings: Settings) -> httpx.Client:
        """
        Create a pooled client configured from settings.

        Args:
            settings: Application settings

        Returns:
            Configured httpx client
        """
        limits = ConnectionLimits.from_settings(settings)
        client_kwargs = HttpClientFactory._build_httpx_config(settings, limits)
        client = HttpClientFactory._create_with_http2_fallback(client_kwargs)
        HttpClientFactory.log_client_configuration(client, settings, limits)
        return client

    @staticmethod
    def _build_httpx_config(
        settings: Settings, limits: ConnectionLimits
    ) -> Dict[str, Any]:
        """Build httpx client configuration."""
        return {
            "limits": httpx.Limits(
                max_keepalive_connections=limits.max_keepalive,
                max_connections=limits.max_connections,
                keepalive_expiry=limits.keepalive_expiry,
            ),
            "timeout": httpx.Timeout(
                connect=settings.http_connect_timeout,
                read=settings.http_read_timeout,
                write=settings.http_write_timeout,
                pool=settings.http_pool_timeout,
            ),
            "verify": os.getenv("SSL_CERT_FILE", True),
            "follow_redirects": True,
        }

    @staticmethod
    def _create_with_http2_fallback(client_kwargs: Dict[str, Any]) -> httpx.Client:
        """
        Create httpx client with HTTP/2 support, falling back to HTTP/1.1.

        Args:
            client_kwargs: Base client configuration

        Returns:
            Configured httpx client
        """
        try:
            return httpx.Client(**client_kwargs, http2=True)
        except ImportError:
            logging.info(
                "Using httpx.Client (HTTP/1.1). "
                "Install h2 for HTTP/2: pip install 'httpx[http2]'"
            )
            return httpx.Client(**client_kwargs)

    @staticmethod
    def close_client(client: Optional[httpx.Client]) -> None:
        """
        Close an HTTP client, releasing its connection pool.

        Args:
            client: HTTP client to close
        """
        if not client:
            return
        client.close()

    @staticmethod
    def log_client_configuration(
        client: httpx.Client, settings: Settings, limits: ConnectionLimits
    ) -> None:
        info(
            LogRecord(
                event=LogEvent.HTTP_CLIENT.value,
                message="Upstream HTTP client configured",
                data={
                    "client_type": type(client).__name__,
                    "max_connections": limits.max_connections,
                    "max_keepalive": limits.max_keepalive,
                    "connect_timeout": settings.http_connect_timeout,
                    "read_timeout": settings.http_read_timeout,
                },
            )
        )
