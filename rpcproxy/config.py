from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, field_validator
from typing import Optional, List, Union, Any, Dict

from urllib.parse import urlparse

from rpcproxy.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_WORKER_POOL_SIZE,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    DEFAULT_SHUTDOWN_FORCE_SECONDS,
)
from rpcproxy.domain.exceptions import ConfigurationError

__all__ = ["Settings", "ConfigurationError"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Required
    upstream_urls: Union[List[str], str] = Field(
        default_factory=list, validation_alias=AliasChoices("UPSTREAM_URLS")
    )

    app_name: str = "RPCProxy"
    app_version: str = "1.0.0"
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST"))
    port: int = Field(default=8080, validation_alias=AliasChoices("PORT"))

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOG_FILE_PATH")
    )
    error_log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ERROR_LOG_FILE_PATH")
    )
    log_pretty_console: bool = Field(
        default=False, validation_alias=AliasChoices("LOG_PRETTY_CONSOLE")
    )
    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: ["authorization"],
        validation_alias=AliasChoices("REDACT_LOG_FIELDS"),
    )

    # Response cache
    cache_max_size: int = Field(
        default=DEFAULT_CACHE_MAX_SIZE, validation_alias=AliasChoices("CACHE_MAX_SIZE")
    )
    cache_ttl_seconds: float = Field(
        default=DEFAULT_CACHE_TTL_SECONDS,
        validation_alias=AliasChoices("CACHE_TTL_SECONDS"),
    )
    cache_upstream_errors: bool = Field(
        default=True, validation_alias=AliasChoices("CACHE_UPSTREAM_ERRORS")
    )

    # Worker pool and shutdown
    worker_pool_size: int = Field(
        default=DEFAULT_WORKER_POOL_SIZE,
        validation_alias=AliasChoices("WORKER_POOL_SIZE"),
    )
    shutdown_grace_seconds: float = Field(
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        validation_alias=AliasChoices("SHUTDOWN_GRACE_SECONDS"),
    )
    shutdown_force_seconds: float = Field(
        default=DEFAULT_SHUTDOWN_FORCE_SECONDS,
        validation_alias=AliasChoices("SHUTDOWN_FORCE_SECONDS"),
    )

    # Connection pool configuration
    pool_max_keepalive_connections: int = Field(
        default=20, validation_alias=AliasChoices("POOL_MAX_KEEPALIVE_CONNECTIONS")
    )
    pool_max_connections: int = Field(
        default=100, validation_alias=AliasChoices("POOL_MAX_CONNECTIONS")
    )
    pool_keepalive_expiry: float = Field(
        default=60.0, validation_alias=AliasChoices("POOL_KEEPALIVE_EXPIRY")
    )

    # HTTP timeout configuration
    http_connect_timeout: float = Field(
        default=10.0, validation_alias=AliasChoices("HTTP_CONNECT_TIMEOUT")
    )
    http_read_timeout: float = Field(
        default=30.0, validation_alias=AliasChoices("HTTP_READ_TIMEOUT")
    )
    http_write_timeout: float = Field(
        default=30.0, validation_alias=AliasChoices("HTTP_WRITE_TIMEOUT")
    )
    http_pool_timeout: float = Field(
        default=10.0, validation_alias=AliasChoices("HTTP_POOL_TIMEOUT")
    )

    @field_validator("upstream_urls", "redact_log_fields")
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists for configuration fields.

        Handles both string inputs (splitting by commas) and already-list inputs.
        Empty strings are converted to empty lists.

        Args:
            v: Input value which can be a string or list

        Returns:
            List of stripped, non-empty items
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return [item.strip() for item in v if item and item.strip()]

    def uvicorn_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``uvicorn.run``.

        uvicorn waits up to the grace period for open connections, then the
        lifespan shutdown drains the worker pool with the same grace plus the
        forced wait. Stopping therefore takes at most
        ``2 * shutdown_grace_seconds + shutdown_force_seconds``.
        """
        return {
            "host": self.host,
            "port": self.port,
            "log_config": None,
            "access_log": False,
            "timeout_graceful_shutdown": self.shutdown_grace_seconds,
        }

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings object and perform validation.

        Raises:
            ConfigurationError: If the upstream list or the pool/cache limits are invalid
        """
        super().__init__(**kwargs)
        self._validate_upstreams()
        self._validate_limits()

    def _validate_upstreams(self) -> None:
        """Every upstream must be an absolute http(s) URL and at least one is required."""
        if not self.upstream_urls:
            raise ConfigurationError(
                "At least one upstream is required. Set UPSTREAM_URLS in your environment or .env.",
                config_key="UPSTREAM_URLS",
            )

        invalid = []
        for url in self.upstream_urls:
            parsed = urlparse(url)
            if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
                invalid.append(url)
        if invalid:
            raise ConfigurationError(
                f"UPSTREAM_URLS contains invalid URLs: {', '.join(invalid)}",
                config_key="UPSTREAM_URLS",
                details={"invalid": invalid},
            )

    def _validate_limits(self) -> None:
        errors = []
        if self.cache_max_size < 1:
            errors.append("CACHE_MAX_SIZE must be at least 1.")
        if self.cache_ttl_seconds <= 0:
            errors.append("CACHE_TTL_SECONDS must be positive.")
        if self.worker_pool_size < 1:
            errors.append("WORKER_POOL_SIZE must be at least 1.")
        if self.shutdown_grace_seconds < 0 or self.shutdown_force_seconds < 0:
            errors.append("Shutdown timeouts must not be negative.")
        if errors:
            raise ConfigurationError("\n".join(errors))
