"""Custom exception hierarchy for RPCProxy.

Internal code raises these typed errors so the original cause survives up to
the HTTP boundary, where every processing failure is flattened into the single
JSON-RPC internal-error envelope and the cause is logged.
"""

from typing import Optional, Dict, Any


class RpcProxyException(Exception):
    """Base exception for all RPCProxy-specific exceptions."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.details = details or {}


class MalformedRequest(RpcProxyException):
    """Raised when the request body is not JSON or has no string ``method``."""

    pass


class MethodNotAllowed(RpcProxyException):
    """Raised when the inbound HTTP method is anything but POST."""

    def __init__(
        self,
        message: str,
        http_method: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.http_method = http_method


class UpstreamUnavailable(RpcProxyException):
    """Raised when an upstream cannot be reached (connect failure, timeout, closed transport)."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.endpoint = endpoint


class UpstreamError(RpcProxyException):
    """Raised when an upstream answers with a non-2xx status.

    The raw body is kept so the caller can pass it through unchanged.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: bytes = b"",
        endpoint: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint


class WorkerPoolClosed(RpcProxyException):
    """Raised when work is submitted to a pool that is not running."""

    pass


class ConfigurationError(RpcProxyException, ValueError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.config_key = config_key
