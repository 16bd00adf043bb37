"""Core exceptions for the proxy."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for proxy errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RequestShapeError(ProxyError):
    """Raised when the client's message list cannot yield a GeekChat prompt."""
    pass


class UpstreamTransportError(ProxyError):
    """Raised when the GeekChat backend cannot be reached or refuses the call."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StreamDecodeError(ProxyError):
    """Raised when the backend event stream is malformed or ends early."""
    pass


class ConfigurationError(ProxyError):
    """Raised when there's an issue with the configuration."""
    pass
