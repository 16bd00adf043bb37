"""Core module initialization."""

from .exceptions import (
    ConfigurationError,
    ProxyError,
    RequestShapeError,
    StreamDecodeError,
    UpstreamTransportError,
)
from .sse import (
    EVENT_ADD,
    EVENT_FINISH,
    BackendEvent,
    SSEEventParser,
    iter_events,
)

__all__ = [
    "BackendEvent",
    "ConfigurationError",
    "EVENT_ADD",
    "EVENT_FINISH",
    "ProxyError",
    "RequestShapeError",
    "SSEEventParser",
    "StreamDecodeError",
    "UpstreamTransportError",
    "iter_events",
]
