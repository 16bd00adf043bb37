"""GeekChat backend adaptation.

Translates OpenAI Chat Completions requests into GeekChat's prompt/history
shape and transcodes GeekChat's SSE replies back into OpenAI chunks.
"""

from .aggregator import aggregate_completion, aggregate_stream
from .client import GeekChatClient, GeekChatStream
from .dispatcher import (
    ProxyResponse,
    build_error_response,
    build_json_response,
    build_stream_response,
    dispatch_chat_completion,
    wants_event_stream,
)
from .settings import GeekChatSettings
from .stream_adapter import AdaptedStream, GeekChatToChatStreamAdapter, adapt_geekchat_stream
from .translator import build_geekchat_request, build_history, extract_text_content

__all__ = [
    "AdaptedStream",
    "GeekChatClient",
    "GeekChatSettings",
    "GeekChatStream",
    "GeekChatToChatStreamAdapter",
    "ProxyResponse",
    "adapt_geekchat_stream",
    "aggregate_completion",
    "aggregate_stream",
    "build_error_response",
    "build_geekchat_request",
    "build_history",
    "build_json_response",
    "build_stream_response",
    "dispatch_chat_completion",
    "extract_text_content",
    "wants_event_stream",
]
