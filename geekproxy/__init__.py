"""geekproxy - OpenAI-compatible proxy for the GeekChat backend.

Accepts OpenAI Chat Completions requests, forwards them to GeekChat in its
prompt/history shape and turns GeekChat's SSE replies back into OpenAI
chunks, streamed or aggregated.

Example:
    >>> from geekproxy import create_app
    >>> import uvicorn
    >>> uvicorn.run(create_app(), host="127.0.0.1", port=8000)
"""

from .main import create_app, resolve_server_address
from .config_loader import load_config
from .geekchat import (
    GeekChatClient,
    GeekChatSettings,
    GeekChatToChatStreamAdapter,
    build_geekchat_request,
    dispatch_chat_completion,
)
from .logging import logger, setup_logging

__all__ = [
    "GeekChatClient",
    "GeekChatSettings",
    "GeekChatToChatStreamAdapter",
    "build_geekchat_request",
    "create_app",
    "dispatch_chat_completion",
    "load_config",
    "logger",
    "resolve_server_address",
    "setup_logging",
]
