"""API routes for the proxy."""

from .chat import chat_completions, to_starlette_response
from .models import list_models

__all__ = [
    "chat_completions",
    "list_models",
    "to_starlette_response",
]
