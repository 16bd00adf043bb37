"""Type definitions for the OpenAI-facing and GeekChat-facing wire formats."""

from .chat import (
    AssistantMessage,
    ChatCompletion,
    ChatCompletionChunk,
    ChatMessage,
    ChunkChoice,
    ChunkDelta,
    CompletionChoice,
)
from .geekchat import ConversationTurn, GeekChatRequest

__all__ = [
    "AssistantMessage",
    "ChatCompletion",
    "ChatCompletionChunk",
    "ChatMessage",
    "ChunkChoice",
    "ChunkDelta",
    "CompletionChoice",
    "ConversationTurn",
    "GeekChatRequest",
]
