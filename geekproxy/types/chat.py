"""OpenAI-compatible chat types exchanged with clients.

Only the subset of the Chat Completions format that the GeekChat backend can
serve is described here: plain text messages in, text deltas out.
"""

from typing import Any, Optional

from typing_extensions import TypedDict


class ChatMessage(TypedDict, total=False):
    """A message in the client's conversation (OpenAI format).

    Attributes:
        role: Who sent the message: "system", "user" or "assistant".
            Other roles are accepted but never become history turns.
        content: The message text. Clients may also send a list of content
            parts; only the text parts are used.
    """
    role: str
    content: str | list[dict[str, Any]] | None


class ChunkDelta(TypedDict, total=False):
    """Incremental content carried by one streaming chunk.

    Attributes:
        content: The text fragment. Absent on the terminal chunk.
    """
    content: str


class ChunkChoice(TypedDict):
    """A choice within a streaming chunk. GeekChat only produces index 0."""
    delta: ChunkDelta
    index: int
    finish_reason: Optional[str]


class ChatCompletionChunk(TypedDict):
    """A streaming chunk (``object == "chat.completion.chunk"``).

    Attributes:
        id: Identifier copied from the backend event payload.
        object: Always "chat.completion.chunk".
        created: Unix timestamp (seconds) taken when the chunk was built.
        model: Model name reported to the client.
        choices: Exactly one choice.
    """
    id: str
    object: str
    created: int
    model: str
    choices: list[ChunkChoice]


class AssistantMessage(TypedDict):
    role: str
    content: str


class CompletionChoice(TypedDict):
    index: int
    message: AssistantMessage
    finish_reason: Optional[str]


class ChatCompletion(TypedDict):
    """A complete, non-streaming chat completion (``object == "chat.completion"``)."""
    id: str
    object: str
    created: int
    model: str
    choices: list[CompletionChoice]
