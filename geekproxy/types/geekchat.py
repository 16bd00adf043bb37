"""Request types for the GeekChat backend."""

from typing import Optional

from typing_extensions import TypedDict


class ConversationTurn(TypedDict):
    """One prior exchange in GeekChat history.

    Attributes:
        query: What the user asked (or a leading system instruction).
        answer: What the assistant replied. Empty for a system instruction.
    """
    query: str
    answer: str


class GeekChatRequest(TypedDict):
    """Body POSTed to the GeekChat chat endpoint.

    The identity and client fields mimic the IDE plugin the backend expects
    and come from configuration; ``prompt`` and ``history`` come from the
    client's messages.
    """
    user_id: str
    user_role: int
    ide: str
    ide_version: str
    plugin_version: str
    talkId: str
    locale: str
    model: str
    agent: Optional[str]
    prompt: str
    history: list[ConversationTurn]
