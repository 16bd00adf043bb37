"""OpenAI Chat Completions -> GeekChat request translation.

GeekChat takes the latest user input as ``prompt`` and earlier exchanges as
``history`` turns of ``{query, answer}``:

- a leading system message becomes the first turn, with an empty answer
- the last remaining message is always the prompt
- the messages before it are walked two at a time; a pair becomes a turn
  only when it is user followed by assistant
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from ..core.exceptions import RequestShapeError
from ..types.geekchat import ConversationTurn, GeekChatRequest
from .settings import GeekChatSettings

logger = logging.getLogger("geekproxy")


def extract_text_content(content: Any) -> str:
    """Return the text of an OpenAI message ``content`` value.

    Content-part lists are flattened by joining their text parts.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, Mapping) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
            elif isinstance(part, str):
                parts.append(part)
            else:
                logger.debug("Dropping non-text content part during translation")
        return "".join(parts)
    raise RequestShapeError(f"unsupported message content type: {type(content).__name__}")


def _normalize_messages(messages: Any) -> list[tuple[str, str]]:
    if not isinstance(messages, list) or not messages:
        raise RequestShapeError("You must provide a non-empty messages array")

    normalized: list[tuple[str, str]] = []
    for position, message in enumerate(messages):
        if not isinstance(message, Mapping):
            raise RequestShapeError(f"messages[{position}] must be an object")
        role = message.get("role")
        if not isinstance(role, str) or not role:
            raise RequestShapeError(f"messages[{position}] is missing a role")
        normalized.append((role, extract_text_content(message.get("content"))))
    return normalized


def build_history(
    messages: Sequence[tuple[str, str]],
    *,
    strict: bool = False,
) -> tuple[str, list[ConversationTurn]]:
    """Split normalized ``(role, content)`` pairs into prompt and history."""
    history: list[ConversationTurn] = []
    remaining = list(messages)

    if remaining and remaining[0][0] == "system":
        history.append({"query": remaining[0][1], "answer": ""})
        remaining = remaining[1:]

    if not remaining:
        raise RequestShapeError("messages must contain at least one non-system message")

    prompt = remaining[-1][1]
    last = len(remaining) - 1

    for i in range(0, last, 2):
        if i + 1 >= last:
            # The partner of this message would be the prompt itself
            continue
        (user_role, query), (assistant_role, answer) = remaining[i], remaining[i + 1]
        if user_role == "user" and assistant_role == "assistant":
            history.append({"query": query, "answer": answer})
            continue
        if strict:
            raise RequestShapeError(
                f"messages at positions {i} and {i + 1} are {user_role}/{assistant_role}, "
                f"expected user/assistant"
            )
        logger.debug(
            "Dropping %s/%s message pair that is not user/assistant",
            user_role,
            assistant_role,
        )

    return prompt, history


def build_geekchat_request(
    messages: Any,
    settings: GeekChatSettings,
    *,
    strict: bool | None = None,
) -> GeekChatRequest:
    """Translate an OpenAI ``messages`` array into a GeekChat request body.

    Args:
        messages: The client's message list.
        settings: Backend identity and model to stamp on the request.
        strict: Raise on pairs that are not user/assistant instead of
            dropping them. Defaults to ``settings.strict_history``.

    Raises:
        RequestShapeError: If no prompt can be derived from ``messages``.
    """
    if strict is None:
        strict = settings.strict_history
    prompt, history = build_history(_normalize_messages(messages), strict=strict)

    logger.debug("Translated %d messages into %d history turns", len(messages), len(history))

    return {
        "user_id": settings.user_id,
        "user_role": settings.user_role,
        "ide": settings.ide,
        "ide_version": settings.ide_version,
        "plugin_version": settings.plugin_version,
        "talkId": settings.talk_id,
        "locale": settings.locale,
        "model": settings.model,
        "agent": None,
        "prompt": prompt,
        "history": history,
    }
