"""Aggregation of a transcoded stream into a single response body."""

import codecs
import json
import logging
from typing import AsyncIterator

from .stream_adapter import GeekChatToChatStreamAdapter, UpstreamStream

logger = logging.getLogger("geekproxy")


async def aggregate_stream(chunks: AsyncIterator[bytes]) -> str:
    """Drain ``chunks`` and return everything they carried as one string.

    The body is the literal concatenation of the encoded chunks in arrival
    order, not a re-parsed completion object. Errors from the stream
    propagate and no partial body is returned.
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    parts: list[str] = []
    async for chunk in chunks:
        parts.append(decoder.decode(chunk))
    parts.append(decoder.decode(b"", final=True))
    body = "".join(parts)
    logger.debug("Aggregated %d chunks into %d characters", len(parts) - 1, len(body))
    return body


async def aggregate_completion(
    adapter: GeekChatToChatStreamAdapter,
    upstream: UpstreamStream,
) -> str:
    """Drain the adapter and return a single ``chat.completion`` JSON document."""
    async for _ in adapter.adapt_stream(upstream):
        pass
    return json.dumps(adapter.build_final_completion(), ensure_ascii=False)
