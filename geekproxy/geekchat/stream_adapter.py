"""Stream adapter for converting GeekChat SSE to OpenAI chat completion chunks.

GeekChat Events:
    event: add
    data: {"id":"abc","text":"Hel"}

    event: finish
    data: {"id":"abc","finish_reason":"stop"}

OpenAI Chat Completion Chunks (ndjson framing):
    {"id":"abc","object":"chat.completion.chunk","created":1700000000,"model":"m",
     "choices":[{"delta":{"content":"Hel"},"index":0,"finish_reason":null}]}
    {"id":"abc","object":"chat.completion.chunk","created":1700000000,"model":"m",
     "choices":[{"delta":{},"index":0,"finish_reason":"stop"}]}

With ``sse`` framing every chunk is sent as ``data: {...}\\n\\n`` instead.
With ``text`` framing only the ``add`` text is emitted and ``finish``
contributes nothing, so the concatenated output is the plain reply.
"""

import json
import logging
import time
from typing import Any, AsyncIterator, Mapping, Optional, Protocol

import httpx

from ..core.exceptions import StreamDecodeError, UpstreamTransportError
from ..core.sse import EVENT_ADD, EVENT_FINISH, iter_events
from ..types.chat import ChatCompletion, ChatCompletionChunk, ChunkDelta

logger = logging.getLogger("geekproxy")

FRAMINGS = ("ndjson", "sse", "text")
DEFAULT_FINISH_REASON = "stop"


class UpstreamStream(Protocol):
    """What the adapter needs from a backend response."""

    def aiter_bytes(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


class GeekChatToChatStreamAdapter:
    """Converts a GeekChat event stream into OpenAI chat completion chunks.

    The adapter owns the upstream for the lifetime of :meth:`adapt_stream`
    and closes it exactly once, whether the stream finishes, fails or the
    consumer stops reading. It also accumulates the emitted text so
    :meth:`build_final_completion` can describe the whole reply.
    """

    def __init__(self, model: str, *, framing: str = "ndjson") -> None:
        """Initialize the stream adapter.

        Args:
            model: Model name reported in every chunk.
            framing: "ndjson" (one JSON document per line), "sse"
                (``data:`` records) or "text" (bare reply text).
        """
        if framing not in FRAMINGS:
            raise ValueError(f"unknown stream framing: {framing}")
        self.model = model
        self.framing = framing

        self.response_id: Optional[str] = None
        self.accumulated_text = ""
        self.finish_reason: Optional[str] = None
        self.chunk_count = 0

        self.finished = False
        self.released = False

    async def adapt_stream(self, upstream: UpstreamStream) -> AsyncIterator[bytes]:
        """Transform the backend stream into encoded OpenAI chunks.

        Args:
            upstream: The open backend response.

        Yields:
            Encoded chunk records, the terminal one last.

        Raises:
            StreamDecodeError: Malformed events, or the stream ended
                without a finish event.
            UpstreamTransportError: The connection failed mid-stream.
        """
        events = iter_events(upstream.aiter_bytes())
        try:
            async for event in events:
                if event.event_type == EVENT_ADD:
                    data = self._require_mapping(event.event_type, event.data)
                    text = data.get("text")
                    if text is None:
                        text = ""
                    chunk = self._build_chunk(data, {"content": str(text)}, None)
                    self.accumulated_text += str(text)
                    encoded = self._encode(chunk)
                    if encoded:
                        yield encoded
                elif event.event_type == EVENT_FINISH:
                    data = self._require_mapping(event.event_type, event.data)
                    finish_reason = data.get("finish_reason")
                    if not finish_reason:
                        logger.debug("GeekChat: finish event without finish_reason, using 'stop'")
                        finish_reason = DEFAULT_FINISH_REASON
                    self.finish_reason = str(finish_reason)
                    self.finished = True
                    chunk = self._build_chunk(data, {}, self.finish_reason)
                    encoded = self._encode(chunk)
                    if encoded:
                        yield encoded
                    return
                else:
                    logger.debug("GeekChat: ignoring '%s' event", event.event_type)
            raise StreamDecodeError("GeekChat stream ended before a finish event")
        except httpx.HTTPError as exc:
            logger.error(f"GeekChat stream failed after {self.chunk_count} chunks: {exc}")
            raise UpstreamTransportError(f"GeekChat stream failed: {exc}") from exc
        finally:
            logger.debug(f"GeekChat stream completed, total chunks: {self.chunk_count}")
            try:
                await events.aclose()
            finally:
                await self.release(upstream)

    def stream(self, upstream: UpstreamStream) -> "AdaptedStream":
        """Adapt ``upstream`` into a body that owns it until closed."""
        return AdaptedStream(self, upstream)

    async def release(self, upstream: UpstreamStream) -> None:
        """Close the upstream once; later calls do nothing."""
        if self.released:
            return
        self.released = True
        try:
            await upstream.aclose()
        except Exception as exc:
            # Never let a failed close mask the error that ended the stream
            logger.warning(f"Failed to release GeekChat stream: {exc}")

    @staticmethod
    def _require_mapping(event_type: str, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise StreamDecodeError(
                f"'{event_type}' event payload must be an object, got {type(data).__name__}"
            )
        return data

    def _build_chunk(
        self,
        data: Mapping[str, Any],
        delta: ChunkDelta,
        finish_reason: Optional[str],
    ) -> ChatCompletionChunk:
        chunk_id = data.get("id")
        if chunk_id is not None and self.response_id is None:
            self.response_id = str(chunk_id)
        self.chunk_count += 1
        return {
            "id": chunk_id,
            "object": "chat.completion.chunk",
            "created": int(time.time()),
            "model": self.model,
            "choices": [
                {
                    "delta": delta,
                    "index": 0,
                    "finish_reason": finish_reason,
                }
            ],
        }

    def _encode(self, chunk: ChatCompletionChunk) -> bytes:
        if self.framing == "text":
            return chunk["choices"][0]["delta"].get("content", "").encode("utf-8")
        json_str = json.dumps(chunk, ensure_ascii=False)
        if self.framing == "sse":
            return f"data: {json_str}\n\n".encode("utf-8")
        return f"{json_str}\n".encode("utf-8")

    def build_final_completion(self) -> ChatCompletion:
        """Build the complete chat completion from everything streamed so far."""
        return {
            "id": self.response_id or "",
            "object": "chat.completion",
            "created": int(time.time()),
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": self.accumulated_text},
                    "finish_reason": self.finish_reason,
                }
            ],
        }


class AdaptedStream:
    """Async iterator over adapted chunks that owns the upstream.

    ``adapt_stream`` only releases the upstream once iteration has begun.
    A consumer that gives up before pulling the first chunk still has to
    close the backend connection, so :meth:`aclose` releases it directly.
    """

    def __init__(self, adapter: GeekChatToChatStreamAdapter, upstream: UpstreamStream) -> None:
        self.adapter = adapter
        self.upstream = upstream
        self._chunks = adapter.adapt_stream(upstream)

    def __aiter__(self) -> "AdaptedStream":
        return self

    async def __anext__(self) -> bytes:
        return await self._chunks.__anext__()

    async def aclose(self) -> None:
        try:
            await self._chunks.aclose()
        finally:
            await self.adapter.release(self.upstream)


async def adapt_geekchat_stream(
    upstream: UpstreamStream,
    model: str,
    *,
    framing: str = "ndjson",
) -> AsyncIterator[bytes]:
    """Convenience function to adapt a GeekChat stream to OpenAI chunks."""
    adapter = GeekChatToChatStreamAdapter(model, framing=framing)
    async for chunk in adapter.adapt_stream(upstream):
        yield chunk
