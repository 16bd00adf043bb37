"""SSE (Server-Sent Events) decoding for the GeekChat backend stream.

The backend frames every event as::

    event: add
    data: {"id": "...", "text": "Hel"}

    event: finish
    data: {"id": "...", "finish_reason": "stop"}

Bytes arrive in chunks of arbitrary size, so the decoder keeps undecoded
bytes and unterminated records between calls and only emits complete
records.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from .exceptions import StreamDecodeError

logger = logging.getLogger("geekproxy")

EVENT_ADD = "add"
EVENT_FINISH = "finish"
RECOGNIZED_EVENTS = frozenset({EVENT_ADD, EVENT_FINISH})

DEFAULT_EVENT_TYPE = "message"


@dataclass(frozen=True)
class BackendEvent:
    """One complete SSE record with its JSON-decoded payload."""

    event_type: str
    data: Any


class SSEEventParser:
    """Incremental SSE decoder producing :class:`BackendEvent` values."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        self._buffer = ""
        self._pending_cr = False

    def feed(self, chunk: bytes) -> list[BackendEvent]:
        if not chunk:
            return []
        try:
            text = self._decoder.decode(chunk)
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(f"backend stream is not valid UTF-8: {exc}") from exc
        return self._consume(text)

    def flush(self) -> list[BackendEvent]:
        """Finish the stream, discarding any unterminated record."""
        try:
            tail = self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(f"backend stream ended mid code point: {exc}") from exc
        events = self._consume(tail, final=True)
        if self._buffer.strip():
            logger.debug("SSE: discarding unterminated record: %r", self._buffer[:100])
        self._buffer = ""
        return events

    def _consume(self, text: str, final: bool = False) -> list[BackendEvent]:
        if self._pending_cr:
            text = "\r" + text
            self._pending_cr = False
        # A trailing CR may be the first half of a CRLF split across chunks
        if text.endswith("\r") and not final:
            text = text[:-1]
            self._pending_cr = True

        self._buffer += text.replace("\r\n", "\n").replace("\r", "\n")
        events: list[BackendEvent] = []

        while True:
            sep_index = self._buffer.find("\n\n")
            if sep_index == -1:
                break
            raw_event = self._buffer[:sep_index]
            self._buffer = self._buffer[sep_index + 2:]
            if not raw_event.strip():
                continue
            event = self._parse_event(raw_event)
            if event is not None:
                events.append(event)

        return events

    @staticmethod
    def _parse_event(raw: str) -> Optional[BackendEvent]:
        event_type = DEFAULT_EVENT_TYPE
        data_lines: list[str] = []
        for line in raw.split("\n"):
            if not line or line.startswith(":"):
                continue
            field, sep, value = line.partition(":")
            if not sep:
                value = ""
            elif value.startswith(" "):
                value = value[1:]
            if field == "event":
                event_type = value or DEFAULT_EVENT_TYPE
            elif field == "data":
                data_lines.append(value)
            # id, retry and unknown fields carry nothing we forward

        if not data_lines:
            logger.debug("SSE: skipping record without data (event=%s)", event_type)
            return None

        data_str = "\n".join(data_lines)
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError as exc:
            if event_type in RECOGNIZED_EVENTS:
                raise StreamDecodeError(
                    f"invalid JSON in '{event_type}' event: {data_str[:100]!r}"
                ) from exc
            logger.debug("SSE: skipping non-JSON '%s' record: %s", event_type, data_str[:100])
            return None

        return BackendEvent(event_type=event_type, data=data)


async def iter_events(byte_stream: AsyncIterator[bytes]) -> AsyncIterator[BackendEvent]:
    """Yield backend events from a byte stream as each record completes."""
    parser = SSEEventParser()
    async for chunk in byte_stream:
        for event in parser.feed(chunk):
            yield event
    for event in parser.flush():
        yield event
