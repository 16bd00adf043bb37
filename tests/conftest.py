"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import httpx
import pytest

# Make the project root importable when running without an install
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from geekproxy.geekchat.settings import GeekChatSettings

GEEK_URL = "http://geekchat.local/api/chat"


# =============================================================================
# GeekChat SSE Builders
# =============================================================================


def sse_event(event_type: str, data: Any) -> bytes:
    """Encode one backend SSE record."""
    payload = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    return f"event: {event_type}\ndata: {payload}\n\n".encode("utf-8")


def add_event(text: str, response_id: str = "geek-1") -> bytes:
    return sse_event("add", {"id": response_id, "text": text})


def finish_event(reason: str = "stop", response_id: str = "geek-1") -> bytes:
    return sse_event("finish", {"id": response_id, "finish_reason": reason})


def parse_ndjson(body: bytes | str) -> list[dict]:
    text = body.decode("utf-8") if isinstance(body, bytes) else body
    return [json.loads(line) for line in text.split("\n") if line]


# =============================================================================
# Fake Upstreams
# =============================================================================


class FakeUpstream:
    """Stand-in for a backend response: replays chunks, counts closes."""

    def __init__(
        self,
        chunks: Iterable[bytes],
        *,
        error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.close_error = close_error
        self.close_calls = 0
        self.chunks_read = 0

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.chunks_read += 1
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def settings() -> GeekChatSettings:
    return GeekChatSettings(
        url=GEEK_URL,
        code_token="test-token",
        user_id="user-1",
        talk_id="talk-1",
        model="geek-model",
    )


@pytest.fixture
def make_config() -> Callable[..., dict]:
    """Build a config mapping as load_config would return it."""

    def _build(**proxy_settings: Any) -> dict:
        return {
            "geekchat": {
                "url": GEEK_URL,
                "code_token": "test-token",
                "user_id": "user-1",
                "talk_id": "talk-1",
                "model": "geek-model",
            },
            "proxy_settings": {"log_level": "DEBUG", **proxy_settings},
        }

    return _build


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def sse_transport() -> Callable[..., RecordingTransport]:
    """Build a transport answering every request with the given SSE body."""

    def _build(*chunks: bytes, status_code: int = 200) -> RecordingTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status_code,
                headers={"content-type": "text/event-stream"},
                content=b"".join(chunks),
            )

        return RecordingTransport(handler)

    return _build
