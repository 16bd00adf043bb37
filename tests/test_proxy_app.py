"""End-to-end tests for the FastAPI application."""

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from geekproxy.api.routes.chat import to_starlette_response
from geekproxy.geekchat.dispatcher import build_stream_response
from geekproxy.geekchat.stream_adapter import GeekChatToChatStreamAdapter
from geekproxy.main import create_app

from conftest import FakeUpstream, RecordingTransport, add_event, finish_event, parse_ndjson, sse_event

MESSAGES = [
    {"role": "system", "content": "Sys"},
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello"},
    {"role": "user", "content": "Bye"},
]

BACKEND_BODY = (
    add_event("Hel")
    + sse_event("heartbeat", {})
    + add_event("lo")
    + finish_event("stop")
)


@pytest.fixture
def backend(sse_transport):
    return sse_transport(BACKEND_BODY)


@pytest.fixture
def client(make_config, backend):
    app = create_app(make_config(), transport=backend)
    with TestClient(app) as test_client:
        yield test_client


def _post(client, accept=None, body=None):
    headers = {"Accept": accept} if accept else {}
    payload = body if body is not None else {"model": "gpt-4o", "messages": MESSAGES}
    return client.post("/v1/chat/completions", json=payload, headers=headers)


def test_streaming_response_headers_and_chunks(client):
    response = _post(client, accept="text/event-stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["connection"] == "keep-alive"

    chunks = parse_ndjson(response.content)
    assert [c["choices"][0]["delta"] for c in chunks] == [{"content": "Hel"}, {"content": "lo"}, {}]
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
    assert all(c["model"] == "gpt-4o" for c in chunks)


def test_backend_receives_translated_request(client, backend):
    _post(client, accept="text/event-stream")

    sent = json.loads(backend.requests[0].content)
    assert sent["prompt"] == "Bye"
    assert sent["history"] == [{"query": "Sys", "answer": ""}, {"query": "Hi", "answer": "Hello"}]
    assert sent["model"] == "geek-model"
    assert backend.requests[0].headers["code-token"] == "test-token"


def test_aggregated_response_when_accept_is_not_event_stream(client):
    response = _post(client, accept="application/json")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert response.text == "Hello"


def test_missing_accept_header_aggregates(client):
    response = _post(client)
    assert response.headers["content-type"] == "application/json"
    assert response.text == "Hello"


def test_body_stream_flag_does_not_select_mode(client):
    response = _post(client, body={"model": "m", "messages": MESSAGES, "stream": True})
    assert response.headers["content-type"] == "application/json"


def test_empty_messages_yield_error_shape(client, backend):
    response = _post(client, body={"model": "m", "messages": []})

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert "messages" in response.json()["error"]["message"]
    assert backend.requests == []


def test_invalid_json_yields_error_shape(client):
    response = client.post(
        "/v1/chat/completions",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 500
    assert response.json()["error"]["message"].startswith("Invalid JSON payload")


def test_backend_error_status_yields_error_shape(make_config, sse_transport):
    app = create_app(make_config(), transport=sse_transport(b"nope", status_code=503))
    with TestClient(app) as test_client:
        response = _post(test_client, accept="text/event-stream")

    assert response.status_code == 500
    assert "503" in response.json()["error"]["message"]


def test_backend_unreachable_yields_error_shape(make_config):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    app = create_app(make_config(), transport=RecordingTransport(handler))
    with TestClient(app) as test_client:
        response = _post(test_client)

    assert response.status_code == 500
    assert "ConnectError" in response.json()["error"]["message"]


def test_stream_without_finish_fails_aggregation(make_config, sse_transport):
    app = create_app(make_config(), transport=sse_transport(add_event("partial")))
    with TestClient(app) as test_client:
        response = _post(test_client)

    assert response.status_code == 500
    assert "finish" in response.json()["error"]["message"]


def test_completion_aggregate_mode(make_config, sse_transport):
    config = make_config(aggregate_mode="completion")
    app = create_app(config, transport=sse_transport(BACKEND_BODY))
    with TestClient(app) as test_client:
        response = _post(test_client)

    completion = response.json()
    assert completion["object"] == "chat.completion"
    assert completion["model"] == "gpt-4o"
    assert completion["choices"][0]["message"]["content"] == "Hello"


def test_sse_stream_framing(make_config, sse_transport):
    app = create_app(make_config(stream_framing="sse"), transport=sse_transport(BACKEND_BODY))
    with TestClient(app) as test_client:
        response = _post(test_client, accept="text/event-stream")

    records = [r for r in response.text.split("\n\n") if r]
    assert len(records) == 3
    assert all(r.startswith("data: ") for r in records)


def test_missing_model_falls_back_to_configured_model(client):
    response = _post(client, body={"messages": MESSAGES}, accept="text/event-stream")
    assert all(c["model"] == "geek-model" for c in parse_ndjson(response.content))


def test_list_models(client):
    response = client.get("/v1/models")

    assert response.status_code == 200
    data = response.json()
    assert data["object"] == "list"
    assert data["data"][0]["id"] == "geek-model"
    assert data["data"][0]["owned_by"] == "geekchat"


def test_chunks_aggregate_mode(make_config, sse_transport):
    app = create_app(make_config(aggregate_mode="chunks"), transport=sse_transport(BACKEND_BODY))
    with TestClient(app) as test_client:
        response = _post(test_client)

    chunks = parse_ndjson(response.text)
    assert "".join(c["choices"][0]["delta"].get("content", "") for c in chunks) == "Hello"
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
    assert len(chunks) == 3


@pytest.mark.asyncio
async def test_failed_send_before_first_chunk_releases_backend():
    upstream = FakeUpstream([add_event("a"), finish_event()])
    adapter = GeekChatToChatStreamAdapter("m")
    response = to_starlette_response(build_stream_response(adapter.stream(upstream)))

    async def receive():
        await asyncio.Event().wait()

    async def send(message):
        raise OSError("client went away")

    scope = {"type": "http", "asgi": {"version": "3.0", "spec_version": "2.4"}}
    with pytest.raises(Exception):
        await response(scope, receive, send)

    assert upstream.chunks_read == 0
    assert upstream.close_calls == 1
