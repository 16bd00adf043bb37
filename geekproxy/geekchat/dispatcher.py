"""Chooses between streamed and aggregated delivery of a GeekChat reply."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping, Optional, Union

from ..core.exceptions import RequestShapeError
from .aggregator import aggregate_completion, aggregate_stream
from .client import GeekChatClient
from .settings import GeekChatSettings
from .stream_adapter import GeekChatToChatStreamAdapter
from .translator import build_geekchat_request

logger = logging.getLogger("geekproxy")

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
JSON_MEDIA_TYPE = "application/json"
ERROR_STATUS_CODE = 500

STREAM_HEADERS = {
    "Content-Type": EVENT_STREAM_MEDIA_TYPE,
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@dataclass
class ProxyResponse:
    """An outgoing response, independent of any web framework."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Union[str, AsyncIterator[bytes]] = ""

    @property
    def is_stream(self) -> bool:
        return not isinstance(self.body, str)

    @property
    def media_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")


def build_stream_response(chunks: AsyncIterator[bytes]) -> ProxyResponse:
    return ProxyResponse(status_code=200, headers=dict(STREAM_HEADERS), body=chunks)


def build_json_response(body: str, status_code: int = 200) -> ProxyResponse:
    return ProxyResponse(
        status_code=status_code,
        headers={"Content-Type": JSON_MEDIA_TYPE},
        body=body,
    )


def build_error_response(message: str) -> ProxyResponse:
    """Build the single error shape exposed to callers."""
    body = json.dumps({"error": {"message": message}}, ensure_ascii=False)
    return build_json_response(body, status_code=ERROR_STATUS_CODE)


def wants_event_stream(accept: Optional[str]) -> bool:
    """True when the client's Accept header asks for an event stream."""
    if not accept:
        return False
    return accept.strip().lower() == EVENT_STREAM_MEDIA_TYPE


async def dispatch_chat_completion(
    payload: Any,
    accept: Optional[str],
    client: GeekChatClient,
    settings: GeekChatSettings,
) -> ProxyResponse:
    """Run one chat completion through GeekChat and shape the reply.

    Any failure before the response is handed back collapses into
    :func:`build_error_response`. Failures after streaming has begun end
    the stream.
    """
    try:
        if not isinstance(payload, Mapping):
            raise RequestShapeError("Request body must be a JSON object")

        request_model = payload.get("model")
        model = request_model if isinstance(request_model, str) and request_model else settings.model
        is_stream = wants_event_stream(accept)
        if bool(payload.get("stream")) != is_stream:
            logger.debug(
                "Body stream flag (%s) differs from Accept header; using stream=%s",
                payload.get("stream"),
                is_stream,
            )

        geek_request = build_geekchat_request(payload.get("messages"), settings)
        logger.info(
            f"Processing request for model {model}, stream={is_stream}, "
            f"history turns={len(geek_request['history'])}"
        )

        upstream = await client.open_stream(geek_request)

        if is_stream:
            adapter = GeekChatToChatStreamAdapter(model, framing=settings.stream_framing)
            return build_stream_response(adapter.stream(upstream))

        if settings.aggregate_mode == "text":
            adapter = GeekChatToChatStreamAdapter(model, framing="text")
        else:
            adapter = GeekChatToChatStreamAdapter(model, framing=settings.stream_framing)

        if settings.aggregate_mode == "completion":
            body = await aggregate_completion(adapter, upstream)
        else:
            body = await aggregate_stream(adapter.adapt_stream(upstream))
        logger.info(f"Request for model {model} completed successfully")
        return build_json_response(body)
    except Exception as exc:
        logger.error(f"Error processing chat completion: {exc}")
        return build_error_response(str(exc))
