"""OpenAI-compatible chat completions endpoint."""

import json
import logging

from fastapi import Request, Response
from fastapi.responses import StreamingResponse

from ...geekchat import ProxyResponse, build_error_response, dispatch_chat_completion

logger = logging.getLogger("geekproxy")


class ClosingStreamingResponse(StreamingResponse):
    """StreamingResponse that closes its body however sending ends.

    Starlette never closes the body iterator itself, so a client that
    goes away before the first chunk would leave the backend open.
    """

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            aclose = getattr(self.body_iterator, "aclose", None)
            if aclose is not None:
                await aclose()


def to_starlette_response(result: ProxyResponse) -> Response:
    """Convert a framework-independent response into a Starlette one."""
    headers = {k: v for k, v in result.headers.items() if k.lower() != "content-type"}
    if result.is_stream:
        return ClosingStreamingResponse(
            result.body,
            status_code=result.status_code,
            headers=headers,
            media_type=result.media_type,
        )
    return Response(
        content=result.body,
        status_code=result.status_code,
        headers=headers,
        media_type=result.media_type,
    )


async def chat_completions(request: Request) -> Response:
    """Chat completions endpoint - OpenAI compatible.

    POST /v1/chat/completions
    """
    logger.info("Received chat completions request")
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON payload: {exc}")
        return to_starlette_response(build_error_response(f"Invalid JSON payload: {exc}"))

    result = await dispatch_chat_completion(
        payload,
        request.headers.get("accept"),
        request.app.state.geekchat_client,
        request.app.state.geekchat_settings,
    )
    return to_starlette_response(result)
