"""HTTP client for the GeekChat streaming chat endpoint."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Optional

import httpx

from ..core.exceptions import UpstreamTransportError
from ..types.geekchat import GeekChatRequest
from .settings import GeekChatSettings

logger = logging.getLogger("geekproxy")

# Headers whose values must never reach the logs
SENSITIVE_HEADERS = {"code-token", "authorization", "cookie"}


def _safe_headers_for_log(headers: httpx.Headers) -> dict[str, str]:
    return {
        key: ("***" if key.lower() in SENSITIVE_HEADERS else value)
        for key, value in headers.items()
    }


def format_httpx_error(exc: Exception, url: Optional[str] = None) -> str:
    """Produce a user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)

    if url:
        parts.append(f"url={url}")

    if isinstance(exc, httpx.TimeoutException):
        parts.append("phase=connect" if isinstance(exc, httpx.ConnectTimeout) else "phase=io")
    return "; ".join(parts)


class GeekChatStream:
    """An open backend response together with the client that owns it.

    Exposes the ``aiter_bytes()`` / ``aclose()`` pair the stream adapter
    consumes. ``aclose()`` only releases the connection the first time.
    """

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient) -> None:
        self.response = response
        self._client = client
        self.closed = False

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        return self.response.aiter_bytes()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        logger.debug("Closing GeekChat stream for %s", self.response.request.url)
        try:
            await self.response.aclose()
        finally:
            await self._client.aclose()


class GeekChatClient:
    """Opens streaming chat calls against the configured GeekChat backend."""

    def __init__(
        self,
        settings: GeekChatSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.transport = transport

    def build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            "Code-Token": self.settings.code_token,
        }

    async def open_stream(self, payload: GeekChatRequest) -> GeekChatStream:
        """POST ``payload`` and return the backend's event stream.

        Raises:
            ConfigurationError: If no backend URL is configured.
            UpstreamTransportError: If the backend is unreachable or answers
                with an error status.
        """
        url = self.settings.require_url()
        timeout = self.settings.timeout
        stream_timeout = httpx.Timeout(connect=timeout, read=None, write=timeout, pool=timeout)
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")

        client = httpx.AsyncClient(timeout=stream_timeout, transport=self.transport, follow_redirects=True)
        try:
            request = client.build_request("POST", url, headers=self.build_headers(), content=body)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Request headers: %s", _safe_headers_for_log(request.headers))
            logger.debug(f"Sending GeekChat request to {url} ({len(body)} bytes)")
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.error(f"Failed to reach GeekChat backend at {url}: {exc}")
            raise UpstreamTransportError(format_httpx_error(exc, url)) from exc
        except BaseException:
            await client.aclose()
            raise

        stream = GeekChatStream(response, client)
        if response.status_code >= 400:
            try:
                data = await response.aread()
            except httpx.HTTPError:
                data = b""
            finally:
                await stream.aclose()
            detail = data.decode("utf-8", errors="replace")[:500]
            logger.warning(f"GeekChat backend returned status {response.status_code}: {detail}")
            raise UpstreamTransportError(
                f"GeekChat backend returned status {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        logger.info(f"GeekChat stream opened (status {response.status_code})")
        return stream
