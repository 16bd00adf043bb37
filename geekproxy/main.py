"""Main FastAPI application for the GeekChat proxy."""

import logging
import os
import socket
import time
from contextlib import asynccontextmanager
from typing import Any, Mapping, Optional

import httpx
from fastapi import FastAPI

from .api.routes import chat_completions, list_models
from .config_loader import load_config
from .geekchat import GeekChatClient, GeekChatSettings
from .logging import setup_logging

logger = logging.getLogger("geekproxy")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def resolve_server_address(config: Mapping[str, Any]) -> tuple[str, int]:
    """Return the bind address; GEEKPROXY_HOST/PORT take priority over config."""
    proxy_settings = config.get("proxy_settings") or {}
    server_cfg = proxy_settings.get("server") or {}

    host = os.getenv("GEEKPROXY_HOST") or str(server_cfg.get("host", DEFAULT_HOST))

    port_value = os.getenv("GEEKPROXY_PORT")
    if port_value is None:
        port_value = server_cfg.get("port", DEFAULT_PORT)
    try:
        port = int(port_value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid port '{port_value}', falling back to {DEFAULT_PORT}")
        port = DEFAULT_PORT

    return host, port


def create_app(
    config: Optional[Mapping[str, Any]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Factory function to create the FastAPI application.

    Args:
        config: Parsed configuration. Loaded from disk when omitted.
        transport: Optional HTTPX transport for backend calls (tests).

    Returns:
        The configured FastAPI application instance.
    """
    if config is None:
        config = load_config()

    proxy_settings = config.get("proxy_settings") or {}
    setup_logging(proxy_settings.get("log_level", "INFO"))

    settings = GeekChatSettings.from_config(config)
    host, port = resolve_server_address(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("GeekChat proxy starting up...")
        logger.info("Configured bind address %s:%s", host, port)
        if host == "0.0.0.0":
            hostname = socket.gethostname()
            logger.info("Reachable on local network at http://%s:%s", hostname, port)
        logger.info(f"Backend: {settings.url} (model {settings.model})")
        logger.info(
            f"Stream framing: {settings.stream_framing}, aggregate mode: {settings.aggregate_mode}"
        )
        yield
        logger.info("GeekChat proxy shut down")

    app = FastAPI(title="GeekChat OpenAI Proxy", lifespan=lifespan)
    app.state.geekchat_settings = settings
    app.state.geekchat_client = GeekChatClient(settings, transport=transport)
    app.state.started_at = int(time.time())
    app.state.server_address = (host, port)

    app.post("/v1/chat/completions")(chat_completions)
    app.get("/v1/models")(list_models)
    logger.info("FastAPI application created")
    return app
