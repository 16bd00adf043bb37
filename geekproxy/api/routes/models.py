"""Models listing endpoint - OpenAI compatible."""

import logging

from fastapi import Request

logger = logging.getLogger("geekproxy")


async def list_models(request: Request) -> dict:
    """List the GeekChat model in OpenAI API format.

    GET /v1/models
    """
    logger.info("Received models list request")

    settings = request.app.state.geekchat_settings
    return {
        "object": "list",
        "data": [
            {
                "id": settings.model,
                "object": "model",
                "created": request.app.state.started_at,
                "owned_by": "geekchat",
            }
        ],
    }
