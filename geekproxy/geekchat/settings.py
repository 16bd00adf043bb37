"""Explicit GeekChat configuration handed to the translator and client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..config_loader import is_unresolved
from ..core.exceptions import ConfigurationError

logger = logging.getLogger("geekproxy")

DEFAULT_TIMEOUT = 60.0
STREAM_FRAMINGS = ("ndjson", "sse")
AGGREGATE_MODES = ("text", "chunks", "completion")


def _to_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _to_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _choice(value: Any, allowed: tuple[str, ...], name: str) -> str:
    text = _to_str(value, allowed[0]).strip().lower()
    if text not in allowed:
        raise ConfigurationError(
            f"{name} must be one of {', '.join(allowed)}, got '{value}'"
        )
    return text


@dataclass(frozen=True)
class GeekChatSettings:
    """Backend location, credentials and the identity the backend expects."""

    url: str
    code_token: str
    user_id: str
    talk_id: str
    model: str
    locale: str = "zh"
    ide: str = "VSCode"
    ide_version: str = "1.95.0"
    plugin_version: str = "2.17.6"
    user_role: int = 0
    timeout: Optional[float] = DEFAULT_TIMEOUT
    stream_framing: str = "ndjson"
    aggregate_mode: str = "text"
    strict_history: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "GeekChatSettings":
        """Build settings from the ``geekchat`` and ``proxy_settings`` sections."""
        geek = config.get("geekchat") or {}
        proxy_settings = config.get("proxy_settings") or {}

        settings = cls(
            url=_to_str(geek.get("url")),
            code_token=_to_str(geek.get("code_token")),
            user_id=_to_str(geek.get("user_id")),
            talk_id=_to_str(geek.get("talk_id")),
            model=_to_str(geek.get("model")),
            locale=_to_str(geek.get("locale"), "zh"),
            ide=_to_str(geek.get("ide"), "VSCode"),
            ide_version=_to_str(geek.get("ide_version"), "1.95.0"),
            plugin_version=_to_str(geek.get("plugin_version"), "2.17.6"),
            user_role=_to_int(geek.get("user_role"), 0),
            timeout=_to_float(geek.get("timeout"), DEFAULT_TIMEOUT),
            stream_framing=_choice(
                proxy_settings.get("stream_framing"), STREAM_FRAMINGS, "stream_framing"
            ),
            aggregate_mode=_choice(
                proxy_settings.get("aggregate_mode"), AGGREGATE_MODES, "aggregate_mode"
            ),
            strict_history=_to_bool(proxy_settings.get("strict_history", False)),
        )

        for name in ("url", "code_token", "model"):
            if is_unresolved(getattr(settings, name)):
                logger.warning("GeekChat setting '%s' is not configured", name)
        return settings

    def require_url(self) -> str:
        if is_unresolved(self.url):
            raise ConfigurationError("GeekChat backend URL is not configured")
        return self.url
