"""Settings resolved from the environment with sane defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass

from . import constants


def _parse_env_list(env_name: str, default: list[str]) -> tuple[str, ...]:
    raw = os.getenv(env_name)
    if not raw:
        return tuple(default)
    tokens = [token.strip() for token in raw.split(",") if token.strip()]
    return tuple(tokens) if tokens else tuple(default)


def _get_env_str(env_name: str, default: str) -> str:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    return raw


def _get_env_alias(env_names: tuple[str, ...], default: str) -> str:
    for env_name in env_names:
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            return raw
    return default


def _parse_env_int(env_name: str, default: int) -> int:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_env_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _service_env_prefix(name: str) -> str:
    return "MCP_" + name.upper().replace("-", "_")


def _parse_service_urls() -> dict[str, str]:
    urls = {
        name: _get_env_alias((f"{_service_env_prefix(name)}_URL",), default)
        for name, default in constants.DEFAULT_SERVICE_URLS.items()
    }
    raw = os.getenv("MCP_SERVICE_URLS")
    if not raw:
        return urls
    for entry in raw.split(","):
        name, sep, value = entry.partition("=")
        if not sep or not name.strip() or not value.strip():
            continue
        urls[name.strip()] = value.strip()
    return urls


def _resolve_api_keys(service_names: tuple[str, ...]) -> dict[str, str]:
    shared = os.getenv("MCP_API_KEY", "")
    return {
        name: _get_env_alias((f"{_service_env_prefix(name)}_API_KEY",), shared)
        for name in service_names
    }


@dataclass(frozen=True)
class Settings:
    service_urls: dict[str, str]
    service_api_keys: dict[str, str]
    api_key_header_services: tuple[str, ...]
    rpc_timeout: float
    health_timeout: float
    bridge_url: str
    bridge_api_key: str
    bridge_user_id: str
    bridge_max_reconnects: int
    bridge_reconnect_base: float
    bridge_connect_timeout: float
    clipboard_poll_interval: float
    self_submission_ttl: float
    short_text_max_chars: int
    source: str
    user_id: str

    @classmethod
    def from_env(cls) -> "Settings":
        service_urls = _parse_service_urls()
        return cls(
            service_urls=service_urls,
            service_api_keys=_resolve_api_keys(tuple(service_urls)),
            api_key_header_services=_parse_env_list(
                "MCP_API_KEY_HEADER_SERVICES",
                constants.DEFAULT_API_KEY_HEADER_SERVICES,
            ),
            rpc_timeout=_parse_env_float(
                "THINKDROP_RPC_TIMEOUT", constants.DEFAULT_RPC_TIMEOUT
            ),
            health_timeout=_parse_env_float(
                "THINKDROP_HEALTH_TIMEOUT", constants.DEFAULT_HEALTH_TIMEOUT
            ),
            bridge_url=_get_env_alias(
                ("WEBSOCKET_URL",), constants.DEFAULT_BRIDGE_URL
            ),
            bridge_api_key=_get_env_alias(
                ("BIBSCRIP_API_KEY", "WEBSOCKET_API_KEY"), ""
            ),
            bridge_user_id=_get_env_str(
                "THINKDROP_BRIDGE_USER_ID", constants.DEFAULT_BRIDGE_USER_ID
            ),
            bridge_max_reconnects=_parse_env_int(
                "THINKDROP_BRIDGE_MAX_RECONNECTS",
                constants.DEFAULT_BRIDGE_MAX_RECONNECTS,
            ),
            bridge_reconnect_base=_parse_env_float(
                "THINKDROP_BRIDGE_RECONNECT_BASE",
                constants.DEFAULT_BRIDGE_RECONNECT_BASE,
            ),
            bridge_connect_timeout=_parse_env_float(
                "THINKDROP_BRIDGE_CONNECT_TIMEOUT",
                constants.DEFAULT_BRIDGE_CONNECT_TIMEOUT,
            ),
            clipboard_poll_interval=_parse_env_float(
                "THINKDROP_CLIPBOARD_POLL_INTERVAL",
                constants.DEFAULT_CLIPBOARD_POLL_INTERVAL,
            ),
            self_submission_ttl=_parse_env_float(
                "THINKDROP_SELF_SUBMISSION_TTL",
                constants.DEFAULT_SELF_SUBMISSION_TTL,
            ),
            short_text_max_chars=_parse_env_int(
                "THINKDROP_SHORT_TEXT_MAX_CHARS",
                constants.DEFAULT_SHORT_TEXT_MAX_CHARS,
            ),
            source=_get_env_str("THINKDROP_SOURCE", constants.DEFAULT_SOURCE),
            user_id=_get_env_str("THINKDROP_USER_ID", constants.DEFAULT_USER_ID),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


__all__ = ["Settings", "get_settings"]
