from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml


log = logging.getLogger("menu_sync.settings")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


# REST boundary
MENU_API_BASE = os.getenv("MENU_API_BASE", "http://localhost:8000/api/vendor/menu")
MENU_BULK_URL = os.getenv("MENU_BULK_URL", "http://localhost:8000/api/vendor/menu/bulk-json")
MENU_API_TOKEN = _env_str("MENU_API_TOKEN")
MENU_HTTP_TIMEOUT_S = _env_float("MENU_HTTP_TIMEOUT_S", 10.0)

# Only the list call is retried; mutations are sent once.
MENU_LIST_RETRY_MAX = _env_int("MENU_LIST_RETRY_MAX", 3)
MENU_LIST_RETRY_BACKOFF_S = _env_float("MENU_LIST_RETRY_BACKOFF_S", 0.5)
MENU_LIST_RETRY_BACKOFF_MAX_S = _env_float("MENU_LIST_RETRY_BACKOFF_MAX_S", 5.0)

# Broadcast channel
MENU_WS_URL = _env_str("MENU_WS_URL")
WS_PING_INTERVAL_S = _env_int("WS_PING_INTERVAL_S", 20)
WS_PING_TIMEOUT_S = _env_int("WS_PING_TIMEOUT_S", 60)
WS_RECONNECT_BACKOFF_S = _env_float("WS_RECONNECT_BACKOFF_S", 1.0)
WS_RECONNECT_BACKOFF_MAX_S = _env_float("WS_RECONNECT_BACKOFF_MAX_S", 30.0)
WS_MAX_SESSION_S = _env_float("WS_MAX_SESSION_S", float(23 * 3600 + 50 * 60))

# TLS verification should remain enabled by default.
INSECURE_TLS = _env_bool("INSECURE_TLS", False)

# Merge/save behavior
MENU_DELETE_MARKER_REMOVES = _env_bool("MENU_DELETE_MARKER_REMOVES", False)
MENU_DISCARD_STALE_SAVES = _env_bool("MENU_DISCARD_STALE_SAVES", True)


@dataclass
class SyncSettings:
    api_base: str = MENU_API_BASE
    bulk_url: str = MENU_BULK_URL
    token: Optional[str] = MENU_API_TOKEN
    http_timeout_s: float = MENU_HTTP_TIMEOUT_S
    list_retry_max: int = MENU_LIST_RETRY_MAX
    list_retry_backoff_s: float = MENU_LIST_RETRY_BACKOFF_S
    list_retry_backoff_max_s: float = MENU_LIST_RETRY_BACKOFF_MAX_S
    ws_url: Optional[str] = MENU_WS_URL
    ws_ping_interval_s: int = WS_PING_INTERVAL_S
    ws_ping_timeout_s: int = WS_PING_TIMEOUT_S
    ws_reconnect_backoff_s: float = WS_RECONNECT_BACKOFF_S
    ws_reconnect_backoff_max_s: float = WS_RECONNECT_BACKOFF_MAX_S
    ws_max_session_s: float = WS_MAX_SESSION_S
    insecure_tls: bool = INSECURE_TLS
    delete_marker_removes: bool = MENU_DELETE_MARKER_REMOVES
    discard_stale_saves: bool = MENU_DISCARD_STALE_SAVES


def load_config(path: str | Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _coerce(type_name: str, value, default):
    """Convert a YAML value to the field's declared type; keep the default when it does not parse."""
    if type_name == "bool":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "y")
    if type_name == "int":
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    if type_name == "float":
        try:
            return float(value)
        except (TypeError, ValueError):
            return default
    if value is None or not str(value).strip():
        return None if type_name.startswith("Optional") else default
    return str(value).strip()


def load_settings(path: str | Path | None = None) -> SyncSettings:
    """Env-derived settings, optionally overlaid with a YAML file of field names."""
    settings = SyncSettings()
    if path is None:
        return settings
    raw = load_config(path)
    if not isinstance(raw, dict):
        raise ValueError(f"config {path} must be a mapping")
    known = {f.name: f for f in fields(SyncSettings)}
    for key, value in raw.items():
        field_def = known.get(key)
        if field_def is None:
            log.warning("Ignoring unknown config key %s in %s", key, path)
            continue
        setattr(settings, key, _coerce(str(field_def.type), value, getattr(settings, key)))
    return settings
