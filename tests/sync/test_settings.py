from __future__ import annotations

import importlib
from pathlib import Path

import menu_sync.settings as settings_mod


def test_invalid_env_does_not_crash(monkeypatch):
    monkeypatch.setenv("WS_PING_INTERVAL_S", "not-a-number")
    monkeypatch.setenv("WS_RECONNECT_BACKOFF_S", "nope")
    monkeypatch.setenv("MENU_HTTP_TIMEOUT_S", "invalid")
    monkeypatch.setenv("MENU_LIST_RETRY_MAX", "invalid")
    monkeypatch.setenv("MENU_DELETE_MARKER_REMOVES", "yes")
    monkeypatch.setenv("MENU_API_TOKEN", "   ")

    mod = importlib.reload(settings_mod)
    try:
        assert mod.WS_PING_INTERVAL_S == 20
        assert mod.WS_RECONNECT_BACKOFF_S == 1.0
        assert mod.MENU_HTTP_TIMEOUT_S == 10.0
        assert mod.MENU_LIST_RETRY_MAX == 3
        assert mod.MENU_DELETE_MARKER_REMOVES is True
        assert mod.MENU_API_TOKEN is None
    finally:
        monkeypatch.undo()
        importlib.reload(settings_mod)


def test_yaml_overrides_known_fields(tmp_path: Path):
    cfg_path = tmp_path / "menu.yaml"
    cfg_path.write_text(
        "api_base: https://vendor.example/api/menu\n"
        "token: secret\n"
        "delete_marker_removes: true\n"
        "colour: blue\n",
        encoding="utf-8",
    )

    cfg = settings_mod.load_settings(cfg_path)

    assert cfg.api_base == "https://vendor.example/api/menu"
    assert cfg.token == "secret"
    assert cfg.delete_marker_removes is True
    assert not hasattr(cfg, "colour")


def test_no_config_uses_env_defaults():
    cfg = settings_mod.load_settings()
    assert cfg.bulk_url == settings_mod.MENU_BULK_URL
    assert cfg.http_timeout_s == settings_mod.MENU_HTTP_TIMEOUT_S


def test_yaml_values_are_coerced_to_field_types(tmp_path: Path):
    cfg_path = tmp_path / "menu.yaml"
    cfg_path.write_text(
        'insecure_tls: "false"\n'
        'discard_stale_saves: "no"\n'
        'http_timeout_s: "2.5"\n'
        "list_retry_max: not-a-number\n"
        'ws_ping_interval_s: "7"\n'
        "token: ''\n"
        "api_base: 42\n",
        encoding="utf-8",
    )

    cfg = settings_mod.load_settings(cfg_path)

    assert cfg.insecure_tls is False
    assert cfg.discard_stale_saves is False
    assert cfg.http_timeout_s == 2.5
    assert cfg.list_retry_max == settings_mod.MENU_LIST_RETRY_MAX
    assert cfg.ws_ping_interval_s == 7
    assert cfg.token is None
    assert cfg.api_base == "42"
