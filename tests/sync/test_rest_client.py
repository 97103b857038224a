from __future__ import annotations

from typing import Any, Dict, List

import pytest

import menu_sync.rest as rest_mod
from menu_core.types import DeleteMarker, MenuItem
from menu_sync.rest import MenuRestClient


class _FakeResponse:
    def __init__(self, payload: Any = None, status: int = 200, body: bool = True):
        self._payload = payload
        self.status_code = status
        self._body = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")

    def json(self) -> Any:
        if not self._body:
            raise ValueError("no JSON body")
        return self._payload


def _recorder(calls: List[Dict[str, Any]], response: _FakeResponse):
    def _send(url: str, **kwargs):
        calls.append({"url": url, **kwargs})
        return response

    return _send


def _client(**kwargs) -> MenuRestClient:
    return MenuRestClient(
        base_url="https://api.example/menu/",
        bulk_url="https://api.example/menu/bulk-json",
        token=kwargs.pop("token", "tok"),
        timeout_s=3,
        retry_backoff_s=0.0,
        retry_backoff_max_s=0.0,
        **kwargs,
    )


def test_list_sends_bearer_and_decodes(monkeypatch: pytest.MonkeyPatch):
    calls: List[Dict[str, Any]] = []
    payload = [{"id": 1, "name": "A", "price": 2}, {"id": 2, "deleted": True}]
    monkeypatch.setattr(rest_mod.requests, "get", _recorder(calls, _FakeResponse(payload)))

    items = _client().list_items()

    assert items == [MenuItem(id=1, name="A", price=2.0), DeleteMarker(id=2)]
    assert calls[0]["url"] == "https://api.example/menu"
    assert calls[0]["headers"] == {"Authorization": "Bearer tok"}
    assert calls[0]["timeout"] == 3


def test_list_non_sequence_becomes_empty(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(rest_mod.requests, "get", _recorder([], _FakeResponse({"items": []})))
    assert _client().list_items() == []


def test_list_retries_transient_failures(monkeypatch: pytest.MonkeyPatch):
    attempts = {"n": 0}

    def flaky_get(url, **kwargs):
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise ConnectionError("temporary failure")
        return _FakeResponse([])

    monkeypatch.setattr(rest_mod.requests, "get", flaky_get)
    monkeypatch.setattr(rest_mod.time, "sleep", lambda s: None)

    assert _client(retry_max=3).list_items() == []
    assert attempts["n"] == 3


def test_list_gives_up_after_retry_max(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(rest_mod.requests, "get", _recorder([], _FakeResponse(status=503)))
    with pytest.raises(RuntimeError, match="HTTP 503"):
        _client(retry_max=2).list_items()


def test_create_without_image_posts_json(monkeypatch: pytest.MonkeyPatch):
    calls: List[Dict[str, Any]] = []
    saved = {"id": 5, "name": "Dosa", "price": 40, "imageUrl": None}
    monkeypatch.setattr(rest_mod.requests, "post", _recorder(calls, _FakeResponse(saved)))

    result = _client(token="").create_item(MenuItem(name="Dosa", price=40, tags=("veg",)))

    assert result == MenuItem(id=5, name="Dosa", price=40.0)
    assert calls[0]["url"] == "https://api.example/menu"
    assert calls[0]["json"]["tags"] == ["veg"]
    assert calls[0]["json"]["id"] is None
    assert calls[0]["headers"] == {}


def test_update_with_image_sends_multipart(monkeypatch: pytest.MonkeyPatch):
    calls: List[Dict[str, Any]] = []
    monkeypatch.setattr(
        rest_mod.requests, "put", _recorder(calls, _FakeResponse({"id": 7, "name": "Vada", "price": 25}))
    )

    item = MenuItem(id=7, name="Vada", price=25, tags=("veg", "fried"), image_file=b"\xff\xd8")
    _client().update_item(item)

    call = calls[0]
    assert call["url"] == "https://api.example/menu/7"
    assert "json" not in call
    assert call["data"]["tags"] == "veg,fried"
    assert call["data"]["available"] == "true"
    assert call["files"] == {"image": ("image", b"\xff\xd8")}


def test_save_rejects_non_object_response(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(rest_mod.requests, "post", _recorder([], _FakeResponse(["unexpected"])))
    with pytest.raises(ValueError):
        _client().create_item(MenuItem(name="X", price=1))


def test_delete_raises_on_error_status(monkeypatch: pytest.MonkeyPatch):
    calls: List[Dict[str, Any]] = []
    monkeypatch.setattr(rest_mod.requests, "delete", _recorder(calls, _FakeResponse(status=404, body=False)))
    with pytest.raises(RuntimeError):
        _client().delete_item(3)
    assert calls[0]["url"] == "https://api.example/menu/3"


def test_bulk_without_list_body_returns_none(monkeypatch: pytest.MonkeyPatch):
    calls: List[Dict[str, Any]] = []
    monkeypatch.setattr(rest_mod.requests, "post", _recorder(calls, _FakeResponse(body=False)))

    assert _client().bulk_replace([MenuItem(name="A", price=1)]) is None
    assert calls[0]["url"] == "https://api.example/menu/bulk-json"
    assert calls[0]["json"][0]["name"] == "A"
