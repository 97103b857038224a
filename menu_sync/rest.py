from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import requests

from menu_core.protocol import decode_entry, encode_entry
from menu_core.types import Entry, MenuItem
from menu_sync import settings


log = logging.getLogger("menu_sync.rest")


def _call_with_retry(fn, attempts: int, backoff_s: float, backoff_max_s: float):
    attempts = max(1, int(attempts))
    backoff_s = max(0.0, float(backoff_s))
    backoff_max_s = max(backoff_s, float(backoff_max_s))
    delay = backoff_s
    last_exc = None
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            last_exc = exc
            if attempt >= attempts:
                break
            log.warning("Menu list attempt %d/%d failed: %s", attempt, attempts, exc)
            if delay > 0:
                time.sleep(delay)
                delay = min(backoff_max_s, delay * 2)
    raise last_exc


def _decode_entries(payload: Any) -> List[Entry]:
    if not isinstance(payload, list):
        return []
    return [decode_entry(x) for x in payload]


class MenuRestClient:
    """Blocking client for the vendor menu endpoints.

    Raises on transport errors and non-2xx statuses; callers decide how to recover.
    """

    def __init__(
        self,
        base_url: str | None = None,
        bulk_url: str | None = None,
        token: str | None = None,
        timeout_s: float | None = None,
        retry_max: int | None = None,
        retry_backoff_s: float | None = None,
        retry_backoff_max_s: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.MENU_API_BASE).rstrip("/")
        self.bulk_url = bulk_url or settings.MENU_BULK_URL
        self.token = token if token is not None else settings.MENU_API_TOKEN
        self.timeout_s = settings.MENU_HTTP_TIMEOUT_S if timeout_s is None else float(timeout_s)
        self.retry_max = settings.MENU_LIST_RETRY_MAX if retry_max is None else int(retry_max)
        self.retry_backoff_s = settings.MENU_LIST_RETRY_BACKOFF_S if retry_backoff_s is None else float(retry_backoff_s)
        self.retry_backoff_max_s = (
            settings.MENU_LIST_RETRY_BACKOFF_MAX_S if retry_backoff_max_s is None else float(retry_backoff_max_s)
        )

    @classmethod
    def from_settings(cls, cfg: settings.SyncSettings) -> "MenuRestClient":
        return cls(
            base_url=cfg.api_base,
            bulk_url=cfg.bulk_url,
            token=cfg.token,
            timeout_s=cfg.http_timeout_s,
            retry_max=cfg.list_retry_max,
            retry_backoff_s=cfg.list_retry_backoff_s,
            retry_backoff_max_s=cfg.list_retry_backoff_max_s,
        )

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def item_url(self, item_id: Any) -> str:
        return f"{self.base_url}/{item_id}"

    def list_items(self) -> List[Entry]:
        def _get():
            resp = requests.get(self.base_url, headers=self._headers(), timeout=self.timeout_s)
            resp.raise_for_status()
            return resp.json()

        payload = _call_with_retry(_get, self.retry_max, self.retry_backoff_s, self.retry_backoff_max_s)
        return _decode_entries(payload)

    def _send_item(self, send, url: str, item: MenuItem) -> MenuItem:
        if item.image_file is not None:
            resp = send(
                url,
                data=item.multipart_fields(),
                files={"image": ("image", item.image_file)},
                headers=self._headers(),
                timeout=self.timeout_s,
            )
        else:
            resp = send(url, json=encode_entry(item), headers=self._headers(), timeout=self.timeout_s)
        resp.raise_for_status()
        saved = resp.json()
        if not isinstance(saved, dict):
            raise ValueError(f"save response must be an object (got {type(saved).__name__})")
        return MenuItem.from_dict(saved)

    def create_item(self, item: MenuItem) -> MenuItem:
        return self._send_item(requests.post, self.base_url, item)

    def update_item(self, item: MenuItem) -> MenuItem:
        return self._send_item(requests.put, self.item_url(item.id), item)

    def delete_item(self, item_id: Any) -> None:
        resp = requests.delete(self.item_url(item_id), headers=self._headers(), timeout=self.timeout_s)
        resp.raise_for_status()

    def bulk_replace(self, items: Iterable[Entry]) -> Optional[List[Entry]]:
        """Post the whole collection. Returns the canonical list, or None when the
        server answered with anything other than a list."""
        body = [encode_entry(x) for x in items]
        resp = requests.post(self.bulk_url, json=body, headers=self._headers(), timeout=self.timeout_s)
        resp.raise_for_status()
        try:
            payload = resp.json()
        except ValueError:
            return None
        if not isinstance(payload, list):
            return None
        return _decode_entries(payload)
