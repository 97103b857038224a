from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Tuple

from .protocol import decode_message, encode_notification, make_message
from .store import OptimisticStore
from .types import ChangeNotification, DeleteMarker, DeleteNotice, Entry, FullReplace, Upsert


log = logging.getLogger("menu_core.merger")


def _upsert_by_id(items: Tuple[Entry, ...], entry: Entry) -> Tuple[Entry, ...]:
    for idx, current in enumerate(items):
        if entry.id is not None and current.id == entry.id:
            return items[:idx] + (entry,) + items[idx + 1 :]
    return (entry,) + items


def merge_notification(
    items: Iterable[Entry],
    notification: ChangeNotification,
    remove_on_delete: bool = False,
) -> Tuple[Entry, ...]:
    """Return the collection after applying one change notification.

    Never raises for a well-typed notification:
      - FullReplace adopts the incoming order verbatim
      - Upsert replaces the entry with the same id in place, else prepends
      - DeleteNotice goes through the upsert rule as a bare `{id, deleted}` record,
        unless `remove_on_delete` is set, in which case the entry is dropped
    """
    current = tuple(items)
    if isinstance(notification, FullReplace):
        return tuple(notification.items)
    if isinstance(notification, Upsert):
        return _upsert_by_id(current, notification.item)
    if isinstance(notification, DeleteNotice):
        if remove_on_delete:
            if notification.id is None:
                return current
            return tuple(entry for entry in current if entry.id != notification.id)
        # TODO: make removal the default once every consumer handles DeleteNotice.
        return _upsert_by_id(current, DeleteMarker(id=notification.id))
    log.warning("Ignoring unknown notification type %s", type(notification).__name__)
    return current


class BroadcastMerger:
    """Bridges the broadcast channel and the local store.

    `apply` merges inbound notifications; `publish` wraps a local result into an
    envelope and hands it to `send`. Sending is best-effort: failures are logged
    and never reach the operation that published.
    """

    def __init__(
        self,
        store: OptimisticStore,
        send: Optional[Callable[[dict], Any]] = None,
        remove_on_delete: bool = False,
    ) -> None:
        self.store = store
        self.send = send
        self.remove_on_delete = remove_on_delete
        self.applied_count = 0
        self.dropped_count = 0

    def apply(self, notification: ChangeNotification) -> Tuple[Entry, ...]:
        self.applied_count += 1
        return self.store.apply(
            lambda items: merge_notification(items, notification, remove_on_delete=self.remove_on_delete)
        )

    def handle_message(self, message: Any) -> bool:
        """Apply a raw channel envelope. Returns False when it was ignored."""
        try:
            notification = decode_message(message)
        except ValueError as exc:
            self.dropped_count += 1
            log.warning("Dropping malformed menu message: %s", exc)
            return False
        if notification is None:
            return False
        self.apply(notification)
        return True

    def publish(self, notification: ChangeNotification) -> bool:
        if self.send is None:
            return False
        message = make_message(encode_notification(notification))
        try:
            result = self.send(message)
        except Exception:
            log.exception("Failed to publish menu update")
            return False
        return result is not False
