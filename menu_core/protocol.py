from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .types import ChangeNotification, DeleteMarker, DeleteNotice, Entry, FullReplace, MenuItem, Upsert


MENU_UPDATE = "menu:update"


def make_message(payload: Any, msg_type: str = MENU_UPDATE) -> Dict[str, Any]:
    return {"type": msg_type, "payload": payload}


def _is_marker(data: Dict[str, Any]) -> bool:
    return data.get("deleted") is True


def decode_entry(data: Any) -> Entry:
    if not isinstance(data, dict):
        raise ValueError(f"menu entry must be an object (got {type(data).__name__})")
    if _is_marker(data):
        return DeleteMarker(id=data.get("id"))
    return MenuItem.from_dict(data)


def encode_entry(entry: Entry) -> Dict[str, Any]:
    return entry.to_dict()


def decode_payload(payload: Any) -> ChangeNotification:
    """Resolve the untagged wire payload into one of the three notification kinds."""
    if isinstance(payload, list):
        return FullReplace(items=tuple(decode_entry(x) for x in payload))
    if isinstance(payload, dict):
        if _is_marker(payload):
            return DeleteNotice(id=payload.get("id"))
        return Upsert(item=MenuItem.from_dict(payload))
    raise ValueError(f"unsupported menu payload type {type(payload).__name__}")


def encode_notification(notification: ChangeNotification) -> List[Dict[str, Any]] | Dict[str, Any]:
    if isinstance(notification, FullReplace):
        return [encode_entry(x) for x in notification.items]
    if isinstance(notification, Upsert):
        return encode_entry(notification.item)
    if isinstance(notification, DeleteNotice):
        return DeleteMarker(id=notification.id).to_dict()
    raise ValueError(f"unsupported notification {notification!r}")


def decode_message(message: Any) -> Optional[ChangeNotification]:
    """Decode a channel envelope.

    Returns None for envelopes of other types or without a payload; raises
    ValueError when a `menu:update` envelope cannot be decoded.
    """
    if isinstance(message, (bytes, bytearray)):
        message = message.decode("utf-8")
    if isinstance(message, str):
        message = json.loads(message)
    if not isinstance(message, dict):
        return None
    if message.get("type") != MENU_UPDATE:
        return None
    payload = message.get("payload")
    if payload is None:
        return None
    return decode_payload(payload)
