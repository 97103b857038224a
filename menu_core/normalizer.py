from __future__ import annotations

import math
import re
from typing import Any, Iterable, Mapping, Tuple

from .types import MenuItem


_TAG_SPLIT = re.compile(r"[;,|]")


def _cell(row: Mapping[str, Any], name: str) -> Any:
    """First non-empty cell whose header equals `name` ignoring case and padding."""
    wanted = name.lower()
    for header, value in row.items():
        if header is None or str(header).strip().lower() != wanted:
            continue
        if value is None or value == "":
            continue
        return value
    return ""


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        num = float(str(value).strip()) if value != "" else 0.0
    except (TypeError, ValueError):
        return 0.0
    return num if math.isfinite(num) else 0.0


def _id(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def split_tags(value: Any) -> Tuple[str, ...]:
    return tuple(t.strip() for t in _TAG_SPLIT.split(_text(value)) if t.strip())


class RecordNormalizer:
    """Turns spreadsheet rows (header -> cell) into local, not-yet-uploaded items.

    Rows are taken as-is: no lookup against the current collection, so every row
    becomes its own entry even when its id matches something already on the server.
    """

    def normalize_row(self, row: Mapping[str, Any]) -> MenuItem:
        available = _cell(row, "available")
        return MenuItem(
            id=_id(_cell(row, "id")),
            name=_text(_cell(row, "name")),
            category=_text(_cell(row, "category")),
            price=_number(_cell(row, "price")),
            available=_text(available if available != "" else "true").lower() != "false",
            description=_text(_cell(row, "description")),
            prep_time_min=int(_number(_cell(row, "prepTimeMin"))),
            tags=split_tags(_cell(row, "tags")),
        )

    def normalize(self, rows: Iterable[Mapping[str, Any]]) -> Tuple[MenuItem, ...]:
        return tuple(self.normalize_row(row) for row in rows)
