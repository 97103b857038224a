from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .errors import MenuSyncError


# Wire names of the fields MenuItem owns; anything else a server sends is kept in `extra`.
_WIRE_TO_FIELD = {"prepTimeMin": "prep_time_min", "imageUrl": "image_url", "imageFile": "image_file"}

_KNOWN_KEYS = (
    "id",
    "name",
    "price",
    "category",
    "available",
    "description",
    "prepTimeMin",
    "tags",
    "imageUrl",
)


def clean_tags(raw: Iterable[Any] | str | None) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = raw.split(",")
    out: list[str] = []
    for tag in raw:
        text = str(tag).strip()
        if text and text not in out:
            out.append(text)
    return tuple(out)


def _to_price(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price):
        return None
    return price


def _to_int(value, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _to_bool(value, default: bool = True) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("false", "0", "no")


@dataclass(frozen=True)
class MenuItem:
    """One menu entry. `id` is None until the backend has persisted it."""

    name: str = ""
    price: Optional[float] = None
    id: Any = None
    category: str = ""
    available: bool = True
    description: str = ""
    prep_time_min: int = 0
    tags: Tuple[str, ...] = ()
    image_url: Optional[str] = None
    # Only attached while a save carries a new image; never serialized or compared.
    image_file: Optional[bytes] = field(default=None, compare=False, repr=False)
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", clean_tags(self.tags))

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MenuItem":
        return cls(
            id=data.get("id"),
            name=str(data.get("name") or ""),
            price=_to_price(data.get("price")),
            category=str(data.get("category") or ""),
            available=_to_bool(data.get("available")),
            description=str(data.get("description") or ""),
            prep_time_min=_to_int(data.get("prepTimeMin")),
            tags=clean_tags(data.get("tags")),
            image_url=data.get("imageUrl") or None,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extra)
        out.update(
            {
                "id": self.id,
                "name": self.name,
                "price": self.price,
                "category": self.category,
                "available": self.available,
                "description": self.description,
                "prepTimeMin": self.prep_time_min,
                "tags": list(self.tags),
            }
        )
        if self.image_url:
            out["imageUrl"] = self.image_url
        return out

    def multipart_fields(self) -> Dict[str, str]:
        """Text form fields sent alongside an image upload."""
        price = self.price if self.price is not None else 0
        if isinstance(price, float) and price.is_integer():
            price = int(price)
        return {
            "name": self.name,
            "price": str(price),
            "category": self.category or "",
            "available": "true" if self.available else "false",
            "description": self.description or "",
            "prepTimeMin": str(self.prep_time_min or 0),
            "tags": ",".join(self.tags),
        }

    def with_changes(self, **changes: Any) -> "MenuItem":
        return replace(self, **changes)

    def with_field(self, key: str, value: Any) -> "MenuItem":
        """Set one field by wire or attribute name, coercing it like `from_dict`."""
        name = _WIRE_TO_FIELD.get(key, key)
        if name == "price":
            value = _to_price(value)
        elif name == "prep_time_min":
            value = _to_int(value)
        elif name == "available":
            value = _to_bool(value)
        elif name == "tags":
            value = clean_tags(value)
        return replace(self, **{name: value})


@dataclass(frozen=True)
class DeleteMarker:
    """Minimal `{id, deleted: true}` record carried by deletion broadcasts."""

    id: Any
    deleted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "deleted": self.deleted}


# What the local collection may hold. DeleteMarker entries only appear when
# markers are merged as upserts (the legacy merge behavior).
Entry = Union[MenuItem, DeleteMarker]


@dataclass(frozen=True)
class FullReplace:
    items: Tuple[Entry, ...]


@dataclass(frozen=True)
class Upsert:
    item: MenuItem


@dataclass(frozen=True)
class DeleteNotice:
    id: Any


ChangeNotification = Union[FullReplace, Upsert, DeleteNotice]


@dataclass
class OpResult:
    action: str  # "saved" | "deleted" | "loaded" | "uploaded" | "imported" | "invalid" | "failed" | "stale" | "empty"
    details: str = ""
    error: Optional[MenuSyncError] = None
    item: Optional[MenuItem] = None

    @property
    def ok(self) -> bool:
        return self.error is None
