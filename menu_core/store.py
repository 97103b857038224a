from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from .types import Entry, MenuItem


Items = Tuple[Entry, ...]
Transform = Callable[[Items], Iterable[Entry]]
Listener = Callable[[Items], None]

log = logging.getLogger("menu_core.store")


def match_identity(placeholder: Entry) -> Callable[[Entry], bool]:
    """Match the exact optimistic object (creates have no id yet)."""
    return lambda entry: entry is placeholder


def match_id(item_id: Any) -> Callable[[Entry], bool]:
    return lambda entry: item_id is not None and entry.id == item_id


class OptimisticStore:
    """Ordered menu collection owned by one event loop.

    Every mutation goes through `apply`, which builds a new tuple from the previous
    one. Callers holding an earlier `items`/`snapshot()` keep an unmodified view,
    which is what delete rollback relies on.

    The store does not lock: it is meant to be touched only from the loop that
    drives the sync client, where each `apply` call runs to completion before the
    next one starts.
    """

    def __init__(self, items: Iterable[Entry] = ()) -> None:
        self._items: Items = tuple(items)
        self.revision: int = 0
        self._listeners: List[Listener] = []

    @property
    def items(self) -> Items:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._items)

    def find(self, item_id: Any) -> Optional[Entry]:
        if item_id is None:
            return None
        for entry in self._items:
            if entry.id == item_id:
                return entry
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, transform: Transform) -> Items:
        new_items = tuple(transform(self._items))
        self._items = new_items
        self.revision += 1
        for listener in list(self._listeners):
            try:
                listener(new_items)
            except Exception:
                log.exception("Store listener failed (revision=%d)", self.revision)
        return new_items

    def upsert_optimistic(self, item: MenuItem, is_new: bool) -> Items:
        if is_new:
            return self.apply(lambda items: (item,) + items)
        if item.id is None:
            # Nothing to match against; an update needs a persisted id.
            return self._items
        return self.apply(lambda items: (item if entry.id == item.id else entry for entry in items))

    def replace_one(self, match: Callable[[Entry], bool], replacement: Entry) -> Items:
        """Swap the matching entry for `replacement`, keeping its position.

        Any other entry already carrying the replacement's id (e.g. a broadcast that
        raced the create response) is dropped so ids stay unique.
        """

        def _swap(items: Items) -> List[Entry]:
            out: List[Entry] = []
            swapped = False
            for entry in items:
                if not swapped and match(entry):
                    out.append(replacement)
                    swapped = True
                    continue
                out.append(entry)
            if not swapped or replacement.id is None:
                return out
            kept = False
            deduped: List[Entry] = []
            for entry in out:
                if entry.id == replacement.id:
                    if entry is not replacement or kept:
                        continue
                    kept = True
                deduped.append(entry)
            return deduped

        return self.apply(_swap)

    def remove(self, item_id: Any) -> Items:
        return self.apply(lambda items: (entry for entry in items if entry.id != item_id))

    def snapshot(self) -> Items:
        return self._items

    def restore(self, snapshot: Iterable[Entry]) -> Items:
        return self.replace_all(snapshot)

    def replace_all(self, items: Iterable[Entry]) -> Items:
        new_items = tuple(items)
        return self.apply(lambda _: new_items)

    def update_field(self, index: int, key: str, value: Any) -> Items:
        """Edit one field of the entry at `index` in place of the old record.

        `key` may be the wire name (`prepTimeMin`) or the attribute name.
        """

        def _edit(items: Items) -> List[Entry]:
            out = list(items)
            entry = out[index]
            if isinstance(entry, MenuItem):
                out[index] = entry.with_field(key, value)
            else:
                out[index] = replace(entry, **{key: value})
            return out

        return self.apply(_edit)
