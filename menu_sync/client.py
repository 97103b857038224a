from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from menu_core.errors import BulkUploadError, DeleteError, LoadError, MenuSyncError, SaveError, ValidationError
from menu_core.merger import BroadcastMerger
from menu_core.store import OptimisticStore, match_id, match_identity
from menu_core.types import DeleteNotice, Entry, FullReplace, MenuItem, OpResult, Upsert
from menu_sync import settings
from menu_sync.rest import MenuRestClient


log = logging.getLogger("menu_sync.client")


def validate_item(item: MenuItem) -> None:
    if not item.name or item.price is None:
        raise ValidationError()


class SyncClient:
    """Optimistic create/update/delete/bulk operations against the menu backend.

    Each public coroutine catches its own remote failures: the outcome comes back
    as an OpResult and the short message lands in `errors` (one entry, replaced on
    the next failure). Blocking HTTP calls run in worker threads; all store
    mutations happen back on the calling loop.

    Recovery is coarse on purpose:
      - failed save   -> refetch the whole collection
      - failed delete -> restore the pre-delete snapshot
      - failed bulk   -> nothing; the operator retries
    """

    def __init__(
        self,
        store: OptimisticStore,
        rest: MenuRestClient,
        merger: Optional[BroadcastMerger] = None,
        discard_stale_saves: Optional[bool] = None,
    ) -> None:
        self.store = store
        self.rest = rest
        self.merger = merger or BroadcastMerger(store)
        self.discard_stale_saves = (
            settings.MENU_DISCARD_STALE_SAVES if discard_stale_saves is None else bool(discard_stale_saves)
        )
        self.errors: List[str] = []
        self.loading = False
        self._seq = 0
        # id -> sequence of the latest save issued for that record
        self._latest_save: Dict[Any, int] = {}

    def _fail(self, err: MenuSyncError) -> MenuSyncError:
        self.errors = [err.message]
        return err

    async def _call(self, fn, *args):
        return await asyncio.to_thread(fn, *args)

    def _stamp(self, item: MenuItem, is_new: bool) -> Optional[int]:
        if is_new or item.id is None:
            return None
        self._seq += 1
        self._latest_save[item.id] = self._seq
        return self._seq

    def _superseded(self, item_id: Any, seq: Optional[int]) -> bool:
        if seq is None:
            return False
        latest = self._latest_save.get(item_id)
        if latest == seq:
            del self._latest_save[item_id]
            return False
        return self.discard_stale_saves

    async def save(self, item: MenuItem, is_new: bool = False) -> OpResult:
        try:
            validate_item(item)
        except ValidationError as exc:
            log.info("Rejected save of %r: %s", item.name, exc)
            return OpResult("invalid", details=str(exc), error=self._fail(exc), item=item)
        self.errors = []

        self.store.upsert_optimistic(item, is_new)
        seq = self._stamp(item, is_new)

        try:
            if is_new:
                saved = await self._call(self.rest.create_item, item)
            else:
                saved = await self._call(self.rest.update_item, item)
        except Exception as exc:
            log.exception("Save failed (id=%s new=%s); refetching menu", item.id, is_new)
            self._superseded(item.id, seq)
            err = self._fail(SaveError())
            await self.fetch_all()
            return OpResult("failed", details=str(exc), error=err, item=item)

        if self._superseded(item.id, seq):
            log.warning("Discarding stale save response for id=%s (seq=%s)", item.id, seq)
            return OpResult("stale", details=f"seq={seq}", item=saved)

        match = match_identity(item) if is_new else match_id(item.id if item.id is not None else saved.id)
        self.store.replace_one(match, saved)
        self.merger.publish(Upsert(item=saved))
        return OpResult("saved", details=f"id={saved.id}", item=saved)

    async def delete(self, item_id: Any) -> OpResult:
        if item_id is None:
            # Unsaved entries have nothing to delete remotely.
            log.info("Rejected delete without an id")
            return OpResult("invalid", details="missing id", error=self._fail(DeleteError()))
        backup = self.store.snapshot()
        self.store.remove(item_id)
        try:
            await self._call(self.rest.delete_item, item_id)
        except Exception as exc:
            log.exception("Delete failed (id=%s); restoring %d items", item_id, len(backup))
            self.store.restore(backup)
            return OpResult("failed", details=str(exc), error=self._fail(DeleteError()))
        self.merger.publish(DeleteNotice(id=item_id))
        return OpResult("deleted", details=f"id={item_id}")

    async def fetch_all(self) -> OpResult:
        """Replace the collection with the backend's; on failure keep what we have."""
        self.loading = True
        try:
            items = await self._call(self.rest.list_items)
        except Exception as exc:
            log.exception("Failed to load menu")
            return OpResult("failed", details=str(exc), error=LoadError())
        finally:
            self.loading = False
        self.store.replace_all(items)
        return OpResult("loaded", details=f"items={len(items)}")

    async def bulk_replace(self, items: Optional[Iterable[Entry]] = None) -> OpResult:
        sent = tuple(self.store.items if items is None else items)
        self.loading = True
        try:
            saved = await self._call(self.rest.bulk_replace, sent)
        except Exception as exc:
            # Local edits stay in place so the operator can retry the upload.
            log.exception("Bulk upload failed (%d items)", len(sent))
            return OpResult("failed", details=str(exc), error=self._fail(BulkUploadError()))
        finally:
            self.loading = False

        if saved is not None:
            canonical = tuple(saved)
            self.store.replace_all(canonical)
        else:
            log.info("Bulk endpoint returned no list; keeping %d local items as canonical", len(sent))
            canonical = sent
        self.merger.publish(FullReplace(items=canonical))
        return OpResult("uploaded", details=f"items={len(canonical)}")
