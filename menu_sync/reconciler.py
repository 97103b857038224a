from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from menu_core.errors import BulkUploadError
from menu_core.normalizer import RecordNormalizer
from menu_core.types import OpResult
from menu_sync.client import SyncClient
from menu_sync.spreadsheet import export_template, read_rows


log = logging.getLogger("menu_sync.reconciler")

NO_ITEMS_MESSAGE = "No items to upload"


class Reconciler:
    """Bulk flows: spreadsheet import into the local view, and whole-menu upload."""

    def __init__(self, client: SyncClient, normalizer: Optional[RecordNormalizer] = None) -> None:
        self.client = client
        self.normalizer = normalizer or RecordNormalizer()

    def import_from_table(self, rows: Iterable[Mapping[str, Any]]) -> OpResult:
        # Local only: the imported rows replace the view until upload_all() runs.
        items = self.normalizer.normalize(rows)
        self.client.store.replace_all(items)
        log.info("Imported %d items into the local menu (not uploaded)", len(items))
        return OpResult("imported", details=f"items={len(items)}")

    def import_from_file(self, source: str | Path | bytes) -> OpResult:
        return self.import_from_table(read_rows(source))

    async def upload_all(self) -> OpResult:
        items = self.client.store.items
        if not items:
            err = BulkUploadError(NO_ITEMS_MESSAGE)
            self.client.errors = [err.message]
            log.warning("Upload requested with an empty menu; nothing sent")
            return OpResult("empty", details=NO_ITEMS_MESSAGE, error=err)
        return await self.client.bulk_replace(items)

    def export_template(self, path: Optional[str | Path] = None) -> bytes:
        return export_template(path)
