"""I/O-free menu collection model, merge rules and spreadsheet row normalization."""

from .errors import BulkUploadError, DeleteError, LoadError, MenuSyncError, SaveError, ValidationError
from .merger import BroadcastMerger, merge_notification
from .normalizer import RecordNormalizer
from .store import OptimisticStore
from .types import (
    ChangeNotification,
    DeleteMarker,
    DeleteNotice,
    FullReplace,
    MenuItem,
    OpResult,
    Upsert,
)

__all__ = [
    "BroadcastMerger",
    "BulkUploadError",
    "ChangeNotification",
    "DeleteError",
    "DeleteMarker",
    "DeleteNotice",
    "FullReplace",
    "LoadError",
    "MenuItem",
    "MenuSyncError",
    "OpResult",
    "OptimisticStore",
    "RecordNormalizer",
    "SaveError",
    "Upsert",
    "ValidationError",
    "merge_notification",
]
