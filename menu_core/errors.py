from __future__ import annotations


class MenuSyncError(Exception):
    """Base class for failures surfaced to the menu operator."""

    default_message = "Menu operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(MenuSyncError):
    default_message = "Name and Price are required"


class SaveError(MenuSyncError):
    default_message = "Save failed"


class DeleteError(MenuSyncError):
    default_message = "Delete failed"


class BulkUploadError(MenuSyncError):
    default_message = "Bulk upload failed"


class LoadError(MenuSyncError):
    default_message = "Failed to load menu"
