"""Exception types raised by the sync and ingestion services."""


class SyncError(Exception):
    """Base exception for the sync subsystem."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SyncError):
    """A request is structurally invalid (missing field, bad timestamp, empty batch)."""

    status_code = 400


class NotFoundError(SyncError):
    """A referenced module or meca aid is absent or inactive."""

    status_code = 404


class StorageError(SyncError):
    """A query or connection failed. Not retried here; clients resubmit."""

    status_code = 500
