"""Exception types raised by the storage and inference layers."""


class SmartNoteError(Exception):
    """Base class for application errors."""


class StorageUnavailable(SmartNoteError):
    """The local SQLite engine could not be opened."""


class DuplicateKey(SmartNoteError):
    """A local create was attempted with an id that already exists."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record with id {record_id!r} already exists.")
        self.record_id = record_id


class ImageDownloadFailed(SmartNoteError):
    """A remote image could not be fetched for inference."""


class ImageUploadFailed(SmartNoteError):
    """An inline image could not be uploaded to blob storage."""


class ImageTooLargeForFallback(SmartNoteError):
    """Upload failed and the inline payload is too large to store in the document."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Image upload failed and the inline image ({size} bytes) exceeds the "
            f"{limit} byte document limit."
        )
        self.size = size
        self.limit = limit


class EmptyInferenceResponse(SmartNoteError):
    """The model returned no text (often filtered content). Retrying may help."""


class RemoteStoreError(SmartNoteError):
    """The cloud document or blob service returned an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteAuthError(RemoteStoreError):
    """The cloud service rejected the caller's credentials."""


class InvalidImportPayload(SmartNoteError):
    """An import file is not a JSON array of records."""


class CloudStoreNotConfigured(SmartNoteError):
    """An authenticated call arrived but cloud sync is not configured."""
