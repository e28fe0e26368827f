"""Translate application errors into HTTP errors for the API layer."""

from fastapi import HTTPException

from services.openai.retry import is_quota_error
from utils.errors import (
    CloudStoreNotConfigured,
    DuplicateKey,
    EmptyInferenceResponse,
    ImageDownloadFailed,
    ImageTooLargeForFallback,
    ImageUploadFailed,
    InvalidImportPayload,
    RemoteAuthError,
    RemoteStoreError,
    StorageUnavailable,
)

_STATUS_BY_TYPE = (
    (DuplicateKey, 409),
    (ImageTooLargeForFallback, 413),
    (InvalidImportPayload, 400),
    (RemoteAuthError, 401),
    (RemoteStoreError, 502),
    (ImageDownloadFailed, 502),
    (ImageUploadFailed, 502),
    (EmptyInferenceResponse, 502),
    (StorageUnavailable, 503),
    (CloudStoreNotConfigured, 503),
    (ValueError, 400),
)


def to_http_exception(exc: Exception) -> HTTPException:
    """Return the HTTPException that reports `exc` to the client."""
    if isinstance(exc, HTTPException):
        return exc
    for exc_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    if is_quota_error(exc):
        return HTTPException(status_code=429, detail="Usage limit reached. Please wait a while and try again.")
    return HTTPException(status_code=500, detail="Internal server error.")
