"""Image blobs in Firebase Storage, over the REST API.

Uploads go to `users/{uid}/images/{timestamp}_{random}.jpg` and are
addressed afterwards by their token-bearing download URL, which is what
gets stored in a record's `imageUrl`.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

import httpx

from services.cloud.document_client import raise_for_remote_status
from utils.errors import RemoteStoreError
from utils.image_payloads import decode_data_url

LOGGER = logging.getLogger(__name__)

STORAGE_API = "https://firebasestorage.googleapis.com"


def image_object_path(user_id: str, now_ms: Optional[int] = None) -> str:
    """Build a randomized, timestamped object name scoped to the user."""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    random_part = secrets.token_hex(4)
    return f"users/{user_id}/images/{timestamp}_{random_part}.jpg"


class FirebaseBlobClient:
    """Upload, address, and delete image objects in one Storage bucket.

    Args:
        http: Shared async HTTP client.
        bucket: Storage bucket name, e.g. `my-app.firebasestorage.app`.
        base_url: API root; override to point at the Storage emulator.
    """

    def __init__(self, http: httpx.AsyncClient, bucket: str, base_url: str = STORAGE_API) -> None:
        if not bucket:
            raise ValueError("Storage bucket is required.")
        self._http = http
        self.bucket = bucket
        self._objects_root = f"{base_url.rstrip('/')}/v0/b/{bucket}/o"

    def download_url(self, object_path: str, token: str) -> str:
        return f"{self._objects_root}/{quote(object_path, safe='')}?alt=media&token={token}"

    def is_blob_reference(self, url: Optional[str]) -> bool:
        """Return True if `url` points at an object in this bucket."""
        return bool(url) and url.startswith(self._objects_root + "/")

    def object_path_from_url(self, url: str) -> str:
        """Recover the object path from a download URL of this bucket."""
        if not self.is_blob_reference(url):
            raise ValueError(f"Not a download URL for bucket {self.bucket}: {url}")
        encoded = urlsplit(url).path.rsplit("/o/", 1)[-1]
        return unquote(encoded)

    async def upload_data_url(self, object_path: str, data_url: str, id_token: str) -> str:
        """Upload an inline image and return its resolved download URL.

        Raises:
            ValueError: If the payload is not valid base64.
            RemoteStoreError: If the upload request fails.
        """
        mime_type, raw = decode_data_url(data_url)
        try:
            response = await self._http.post(
                self._objects_root,
                params={"uploadType": "media", "name": object_path},
                content=raw,
                headers={"Authorization": f"Firebase {id_token}", "Content-Type": mime_type},
            )
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"Upload image failed: {exc}") from exc
        raise_for_remote_status(response, "Upload image")

        metadata = response.json()
        token = (metadata.get("downloadTokens") or "").split(",")[0]
        if not token:
            raise RemoteStoreError("Upload image succeeded but no download token was returned.")
        return self.download_url(metadata.get("name") or object_path, token)

    async def delete_url(self, url: str, id_token: str) -> None:
        """Delete the object behind a download URL."""
        object_path = self.object_path_from_url(url)
        try:
            response = await self._http.delete(
                f"{self._objects_root}/{quote(object_path, safe='')}",
                headers={"Authorization": f"Firebase {id_token}"},
            )
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"Delete image failed: {exc}") from exc
        raise_for_remote_status(response, "Delete image")
