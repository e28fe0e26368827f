"""Cloud-backed mistake store for one authenticated user.

Documents live in Firestore and images in Firebase Storage. Before a
write, an inline image is uploaded and replaced by its download URL; if
the upload fails, small images are kept inline in the document instead.
A copy of small inline images is also kept in `imageBase64` so inference
can run when the download URL cannot be fetched cross-origin.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from models.identity import Authenticated
from models.mistake_record import MistakeRecord
from models.outcomes import DeleteOutcome
from services.cloud.blob_client import FirebaseBlobClient, image_object_path
from services.cloud.document_client import FirestoreDocumentClient
from utils.errors import ImageTooLargeForFallback, ImageUploadFailed, RemoteStoreError
from utils.image_payloads import is_inline_payload, payload_size

LOGGER = logging.getLogger(__name__)

# Firestore documents are capped at 1 MiB; leave headroom for the other fields.
INLINE_IMAGE_LIMIT_BYTES = 950 * 1024
UPLOAD_TIMEOUT_SECONDS = 60.0


class RemoteMistakeStore:
    """Per-user CRUD over Firestore documents plus image blobs.

    Args:
        documents: Firestore document client.
        blobs: Firebase Storage client for image objects.
        upload_timeout: Seconds before an image upload is treated as failed.
        inline_limit: Largest inline payload (bytes) that may be kept in a document.
    """

    def __init__(
        self,
        documents: FirestoreDocumentClient,
        blobs: FirebaseBlobClient,
        upload_timeout: float = UPLOAD_TIMEOUT_SECONDS,
        inline_limit: int = INLINE_IMAGE_LIMIT_BYTES,
    ) -> None:
        self._documents = documents
        self._blobs = blobs
        self.upload_timeout = upload_timeout
        self.inline_limit = inline_limit

    async def list_all(self, identity: Authenticated) -> List[MistakeRecord]:
        """Return the user's records, newest first."""
        documents = await self._documents.list_documents(identity.user_id, identity.id_token)
        return [MistakeRecord.from_dict(doc) for doc in documents]

    async def create(self, identity: Authenticated, record: MistakeRecord) -> MistakeRecord:
        """Resolve the image, then write the full record under `record.id`.

        An existing document with the same id is overwritten, so retrying a
        create is safe.

        Returns:
            The record as stored, with `imageUrl` possibly resolved.

        Raises:
            ImageTooLargeForFallback: Upload failed and the image cannot be kept inline.
        """
        document = record.to_dict()
        if is_inline_payload(record.image_url):
            image_url, backup = await self._resolve_inline_image(identity, record.image_url)
            document["imageUrl"] = image_url
            if backup is not None:
                document["imageBase64"] = backup
        document["userId"] = identity.user_id

        await self._documents.set_document(identity.user_id, identity.id_token, record.id, document)
        return MistakeRecord.from_dict(document)

    async def update(self, identity: Authenticated, record: MistakeRecord) -> MistakeRecord:
        """Merge the record's fields into its document.

        Every record field is written, so fields cleared on the record (None)
        are cleared in the document too. The image is only re-processed when
        `imageUrl` is freshly inline, i.e. inline and different from the
        record's `imageBase64`. A record left inline by an earlier failed
        upload is not retried on plain field updates. In every other case the
        stored `imageBase64` backup is left as it is.
        """
        document = record.to_dict(include_unset=True)
        if is_inline_payload(record.image_url) and record.image_url != record.image_base64:
            image_url, backup = await self._resolve_inline_image(identity, record.image_url)
            document["imageUrl"] = image_url
            # a replaced image invalidates the old backup even if the new one is too big to copy
            document["imageBase64"] = backup
        else:
            document.pop("imageBase64", None)
        document["userId"] = identity.user_id

        await self._documents.merge_document(identity.user_id, identity.id_token, record.id, document)
        return MistakeRecord.from_dict(document)

    async def delete(self, identity: Authenticated, record_id: str, image_ref: Optional[str] = None) -> DeleteOutcome:
        """Delete the document, then best-effort delete its image blob."""
        await self._documents.delete_document(identity.user_id, identity.id_token, record_id)

        if not image_ref or not self._blobs.is_blob_reference(image_ref):
            return DeleteOutcome()

        try:
            await self._blobs.delete_url(image_ref, identity.id_token)
        except (RemoteStoreError, ValueError) as exc:
            LOGGER.warning("Failed to delete image from storage (may already be deleted): %s", exc)
            return DeleteOutcome(image_cleanup_error=str(exc))
        return DeleteOutcome(image_deleted=True)

    async def _resolve_inline_image(self, identity: Authenticated, data_url: str) -> Tuple[str, Optional[str]]:
        """Return `(image_url, base64_backup)` for an inline image.

        Raises:
            ImageTooLargeForFallback: If the upload fails and the payload is over the limit.
        """
        size = payload_size(data_url)
        backup = data_url if size < self.inline_limit else None

        try:
            resolved = await self._upload(identity, data_url)
        except ImageUploadFailed as exc:
            if size >= self.inline_limit:
                raise ImageTooLargeForFallback(size, self.inline_limit) from exc
            LOGGER.warning("Image upload failed, storing image inline in the document: %s", exc)
            return data_url, backup

        return resolved, backup

    async def _upload(self, identity: Authenticated, data_url: str) -> str:
        """Upload an inline image within the timeout.

        Raises:
            ImageUploadFailed: On timeout or a storage error.
            ValueError: If the payload is not valid base64; it is never stored.
        """
        object_path = image_object_path(identity.user_id)
        try:
            return await asyncio.wait_for(
                self._blobs.upload_data_url(object_path, data_url, identity.id_token),
                timeout=self.upload_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ImageUploadFailed(
                f"Image upload timed out ({self.upload_timeout:g}s). Check connection."
            ) from exc
        except RemoteStoreError as exc:
            raise ImageUploadFailed(str(exc)) from exc