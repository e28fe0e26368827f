"""Per-user mistake documents in Cloud Firestore, over the REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping
from urllib.parse import quote

import httpx

from services.cloud.firestore_codec import decode_fields, encode_fields
from utils.errors import RemoteAuthError, RemoteStoreError

LOGGER = logging.getLogger(__name__)

FIRESTORE_API = "https://firestore.googleapis.com/v1"
COLLECTION_ID = "mistakes"


def raise_for_remote_status(response: httpx.Response, action: str) -> None:
    """Map an unsuccessful HTTP response to the remote error types."""
    if response.status_code < 400:
        return
    try:
        detail = response.json().get("error", {}).get("message") or response.text
    except ValueError:
        detail = response.text
    message = f"{action} failed with HTTP {response.status_code}: {detail}"
    if response.status_code in (401, 403):
        raise RemoteAuthError(message, status_code=response.status_code)
    raise RemoteStoreError(message, status_code=response.status_code)


class FirestoreDocumentClient:
    """Read and write documents under `users/{uid}/mistakes/{id}`.

    Every call carries the caller's Firebase ID token, so Firestore
    security rules decide what the user may touch.

    Args:
        http: Shared async HTTP client.
        project_id: Firebase project that owns the database.
        base_url: API root; override to point at the Firestore emulator.
    """

    def __init__(self, http: httpx.AsyncClient, project_id: str, base_url: str = FIRESTORE_API) -> None:
        if not project_id:
            raise ValueError("Firestore project id is required.")
        self._http = http
        self._documents_root = (
            f"{base_url.rstrip('/')}/projects/{project_id}/databases/(default)/documents"
        )

    def _user_path(self, user_id: str) -> str:
        return f"{self._documents_root}/users/{quote(user_id, safe='')}"

    def _doc_url(self, user_id: str, doc_id: str) -> str:
        return f"{self._user_path(user_id)}/{COLLECTION_ID}/{quote(doc_id, safe='')}"

    @staticmethod
    def _headers(id_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {id_token}"}

    async def _send(self, method: str, url: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{action} failed: {exc}") from exc
        raise_for_remote_status(response, action)
        return response

    async def list_documents(self, user_id: str, id_token: str, order_by: str = "createdAt") -> List[Dict[str, Any]]:
        """Return the user's documents as plain dicts, ordered by `order_by` descending."""
        query = {
            "structuredQuery": {
                "from": [{"collectionId": COLLECTION_ID}],
                "orderBy": [{"field": {"fieldPath": order_by}, "direction": "DESCENDING"}],
            }
        }
        response = await self._send(
            "POST",
            f"{self._user_path(user_id)}:runQuery",
            "List documents",
            json=query,
            headers=self._headers(id_token),
        )
        documents: List[Dict[str, Any]] = []
        for item in response.json():
            document = item.get("document")
            if document:
                documents.append(decode_fields(document.get("fields", {})))
        return documents

    async def set_document(self, user_id: str, id_token: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Create or fully overwrite a document."""
        await self._send(
            "PATCH",
            self._doc_url(user_id, doc_id),
            "Write document",
            json={"fields": encode_fields(data)},
            headers=self._headers(id_token),
        )

    async def merge_document(self, user_id: str, id_token: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Write only the given fields, leaving other fields of the document untouched."""
        params = [("updateMask.fieldPaths", key) for key in data]
        await self._send(
            "PATCH",
            self._doc_url(user_id, doc_id),
            "Merge document",
            params=params,
            json={"fields": encode_fields(data)},
            headers=self._headers(id_token),
        )

    async def delete_document(self, user_id: str, id_token: str, doc_id: str) -> None:
        url = self._doc_url(user_id, doc_id)
        try:
            response = await self._http.request("DELETE", url, headers=self._headers(id_token))
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"Delete document failed: {exc}") from exc
        if response.status_code == 404:
            LOGGER.debug("Document %s already absent", doc_id)
            return
        raise_for_remote_status(response, "Delete document")
