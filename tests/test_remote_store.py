from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from models.identity import Authenticated
from services.cloud.blob_client import FirebaseBlobClient
from services.cloud.document_client import FirestoreDocumentClient
from services.remote_store import RemoteMistakeStore
from utils.errors import ImageTooLargeForFallback, RemoteStoreError

from tests.factories import SMALL_DATA_URL, make_record

USER = Authenticated(user_id="uid-1", id_token="token-1")
BLOB_ROOT = "https://blobs.example/o/"


class FakeDocuments:
    def __init__(self) -> None:
        self.docs: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.merges: List[Dict[str, Any]] = []
        self.deleted: List[str] = []

    async def list_documents(self, user_id: str, id_token: str) -> List[Dict[str, Any]]:
        docs = [doc for (uid, _), doc in self.docs.items() if uid == user_id]
        return sorted(docs, key=lambda d: d["createdAt"], reverse=True)

    async def set_document(self, user_id: str, id_token: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.docs[(user_id, doc_id)] = dict(data)

    async def merge_document(self, user_id: str, id_token: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.merges.append(dict(data))
        self.docs.setdefault((user_id, doc_id), {}).update(data)

    async def delete_document(self, user_id: str, id_token: str, doc_id: str) -> None:
        self.deleted.append(doc_id)
        self.docs.pop((user_id, doc_id), None)


class FakeBlobs:
    def __init__(self, fail: bool = False, delay: float = 0.0, delete_error: Optional[Exception] = None) -> None:
        self.fail = fail
        self.delay = delay
        self.delete_error = delete_error
        self.uploads: List[str] = []
        self.deleted: List[str] = []

    async def upload_data_url(self, object_path: str, data_url: str, id_token: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RemoteStoreError("Upload image failed with HTTP 503: unavailable", status_code=503)
        self.uploads.append(object_path)
        return f"{BLOB_ROOT}{object_path}?alt=media&token=t"

    def is_blob_reference(self, url: Optional[str]) -> bool:
        return bool(url) and url.startswith(BLOB_ROOT)

    async def delete_url(self, url: str, id_token: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(url)


def big_data_url(size: int) -> str:
    raw = b"\x00" * size
    return "data:image/jpeg;base64," + base64.b64encode(raw).decode("ascii")


async def test_create_uploads_inline_image_and_keeps_backup() -> None:
    docs, blobs = FakeDocuments(), FakeBlobs()
    store = RemoteMistakeStore(docs, blobs)

    stored = await store.create(USER, make_record("a"))

    assert stored.image_url.startswith(BLOB_ROOT + "users/uid-1/images/")
    assert stored.image_base64 == SMALL_DATA_URL
    doc = docs.docs[("uid-1", "a")]
    assert doc["imageUrl"] == stored.image_url
    assert doc["userId"] == "uid-1"


async def test_create_falls_back_to_inline_when_upload_fails_and_image_is_small() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs(fail=True))

    stored = await store.create(USER, make_record("a"))

    assert stored.image_url == SMALL_DATA_URL
    assert docs.docs[("uid-1", "a")]["imageUrl"] == SMALL_DATA_URL


async def test_create_rejects_large_image_when_upload_fails() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs(fail=True), inline_limit=1024)

    with pytest.raises(ImageTooLargeForFallback) as exc_info:
        await store.create(USER, make_record("a", image_url=big_data_url(4096)))

    assert exc_info.value.limit == 1024
    assert docs.docs == {}


async def test_large_image_upload_success_stores_no_backup() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs(), inline_limit=1024)

    stored = await store.create(USER, make_record("a", image_url=big_data_url(4096)))

    assert stored.image_url.startswith(BLOB_ROOT)
    assert stored.image_base64 is None
    assert "imageBase64" not in docs.docs[("uid-1", "a")]


async def test_upload_timeout_counts_as_failure() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs(delay=5.0), upload_timeout=0.01)

    stored = await store.create(USER, make_record("a"))

    assert stored.image_url == SMALL_DATA_URL


async def test_upload_timeout_with_large_image_fails_without_writing() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs(delay=5.0), upload_timeout=0.01, inline_limit=16)

    with pytest.raises(ImageTooLargeForFallback):
        await store.create(USER, make_record("a"))

    assert docs.docs == {}


async def test_resolved_url_passes_through_without_upload() -> None:
    docs, blobs = FakeDocuments(), FakeBlobs()
    store = RemoteMistakeStore(docs, blobs)
    url = BLOB_ROOT + "users/uid-1/images/1_abcd.jpg?alt=media&token=t"

    stored = await store.create(USER, make_record("a", image_url=url))

    assert stored.image_url == url
    assert blobs.uploads == []


async def test_update_without_new_image_leaves_backup_untouched() -> None:
    docs, blobs = FakeDocuments(), FakeBlobs()
    store = RemoteMistakeStore(docs, blobs)
    created = await store.create(USER, make_record("a"))

    await store.update(USER, make_record("a", image_url=created.image_url, image_base64=None, reflection="x"))

    assert "imageBase64" not in docs.merges[-1]
    assert docs.docs[("uid-1", "a")]["imageBase64"] == SMALL_DATA_URL
    assert docs.docs[("uid-1", "a")]["reflection"] == "x"
    assert len(blobs.uploads) == 1


async def test_update_with_inline_image_reuploads() -> None:
    docs, blobs = FakeDocuments(), FakeBlobs()
    store = RemoteMistakeStore(docs, blobs)

    stored = await store.update(USER, make_record("a"))

    assert stored.image_url.startswith(BLOB_ROOT)
    assert docs.merges[-1]["imageBase64"] == SMALL_DATA_URL
    assert len(blobs.uploads) == 1


async def test_list_all_returns_newest_first() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs())
    await store.create(USER, make_record("old", 100))
    await store.create(USER, make_record("new", 200))

    records = await store.list_all(USER)

    assert [r.id for r in records] == ["new", "old"]


async def test_delete_removes_document_and_blob() -> None:
    docs, blobs = FakeDocuments(), FakeBlobs()
    store = RemoteMistakeStore(docs, blobs)
    created = await store.create(USER, make_record("a"))

    outcome = await store.delete(USER, "a", created.image_url)

    assert docs.docs == {}
    assert blobs.deleted == [created.image_url]
    assert outcome.image_deleted is True
    assert not outcome.image_cleanup_failed


async def test_delete_suppresses_blob_cleanup_failure() -> None:
    docs = FakeDocuments()
    blobs = FakeBlobs(delete_error=RemoteStoreError("Delete image failed with HTTP 404", status_code=404))
    store = RemoteMistakeStore(docs, blobs)
    created = await store.create(USER, make_record("a"))

    outcome = await store.delete(USER, "a", created.image_url)

    assert docs.docs == {}
    assert outcome.image_deleted is False
    assert outcome.image_cleanup_failed
    assert "404" in outcome.image_cleanup_error


async def test_delete_skips_non_blob_images() -> None:
    docs, blobs = FakeDocuments(), FakeBlobs()
    store = RemoteMistakeStore(docs, blobs)

    outcome = await store.delete(USER, "a", SMALL_DATA_URL)

    assert docs.deleted == ["a"]
    assert blobs.deleted == []
    assert outcome.image_deleted is False
    assert not outcome.image_cleanup_failed


async def test_update_clears_fields_removed_from_the_record() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs())
    created = await store.create(USER, make_record("a", reflection="old", ai_diagram="<svg/>"))

    await store.update(USER, make_record("a", image_url=created.image_url, reflection=None, ai_diagram=None))

    merged = docs.merges[-1]
    assert merged["aiDiagram"] is None
    assert merged["reflection"] is None
    assert merged["aiTokenUsage"] is None
    assert "imageBase64" not in merged
    stored = (await store.list_all(USER))[0]
    assert stored.ai_diagram is None
    assert stored.reflection is None
    assert stored.image_base64 == SMALL_DATA_URL


async def test_update_mask_names_cleared_fields() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        documents = FirestoreDocumentClient(http, "demo", base_url="https://fs.test/v1")
        store = RemoteMistakeStore(documents, FakeBlobs())
        url = BLOB_ROOT + "users/uid-1/images/1_ab.jpg?alt=media&token=t"
        await store.update(USER, make_record("a", image_url=url, reflection=None, ai_diagram=None))

    mask = seen[0].url.params.get_list("updateMask.fieldPaths")
    assert "aiDiagram" in mask
    assert "reflection" in mask
    assert "imageBase64" not in mask
    fields = json.loads(seen[0].content)["fields"]
    assert fields["aiDiagram"] == {"nullValue": None}


async def test_update_falls_back_to_inline_when_upload_fails_and_image_is_small() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs(fail=True))

    stored = await store.update(USER, make_record("a"))

    assert stored.image_url == SMALL_DATA_URL
    assert docs.merges[-1]["imageUrl"] == SMALL_DATA_URL
    assert docs.merges[-1]["imageBase64"] == SMALL_DATA_URL


async def test_update_rejects_large_image_when_upload_fails() -> None:
    docs = FakeDocuments()
    store = RemoteMistakeStore(docs, FakeBlobs(fail=True), inline_limit=1024)

    with pytest.raises(ImageTooLargeForFallback):
        await store.update(USER, make_record("a", image_url=big_data_url(4096)))

    assert docs.merges == []


async def test_update_of_record_kept_inline_does_not_retry_upload() -> None:
    docs, blobs = FakeDocuments(), FakeBlobs()
    store = RemoteMistakeStore(docs, blobs)
    inline = make_record("a", image_url=SMALL_DATA_URL, image_base64=SMALL_DATA_URL)

    stored = await store.update(USER, inline)

    assert blobs.uploads == []
    assert stored.image_url == SMALL_DATA_URL
    assert "imageBase64" not in docs.merges[-1]


async def test_invalid_base64_is_rejected_instead_of_stored_inline() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"downloadTokens": "t"})

    docs = FakeDocuments()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        blobs = FirebaseBlobClient(http, "demo.appspot.com", base_url="https://storage.test")
        store = RemoteMistakeStore(docs, blobs)
        with pytest.raises(ValueError):
            await store.create(USER, make_record("a", image_url="data:image/jpeg;base64,@@not-base64@@"))

    assert seen == []
    assert docs.docs == {}
