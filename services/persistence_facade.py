"""Single CRUD entry point that routes each call to the local or cloud store."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from dal.mistake_dal import LocalMistakeStore
from models.identity import Authenticated, Identity, resolve_identity
from models.mistake_record import MistakeRecord
from models.outcomes import DeleteOutcome, ImportReport
from services.remote_store import RemoteMistakeStore
from utils.errors import CloudStoreNotConfigured

LOGGER = logging.getLogger(__name__)


class MistakePersistence:
    """Choose the backend per call from the acting identity.

    Anonymous callers (or `None`) use the local store; authenticated callers
    use their cloud collection. Records are never copied between the two
    when the identity changes. Backend errors propagate unchanged.

    Args:
        local: Local SQLite store.
        remote: Cloud store, or None when cloud mode is not configured.
    """

    def __init__(self, local: LocalMistakeStore, remote: Optional[RemoteMistakeStore] = None) -> None:
        self.local = local
        self.remote = remote

    def _remote_for(self, identity: Authenticated) -> RemoteMistakeStore:
        if self.remote is None:
            raise CloudStoreNotConfigured(
                "Cloud sync is not configured; set FIREBASE_PROJECT_ID and FIREBASE_STORAGE_BUCKET."
            )
        return self.remote

    async def list_all(self, identity: Optional[Identity]) -> List[MistakeRecord]:
        identity = resolve_identity(identity)
        if isinstance(identity, Authenticated):
            return await self._remote_for(identity).list_all(identity)
        return await self.local.list_all()

    async def create(self, identity: Optional[Identity], record: MistakeRecord) -> MistakeRecord:
        """Persist a new record and return it as stored."""
        identity = resolve_identity(identity)
        if isinstance(identity, Authenticated):
            return await self._remote_for(identity).create(identity, record)
        await self.local.create(record)
        return record

    async def update(self, identity: Optional[Identity], record: MistakeRecord) -> MistakeRecord:
        """Replace the stored value of a record and return it as stored."""
        identity = resolve_identity(identity)
        if isinstance(identity, Authenticated):
            return await self._remote_for(identity).update(identity, record)
        await self.local.update(record)
        return record

    async def delete(self, identity: Optional[Identity], record_id: str, image_ref: Optional[str] = None) -> DeleteOutcome:
        identity = resolve_identity(identity)
        if isinstance(identity, Authenticated):
            return await self._remote_for(identity).delete(identity, record_id, image_ref)
        await self.local.delete(record_id)
        return DeleteOutcome()

    async def export_records(self, identity: Optional[Identity]) -> List[MistakeRecord]:
        """Return the full collection of the acting identity for backup."""
        return await self.list_all(identity)

    async def import_records(self, records: Iterable[MistakeRecord]) -> ImportReport:
        """Restore a backup into the local store."""
        report = await self.local.bulk_import(records)
        if report.skipped:
            LOGGER.warning("Skipped %d invalid records during import", report.skipped)
        return report

    async def clear_local(self) -> int:
        """Delete every record in the local store; cloud data is not affected."""
        return await self.local.clear_all()
