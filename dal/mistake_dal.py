"""Async Data Access Layer for the local `mistakes` table.

Provides `LocalMistakeStore`, a key-value style store of records keyed by
id, on top of `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Iterable, List, Sequence

from models.mistake_record import MistakeRecord
from models.outcomes import ImportReport
from utils.database_init import AsyncDatabaseInitializer
from utils.errors import DuplicateKey

LOGGER = logging.getLogger(__name__)


class LocalMistakeStore:
    """Data access layer for locally stored mistake records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`). Every method opens its own connection and
    commits its own transaction.
    """

    _UPSERT_SQL = (
        "INSERT INTO mistakes (id, created_at, record_json) VALUES (?, ?, ?) "
        "ON CONFLICT(id) DO UPDATE SET created_at = excluded.created_at, "
        "record_json = excluded.record_json"
    )

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def list_all(self) -> List[MistakeRecord]:
        """Return every record, newest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT record_json FROM mistakes ORDER BY created_at DESC, id ASC"
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def create(self, record: MistakeRecord) -> None:
        """Insert a new record.

        Raises:
            DuplicateKey: If a record with the same id already exists.
        """
        async with self._db.connection() as conn:
            try:
                await conn.execute(
                    "INSERT INTO mistakes (id, created_at, record_json) VALUES (?, ?, ?)",
                    self._record_params(record),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateKey(record.id) from exc
            await conn.commit()

    async def update(self, record: MistakeRecord) -> None:
        """Create or replace the record stored under `record.id`."""
        async with self._db.connection() as conn:
            await conn.execute(self._UPSERT_SQL, self._record_params(record))
            await conn.commit()

    async def bulk_import(self, records: Iterable[MistakeRecord]) -> ImportReport:
        """Upsert every record that has a non-empty id and question text.

        Invalid records are skipped and counted. All writes share one
        transaction; a failure of the transaction itself propagates.
        """
        valid: List[tuple] = []
        skipped = 0
        for record in records:
            if record.id and record.question_text:
                valid.append(self._record_params(record))
            else:
                skipped += 1

        if valid:
            async with self._db.connection() as conn:
                await conn.executemany(self._UPSERT_SQL, valid)
                await conn.commit()

        LOGGER.info("Import completed. Processed: %d, Errors: %d", len(valid), skipped)
        return ImportReport(processed=len(valid), skipped=skipped)

    async def delete(self, record_id: str) -> bool:
        """Delete a record by id. Returns True if a row was deleted; a missing id is not an error."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM mistakes WHERE id = ?", (record_id,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    async def clear_all(self) -> int:
        """Remove every record and return how many were deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM mistakes")
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            deleted = await cur.fetchone()
            return int(deleted[0]) if deleted and deleted[0] is not None else 0

    @staticmethod
    def _record_params(record: MistakeRecord) -> tuple:
        return (
            record.id,
            int(record.created_at),
            json.dumps(record.to_dict(), ensure_ascii=False),
        )

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> MistakeRecord:
        """Convert a DB row tuple into a MistakeRecord."""
        return MistakeRecord.from_dict(json.loads(str(row[0])))
