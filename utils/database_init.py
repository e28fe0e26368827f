import logging
import os
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from utils.errors import StorageUnavailable

LOGGER = logging.getLogger(__name__)

DB_FILENAME = "smartnote.db"

# Each entry upgrades the schema from version N-1 to N, N being its 1-based position.
_UPGRADE_STEPS = (
    (
        """
        CREATE TABLE IF NOT EXISTS mistakes (
            id TEXT PRIMARY KEY,
            created_at INTEGER NOT NULL,
            record_json TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_mistakes_created_at ON mistakes(created_at)",
    ),
)

SCHEMA_VERSION = len(_UPGRADE_STEPS)


def _resolve_database_dir(database_dir: Optional[Path | str]) -> Path:
    raw = str(database_dir) if database_dir is not None else (os.getenv("DATABASE_DIR") or "")
    if not raw.strip():
        raise RuntimeError(
            "No database directory configured. Set DATABASE_DIR to the directory "
            "that should hold the local mistake notebook."
        )
    path = Path(raw).expanduser()
    if path.exists() and not path.is_dir():
        raise RuntimeError(f"Database directory {path} exists but is a regular file.")
    return path


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite file that backs the local mistake store.

    - The database file is located at: <database_dir>/smartnote.db
    - `database_dir` defaults to the DATABASE_DIR environment variable. A
      RuntimeError is raised if neither is given or the path is a file.
    - The schema version lives in `PRAGMA user_version`. Upgrade steps run
      once, in order, on the first open; existing rows are never rewritten.
    - A fresh connection is opened for every `connection()` block.
    """

    def __init__(self, database_dir: Optional[Path | str] = None) -> None:
        self.db_dir = _resolve_database_dir(database_dir)
        self.db_path = self.db_dir / DB_FILENAME
        self._ready = False

    async def ensure_database(self) -> None:
        """
        Create the database directory and file and apply pending schema upgrades.

        Only the first successful call does any work.

        Raises:
            StorageUnavailable: If the directory or file cannot be created or opened.
        """
        if self._ready:
            return

        try:
            self.db_dir.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(self.db_path) as db:
                await self._upgrade(db)
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable(f"Local store at {self.db_path} cannot be opened: {exc}") from exc

        self._ready = True

    @staticmethod
    async def _upgrade(db: aiosqlite.Connection) -> None:
        """Run the upgrade steps above the stored `user_version`."""
        cur = await db.execute("PRAGMA user_version")
        row = await cur.fetchone()
        current = int(row[0]) if row else 0

        for version, statements in enumerate(_UPGRADE_STEPS, start=1):
            if version <= current:
                continue
            for statement in statements:
                await db.execute(statement)
            await db.execute(f"PRAGMA user_version = {version}")
            LOGGER.info("Local store schema upgraded to version %d", version)
        await db.commit()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Yield an open `aiosqlite.Connection`, closing it on exit.

        Raises:
            StorageUnavailable: If the engine cannot be opened.
        """
        await self.ensure_database()
        try:
            conn = await aiosqlite.connect(self.db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable(f"Local store at {self.db_path} cannot be opened: {exc}") from exc
        try:
            yield conn
        finally:
            await conn.close()
