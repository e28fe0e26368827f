"""Write every record in the local SQLite store to a JSON backup file.

Uses the same `DATABASE_DIR` behavior as the application via
`utils.database_init.AsyncDatabaseInitializer`, and the same backup format
as the `/api/mistakes/export` route.

Run: set the `DATABASE_DIR` environment variable and run
      `python export_db.py [output.json]`.
"""
import asyncio
import sys
from typing import List, Optional

from dotenv import load_dotenv

from dal.mistake_dal import LocalMistakeStore
from services.records_io import backup_filename, write_export_file
from utils.database_init import AsyncDatabaseInitializer


async def export_local_store(output: Optional[str] = None, database_dir: Optional[str] = None) -> str:
    """Export the local store and return the written path.

    Args:
        output: Target file; defaults to a dated backup name in the working directory.
        database_dir: Database directory; defaults to DATABASE_DIR.
    """
    store = LocalMistakeStore(AsyncDatabaseInitializer(database_dir))
    records = await store.list_all()
    path = await write_export_file(records, output or backup_filename())
    print(f"Exported {len(records)} records to {path}")
    return str(path)


def main(argv: List[str]) -> None:
    load_dotenv()
    asyncio.run(export_local_store(argv[1] if len(argv) > 1 else None))


if __name__ == "__main__":
    main(sys.argv)
