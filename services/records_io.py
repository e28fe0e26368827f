"""JSON backup and restore of mistake records.

The backup format is a plain JSON array of records using the camelCase
field names; there is no schema version.
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Iterable, List

import aiofiles

from models.mistake_record import MistakeRecord
from utils.errors import InvalidImportPayload


def backup_filename(today: date | None = None) -> str:
    """Default file name for a backup taken on `today`."""
    return f"smart-error-notebook-backup-{(today or date.today()).isoformat()}.json"


def export_json(records: Iterable[MistakeRecord]) -> str:
    """Serialize records to a pretty-printed JSON array."""
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)


def parse_import(text: str | bytes) -> List[MistakeRecord]:
    """Parse a backup file into records.

    Entries are not validated here beyond being JSON objects; the store
    decides which ones are importable.

    Raises:
        InvalidImportPayload: If the content is not a JSON array of objects.
    """
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise InvalidImportPayload("Import file is not valid JSON.") from exc

    if not isinstance(data, list):
        raise InvalidImportPayload("Import file must contain a JSON array of records.")

    records: List[MistakeRecord] = []
    for entry in data:
        if not isinstance(entry, dict):
            raise InvalidImportPayload("Every entry in the import file must be a JSON object.")
        try:
            records.append(MistakeRecord.from_dict(entry))
        except (TypeError, ValueError) as exc:
            raise InvalidImportPayload(f"Malformed record in import file: {exc}") from exc
    return records


async def write_export_file(records: Iterable[MistakeRecord], path: Path | str) -> Path:
    """Write a backup file and return its path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(target, "w", encoding="utf-8") as f:
        await f.write(export_json(records))
    return target
