from __future__ import annotations

import base64
from typing import Any

from models.mistake_record import MasteryLevel, MistakeRecord, Subject

SMALL_DATA_URL = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8\xff tiny jpeg").decode("ascii")


def make_record(record_id: str = "rec-1", created_at: int = 1_000, **overrides: Any) -> MistakeRecord:
    fields: dict[str, Any] = {
        "id": record_id,
        "created_at": created_at,
        "question_text": f"Question {record_id}",
        "subject": Subject.SANSU,
        "mastery": MasteryLevel.NEW,
        "tags": ["fractions"],
        "image_url": SMALL_DATA_URL,
    }
    fields.update(overrides)
    return MistakeRecord(**fields)
