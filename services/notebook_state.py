"""In-memory view of a user's notebook with optimistic writes.

A mutation is applied to the in-memory list first so callers can render it
right away, then persisted. If the write fails, the tentative change is
dropped by reloading the list from the backend of record and the error is
re-raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from models.identity import Identity
from models.mistake_record import MasteryLevel, MistakeRecord, Subject
from models.outcomes import DeleteOutcome
from services.persistence_facade import MistakePersistence

LOGGER = logging.getLogger(__name__)


class NotebookState:
    """Records of one identity, kept in sync with the persistence facade."""

    def __init__(self, persistence: MistakePersistence, identity: Optional[Identity] = None) -> None:
        self._persistence = persistence
        self.identity = identity
        self.records: List[MistakeRecord] = []

    async def reload(self) -> List[MistakeRecord]:
        """Replace the in-memory list with the backend's records."""
        self.records = await self._persistence.list_all(self.identity)
        return self.records

    async def switch_identity(self, identity: Optional[Identity]) -> List[MistakeRecord]:
        """Point the notebook at another identity's backend and load it."""
        self.identity = identity
        return await self.reload()

    def get(self, record_id: str) -> Optional[MistakeRecord]:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    async def add(self, record: MistakeRecord) -> MistakeRecord:
        self.records = [record] + [r for r in self.records if r.id != record.id]
        try:
            stored = await self._persistence.create(self.identity, record)
        except Exception:
            await self._reconcile("add")
            raise
        self._replace_in_memory(stored)
        return stored

    async def update(self, record: MistakeRecord) -> MistakeRecord:
        self._replace_in_memory(record)
        try:
            stored = await self._persistence.update(self.identity, record)
        except Exception:
            await self._reconcile("update")
            raise
        self._replace_in_memory(stored)
        return stored

    async def set_mastery(self, record_id: str, level: MasteryLevel) -> MistakeRecord:
        current = self.get(record_id)
        if current is None:
            raise KeyError(record_id)
        return await self.update(replace(current, mastery=level))

    async def delete(self, record_id: str) -> DeleteOutcome:
        current = self.get(record_id)
        image_ref = current.image_url if current else None
        self.records = [r for r in self.records if r.id != record_id]
        try:
            return await self._persistence.delete(self.identity, record_id, image_ref)
        except Exception:
            await self._reconcile("delete")
            raise

    def _replace_in_memory(self, record: MistakeRecord) -> None:
        self.records = [record if r.id == record.id else r for r in self.records]

    async def _reconcile(self, action: str) -> None:
        """Drop tentative state after a failed write by reloading from the backend."""
        LOGGER.error("Failed to %s record; reloading notebook from backend", action)
        try:
            await self.reload()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # the caller still sees the write error, not this one
            LOGGER.error("Reload after failed %s also failed: %s", action, exc)
            self.records = []


def filter_records(
    records: Iterable[MistakeRecord],
    search: str = "",
    subject: Optional[Subject] = None,
    mastery: Optional[MasteryLevel] = None,
) -> List[MistakeRecord]:
    """Case-insensitive search over question text and tags, plus exact subject/mastery filters."""
    term = search.strip().lower()
    matched: List[MistakeRecord] = []
    for record in records:
        if term and term not in record.question_text.lower() and not any(term in t.lower() for t in record.tags):
            continue
        if subject is not None and record.subject != subject:
            continue
        if mastery is not None and record.mastery != mastery:
            continue
        matched.append(record)
    return matched


@dataclass(frozen=True)
class NotebookStats:
    total: int
    mastered: int
    by_subject: Dict[str, int]
    by_mastery: Dict[str, int]

    @property
    def mastery_rate(self) -> float:
        return round(self.mastered / self.total * 100, 1) if self.total else 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "mastered": self.mastered,
            "masteryRate": self.mastery_rate,
            "bySubject": dict(self.by_subject),
            "byMastery": dict(self.by_mastery),
        }


def compute_stats(records: Iterable[MistakeRecord]) -> NotebookStats:
    """Aggregate counts for the dashboard charts."""
    by_subject = {s.value: 0 for s in Subject}
    by_mastery = {m.value: 0 for m in MasteryLevel}
    total = 0
    for record in records:
        total += 1
        by_subject[record.subject.value] += 1
        by_mastery[record.mastery.value] += 1
    return NotebookStats(
        total=total,
        mastered=by_mastery[MasteryLevel.MASTERED.value],
        by_subject=by_subject,
        by_mastery=by_mastery,
    )
