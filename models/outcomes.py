"""Result objects for storage operations with non-fatal side effects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ImportReport:
    """Outcome of a bulk import: records written and records skipped by validation."""

    processed: int
    skipped: int

    @property
    def total(self) -> int:
        return self.processed + self.skipped


@dataclass(frozen=True)
class DeleteOutcome:
    """Outcome of a delete.

    The record itself is always gone when a DeleteOutcome is returned;
    failures deleting the record raise instead. Image cleanup is best
    effort, so its failure is only reported here.

    Attributes:
        image_deleted: True if an associated blob was removed.
        image_cleanup_error: Message from a suppressed blob deletion failure.
    """

    image_deleted: bool = False
    image_cleanup_error: Optional[str] = None

    @property
    def image_cleanup_failed(self) -> bool:
        return self.image_cleanup_error is not None
