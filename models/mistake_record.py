from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from models.inference_results import AnalysisResult, TokenUsage


class Subject(str, Enum):
    """Academic subjects. Values match the stored data format."""

    KOKUGO = "国語"
    SANSU = "算数"
    RIKA = "理科"
    SHAKAI = "社会"
    OTHER = "その他"

    @classmethod
    def parse(cls, value: Any) -> "Subject":
        """Map a stored value or member name to a Subject, defaulting to OTHER."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value or (isinstance(value, str) and value.upper() == member.name):
                return member
        return cls.OTHER


class MasteryLevel(str, Enum):
    """Three-state progress indicator for a record."""

    NEW = "未習得"
    REVIEWING = "復習中"
    MASTERED = "完了"

    @classmethod
    def parse(cls, value: Any) -> "MasteryLevel":
        """Map a stored value or member name to a MasteryLevel, defaulting to NEW."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value or (isinstance(value, str) and value.upper() == member.name):
                return member
        return cls.NEW


# camelCase wire name -> attribute name, for the optional string fields
_TEXT_FIELDS = {
    "imageUrl": "image_url",
    "imageBase64": "image_base64",
    "userNotes": "user_notes",
    "userCorrectAnswer": "user_correct_answer",
    "reflection": "reflection",
    "reflectionImage": "reflection_image",
    "aiSolution": "ai_solution",
    "aiAnalysis": "ai_analysis",
    "aiDiagram": "ai_diagram",
}


@dataclass
class MistakeRecord:
    """One tracked mistake.

    Attributes:
        id: Client-generated identifier, also the storage key.
        created_at: Milliseconds since epoch; default sort key (newest first).
        question_text: Transcribed or user-entered question.
        subject: Academic subject.
        mastery: Current mastery level.
        tags: Short keywords, order not meaningful.
        review_count: Reserved counter; nothing increments it.
        image_url: Inline data URL or a resolved blob-storage URL.
        image_base64: Cloud-mode backup of the inline image for inference.
        user_notes: Free-text note entered at creation.
        user_correct_answer: Answer entered by the user.
        reflection: Self-reflection text.
        reflection_image: Handwritten reflection as an inline image.
        ai_solution: Step-by-step solution from the model.
        ai_analysis: Explanation of the likely mistake.
        ai_diagram: Optional SVG markup from the model.
        ai_token_usage: Token accounting for the last analysis.
    """

    id: str
    created_at: int
    question_text: str
    subject: Subject = Subject.OTHER
    mastery: MasteryLevel = MasteryLevel.NEW
    tags: List[str] = field(default_factory=list)
    review_count: int = 0
    image_url: Optional[str] = None
    image_base64: Optional[str] = None
    user_notes: Optional[str] = None
    user_correct_answer: Optional[str] = None
    reflection: Optional[str] = None
    reflection_image: Optional[str] = None
    ai_solution: Optional[str] = None
    ai_analysis: Optional[str] = None
    ai_diagram: Optional[str] = None
    ai_token_usage: Optional[TokenUsage] = None

    def to_dict(self, include_unset: bool = False) -> Dict[str, Any]:
        """Serialize to the camelCase JSON shape.

        Unset optional fields are omitted unless `include_unset` is True, in
        which case they are present with a None value so a merge-write clears them.
        """
        data: Dict[str, Any] = {
            "id": self.id,
            "createdAt": int(self.created_at),
            "questionText": self.question_text,
            "subject": self.subject.value,
            "mastery": self.mastery.value,
            "tags": list(self.tags),
            "reviewCount": int(self.review_count),
        }
        for key, attr in _TEXT_FIELDS.items():
            value = getattr(self, attr)
            if value is not None or include_unset:
                data[key] = value
        if self.ai_token_usage is not None:
            data["aiTokenUsage"] = self.ai_token_usage.to_dict()
        elif include_unset:
            data["aiTokenUsage"] = None
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MistakeRecord":
        """Build a record from the camelCase JSON shape, ignoring unknown keys."""
        usage = data.get("aiTokenUsage")
        tags = data.get("tags") or []
        return cls(
            id=str(data.get("id") or ""),
            created_at=int(data.get("createdAt") or 0),
            question_text=str(data.get("questionText") or ""),
            subject=Subject.parse(data.get("subject")),
            mastery=MasteryLevel.parse(data.get("mastery")),
            tags=[str(tag) for tag in tags],
            review_count=int(data.get("reviewCount") or 0),
            ai_token_usage=TokenUsage.from_dict(usage) if isinstance(usage, Mapping) else None,
            **{attr: data.get(key) for key, attr in _TEXT_FIELDS.items()},
        )


def now_ms() -> int:
    return int(time.time() * 1000)


def new_mistake(
    image_url: str,
    subject: Subject = Subject.SANSU,
    user_notes: str = "",
    user_correct_answer: str = "",
) -> MistakeRecord:
    """Create a fresh record with a new id and timestamp and empty AI fields."""
    return MistakeRecord(
        id=str(uuid.uuid4()),
        created_at=now_ms(),
        image_url=image_url,
        question_text=user_notes or "Image only",
        user_notes=user_notes,
        user_correct_answer=user_correct_answer,
        reflection="",
        ai_solution="",
        ai_analysis="",
        tags=[],
        subject=subject,
        mastery=MasteryLevel.NEW,
        review_count=0,
    )


def apply_analysis(record: MistakeRecord, result: AnalysisResult) -> MistakeRecord:
    """Return a copy of `record` enriched with an analysis result."""
    return replace(
        record,
        question_text=result.question_text,
        ai_solution=result.solution,
        ai_analysis=result.analysis,
        ai_diagram=result.diagram_markup or None,
        tags=list(result.tags),
        ai_token_usage=result.token_usage,
    )
