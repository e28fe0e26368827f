"""Structured results returned by the inference client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class TokenUsage:
    """Token accounting reported by the provider for one call."""

    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenUsage":
        def _int(key: str) -> Optional[int]:
            value = data.get(key)
            return int(value) if value is not None else None

        return cls(
            input_tokens=_int("inputTokens"),
            output_tokens=_int("outputTokens"),
            total_tokens=_int("totalTokens"),
        )


@dataclass
class AnalysisResult:
    question_text: str
    solution: str
    analysis: str
    tags: List[str] = field(default_factory=list)
    suggested_subject: str = ""
    diagram_markup: Optional[str] = None
    token_usage: Optional[TokenUsage] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionText": self.question_text,
            "solution": self.solution,
            "analysis": self.analysis,
            "tags": list(self.tags),
            "suggestedSubject": self.suggested_subject,
            "diagramMarkup": self.diagram_markup,
            "tokenUsage": self.token_usage.to_dict() if self.token_usage else None,
        }


@dataclass
class SimilarQuestionResult:
    question: str
    answer: str
    diagram_markup: Optional[str] = None
    token_usage: Optional[TokenUsage] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "diagramMarkup": self.diagram_markup,
            "tokenUsage": self.token_usage.to_dict() if self.token_usage else None,
        }
