"""Structured-output formats for the mistake analysis calls."""

from typing import Any, Dict

from models.mistake_record import Subject
from services.openai.mistake_prompts import language_name

ANALYSIS_FORMAT_NAME = "mistake_analysis"
SIMILAR_FORMAT_NAME = "similar_question"


def analysis_format(language: str) -> Dict[str, Any]:
    """Return the `text.format` payload for an image analysis in `language`."""
    lang = language_name(language)
    return {
        "type": "json_schema",
        "name": ANALYSIS_FORMAT_NAME,
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "questionText": {
                    "type": "string",
                    "description": f"The question text transcribed from the image, in {lang}.",
                },
                "solution": {
                    "type": "string",
                    "description": f"A correct, step-by-step solution to the question, in {lang}.",
                },
                "analysis": {
                    "type": "string",
                    "description": (
                        f"Why the student may have made a mistake and the key concepts involved, in {lang}."
                    ),
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": f"3-5 short keywords related to this question, in {lang}.",
                },
                "suggestedSubject": {
                    "type": "string",
                    "enum": [s.value for s in Subject],
                    "description": "The academic subject of the question.",
                },
                "svgDiagram": {
                    "type": "string",
                    "description": (
                        "SVG code (<svg>...</svg>) for a diagram or graph that helps the explanation. "
                        "Use simple shape primitives and avoid complex path data. "
                        "Empty string if no diagram is needed."
                    ),
                },
            },
            "required": ["questionText", "solution", "analysis", "tags", "suggestedSubject", "svgDiagram"],
            "additionalProperties": False,
        },
    }


def similar_format(language: str) -> Dict[str, Any]:
    """Return the `text.format` payload for a practice question in `language`."""
    lang = language_name(language)
    return {
        "type": "json_schema",
        "name": SIMILAR_FORMAT_NAME,
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "question": {
                    "type": "string",
                    "description": (
                        f"A new practice question similar in logic and concept to the original, in {lang}."
                    ),
                },
                "answer": {
                    "type": "string",
                    "description": f"The correct answer to the new question with a short explanation, in {lang}.",
                },
                "svgDiagram": {
                    "type": "string",
                    "description": "SVG code if the new question needs a diagram. Empty string otherwise.",
                },
            },
            "required": ["question", "answer", "svgDiagram"],
            "additionalProperties": False,
        },
    }
