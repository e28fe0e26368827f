"""Helpers to parse Responses API outputs."""

import json
import re
from typing import Any, Dict, Optional

from models.inference_results import TokenUsage

_FENCE_PATTERN = re.compile(r"```(?:json)?")


def safe_json_parse(text: str) -> Dict[str, Any]:
    """Parse a JSON object, tolerating surrounding Markdown code fences.

    Raises:
        json.JSONDecodeError: If the cleaned text is not valid JSON.
        ValueError: If the JSON is valid but not an object.
    """
    cleaned = _FENCE_PATTERN.sub("", text).strip()
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def extract_output_text(response: Any) -> Optional[str]:
    """Return the text output of a Responses API result, or None if there is none."""
    text = getattr(response, "output_text", None)
    if text:
        return text

    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text" and getattr(content, "text", None):
                return content.text
    return None


def extract_usage(response: Any) -> Optional[TokenUsage]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    if usage is None:
        return None
    return TokenUsage(
        input_tokens=getattr(usage, "input_tokens", None),
        output_tokens=getattr(usage, "output_tokens", None),
        total_tokens=getattr(usage, "total_tokens", None),
    )
