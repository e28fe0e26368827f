"""Utilities to build multimodal input payloads for the Responses API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from utils.errors import ImageDownloadFailed
from utils.image_payloads import DEFAULT_MIME_TYPE, is_remote_url, split_data_url, to_data_url

LOGGER = logging.getLogger(__name__)

CORS_HINT = (
    "If the image is stored in Firebase Storage, check the bucket's CORS configuration "
    "or use the record's imageBase64 backup instead."
)


async def resolve_image_input(image: str, http: Optional[httpx.AsyncClient] = None) -> str:
    """Normalize an image reference into a base64 data URL.

    Accepts an http(s) URL (downloaded and re-encoded), a data URL (media
    type taken from its prefix), or bare base64 (assumed JPEG).

    Raises:
        ImageDownloadFailed: If a URL cannot be fetched.
        ValueError: If the image argument is empty.
    """
    if not image or not image.strip():
        raise ValueError("Image content is required for analysis.")

    if is_remote_url(image):
        return await _download_as_data_url(image, http)

    mime_type, data = split_data_url(image.strip())
    if not data:
        raise ValueError("Image content is required for analysis.")
    return f"data:{mime_type};base64,{data}"


async def _download_as_data_url(url: str, http: Optional[httpx.AsyncClient]) -> str:
    if http is None:
        raise ImageDownloadFailed(f"Cannot download {url}: no HTTP client configured. {CORS_HINT}")
    try:
        response = await http.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        LOGGER.error("Failed to fetch image from URL: %s", exc)
        raise ImageDownloadFailed(f"Failed to download image: {exc}. {CORS_HINT}") from exc

    mime_type = response.headers.get("content-type", DEFAULT_MIME_TYPE).split(";", 1)[0].strip()
    if not mime_type.startswith("image/"):
        mime_type = DEFAULT_MIME_TYPE
    return to_data_url(response.content, mime_type)


def _message(role: str, content: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "message", "role": role, "content": content}


def build_image_inputs(system_prompt: str, user_prompt: str, image_url: str) -> List[Dict[str, Any]]:
    """Build the input array for an image question: system text, then image and instructions."""
    return [
        _message("system", [{"type": "input_text", "text": system_prompt}]),
        _message(
            "user",
            [
                {"type": "input_image", "image_url": image_url},
                {"type": "input_text", "text": user_prompt},
            ],
        ),
    ]


def build_text_inputs(system_prompt: str, user_prompt: str) -> List[Dict[str, Any]]:
    """Build the input array for a text-only request."""
    return [
        _message("system", [{"type": "input_text", "text": system_prompt}]),
        _message("user", [{"type": "input_text", "text": user_prompt}]),
    ]
