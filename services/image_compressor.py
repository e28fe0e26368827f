"""Image compressor service.

Provides a small OOP wrapper around Pillow that shrinks a photographed
question before it is saved. The image is scaled down to at most 1600
pixels wide and re-encoded as JPEG at quality 70, which keeps clear text
and diagrams while staying well under the cloud document size limit.

Public class: `ImageCompressor`

Example:
    compressor = ImageCompressor()
    data_url = compressor.compress_data_url(uploaded_data_url)
"""
from __future__ import annotations

import io
from typing import Tuple

from PIL import Image

from utils.image_payloads import decode_data_url, to_data_url


class ImageCompressor:
    """Downscale and re-encode images as JPEG data URLs.

    Args:
        max_width: Images wider than this are scaled down, preserving aspect ratio.
        quality: JPEG quality (1-95).
        background: Color used when flattening images with alpha to RGB.
    """

    def __init__(self, max_width: int = 1600, quality: int = 70, background: Tuple[int, int, int] | None = None):
        self.max_width = max_width
        self.quality = quality
        self.background = background or (255, 255, 255)

    def compress_bytes(self, raw: bytes) -> bytes:
        """Compress raw image bytes and return JPEG bytes.

        Raises:
            ValueError: If the bytes cannot be opened as an image.
        """
        try:
            src = Image.open(io.BytesIO(raw))
            src.load()
        except Exception as exc:
            raise ValueError("Decoded bytes are not a supported image format") from exc

        if src.width > self.max_width:
            height = round(src.height * self.max_width / src.width)
            src = src.resize((self.max_width, height), Image.LANCZOS)

        # Flatten alpha against the background color; JPEG has no alpha channel
        if src.mode in ("RGBA", "LA", "P"):
            src = src.convert("RGBA")
            flat = Image.new("RGB", src.size, self.background)
            flat.paste(src, mask=src.split()[3])
            src = flat
        elif src.mode != "RGB":
            src = src.convert("RGB")

        out_io = io.BytesIO()
        src.save(out_io, format="JPEG", quality=self.quality, optimize=True)
        return out_io.getvalue()

    def compress_data_url(self, data_url: str) -> str:
        """Compress an inline image and return a `data:image/jpeg;base64,...` URL.

        Raises:
            ValueError: If the payload is not valid base64 image data.
        """
        _, raw = decode_data_url(data_url)
        return to_data_url(self.compress_bytes(raw), "image/jpeg")
