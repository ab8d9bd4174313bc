"""Image helpers: data URLs, compression and the local outfit composite."""

from __future__ import annotations

import base64
import binascii
import logging
from io import BytesIO
from typing import Optional, Tuple

import requests
from PIL import Image, UnidentifiedImageError

LOGGER = logging.getLogger(__name__)

PREVIEW_SIZE = (400, 533)
PREVIEW_BACKGROUND = "#f8f9fa"
PREVIEW_SLOT = 240
TOP_SLOT = (80, 80)
BOTTOM_SLOT = (80, 240)


def split_data_url(data_url: str) -> Tuple[str, bytes]:
    """Return ``(mime_type, raw_bytes)`` for a base64 data URL."""

    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a base64 data URL")
    header, encoded = data_url.split(",", 1)
    mime_type = header[5:].split(";", 1)[0] or "application/octet-stream"
    try:
        return mime_type, base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid base64 payload in data URL") from exc


def to_data_url(raw: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


def load_image_bytes(ref: str, timeout_seconds: float = 10.0) -> Tuple[str, bytes]:
    """Fetch image bytes from a data URL or an http(s) URL."""

    if ref.startswith("data:"):
        return split_data_url(ref)
    if ref.lower().startswith(("http://", "https://")):
        response = requests.get(ref, timeout=timeout_seconds)
        response.raise_for_status()
        mime_type = response.headers.get("Content-Type", "image/jpeg").split(";", 1)[0]
        return mime_type, response.content
    raise ValueError("Unsupported image reference")


def _to_rgb(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, "white")
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    return image.convert("RGB")


def compress_image(data_url: str, max_width: int = 1024, quality: float = 0.8) -> str:
    """Downscale to ``max_width`` and re-encode as JPEG.

    ``quality`` is a 0..1 fraction. Input that cannot be decoded is returned
    unchanged.
    """

    try:
        _, raw = split_data_url(data_url)
        with Image.open(BytesIO(raw)) as image:
            image.load()
            width, height = image.size
            if width > max_width:
                height = max(1, round(height * max_width / width))
                width = max_width
                image = image.resize((width, height), Image.LANCZOS)
            buffer = BytesIO()
            _to_rgb(image).save(buffer, format="JPEG", quality=int(quality * 100))
    except (ValueError, UnidentifiedImageError, OSError) as exc:
        LOGGER.debug("Image compression skipped", extra={"error": str(exc)})
        return data_url
    return to_data_url(buffer.getvalue(), "image/jpeg")


def _open_for_slot(ref: Optional[str]) -> Optional[Image.Image]:
    if not ref:
        return None
    try:
        _, raw = load_image_bytes(ref)
        with Image.open(BytesIO(raw)) as image:
            image.load()
            return image.convert("RGBA").resize((PREVIEW_SLOT, PREVIEW_SLOT))
    except (ValueError, UnidentifiedImageError, OSError, requests.RequestException) as exc:
        LOGGER.debug("Skipping preview slot image", extra={"error": str(exc)})
        return None


def compose_local_preview(top: Optional[str], bottom: Optional[str], quality: float = 0.8) -> str:
    """Flat-lay fallback preview: bottom first, then the top drawn over it."""

    canvas = Image.new("RGB", PREVIEW_SIZE, PREVIEW_BACKGROUND)
    for ref, slot in ((bottom, BOTTOM_SLOT), (top, TOP_SLOT)):
        layer = _open_for_slot(ref)
        if layer is not None:
            canvas.paste(layer, slot, mask=layer)
    buffer = BytesIO()
    canvas.save(buffer, format="JPEG", quality=int(quality * 100))
    return to_data_url(buffer.getvalue(), "image/jpeg")


__all__ = [
    "compose_local_preview",
    "compress_image",
    "load_image_bytes",
    "split_data_url",
    "to_data_url",
]
