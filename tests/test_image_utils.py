"""Image compression and local preview composite tests."""

from __future__ import annotations

import sys
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tools.image_utils import (
    PREVIEW_SIZE,
    compose_local_preview,
    compress_image,
    load_image_bytes,
    split_data_url,
    to_data_url,
)


def _data_url(size, color, fmt="PNG", mode="RGB") -> str:
    buffer = BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return to_data_url(buffer.getvalue(), f"image/{fmt.lower()}")


def _decode(data_url: str) -> Image.Image:
    _, raw = split_data_url(data_url)
    image = Image.open(BytesIO(raw))
    image.load()
    return image


def test_compress_downscales_wide_images_to_jpeg() -> None:
    compressed = compress_image(_data_url((2048, 1024), "orange"), max_width=1024, quality=0.7)
    image = _decode(compressed)
    assert compressed.startswith("data:image/jpeg;base64,")
    assert image.size == (1024, 512)


def test_compress_keeps_small_images_and_flattens_alpha() -> None:
    compressed = compress_image(_data_url((100, 50), (255, 0, 0, 0), mode="RGBA"), max_width=512)
    image = _decode(compressed)
    assert image.size == (100, 50)
    assert image.mode == "RGB"
    # Fully transparent pixels become white.
    assert all(channel > 240 for channel in image.getpixel((10, 10)))


def test_compress_returns_undecodable_input_unchanged() -> None:
    assert compress_image("not-an-image") == "not-an-image"
    junk = to_data_url(b"definitely not a png", "image/png")
    assert compress_image(junk) == junk


def test_split_data_url_validation() -> None:
    assert split_data_url("data:image/png;base64,aGk=") == ("image/png", b"hi")
    with pytest.raises(ValueError):
        split_data_url("https://example.com/tee.png")
    with pytest.raises(ValueError):
        split_data_url("data:image/png;base64,***")


def test_load_image_bytes_rejects_unknown_refs() -> None:
    with pytest.raises(ValueError):
        load_image_bytes("file:///etc/passwd")


def test_local_preview_places_bottom_then_top() -> None:
    top = _data_url((50, 50), "red")
    bottom = _data_url((50, 50), "blue")
    preview = _decode(compose_local_preview(top, bottom))

    assert preview.size == PREVIEW_SIZE
    r, g, b = preview.getpixel((200, 150))
    assert r > 200 and b < 60
    r, g, b = preview.getpixel((200, 400))
    assert b > 200 and r < 60
    r, g, b = preview.getpixel((5, 5))
    assert min(r, g, b) > 235


def test_local_preview_without_images_is_blank_canvas() -> None:
    preview = _decode(compose_local_preview(None, None))
    assert preview.size == PREVIEW_SIZE
