"""Bitmap to input-vector conversion.

A symbol is located by its dark pixels, centred on a white square with a
margin, scaled down to ``size x size`` and turned into per-pixel darkness
values, with faint values zeroed to suppress scan noise.
"""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
from PIL import Image

from ..core.types import Array

VECTOR_SIDE = 20
VECTOR_LENGTH = VECTOR_SIDE * VECTOR_SIDE
DARK_LEVEL = 128
MARGIN = 20
NOISE_FLOOR = 0.1


def _flatten(image: Image.Image) -> Image.Image:
    """Return an RGB copy of ``image`` with transparency composited onto white."""

    if image.mode in {"RGBA", "LA"} or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        return Image.alpha_composite(background, rgba).convert("RGB")
    return image.convert("RGB")


def center_symbol(image: Image.Image) -> Image.Image:
    """Crop to the dark-pixel bounding box and pad it onto a white square."""

    rgb = _flatten(image)
    pixels = np.asarray(rgb, dtype=np.int32)
    dark = pixels.sum(axis=2) // 3 < DARK_LEVEL
    if not dark.any():
        return rgb

    rows = np.flatnonzero(dark.any(axis=1))
    cols = np.flatnonzero(dark.any(axis=0))
    top, bottom = int(rows[0]), int(rows[-1])
    left, right = int(cols[0]), int(cols[-1])
    width = right - left + 1
    height = bottom - top + 1
    side = max(width, height) + MARGIN

    canvas = Image.new("RGB", (side, side), (255, 255, 255))
    symbol = rgb.crop((left, top, right + 1, bottom + 1))
    canvas.paste(symbol, ((side - width) // 2, (side - height) // 2))
    return canvas


def image_to_vector(
    image: Image.Image,
    size: int = VECTOR_SIDE,
    threshold: float = NOISE_FLOOR,
) -> Array:
    """Return a row-major ``size * size`` darkness vector in ``[0, 1]``."""

    scaled = center_symbol(image).resize((size, size), Image.Resampling.BILINEAR)
    rgb = np.asarray(scaled, dtype=np.float64) / 255.0
    lightness = (rgb.max(axis=2) + rgb.min(axis=2)) / 2.0
    darkness = 1.0 - lightness
    darkness[darkness <= threshold] = 0.0
    return darkness.reshape(-1)


def load_vector(path: str | Path, size: int = VECTOR_SIDE) -> Array:
    with Image.open(path) as image:
        return image_to_vector(image, size=size)


def vector_from_bytes(payload: bytes, size: int = VECTOR_SIDE) -> Array:
    with Image.open(io.BytesIO(payload)) as image:
        return image_to_vector(image, size=size)


__all__ = [
    "VECTOR_LENGTH",
    "VECTOR_SIDE",
    "center_symbol",
    "image_to_vector",
    "load_vector",
    "vector_from_bytes",
]
