"""Procedural glyph fixture for offline runs.

Renders one simple black-on-white shape per sign category, with random
scale, offset and stroke jitter, into the directory layout read by
:class:`~topobot.data.loaders.signs.SignDirectory`. The same seed always
yields the same images.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

import numpy as np
from PIL import Image, ImageDraw

from ..registry import DatasetSpec, register_dataset
from ..signs import SIGN_CLASSES, SignType
from ..vectorizer import VECTOR_SIDE
from .signs import SignDirectory, directory_spec

CANVAS = 64
DEFAULT_CACHE_DIR = Path(".cache") / "topobot"
MARKER = ".complete"

Box = tuple[float, float, float]  # centre x, centre y, half extent
Painter = Callable[[ImageDraw.ImageDraw, Box, int], None]


def _apiary(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    cell = r / 2.5
    for offset in (-2 * cell, 0.0, 2 * cell):
        x = cx + offset
        draw.rectangle((x - cell / 2, cy - cell / 2, x + cell / 2, cy + cell / 2), fill="black")


def _big_house(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    draw.rectangle((cx - r, cy - r * 0.6, cx + r, cy + r * 0.6), fill="black")


def _cemetery(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    draw.line((cx, cy - r, cx, cy + r), fill="black", width=width)
    draw.line((cx - r * 0.6, cy - r * 0.3, cx + r * 0.6, cy - r * 0.3), fill="black", width=width)


def _church(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    ring = r * 0.55
    draw.ellipse((cx - ring, cy, cx + ring, cy + 2 * ring - r * 0.1), outline="black", width=width)
    draw.line((cx, cy - r, cx, cy), fill="black", width=width)
    draw.line((cx - r * 0.3, cy - r * 0.6, cx + r * 0.3, cy - r * 0.6), fill="black", width=width)


def _fir(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    draw.polygon(((cx, cy - r), (cx - r * 0.7, cy + r * 0.6), (cx + r * 0.7, cy + r * 0.6)), fill="black")
    draw.line((cx, cy + r * 0.6, cx, cy + r), fill="black", width=width)


def _small_house(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    half = r * 0.5
    draw.rectangle((cx - half, cy - half, cx + half, cy + half), outline="black", width=width)


def _tower(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    draw.rectangle((cx - r * 0.2, cy - r, cx + r * 0.2, cy + r), fill="black")


def _yurt(draw: ImageDraw.ImageDraw, box: Box, width: int) -> None:
    cx, cy, r = box
    draw.chord((cx - r, cy - r * 0.8, cx + r, cy + r * 1.2), start=180, end=360, fill="black")


PAINTERS: Dict[SignType, Painter] = {
    SignType.APIARY: _apiary,
    SignType.BIG_HOUSE: _big_house,
    SignType.CEMETERY: _cemetery,
    SignType.CHURCH: _church,
    SignType.FIR: _fir,
    SignType.SMALL_HOUSE: _small_house,
    SignType.TOWER: _tower,
    SignType.YURT: _yurt,
}


def render_glyph(sign: SignType, rng: np.random.Generator, canvas: int = CANVAS) -> Image.Image:
    image = Image.new("RGB", (canvas, canvas), (255, 255, 255))
    draw = ImageDraw.Draw(image)
    half = canvas / 2
    extent = half * float(rng.uniform(0.5, 0.8))
    cx = half + float(rng.uniform(-0.1, 0.1)) * canvas
    cy = half + float(rng.uniform(-0.1, 0.1)) * canvas
    width = int(rng.integers(2, 5))
    PAINTERS[sign](draw, (cx, cy, extent), width)
    return image


def build_fixture(root: str | Path, per_class: int = 16, seed: int = 0) -> Path:
    """Write ``per_class`` PNGs for every sign under ``root`` and return it."""

    root = Path(root)
    rng = np.random.default_rng(seed)
    for sign in SIGN_CLASSES:
        folder = root / sign.folder
        folder.mkdir(parents=True, exist_ok=True)
        for index in range(per_class):
            render_glyph(sign, rng).save(folder / f"{index:04d}.png")
    (root / MARKER).write_text(f"per_class={per_class} seed={seed}\n")
    return root


def _factory(
    per_class: int = 16,
    seed: int = 0,
    size: int = VECTOR_SIDE,
    *,
    cache_dir: str | Path | None = None,
    **_: object,
) -> DatasetSpec:
    base = Path(cache_dir) if cache_dir is not None else DEFAULT_CACHE_DIR
    root = base / f"glyphs-{per_class}-{seed}"
    if not (root / MARKER).exists():
        build_fixture(root, per_class=per_class, seed=seed)
    directory = SignDirectory(root, size=size, seed=seed)
    provenance = {"type": "glyphs", "per_class": per_class, "seed": seed}
    return directory_spec("glyphs", directory, provenance)


register_dataset("glyphs", _factory)
