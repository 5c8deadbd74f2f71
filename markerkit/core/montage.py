"""Grid montage ("sprite") assembly for the fingerprint path.

The cell formula is ``(i % columns, floor(i / rows))``.  Rows, not columns,
divide the index for the y coordinate; with a non-square grid this
interleaves cells oddly, but stored fingerprints depend on it, so it must not
change.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

from PIL import Image

TRANSPARENT = (0, 0, 0, 0)


def grid_cell(index: int, columns: int, rows: int) -> Tuple[int, int]:
    return index % columns, int(math.floor(index / rows))


def combine_images(images: Sequence[Image.Image], columns: int, rows: int) -> Image.Image:
    """Paste *images* onto a ``width*columns`` x ``height*rows`` RGBA canvas."""

    if columns <= 0 or rows <= 0:
        raise ValueError(f"invalid grid {columns}x{rows}")
    if len(images) != columns * rows:
        raise ValueError(f"expected {columns * rows} images for a {columns}x{rows} grid, got {len(images)}")

    width, height = images[0].size
    for img in images[1:]:
        if img.size != (width, height):
            raise ValueError(f"sample size mismatch: {img.size} != {(width, height)}")

    montage = Image.new("RGBA", (width * columns, height * rows), TRANSPARENT)
    for index, img in enumerate(images):
        col, row = grid_cell(index, columns, rows)
        montage.paste(img.convert("RGBA"), (width * col, height * row))
    return montage


__all__ = ["TRANSPARENT", "combine_images", "grid_cell"]
