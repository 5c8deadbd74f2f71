"""Video perceptual hash.

A video is fingerprinted by sampling ``columns * rows`` frames between 5% and
95% of its duration (skipping intros/outros), tiling them into one sprite with
:func:`markerkit.core.montage.combine_images`, and reducing the sprite with a
DCT perceptual hash to a 64-bit unsigned integer.  Identical pixels always
produce the identical code, so fingerprints can be stored and compared later
with :func:`hamming_distance`.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import imagehash
import numpy as np
from PIL import Image

from markerkit.core.config import TranscodeConfig
from markerkit.core.context import CancelContext
from markerkit.core.errors import InsufficientSamplesError, ReductionError
from markerkit.core.models import SourceMedia
from markerkit.core.montage import combine_images
from markerkit.core.sampler import Encoder, OutputKind, sample_at

LOG = logging.getLogger("markerkit.phash")

SCREENSHOT_SIZE = 160
COLUMNS = 5
ROWS = 5


def sample_times(duration: float, columns: int = COLUMNS, rows: int = ROWS) -> List[float]:
    """Sample offsets: ``0.05*d + i * (0.9*d / N)`` for ``i`` in ``[0, N)``."""

    count = columns * rows
    offset = 0.05 * duration
    step = (0.9 * duration) / count
    return [offset + i * step for i in range(count)]


def reduce(image: Image.Image) -> int:
    """Return the 64-bit perceptual hash of *image* (MSB = first DCT cell)."""

    width, height = image.size
    if width <= 0 or height <= 0:
        raise ReductionError(f"cannot hash an empty image ({width}x{height})")
    try:
        bits = imagehash.phash(image, hash_size=8).hash
    except (ValueError, OSError) as exc:
        raise ReductionError(f"computing phash from sprite: {exc}") from exc
    packed = np.packbits(np.asarray(bits, dtype=bool).flatten())
    return int.from_bytes(packed.tobytes(), "big")


def hamming_distance(a: int, b: int) -> int:
    return bin((a ^ b) & 0xFFFFFFFFFFFFFFFF).count("1")


def generate_sprite(
    encoder: Encoder,
    video: SourceMedia,
    config: Optional[TranscodeConfig] = None,
    ctx: Optional[CancelContext] = None,
    columns: int = COLUMNS,
    rows: int = ROWS,
    width: int = SCREENSHOT_SIZE,
) -> Image.Image:
    LOG.info("[generator] generating phash sprite for %s", video.path)

    if video.duration <= 0:
        raise InsufficientSamplesError(
            f"video duration {video.duration!r} is not positive, cannot generate phash sprite for {video.path}"
        )

    times = sample_times(video.duration, columns, rows)
    images: List[Image.Image] = []
    for t in times:
        img = sample_at(encoder, video.path, t, width, OutputKind.MEMORY, config=config, ctx=ctx)
        images.append(img)

    if len(images) < len(times):
        raise InsufficientSamplesError(
            f"only {len(images)} of {len(times)} samples produced, failed to generate phash sprite for {video.path}"
        )
    return combine_images(images, columns, rows)


def generate(
    encoder: Encoder,
    video: SourceMedia,
    config: Optional[TranscodeConfig] = None,
    ctx: Optional[CancelContext] = None,
    columns: int = COLUMNS,
    rows: int = ROWS,
    width: int = SCREENSHOT_SIZE,
) -> int:
    """Fingerprint *video*; raises rather than hashing a partial grid."""

    sprite = generate_sprite(encoder, video, config, ctx, columns, rows, width)
    value = reduce(sprite)
    LOG.debug("phash for %s: %016x", video.path, value)
    return value


__all__ = [
    "COLUMNS",
    "ROWS",
    "SCREENSHOT_SIZE",
    "generate",
    "generate_sprite",
    "hamming_distance",
    "reduce",
    "sample_times",
]
