"""Single-frame extraction against the frame-processing capability.

``OutputKind.FILE`` lets ffmpeg write the frame to ``output_path``;
``OutputKind.MEMORY`` pipes a BMP back over stdout and decodes it with Pillow
so the fingerprint path never touches disk.  Offsets are *not* clamped here.
"""

from __future__ import annotations

import io
import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

from PIL import Image, UnidentifiedImageError

from markerkit.core.config import TranscodeConfig, hwaccel_input_args
from markerkit.core.context import CancelContext
from markerkit.core.errors import DecodeError
from markerkit.core.transcoder import STDOUT, ScreenshotOptions, ScreenshotOutputType, screenshot_time

LOG = logging.getLogger("markerkit.sampler")


class Encoder(Protocol):
    def generate(self, ctx: Optional[CancelContext], args: Sequence[str]) -> None: ...

    def generate_output(
        self, ctx: Optional[CancelContext], args: Sequence[str], stdin: Optional[bytes] = None
    ) -> bytes: ...


class OutputKind(Enum):
    FILE = "file"
    MEMORY = "memory"


def decode_image(data: bytes) -> Image.Image:
    if not data:
        raise DecodeError("frame-processing capability returned no image data")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(f"decoding image: {exc}") from exc
    return img


def sample_at(
    encoder: Encoder,
    input_path: str,
    t: float,
    width: int,
    kind: OutputKind,
    output_path: Optional[Union[str, Path]] = None,
    config: Optional[TranscodeConfig] = None,
    ctx: Optional[CancelContext] = None,
    quality: int = 0,
) -> Union[Image.Image, Path]:
    """Extract the frame at *t* seconds scaled to *width*."""

    if kind is OutputKind.FILE:
        if output_path is None:
            raise ValueError("output_path is required for OutputKind.FILE")
        options = ScreenshotOptions(
            output_path=str(output_path),
            output_type=ScreenshotOutputType.IMAGE2,
            quality=quality,
            width=width,
            extra_input_args=hwaccel_input_args(config),
        )
        encoder.generate(ctx, screenshot_time(input_path, t, options))
        return Path(output_path)

    options = ScreenshotOptions(
        output_path=STDOUT,
        output_type=ScreenshotOutputType.BMP,
        quality=quality,
        width=width,
        extra_input_args=hwaccel_input_args(config),
    )
    data = encoder.generate_output(ctx, screenshot_time(input_path, t, options))
    return decode_image(data)


__all__ = ["Encoder", "OutputKind", "decode_image", "sample_at"]
