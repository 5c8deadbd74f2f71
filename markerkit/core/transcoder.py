"""ffmpeg argument builders.

The option containers below are the fully resolved instruction set for one
external invocation.  They are built fresh per request and never persisted;
:func:`transcode` and :func:`screenshot_time` flatten them into the argument
vector handed to :class:`markerkit.core.ffmpeg.FFmpeg`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

Args = List[str]

VIDEO_CODEC_LIBX264 = "libx264"
VIDEO_CODEC_LIBWEBP = "libwebp"
VIDEO_CODEC_BMP = "bmp"
AUDIO_CODEC_AAC = "aac"

STDOUT = "-"


# ---------------------------------------------------------------------------
# Filter helpers
# ---------------------------------------------------------------------------


def scale_width(width: int) -> str:
    """Scale to *width* keeping aspect ratio (height rounded to even)."""
    return f"scale={int(width)}:-2"


def fps(rate: float) -> str:
    return f"fps={rate:g}"


def join_filters(*parts: str) -> str:
    return ",".join(p for p in parts if p)


def video_filter(args: Args, chain: str) -> Args:
    if not chain:
        return args
    return args + ["-vf", chain]


def _format_seconds(value: float) -> str:
    return f"{float(value):.3f}".rstrip("0").rstrip(".") or "0"


def _preamble() -> Args:
    return ["-hide_banner", "-v", "error", "-y"]


# ---------------------------------------------------------------------------
# Transcode
# ---------------------------------------------------------------------------


@dataclass
class TranscodeOptions:
    output_path: str
    start_time: float = 0.0
    duration: float = 0.0
    video_codec: Optional[str] = None
    video_args: Args = field(default_factory=list)
    audio_codec: Optional[str] = None
    audio_args: Args = field(default_factory=list)
    extra_input_args: Args = field(default_factory=list)
    extra_output_args: Args = field(default_factory=list)
    format: Optional[str] = None


def transcode(input_path: str, options: TranscodeOptions) -> Args:
    """Build a time-windowed transcode of *input_path*.

    ``-ss``/``-t`` are input options so ffmpeg seeks before decoding.  A
    missing codec drops that stream type entirely (``-vn``/``-an``).
    """

    args = _preamble()
    if options.start_time:
        args += ["-ss", _format_seconds(options.start_time)]
    if options.duration:
        args += ["-t", _format_seconds(options.duration)]
    args += list(options.extra_input_args)
    args += ["-i", str(input_path)]

    if options.video_codec:
        args += ["-c:v", options.video_codec]
    else:
        args += ["-vn"]
    args += list(options.video_args)

    if options.audio_codec:
        args += ["-c:a", options.audio_codec]
    else:
        args += ["-an"]
    args += list(options.audio_args)

    args += list(options.extra_output_args)
    if options.format:
        args += ["-f", options.format]
    args.append(str(options.output_path))
    return args


# ---------------------------------------------------------------------------
# Screenshots
# ---------------------------------------------------------------------------


class ScreenshotOutputType(Enum):
    IMAGE2 = ("-f", "image2")
    BMP = ("-c:v", VIDEO_CODEC_BMP, "-f", "rawvideo")

    @property
    def args(self) -> Args:
        return list(self.value)


@dataclass
class ScreenshotOptions:
    output_path: str
    output_type: ScreenshotOutputType = ScreenshotOutputType.IMAGE2
    quality: int = 0
    width: int = 0
    extra_input_args: Args = field(default_factory=list)


def screenshot_time(input_path: str, t: float, options: ScreenshotOptions) -> Args:
    """Grab a single frame at *t* seconds (no clamping; callers own the range)."""

    args = _preamble()
    args += ["-ss", _format_seconds(t)]
    args += list(options.extra_input_args)
    args += ["-i", str(input_path)]
    args += ["-frames:v", "1"]
    if options.quality > 0:
        args += ["-q:v", str(int(options.quality))]
    if options.width > 0:
        args = video_filter(args, scale_width(options.width))
    args += options.output_type.args
    args.append(str(options.output_path))
    return args


def audio_bitrate(bitrate: str) -> Args:
    return ["-b:a", bitrate]


__all__ = [
    "Args",
    "AUDIO_CODEC_AAC",
    "STDOUT",
    "ScreenshotOptions",
    "ScreenshotOutputType",
    "TranscodeOptions",
    "VIDEO_CODEC_BMP",
    "VIDEO_CODEC_LIBWEBP",
    "VIDEO_CODEC_LIBX264",
    "audio_bitrate",
    "fps",
    "join_filters",
    "scale_width",
    "screenshot_time",
    "transcode",
    "video_filter",
]
