"""Scene-marker derivative generation.

Three artifact kinds share one flow (:meth:`Generator._generate`):

1. read-lock the source video,
2. resolve the output path and let the gatekeeper skip or allocate a temp file,
3. build the ffmpeg arguments for the artifact and run them into the temp
   file; the gatekeeper publishes it atomically.

Each kind (:class:`PreviewClip`, :class:`AnimatedThumbnail`,
:class:`Screenshot`) only knows where its output goes and how to build its
arguments.  Hardware vs. software encoding for preview clips is decided by the
pure :func:`select_video_codec`, so it can be tested without running ffmpeg.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from markerkit.core.config import TranscodeConfig, hwaccel_input_args
from markerkit.core.context import CancelContext
from markerkit.core.ffmpeg import HWCodec
from markerkit.core.gatekeeper import GenerationState, OutputGatekeeper, OverwritePolicy
from markerkit.core.locks import LockContext, LockManager
from markerkit.core.models import ArtifactRequest
from markerkit.core.sampler import Encoder, OutputKind, sample_at
from markerkit.core.transcoder import (
    AUDIO_CODEC_AAC,
    VIDEO_CODEC_LIBWEBP,
    VIDEO_CODEC_LIBX264,
    Args,
    TranscodeOptions,
    audio_bitrate,
    fps,
    join_filters,
    scale_width,
    transcode,
    video_filter,
)

LOG = logging.getLogger("markerkit.generator")

MARKER_PREVIEW_WIDTH = 640
MAX_MARKER_PREVIEW_DURATION = 20
MARKER_PREVIEW_AUDIO_BITRATE = "64k"

MARKER_IMAGE_DURATION = 5
MARKER_WEBP_FPS = 12

MARKER_SCREENSHOT_QUALITY = 2


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class HWCodecQuery(Protocol):
    def hw_codec_mp4_compatible(self) -> Optional[HWCodec]: ...

    def hw_device_init(self, args: Args, codec: HWCodec) -> Args: ...

    def hw_filter_init(self, codec: HWCodec) -> str: ...


class PathNaming(Protocol):
    def get_video_preview_path(self, checksum: str, seconds: int) -> Path: ...

    def get_webp_preview_path(self, checksum: str, seconds: int) -> Path: ...

    def get_screenshot_path(self, checksum: str, seconds: int, width: Optional[int] = None) -> Path: ...


# ---------------------------------------------------------------------------
# Codec selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CodecChoice:
    name: str
    hw_codec: Optional[HWCodec] = None

    @property
    def hardware(self) -> bool:
        return self.hw_codec is not None


def select_video_codec(hardware_enabled: bool, query: Optional[HWCodecQuery]) -> CodecChoice:
    """Pick the preview encoder: a verified hardware codec, else libx264."""

    if hardware_enabled and query is not None:
        hw = query.hw_codec_mp4_compatible()
        if hw is not None:
            LOG.debug("[generator] Using hardware codec for marker preview: %s", hw.name)
            return CodecChoice(hw.name, hw)
    return CodecChoice(VIDEO_CODEC_LIBX264)


def preview_duration(seconds: float, end_seconds: Optional[float]) -> float:
    """Clip length, capped at :data:`MAX_MARKER_PREVIEW_DURATION`."""

    duration = float(MAX_MARKER_PREVIEW_DURATION)
    if end_seconds is not None and end_seconds - seconds < MAX_MARKER_PREVIEW_DURATION:
        duration = float(end_seconds) - seconds
    return duration


# ---------------------------------------------------------------------------
# Artifact kinds
# ---------------------------------------------------------------------------


class Artifact(Protocol):
    kind: str

    def output_path(self, paths: PathNaming, checksum: str) -> Path: ...

    def run(self, gen: "Generator", lock_ctx: LockContext, input_path: str, tmp_path: str) -> None: ...


@dataclass(frozen=True)
class PreviewClip:
    request: ArtifactRequest
    kind: str = "marker video"

    def output_path(self, paths: PathNaming, checksum: str) -> Path:
        return paths.get_video_preview_path(checksum, int(self.request.start_seconds))

    def build_args(self, gen: "Generator", input_path: str, tmp_path: str) -> Args:
        req = self.request
        codec = select_video_codec(gen.config.hardware_acceleration, gen.hw_query)
        vf = scale_width(MARKER_PREVIEW_WIDTH)

        video_args: Args = []
        if codec.hardware:
            # scale on the CPU, then upload frames to the device
            vf = join_filters(vf, gen.hw_query.hw_filter_init(codec.hw_codec))
            video_args = video_filter(video_args, vf)
            video_args += list(codec.hw_codec.quality_args)
            video_args += ["-movflags", "+faststart"]
        else:
            video_args = video_filter(video_args, vf)
            video_args += [
                "-pix_fmt", "yuv420p",
                "-profile:v", "high",
                "-level", "4.2",
                "-preset", "veryslow",
                "-crf", "24",
                "-movflags", "+faststart",
                "-threads", "4",
                "-sws_flags", "lanczos",
                "-strict", "-2",
            ]

        extra_input_args = list(gen.config.transcode_input_args)
        if codec.hardware:
            extra_input_args = gen.hw_query.hw_device_init(extra_input_args, codec.hw_codec)

        options = TranscodeOptions(
            output_path=tmp_path,
            start_time=req.start_seconds,
            duration=preview_duration(req.start_seconds, req.end_seconds),
            video_codec=codec.name,
            video_args=video_args,
            extra_input_args=extra_input_args,
            extra_output_args=list(gen.config.transcode_output_args),
        )
        if req.include_audio:
            options.audio_codec = AUDIO_CODEC_AAC
            options.audio_args = audio_bitrate(MARKER_PREVIEW_AUDIO_BITRATE)
        return transcode(input_path, options)

    def run(self, gen: "Generator", lock_ctx: LockContext, input_path: str, tmp_path: str) -> None:
        gen.encoder.generate(lock_ctx, self.build_args(gen, input_path, tmp_path))


@dataclass(frozen=True)
class AnimatedThumbnail:
    request: ArtifactRequest
    kind: str = "marker image"

    def output_path(self, paths: PathNaming, checksum: str) -> Path:
        return paths.get_webp_preview_path(checksum, int(self.request.start_seconds))

    def build_args(self, gen: "Generator", input_path: str, tmp_path: str) -> Args:
        vf = join_filters(scale_width(MARKER_PREVIEW_WIDTH), fps(MARKER_WEBP_FPS))
        video_args = video_filter([], vf)
        video_args += [
            "-lossless", "1",
            "-q:v", "70",
            "-compression_level", "6",
            "-preset", "default",
            "-loop", "0",
            "-threads", "4",
        ]
        options = TranscodeOptions(
            output_path=tmp_path,
            start_time=self.request.start_seconds,
            duration=MARKER_IMAGE_DURATION,
            video_codec=VIDEO_CODEC_LIBWEBP,
            video_args=video_args,
            extra_input_args=hwaccel_input_args(gen.config),
            extra_output_args=list(gen.config.transcode_output_args),
        )
        return transcode(input_path, options)

    def run(self, gen: "Generator", lock_ctx: LockContext, input_path: str, tmp_path: str) -> None:
        gen.encoder.generate(lock_ctx, self.build_args(gen, input_path, tmp_path))


@dataclass(frozen=True)
class Screenshot:
    request: ArtifactRequest
    kind: str = "marker screenshot"

    def output_path(self, paths: PathNaming, checksum: str) -> Path:
        return paths.get_screenshot_path(
            checksum, int(self.request.start_seconds), self.request.width or None
        )

    def run(self, gen: "Generator", lock_ctx: LockContext, input_path: str, tmp_path: str) -> None:
        sample_at(
            gen.encoder,
            input_path,
            self.request.start_seconds,
            self.request.width,
            OutputKind.FILE,
            output_path=tmp_path,
            config=gen.config,
            ctx=lock_ctx,
            quality=MARKER_SCREENSHOT_QUALITY,
        )


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


@dataclass
class Generator:
    """Entry point for marker derivatives; safe to share between threads."""

    encoder: Encoder
    paths: PathNaming
    lock_manager: LockManager = field(default_factory=LockManager)
    config: TranscodeConfig = field(default_factory=TranscodeConfig)
    hw_query: Optional[HWCodecQuery] = None
    overwrite: bool = False

    def __post_init__(self) -> None:
        self.gatekeeper = OutputGatekeeper(self.lock_manager)
        if self.hw_query is None and hasattr(self.encoder, "hw_codec_mp4_compatible"):
            self.hw_query = self.encoder  # type: ignore[assignment]

    @property
    def policy(self) -> OverwritePolicy:
        return OverwritePolicy.OVERWRITE if self.overwrite else OverwritePolicy.SKIP_IF_EXISTS

    def preview_clip(
        self,
        ctx: Optional[CancelContext],
        input_path: str,
        checksum: str,
        seconds: float,
        end_seconds: Optional[float] = None,
        include_audio: bool = False,
    ) -> GenerationState:
        request = ArtifactRequest(seconds, end_seconds=end_seconds, include_audio=include_audio)
        return self._generate(ctx, input_path, checksum, PreviewClip(request))

    def animated_thumbnail(
        self, ctx: Optional[CancelContext], input_path: str, checksum: str, seconds: float
    ) -> GenerationState:
        return self._generate(ctx, input_path, checksum, AnimatedThumbnail(ArtifactRequest(seconds)))

    def screenshot(
        self, ctx: Optional[CancelContext], input_path: str, checksum: str, seconds: float, width: int
    ) -> GenerationState:
        request = ArtifactRequest(seconds, width=int(width))
        return self._generate(ctx, input_path, checksum, Screenshot(request))

    def _generate(
        self, ctx: Optional[CancelContext], input_path: str, checksum: str, artifact: Artifact
    ) -> GenerationState:
        with self.lock_manager.read_lock(ctx, input_path) as lock_ctx:
            output = artifact.output_path(self.paths, checksum)

            def generate_fn(out_ctx: LockContext, tmp_path: str) -> None:
                artifact.run(self, out_ctx, input_path, tmp_path)

            state = self.gatekeeper.ensure_generated(lock_ctx, output, self.policy, generate_fn)

        if state is GenerationState.PUBLISHED:
            LOG.debug("created %s: %s", artifact.kind, output)
        return state


def generate_all(
    gen: Generator,
    ctx: Optional[CancelContext],
    input_path: str,
    checksum: str,
    seconds: float,
    end_seconds: Optional[float] = None,
    include_audio: bool = False,
    screenshot_widths: Sequence[int] = (),
) -> List[GenerationState]:
    """Generate every derivative kind for one marker, in a fixed order."""

    states = [
        gen.preview_clip(ctx, input_path, checksum, seconds, end_seconds, include_audio),
        gen.animated_thumbnail(ctx, input_path, checksum, seconds),
    ]
    for width in screenshot_widths:
        states.append(gen.screenshot(ctx, input_path, checksum, seconds, width))
    return states


__all__ = [
    "AnimatedThumbnail",
    "CodecChoice",
    "Generator",
    "MARKER_IMAGE_DURATION",
    "MARKER_PREVIEW_AUDIO_BITRATE",
    "MARKER_PREVIEW_WIDTH",
    "MARKER_SCREENSHOT_QUALITY",
    "MARKER_WEBP_FPS",
    "MAX_MARKER_PREVIEW_DURATION",
    "PreviewClip",
    "Screenshot",
    "generate_all",
    "preview_duration",
    "select_video_codec",
]
