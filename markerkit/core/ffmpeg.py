"""Thin wrapper around the ``ffmpeg`` binary.

Two responsibilities live here:

* Running an argument vector built by :mod:`markerkit.core.transcoder`, either
  letting ffmpeg write its own output file (:meth:`FFmpeg.generate`) or
  capturing stdout (:meth:`FFmpeg.generate_output`).  stderr is always
  captured so failures carry ffmpeg's diagnostics.  The process is tied to the
  caller's cancellation context and killed when that context is cancelled.
* Answering "is there a usable H.264 hardware encoder?".  Encoders listed by
  ``ffmpeg -encoders`` are verified with a one-frame test encode because a
  listed encoder is frequently unusable (missing driver/device).  The answer
  is cached for the lifetime of the wrapper.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from markerkit.core.context import CancelContext
from markerkit.core.errors import ExternalProcessError, GenerationCancelled
from markerkit.core.locks import LockContext
from markerkit.core.transcoder import Args

LOG = logging.getLogger("markerkit.ffmpeg")


# ---------------------------------------------------------------------------
# Hardware codecs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HWCodec:
    """An H.264 hardware encoder plus what ffmpeg needs to drive it."""

    name: str
    device_init: Sequence[str] = ()
    upload_filter: str = ""
    quality_args: Sequence[str] = ()


# Probe order doubles as preference order.
KNOWN_HW_CODECS: Sequence[HWCodec] = (
    HWCodec(
        "h264_nvenc",
        device_init=("-init_hw_device", "cuda=cu:0", "-filter_hw_device", "cu"),
        upload_filter="format=nv12,hwupload_cuda",
        quality_args=("-rc", "vbr", "-cq", "21"),
    ),
    HWCodec(
        "h264_qsv",
        device_init=("-init_hw_device", "qsv=hw", "-filter_hw_device", "hw"),
        upload_filter="format=nv12,hwupload=extra_hw_frames=64",
        quality_args=("-global_quality", "21"),
    ),
    HWCodec(
        "h264_vaapi",
        device_init=("-init_hw_device", "vaapi=va:/dev/dri/renderD128", "-filter_hw_device", "va"),
        upload_filter="format=nv12,hwupload",
        quality_args=("-rc_mode", "CQP", "-qp", "21"),
    ),
    HWCodec(
        "h264_videotoolbox",
        quality_args=("-q:v", "65"),
    ),
)


def _tail(text: str, limit: int = 2000) -> str:
    text = text.strip()
    return text if len(text) <= limit else "..." + text[-limit:]


@dataclass
class FFmpeg:
    """Frame-processing capability backed by the ffmpeg executable."""

    path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    _hw_codecs: Optional[List[HWCodec]] = field(default=None, init=False, repr=False, compare=False)
    _hw_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    # ------------------------------------------------------------------
    # Process execution
    # ------------------------------------------------------------------

    def generate(self, ctx: Optional[CancelContext], args: Sequence[str]) -> None:
        """Run ffmpeg for its side effect (it writes its own output file)."""
        self._run(ctx, args, stdin=None)

    def generate_output(
        self,
        ctx: Optional[CancelContext],
        args: Sequence[str],
        stdin: Optional[bytes] = None,
    ) -> bytes:
        """Run ffmpeg and return everything it wrote to stdout."""
        return self._run(ctx, args, stdin=stdin)

    def _run(self, ctx: Optional[CancelContext], args: Sequence[str], stdin: Optional[bytes]) -> bytes:
        cmd = [self.path, *args]
        LOG.info("ffmpeg command: %s", " ".join(cmd))
        if ctx is not None and ctx.cancelled():
            raise GenerationCancelled("context cancelled before ffmpeg started")

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise ExternalProcessError(f"could not start {self.path}", args=cmd) from exc

        kill = proc.kill
        if isinstance(ctx, LockContext):
            ctx.attach(proc)
        elif ctx is not None:
            ctx.on_cancel(kill)
        try:
            stdout, stderr = proc.communicate(input=stdin)
        finally:
            if isinstance(ctx, LockContext):
                ctx.detach(proc)
            elif ctx is not None:
                ctx.discard(kill)

        err_text = stderr.decode("utf-8", errors="replace") if stderr else ""
        if ctx is not None and ctx.cancelled():
            raise GenerationCancelled(f"ffmpeg aborted by cancellation (exit {proc.returncode})")
        if proc.returncode != 0:
            LOG.warning("ffmpeg failed (%s): %s", proc.returncode, _tail(err_text))
            raise ExternalProcessError(
                f"ffmpeg exited with status {proc.returncode}",
                returncode=proc.returncode,
                stderr=_tail(err_text),
                args=cmd,
            )
        if err_text:
            LOG.debug("ffmpeg stderr:%s", _tail(err_text))
        return stdout or b""

    # ------------------------------------------------------------------
    # Hardware codec query
    # ------------------------------------------------------------------

    def hw_codecs(self) -> List[HWCodec]:
        """Return the verified hardware codecs (probed once, then cached)."""
        with self._hw_lock:
            if self._hw_codecs is None:
                self._hw_codecs = self._probe_hw_codecs()
            return list(self._hw_codecs)

    def hw_codec_mp4_compatible(self) -> Optional[HWCodec]:
        codecs = self.hw_codecs()
        return codecs[0] if codecs else None

    def hw_device_init(self, args: Args, codec: HWCodec) -> Args:
        """Return *args* with the codec's device initialisation prepended."""
        return list(codec.device_init) + list(args)

    def hw_filter_init(self, codec: HWCodec) -> str:
        return codec.upload_filter

    def _listed_encoders(self) -> str:
        try:
            res = subprocess.run(
                [self.path, "-hide_banner", "-encoders"],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            LOG.warning("could not list ffmpeg encoders: %s", exc)
            return ""
        return res.stdout if res.returncode == 0 else ""

    def _test_encode(self, codec: HWCodec) -> bool:
        cmd = [self.path, "-hide_banner", "-v", "error"]
        cmd += list(codec.device_init)
        cmd += ["-f", "lavfi", "-i", "color=c=black:s=1280x720", "-frames:v", "1"]
        if codec.upload_filter:
            cmd += ["-vf", codec.upload_filter]
        cmd += ["-c:v", codec.name, "-f", "null", "-"]
        try:
            res = subprocess.run(cmd, capture_output=True, text=True, check=False, timeout=30)
        except (OSError, subprocess.TimeoutExpired) as exc:
            LOG.debug("hw codec %s test failed: %s", codec.name, exc)
            return False
        if res.returncode != 0:
            LOG.debug("hw codec %s unusable: %s", codec.name, _tail(res.stderr, 300))
            return False
        return True

    def _probe_hw_codecs(self) -> List[HWCodec]:
        listing = self._listed_encoders()
        found = [c for c in KNOWN_HW_CODECS if c.name in listing and self._test_encode(c)]
        LOG.info("hardware codecs available: %s", ", ".join(c.name for c in found) or "none")
        return found


__all__ = ["FFmpeg", "HWCodec", "KNOWN_HW_CODECS"]
