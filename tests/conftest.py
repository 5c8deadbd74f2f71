"""Shared fixtures: a fake ffmpeg that never spawns a process."""

from __future__ import annotations

import io
import threading
from typing import List, Optional, Sequence

import pytest
from PIL import Image

from markerkit.core.context import CancelContext
from markerkit.core.errors import ExternalProcessError, GenerationCancelled
from markerkit.core.generator import Generator
from markerkit.core.locks import LockManager
from markerkit.core.paths import MarkerPaths


def frame_bytes(t: float, size=(160, 90)) -> bytes:
    """BMP bytes whose colour is a function of the seek offset."""
    shade = int(t * 7) % 256
    img = Image.new("RGB", size, (shade, 255 - shade, (shade * 3) % 256))
    # a diagonal so tiles are not flat
    for i in range(min(size)):
        img.putpixel((i, i), (255, 255, 255))
    buf = io.BytesIO()
    img.save(buf, format="BMP")
    return buf.getvalue()


def seek_of(args: Sequence[str]) -> float:
    args = list(args)
    return float(args[args.index("-ss") + 1]) if "-ss" in args else 0.0


class FakeEncoder:
    """Records argument vectors; writes ``payload`` to the last argument."""

    def __init__(
        self,
        payload: bytes = b"generated-bytes",
        delay: float = 0.0,
        fail: bool = False,
        frame: Optional[bytes] = None,
    ) -> None:
        self.payload = payload
        self.delay = delay
        self.fail = fail
        self.frame = frame
        self.calls: List[List[str]] = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def _record(self, ctx: Optional[CancelContext], args: Sequence[str]) -> None:
        with self._lock:
            self.calls.append(list(args))
        if self.delay and ctx is not None:
            if ctx.wait(self.delay):
                raise GenerationCancelled("fake ffmpeg cancelled")

    def generate(self, ctx: Optional[CancelContext], args: Sequence[str]) -> None:
        self._record(ctx, args)
        output = args[-1]
        if self.fail:
            with open(output, "wb") as handle:
                handle.write(self.payload[: len(self.payload) // 2])
            raise ExternalProcessError("ffmpeg exited with status 1", returncode=1, stderr="boom", args=args)
        with open(output, "wb") as handle:
            handle.write(self.payload)

    def generate_output(
        self, ctx: Optional[CancelContext], args: Sequence[str], stdin: Optional[bytes] = None
    ) -> bytes:
        self._record(ctx, args)
        if self.fail:
            raise ExternalProcessError("ffmpeg exited with status 1", returncode=1, stderr="boom", args=args)
        if self.frame is not None:
            return self.frame
        return frame_bytes(seek_of(args))


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def paths(tmp_path) -> MarkerPaths:
    return MarkerPaths(tmp_path / "markers")


@pytest.fixture
def generator(encoder, paths) -> Generator:
    return Generator(encoder=encoder, paths=paths, lock_manager=LockManager())
