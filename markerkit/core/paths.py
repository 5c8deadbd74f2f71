"""Deterministic output locations for marker derivatives."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class MarkerPaths:
    """``<root>/<hash>/<seconds>.<ext>`` layout for generated marker files."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _base(self, checksum: str, seconds: int) -> Path:
        return self.root / checksum / str(int(seconds))

    def get_video_preview_path(self, checksum: str, seconds: int) -> Path:
        return self._base(checksum, seconds).with_suffix(".mp4")

    def get_webp_preview_path(self, checksum: str, seconds: int) -> Path:
        return self._base(checksum, seconds).with_suffix(".webp")

    def get_screenshot_path(self, checksum: str, seconds: int, width: Optional[int] = None) -> Path:
        base = self._base(checksum, seconds)
        if width:
            base = base.with_name(f"{base.name}_{int(width)}")
        return base.with_suffix(".jpg")


__all__ = ["MarkerPaths"]
