from __future__ import annotations
# --- probe: duration via ffprobe or OpenCV fallback, plus content identity ---
import json, logging, subprocess
from typing import Any, Dict, Optional
import cv2

from markerkit.core.models import SourceMedia
from markerkit.core.utils import media_content_hash

LOG = logging.getLogger("markerkit.probe")

def _run_ffprobe(path: str, ffprobe_bin: Optional[str]) -> Optional[Dict[str, Any]]:
    if not ffprobe_bin: return None
    try:
        out = subprocess.check_output(
            [ffprobe_bin, "-v", "error", "-print_format", "json", "-show_format", path],
            stderr=subprocess.STDOUT
        )
        return json.loads(out.decode("utf-8"))
    except (OSError, subprocess.CalledProcessError, ValueError) as exc:
        LOG.debug("ffprobe failed for %s: %s", path, exc)
        return None

def _opencv_duration(path: str) -> float:
    cap = cv2.VideoCapture(path)
    if not cap.isOpened():
        return 0.0
    try:
        fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
        count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
    finally:
        cap.release()
    return count / fps if fps > 0 else 0.0

def probe_duration(path: str, ffprobe_bin: Optional[str] = "ffprobe") -> float:
    meta = _run_ffprobe(path, ffprobe_bin)
    if meta:
        try:
            return float((meta.get("format") or {}).get("duration") or 0.0)
        except (TypeError, ValueError):
            pass
    return _opencv_duration(path)

def probe_media(path: str, ffprobe_bin: Optional[str] = "ffprobe") -> SourceMedia:
    """Describe *path* for the generators: duration (seconds) and content hash."""
    duration = probe_duration(path, ffprobe_bin)
    LOG.debug("probed %s: %.3fs", path, duration)
    return SourceMedia(path=str(path), duration=duration, hash=media_content_hash(path))
