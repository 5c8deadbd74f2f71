"""Utility helpers shared across markerkit.

This module centralises configuration loading/validation, path normalisation
and content hashing.  The generators and the fingerprint path stay free of
config parsing; they receive already-normalised values.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Tuple

LOG = logging.getLogger("markerkit.utils")


# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"


# ---------------------------------------------------------------------------
# Config helpers
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG: Dict[str, Any] = {
    "ffmpeg": {
        "bin": "ffmpeg",
        "probe": "ffprobe",
        "hardware_acceleration": False,
        "input_args": [],
        "output_args": [],
    },
    "generated": {"folder": "generated/markers", "overwrite": False},
    "phash": {"columns": 5, "rows": 5, "screenshot_width": 160},
    "logging": {"level": "INFO"},
}


def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load a YAML configuration file if it exists, otherwise return defaults."""

    import yaml  # Local import to keep the module importable during tests

    cfg_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        LOG.warning("config not found at %s; using defaults", cfg_path)
        return json.loads(json.dumps(_DEFAULT_CONFIG))  # deep copy via JSON
    with cfg_path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    return merge_dicts(_DEFAULT_CONFIG, loaded)


def merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge *override* into *base* returning a new dictionary."""

    out: Dict[str, Any] = json.loads(json.dumps(base))  # deep copy
    stack: list[Tuple[MutableMapping[str, Any], Mapping[str, Any]]] = [(out, override)]
    while stack:
        dest, src = stack.pop()
        for key, value in src.items():
            if isinstance(value, Mapping) and isinstance(dest.get(key), MutableMapping):
                stack.append((dest[key], value))  # type: ignore[arg-type]
            else:
                dest[key] = value  # type: ignore[index]
    return out


def _clamp_int(value: Any, lo: int, hi: int, default: int, *, key: str) -> int:
    """Clamp integer config values with logging."""

    try:
        v = int(value)
    except (TypeError, ValueError):
        LOG.warning("config[%s]=%r invalid; using default %d", key, value, default)
        return int(default)
    if v < lo:
        LOG.warning("config[%s]=%d below %d; clamped", key, v, lo)
        return lo
    if v > hi:
        LOG.warning("config[%s]=%d above %d; clamped", key, v, hi)
        return hi
    return v


def _as_arg_list(value: Any, *, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    LOG.warning("config[%s]=%r is not a list; ignored", key, value)
    return []


def apply_cli_overrides(cfg: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a new config with dot-notation overrides applied."""

    out = json.loads(json.dumps(cfg))
    for dotted_key, value in overrides.items():
        parts = dotted_key.split(".")
        cursor: Any = out
        for part in parts[:-1]:
            cursor = cursor.setdefault(part, {})  # type: ignore[assignment]
        cursor[parts[-1]] = value  # type: ignore[index]
    return out


def prepare_config(raw_cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate and normalise configuration:

    * Merge with defaults.
    * Clamp grid sizes.
    * Normalise the generated folder to an absolute path.
    * Coerce extra ffmpeg arguments into lists of strings.
    """

    cfg = merge_dicts(_DEFAULT_CONFIG, raw_cfg or {})

    ffmpeg = cfg.setdefault("ffmpeg", {})
    ffmpeg["bin"] = str(ffmpeg.get("bin") or "ffmpeg")
    ffmpeg["probe"] = str(ffmpeg.get("probe") or "ffprobe")
    ffmpeg["hardware_acceleration"] = bool(ffmpeg.get("hardware_acceleration", False))
    ffmpeg["input_args"] = _as_arg_list(ffmpeg.get("input_args"), key="ffmpeg.input_args")
    ffmpeg["output_args"] = _as_arg_list(ffmpeg.get("output_args"), key="ffmpeg.output_args")

    generated = cfg.setdefault("generated", {})
    generated["folder"] = str(as_absolute(generated.get("folder") or "generated/markers"))
    generated["overwrite"] = bool(generated.get("overwrite", False))

    phash = cfg.setdefault("phash", {})
    phash["columns"] = _clamp_int(phash.get("columns", 5), 1, 16, 5, key="phash.columns")
    phash["rows"] = _clamp_int(phash.get("rows", 5), 1, 16, 5, key="phash.rows")
    phash["screenshot_width"] = _clamp_int(
        phash.get("screenshot_width", 160), 16, 1920, 160, key="phash.screenshot_width"
    )

    log_cfg = cfg.setdefault("logging", {})
    log_cfg["level"] = str(log_cfg.get("level") or "INFO").upper()
    return cfg


def media_content_hash(source: str) -> str:
    """SHA1 of the file bytes (streamed); used as the stable output identity."""

    sha1 = hashlib.sha1()
    with Path(source).open("rb") as handle:
        while True:
            chunk = handle.read(1 << 20)
            if not chunk:
                break
            sha1.update(chunk)
    return sha1.hexdigest()


def as_absolute(path: str | Path, base: Optional[Path] = None) -> Path:
    p = Path(path).expanduser()
    if p.is_absolute():
        return p
    base = base or PROJECT_ROOT
    return (base / p).resolve()


__all__ = [
    "PROJECT_ROOT",
    "DEFAULT_CONFIG_PATH",
    "load_config_file",
    "merge_dicts",
    "prepare_config",
    "apply_cli_overrides",
    "media_content_hash",
    "as_absolute",
]
