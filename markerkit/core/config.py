from __future__ import annotations
# --- transcode settings view over the normalised config dict ---
from dataclasses import dataclass, field
from typing import Any, List, Mapping


@dataclass(frozen=True)
class TranscodeConfig:
    hardware_acceleration: bool = False
    transcode_input_args: List[str] = field(default_factory=list)
    transcode_output_args: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "TranscodeConfig":
        ff = cfg.get("ffmpeg") or {}
        return cls(
            hardware_acceleration=bool(ff.get("hardware_acceleration", False)),
            transcode_input_args=list(ff.get("input_args") or []),
            transcode_output_args=list(ff.get("output_args") or []),
        )


def hwaccel_input_args(config: "TranscodeConfig | None") -> List[str]:
    """Decode-side acceleration hint; the output codec is unaffected."""
    if config is not None and config.hardware_acceleration:
        return ["-hwaccel", "cuda"]
    return []
