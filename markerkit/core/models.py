"""Domain models shared by the generators and the fingerprint path."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SourceMedia:
    """A source video as known to the catalog.

    ``hash`` is the stable content identity used to name derived outputs.
    """

    path: str
    duration: float
    hash: str = ""


@dataclass(frozen=True)
class ArtifactRequest:
    """High-level parameters for one derivative; discarded after use."""

    start_seconds: float
    end_seconds: Optional[float] = None
    width: int = 0
    include_audio: bool = False


__all__ = ["SourceMedia", "ArtifactRequest"]
