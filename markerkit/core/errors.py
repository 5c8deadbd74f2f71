"""Error kinds raised by the generation pipeline."""

from __future__ import annotations

from typing import Optional, Sequence


class GenerationError(RuntimeError):
    """Base class for every failure surfaced by :mod:`markerkit.core`."""

    # Terminal GenerationState when raised from the gatekeeper.
    state = None


class LockAcquisitionError(GenerationError):
    """The context was cancelled before (or while) the lock was acquired."""


class GenerationCancelled(GenerationError):
    """The external process was aborted because its context was cancelled."""


class ExternalProcessError(GenerationError):
    """The frame-processing capability exited with a failure."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        args: Optional[Sequence[str]] = None,
    ) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.command = list(args or [])
        detail = stderr.strip()
        super().__init__(f"{message}: {detail}" if detail else message)


class DecodeError(GenerationError):
    """Bytes returned by the capability could not be read as an image."""


class InsufficientSamplesError(GenerationError):
    """Fewer samples than the grid requires, or a non-positive duration."""


class PublishError(GenerationError):
    """Moving the temp artifact to its final path failed."""


class ReductionError(GenerationError):
    """The perceptual hash could not be computed from the composite."""


__all__ = [
    "GenerationError",
    "LockAcquisitionError",
    "GenerationCancelled",
    "ExternalProcessError",
    "DecodeError",
    "InsufficientSamplesError",
    "PublishError",
    "ReductionError",
]
