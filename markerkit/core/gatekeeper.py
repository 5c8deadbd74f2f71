"""Skip-or-generate-then-publish protocol for derived files.

The invariants this module owns:

* A final output path never exists in a partially written state.  Work is
  written to a private temp file in the output's own directory (same volume,
  so the final ``os.replace`` is atomic) and only then moved into place.
* At most one writer handles a given output path at a time.  The whole
  check/generate/publish sequence runs under an exclusive lock on the output
  path, scoped to the caller's source lock.
* Any failure removes the temp file (best effort) and propagates.  The
  terminal :class:`GenerationState` is attached to the raised error.
"""

from __future__ import annotations

import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from markerkit.core.errors import ExternalProcessError, GenerationError, PublishError
from markerkit.core.locks import LockContext, LockManager

LOG = logging.getLogger("markerkit.gatekeeper")

TEMP_PREFIX = ".tmp-"

GenerateFn = Callable[[LockContext, str], None]


class OverwritePolicy(Enum):
    SKIP_IF_EXISTS = "skip-if-exists"
    OVERWRITE = "overwrite"


class GenerationState(Enum):
    NOT_STARTED = "not_started"
    LOCKED = "locked"
    SKIPPED_EXISTS = "skipped_exists"
    GENERATING = "generating"
    PUBLISHED = "published"
    FAILED_CLEANED_UP = "failed_cleaned_up"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = {
    GenerationState.SKIPPED_EXISTS,
    GenerationState.PUBLISHED,
    GenerationState.FAILED_CLEANED_UP,
}


def file_exists_nonempty(path: Path | str) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return st.st_size > 0


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOG.warning("could not remove temp file %s: %s", path, exc)


def cleanup_temp_files(directory: Path | str) -> int:
    """Delete stray temp artifacts under *directory*; return the count removed."""

    root = Path(directory)
    if not root.is_dir():
        return 0
    removed = 0
    for path in root.rglob(f"{TEMP_PREFIX}*"):
        if path.is_file():
            _remove_quietly(str(path))
            removed += 1
    if removed:
        LOG.info("removed %d stray temp file(s) under %s", removed, root)
    return removed


class OutputGatekeeper:
    """Decides skip vs. generate and publishes atomically."""

    def __init__(self, lock_manager: LockManager) -> None:
        self.locks = lock_manager

    def ensure_generated(
        self,
        lock_ctx: LockContext,
        output_path: Path | str,
        policy: OverwritePolicy,
        generate_fn: GenerateFn,
    ) -> GenerationState:
        """Produce *output_path* via *generate_fn* unless it can be skipped.

        *generate_fn* receives the output lock context (for process
        cancellation) and the temp path it must write.
        """

        output = Path(output_path)
        state = GenerationState.NOT_STARTED
        LOG.debug("%s: %s", output, state.value)

        with self.locks.exclusive_lock(lock_ctx, str(output)) as out_ctx:
            state = self._transition(output, GenerationState.LOCKED)

            if policy is OverwritePolicy.SKIP_IF_EXISTS and file_exists_nonempty(output):
                return self._transition(output, GenerationState.SKIPPED_EXISTS)

            state = self._transition(output, GenerationState.GENERATING)
            tmp_path: Optional[str] = None
            try:
                output.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    prefix=f"{TEMP_PREFIX}{output.stem}-", suffix=output.suffix, dir=str(output.parent)
                )
                os.close(fd)

                generate_fn(out_ctx, tmp_path)

                if not file_exists_nonempty(tmp_path):
                    raise ExternalProcessError(f"generation produced no output for {output}")
                try:
                    os.replace(tmp_path, output)
                except OSError as exc:
                    raise PublishError(f"could not publish {tmp_path} -> {output}: {exc}") from exc
            except BaseException as exc:
                if tmp_path is not None:
                    _remove_quietly(tmp_path)
                state = self._transition(output, GenerationState.FAILED_CLEANED_UP)
                if isinstance(exc, GenerationError):
                    exc.state = state
                raise

            return self._transition(output, GenerationState.PUBLISHED)

    @staticmethod
    def _transition(output: Path, state: GenerationState) -> GenerationState:
        LOG.debug("%s: %s", output, state.value)
        return state


__all__ = [
    "GenerateFn",
    "GenerationState",
    "OutputGatekeeper",
    "OverwritePolicy",
    "TEMP_PREFIX",
    "cleanup_temp_files",
    "file_exists_nonempty",
]
