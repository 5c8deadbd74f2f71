"""In-process advisory locks keyed by file path.

Generation takes a *read* lock on the source video so that several derivative
kinds for the same source run side by side, and an *exclusive* lock on the
destination so two writers never race on one output.  The locks are
cooperative: nothing here touches OS-level file locking.

Every acquired :class:`LockContext` must be released through
:meth:`LockContext.cancel` (or by leaving a ``with`` block).  Releasing kills
any external process attached to the context.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from markerkit.core.context import CancelContext
from markerkit.core.errors import LockAcquisitionError

LOG = logging.getLogger("markerkit.locks")

# Poll interval while waiting for a conflicting holder to release.
_WAIT_SLICE = 0.05


def normalise_key(path: str) -> str:
    return os.path.normcase(os.path.abspath(os.fspath(path)))


class LockContext(CancelContext):
    """An acquired lock that doubles as the cancellation context for its work."""

    def __init__(
        self,
        manager: "LockManager",
        key: str,
        exclusive: bool,
        parent: Optional[CancelContext] = None,
    ) -> None:
        self.key = key
        self.exclusive = exclusive
        self._manager = manager
        self._procs: List[Any] = []
        self._released = False
        super().__init__(parent)

    def attach(self, process: Any) -> None:
        """Track *process* so cancelling the lock also kills it."""
        with self._lock:
            if not self.cancelled():
                self._procs.append(process)
                return
        _kill(process)

    def detach(self, process: Any) -> None:
        with self._lock:
            if process in self._procs:
                self._procs.remove(process)

    def cancel(self) -> None:
        super().cancel()
        with self._lock:
            procs, self._procs = self._procs, []
            released, self._released = self._released, True
        for proc in procs:
            _kill(proc)
        if not released:
            if self.parent is not None:
                self.parent.discard(self.cancel)
            self._manager._release(self)

    def __enter__(self) -> "LockContext":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cancel()


def _kill(process: Any) -> None:
    try:
        if process.poll() is None:
            LOG.debug("killing process %s", getattr(process, "pid", "?"))
            process.kill()
    except OSError as exc:
        LOG.warning("could not kill process: %s", exc)


@dataclass
class _Entry:
    readers: Set[LockContext] = field(default_factory=set)
    writer: Optional[LockContext] = None
    waiting: int = 0

    def idle(self) -> bool:
        return not self.readers and self.writer is None and self.waiting == 0


class LockManager:
    """Registry of path -> reference-counted read/exclusive locks."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._entries: Dict[str, _Entry] = {}

    def read_lock(self, ctx: Optional[CancelContext], key: str) -> LockContext:
        """Acquire a shared lock on *key*; readers never block each other."""
        return self._acquire(ctx, key, exclusive=False)

    def exclusive_lock(self, ctx: Optional[CancelContext], key: str) -> LockContext:
        """Acquire a lock on *key* that excludes every other holder."""
        return self._acquire(ctx, key, exclusive=True)

    def cancel(self, key: str) -> int:
        """Cancel every outstanding lock for *key*; return how many were hit."""
        norm = normalise_key(key)
        with self._cond:
            entry = self._entries.get(norm)
            holders = list(entry.readers) if entry else []
            if entry and entry.writer is not None:
                holders.append(entry.writer)
        for holder in holders:
            holder.cancel()
        if holders:
            LOG.info("cancelled %d lock(s) on %s", len(holders), norm)
        return len(holders)

    def holders(self, key: str) -> int:
        norm = normalise_key(key)
        with self._cond:
            entry = self._entries.get(norm)
            if entry is None:
                return 0
            return len(entry.readers) + (1 if entry.writer is not None else 0)

    def _acquire(self, ctx: Optional[CancelContext], key: str, exclusive: bool) -> LockContext:
        norm = normalise_key(key)
        if ctx is not None and ctx.cancelled():
            raise LockAcquisitionError(f"context cancelled before locking {norm}")

        wake = self._notify
        if ctx is not None:
            ctx.on_cancel(wake)
        try:
            with self._cond:
                entry = self._entries.setdefault(norm, _Entry())
                entry.waiting += 1
                try:
                    while self._conflicts(entry, exclusive):
                        if ctx is not None and ctx.cancelled():
                            raise LockAcquisitionError(f"context cancelled while waiting for {norm}")
                        self._cond.wait(_WAIT_SLICE)
                    lock_ctx = LockContext(self, norm, exclusive, parent=ctx)
                    if lock_ctx.cancelled():
                        raise LockAcquisitionError(f"context cancelled while waiting for {norm}")
                    if exclusive:
                        entry.writer = lock_ctx
                    else:
                        entry.readers.add(lock_ctx)
                finally:
                    entry.waiting -= 1
                    if entry.idle():
                        self._entries.pop(norm, None)
        finally:
            if ctx is not None:
                ctx.discard(wake)

        LOG.debug("%s lock acquired: %s", "exclusive" if exclusive else "read", norm)
        return lock_ctx

    @staticmethod
    def _conflicts(entry: _Entry, exclusive: bool) -> bool:
        if entry.writer is not None:
            return True
        return exclusive and bool(entry.readers)

    def _notify(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _release(self, lock_ctx: LockContext) -> None:
        with self._cond:
            entry = self._entries.get(lock_ctx.key)
            if entry is not None:
                if entry.writer is lock_ctx:
                    entry.writer = None
                entry.readers.discard(lock_ctx)
                if entry.idle():
                    del self._entries[lock_ctx.key]
            self._cond.notify_all()
        LOG.debug("lock released: %s", lock_ctx.key)


__all__ = ["LockContext", "LockManager", "normalise_key"]
