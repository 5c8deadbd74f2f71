"""Cancellation contexts shared by lock acquisition and external processes.

A :class:`CancelContext` is a thread-safe one-shot flag.  Child contexts are
cancelled with their parent, and callbacks registered via :meth:`on_cancel`
run exactly once.  Nothing here starts background work except the optional
deadline timer created by :func:`with_timeout`.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

LOG = logging.getLogger("markerkit.context")


class CancelContext:
    """Cooperative cancellation flag with parent propagation."""

    def __init__(self, parent: Optional["CancelContext"] = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.parent = parent
        if parent is not None:
            parent.on_cancel(self.cancel)

    def cancelled(self) -> bool:
        return self._event.is_set()

    # Lets a context stand in for the ``cancel_fn`` callables used elsewhere.
    __call__ = cancelled

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or *timeout* elapses; return the flag."""
        return self._event.wait(timeout)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run *callback* on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def discard(self, callback: Callable[[], None]) -> None:
        """Drop a callback registered with :meth:`on_cancel`."""
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:  # pragma: no cover - callbacks log their own failures
                LOG.warning("cancel callback failed: %s", exc)

    def child(self) -> "CancelContext":
        return CancelContext(self)


def background() -> CancelContext:
    """Return a fresh root context that is never cancelled implicitly."""
    return CancelContext()


def with_timeout(parent: Optional[CancelContext], seconds: float) -> CancelContext:
    """Return a child of *parent* that cancels itself after *seconds*."""
    ctx = CancelContext(parent)
    timer = threading.Timer(max(0.0, float(seconds)), ctx.cancel)
    timer.daemon = True
    ctx.on_cancel(timer.cancel)
    timer.start()
    return ctx


__all__ = ["CancelContext", "background", "with_timeout"]
