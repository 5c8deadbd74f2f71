import time

from markerkit.core.context import CancelContext, background, with_timeout


def test_child_cancelled_with_parent():
    parent = background()
    child = parent.child()
    grandchild = child.child()
    parent.cancel()
    assert child.cancelled()
    assert grandchild.cancelled()


def test_child_cancel_does_not_reach_parent():
    parent = background()
    child = parent.child()
    child.cancel()
    assert child.cancelled()
    assert not parent.cancelled()


def test_on_cancel_runs_once_and_immediately_when_already_cancelled():
    ctx = CancelContext()
    hits = []
    ctx.on_cancel(lambda: hits.append("a"))
    ctx.cancel()
    ctx.cancel()
    assert hits == ["a"]
    ctx.on_cancel(lambda: hits.append("b"))
    assert hits == ["a", "b"]


def test_discard_drops_callback():
    ctx = CancelContext()
    hits = []

    def cb():
        hits.append(1)

    ctx.on_cancel(cb)
    ctx.discard(cb)
    ctx.discard(cb)
    ctx.cancel()
    assert hits == []


def test_context_is_usable_as_cancel_fn():
    ctx = background()
    assert ctx() is False
    ctx.cancel()
    assert ctx() is True


def test_with_timeout_cancels_itself():
    ctx = with_timeout(None, 0.05)
    assert ctx.wait(2.0)


def test_with_timeout_follows_parent():
    parent = background()
    ctx = with_timeout(parent, 60)
    start = time.monotonic()
    parent.cancel()
    assert ctx.wait(1.0)
    assert time.monotonic() - start < 1.0
