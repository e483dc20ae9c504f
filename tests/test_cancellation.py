from __future__ import annotations

import asyncio
import threading
import time

import pytest

from unitwork.cancellation import Context
from unitwork.errors import Cancelled, DeadlineExceeded


def test_background_is_never_cancelled():
    ctx = Context.background()
    assert not ctx.cancelled
    assert ctx.err() is None
    assert ctx.deadline is None
    ctx.raise_if_cancelled()
    assert ctx.wait(0.01) is False


def test_cancel_child_leaves_parent_alone():
    parent = Context.background()
    child, cancel = parent.with_cancel()
    cancel()
    assert child.cancelled
    assert isinstance(child.err(), Cancelled)
    assert not parent.cancelled


def test_cancel_propagates_to_descendants():
    root, cancel = Context.background().with_cancel()
    child, _ = root.with_cancel()
    grandchild, _ = child.with_cancel()
    cancel()
    assert child.cancelled
    assert grandchild.cancelled
    assert grandchild.err() is root.err()


def test_cancel_is_idempotent():
    ctx, cancel = Context.background().with_cancel()
    cancel()
    first = ctx.err()
    cancel()
    assert ctx.err() is first


def test_child_of_cancelled_parent_starts_cancelled():
    parent, cancel = Context.background().with_cancel()
    cancel()
    child, _ = parent.with_cancel()
    assert child.cancelled
    with pytest.raises(Cancelled):
        child.raise_if_cancelled()


def test_timeout_cancels_with_deadline_exceeded():
    ctx, cancel = Context.background().with_timeout(0.05)
    try:
        assert ctx.wait(2.0)
        assert isinstance(ctx.err(), DeadlineExceeded)
    finally:
        cancel()


def test_child_deadline_capped_by_parent():
    parent, cancel_parent = Context.background().with_timeout(10.0)
    child, cancel_child = parent.with_timeout(60.0)
    try:
        assert child.deadline == parent.deadline
    finally:
        cancel_child()
        cancel_parent()


def test_with_cancel_under_deadline_arms_no_timer():
    parent, cancel_parent = Context.background().with_timeout(10.0)
    child, cancel_child = parent.with_cancel()
    try:
        assert child.deadline == parent.deadline
        assert child._timer is None
        assert parent._timer is not None
    finally:
        cancel_child()
        cancel_parent()


def test_inherited_deadline_still_cancels_child():
    parent, cancel_parent = Context.background().with_timeout(0.05)
    child, cancel_child = parent.with_cancel()
    try:
        assert child.wait(2.0)
        assert isinstance(child.err(), DeadlineExceeded)
    finally:
        cancel_child()
        cancel_parent()


def test_earlier_child_deadline_arms_own_timer():
    parent, cancel_parent = Context.background().with_timeout(10.0)
    child, cancel_child = parent.with_timeout(0.05)
    try:
        assert child.deadline < parent.deadline
        assert child.wait(2.0)
        assert not parent.cancelled
    finally:
        cancel_child()
        cancel_parent()


def test_cancel_before_deadline_keeps_cancelled_error():
    ctx, cancel = Context.background().with_timeout(0.05)
    cancel()
    time.sleep(0.1)
    err = ctx.err()
    assert isinstance(err, Cancelled)
    assert not isinstance(err, DeadlineExceeded)


def test_done_callbacks():
    ctx, cancel = Context.background().with_cancel()
    seen = []
    ctx.add_done_callback(lambda c: seen.append(("before", c)))
    cancel()
    ctx.add_done_callback(lambda c: seen.append(("after", c)))
    assert seen == [("before", ctx), ("after", ctx)]


def test_cancel_from_other_thread_wakes_waiter():
    ctx, cancel = Context.background().with_cancel()
    timer = threading.Timer(0.05, cancel)
    timer.start()
    try:
        assert ctx.wait(2.0)
    finally:
        timer.cancel()


@pytest.mark.asyncio
async def test_async_done_wakes_on_thread_cancel():
    ctx, cancel = Context.background().with_cancel()
    timer = threading.Timer(0.05, cancel)
    timer.start()
    try:
        await asyncio.wait_for(ctx.done(), 2.0)
    finally:
        timer.cancel()
    assert ctx.cancelled


@pytest.mark.asyncio
async def test_async_done_returns_at_once_when_cancelled():
    ctx, cancel = Context.background().with_cancel()
    cancel()
    await asyncio.wait_for(ctx.done(), 1.0)


@pytest.mark.asyncio
async def test_abandoned_async_waits_release_their_callbacks():
    ctx = Context.background()
    for _ in range(20):
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(ctx.done(), 0.001)
    assert ctx._callbacks == []
