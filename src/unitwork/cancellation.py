from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable, List, Optional, Set, Tuple

from .errors import Cancelled, DeadlineExceeded

CancelFunc = Callable[[], None]


class Context:
    """
    Cancellation token passed to every blocking operation of an atomic attempt.

    Contexts form a tree. Cancelling a context cancels all of its descendants,
    never its ancestors. A context may also carry a deadline (monotonic
    seconds); once it passes the context is cancelled with `DeadlineExceeded`.

    Usage:

        ctx, cancel = Context.background().with_timeout(5.0)
        try:
            uow.atomic(ctx, body)
        finally:
            cancel()

    Backends honour a context by calling `raise_if_cancelled()` between steps,
    `wait(timeout)` in blocking loops, or `await ctx.done()` in async code.
    """

    def __init__(
        self, parent: Optional["Context"] = None, deadline: Optional[float] = None
    ) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._err: Optional[Cancelled] = None
        self._callbacks: List[Callable[["Context"], None]] = []
        self._children: Set["Context"] = set()
        self._timer: Optional[threading.Timer] = None
        self._parent = parent

        # The parent's own timer reaches this context through _attach, so a
        # timer is only armed for a deadline strictly earlier than the parent's.
        inherited = parent.deadline if parent is not None else None
        own_timer = deadline is not None and (inherited is None or deadline < inherited)
        if not own_timer:
            deadline = inherited
        self._deadline = deadline

        if parent is not None:
            parent._attach(self)
        if deadline is not None and not self.cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._cancel(DeadlineExceeded())
            elif own_timer:
                self._timer = threading.Timer(
                    remaining, self._cancel, args=(DeadlineExceeded(),)
                )
                self._timer.daemon = True
                self._timer.start()

    # Constructors -----------------------------------------------------------

    @classmethod
    def background(cls) -> "Context":
        """Root context: never cancelled, no deadline."""
        return cls()

    def with_cancel(self) -> Tuple["Context", CancelFunc]:
        child = Context(parent=self)
        return child, child.cancel

    def with_timeout(self, seconds: float) -> Tuple["Context", CancelFunc]:
        child = Context(parent=self, deadline=time.monotonic() + seconds)
        return child, child.cancel

    # State ------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._done.is_set()

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def err(self) -> Optional[Cancelled]:
        """The error the context was cancelled with, or None while active."""
        with self._lock:
            return self._err

    def raise_if_cancelled(self) -> None:
        err = self.err()
        if err is not None:
            raise err

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or `timeout` elapses. Returns `cancelled`."""
        return self._done.wait(timeout)

    async def done(self) -> None:
        """Suspend until the context is cancelled."""
        if self.cancelled:
            return
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[None] = loop.create_future()

        def _wake(_: Context) -> None:
            loop.call_soon_threadsafe(_resolve)

        def _resolve() -> None:
            if not fut.done():
                fut.set_result(None)

        self.add_done_callback(_wake)
        try:
            await fut
        finally:
            self._remove_callback(_wake)

    def add_done_callback(self, fn: Callable[["Context"], None]) -> None:
        """
        Run `fn(ctx)` once the context is cancelled.
        Runs immediately (in the caller's thread) if it already is.
        """
        with self._lock:
            if self._err is None:
                self._callbacks.append(fn)
                return
        fn(self)

    def _remove_callback(self, fn: Callable[["Context"], None]) -> None:
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

    # Cancellation -----------------------------------------------------------

    def cancel(self) -> None:
        self._cancel(Cancelled())

    def _cancel(self, err: Cancelled) -> None:
        with self._lock:
            if self._err is not None:
                return
            self._err = err
            callbacks, self._callbacks = self._callbacks, []
            children, self._children = self._children, set()
            timer, self._timer = self._timer, None
            self._done.set()

        if timer is not None:
            timer.cancel()
        if self._parent is not None:
            self._parent._detach(self)
        for child in children:
            child._cancel(err)
        for fn in callbacks:
            fn(self)

    def _attach(self, child: "Context") -> None:
        with self._lock:
            if self._err is None:
                self._children.add(child)
                return
            err = self._err
        child._cancel(err)

    def _detach(self, child: "Context") -> None:
        with self._lock:
            self._children.discard(child)

    def __repr__(self) -> str:
        state = "active" if self._err is None else self._err.code
        return f"<Context {state} deadline={self._deadline}>"
