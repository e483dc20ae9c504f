"""
Pytest fixtures for the unitwork TestKit.

Usage:
    # conftest.py
    from unitwork.testkit.fixtures import *  # noqa: F401,F403

    def test_example(storage, event_sink, capturing_logger, background):
        uow = UnitOfWork(
            storage, TransactionalContext, event_sink, logger=capturing_logger
        )

        def body(ctx, atomic_ctx):
            atomic_ctx.handle.put("k", 1)
            atomic_ctx.record("created")

        uow.atomic(background, body)
        assert storage.data == {"k": 1}
        assert event_sink.batches == [("created",)]

Fixtures:
- capturing_logger: CapturingLogger
- storage / async_storage: InMemoryStorage / AsyncInMemoryStorage
- event_sink / async_event_sink: InMemoryEventSink / AsyncInMemoryEventSink
- background: Context.background()
"""

from __future__ import annotations

import pytest

from unitwork.cancellation import Context
from unitwork.testkit import (
    AsyncInMemoryEventSink,
    AsyncInMemoryStorage,
    CapturingLogger,
    InMemoryEventSink,
    InMemoryStorage,
)


@pytest.fixture
def capturing_logger() -> CapturingLogger:
    """Logger that records log entries for assertions."""
    return CapturingLogger()


@pytest.fixture
def storage() -> InMemoryStorage:
    """Empty transactional key/value storage."""
    return InMemoryStorage()


@pytest.fixture
def async_storage() -> AsyncInMemoryStorage:
    return AsyncInMemoryStorage()


@pytest.fixture
def event_sink() -> InMemoryEventSink:
    """Event sink capturing published batches."""
    return InMemoryEventSink()


@pytest.fixture
def async_event_sink() -> AsyncInMemoryEventSink:
    return AsyncInMemoryEventSink()


@pytest.fixture
def background() -> Context:
    """Root context that is never cancelled."""
    return Context.background()


__all__ = [
    "capturing_logger",
    "storage",
    "async_storage",
    "event_sink",
    "async_event_sink",
    "background",
]
