from __future__ import annotations

from typing import Any, Callable, Protocol, Sequence, TypeVar, runtime_checkable

from .cancellation import Context

T = TypeVar("T")
H = TypeVar("H")


@runtime_checkable
class Port(Protocol):
    """
    Marker protocol for unitwork ports (collaborators).
    Ports define the contracts the orchestrator depends on; storage drivers
    and message buses provide the implementations.
    """


@runtime_checkable
class LoggerPort(Port, Protocol):
    """
    Minimal structured logger port. Accepts a message and optional contextual fields.
    """

    def debug(self, msg: str, **fields: Any) -> None: ...
    def info(self, msg: str, **fields: Any) -> None: ...
    def warning(self, msg: str, **fields: Any) -> None: ...
    def error(self, msg: str, **fields: Any) -> None: ...


# Sync ------------------------------------------------------------------------


@runtime_checkable
class TransactionHandle(Port, Protocol):
    """
    Raw transaction obtained from a storage backend.
    Owned by exactly one atomic attempt.
    """

    def rollback(self) -> None: ...


@runtime_checkable
class StorageBackend(Port, Protocol):
    """
    Source of transaction handles. `begin` must honour `ctx` cancellation.
    """

    def begin(self, ctx: Context) -> Any: ...


@runtime_checkable
class AtomicContext(Port, Protocol):
    """
    Typed execution surface the business logic runs against.

    `collect_events` drains: it returns the events recorded so far in the order
    they were recorded and empties the buffer.
    """

    def commit(self) -> None: ...
    def close(self) -> None: ...
    def collect_events(self) -> Sequence[Any]: ...


@runtime_checkable
class EventSink(Port, Protocol):
    """
    Publishes a batch of domain events, all or nothing per call.
    """

    def publish_events(self, *events: Any) -> None: ...


# Async -----------------------------------------------------------------------


@runtime_checkable
class AsyncTransactionHandle(Port, Protocol):
    async def rollback(self) -> None: ...


@runtime_checkable
class AsyncStorageBackend(Port, Protocol):
    async def begin(self, ctx: Context) -> Any: ...


@runtime_checkable
class AsyncAtomicContext(Port, Protocol):
    async def commit(self) -> None: ...
    async def close(self) -> None: ...
    def collect_events(self) -> Sequence[Any]: ...


@runtime_checkable
class AsyncEventSink(Port, Protocol):
    async def publish_events(self, *events: Any) -> None: ...


# Adapts a raw handle into the caller's atomic context. Pure; raising means
# the context could not be built.
ContextFactory = Callable[[H], T]
