from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..cancellation import Context
from ..errors import InfraError
from ..ports import LoggerPort

_MISSING = object()


class _StagedWrites:
    """
    Writes staged by one transaction against an InMemoryStorage.
    """

    def __init__(self, storage: "_StorageBase") -> None:
        self._storage = storage
        self._writes: Dict[Any, Any] = {}
        self._deletes: Set[Any] = set()
        self.state = "open"

    def _ensure_open(self) -> None:
        if self.state != "open":
            raise InfraError(
                code="tx_done", message=f"transaction already {self.state}"
            )

    def get(self, key: Any, default: Any = None) -> Any:
        if key in self._deletes:
            return default
        value = self._writes.get(key, _MISSING)
        if value is _MISSING:
            return self._storage.data.get(key, default)
        return value

    def put(self, key: Any, value: Any) -> None:
        self._ensure_open()
        self._deletes.discard(key)
        self._writes[key] = value

    def delete(self, key: Any) -> None:
        self._ensure_open()
        self._writes.pop(key, None)
        self._deletes.add(key)

    def _commit(self) -> None:
        self._ensure_open()
        self._storage.commits += 1
        if self._storage.fail_commit is not None:
            raise self._storage.fail_commit
        for key in self._deletes:
            self._storage.data.pop(key, None)
        self._storage.data.update(self._writes)
        self.state = "committed"

    def _rollback(self) -> None:
        self._storage.rollbacks += 1
        if self._storage.fail_rollback is not None:
            raise self._storage.fail_rollback
        self._writes.clear()
        self._deletes.clear()
        self.state = "rolled_back"

    def _close(self) -> None:
        self._storage.closes += 1


class InMemoryTransaction(_StagedWrites):
    def commit(self) -> None:
        self._commit()

    def rollback(self) -> None:
        self._rollback()

    def close(self) -> None:
        self._close()


class AsyncInMemoryTransaction(_StagedWrites):
    async def commit(self) -> None:
        self._commit()

    async def rollback(self) -> None:
        self._rollback()

    async def close(self) -> None:
        self._close()


class _StorageBase:
    """
    Counters and failure injection shared by the in-memory storages.

    - fail_begin / fail_commit / fail_rollback: raised from the matching call
    - block_begin: `begin` waits on its context until cancelled, then raises
      the context error (InfraError after `block_timeout` seconds otherwise)
    """

    def __init__(
        self,
        data: Optional[Dict[Any, Any]] = None,
        *,
        fail_begin: Optional[BaseException] = None,
        fail_commit: Optional[BaseException] = None,
        fail_rollback: Optional[BaseException] = None,
        block_begin: bool = False,
        block_timeout: float = 5.0,
    ) -> None:
        self.data: Dict[Any, Any] = dict(data or {})
        self.fail_begin = fail_begin
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback
        self.block_begin = block_begin
        self.block_timeout = block_timeout
        self.begins = 0
        self.commits = 0
        self.rollbacks = 0
        self.closes = 0

    def _check_begin(self, ctx: Context) -> None:
        ctx.raise_if_cancelled()
        if self.fail_begin is not None:
            raise self.fail_begin

    def _blocked_too_long(self) -> InfraError:
        return InfraError(code="begin_timeout", message="begin was never cancelled")


class InMemoryStorage(_StorageBase):
    """
    Transactional key/value storage backend for tests.

    Handles stage writes; `commit()` applies them to `data`, `rollback()`
    discards them.
    """

    def __init__(self, data: Optional[Dict[Any, Any]] = None, **options: Any) -> None:
        super().__init__(data, **options)
        self.transactions: List[InMemoryTransaction] = []

    def begin(self, ctx: Context) -> InMemoryTransaction:
        self.begins += 1
        if self.block_begin and not ctx.wait(self.block_timeout):
            raise self._blocked_too_long()
        self._check_begin(ctx)
        tx = InMemoryTransaction(self)
        self.transactions.append(tx)
        return tx


class AsyncInMemoryStorage(_StorageBase):
    """
    Async counterpart of InMemoryStorage.
    """

    def __init__(self, data: Optional[Dict[Any, Any]] = None, **options: Any) -> None:
        super().__init__(data, **options)
        self.transactions: List[AsyncInMemoryTransaction] = []

    async def begin(self, ctx: Context) -> AsyncInMemoryTransaction:
        self.begins += 1
        if self.block_begin:
            try:
                await asyncio.wait_for(ctx.done(), self.block_timeout)
            except asyncio.TimeoutError:
                raise self._blocked_too_long() from None
        self._check_begin(ctx)
        tx = AsyncInMemoryTransaction(self)
        self.transactions.append(tx)
        return tx


class InMemoryEventSink:
    """
    Event sink capturing published batches for assertions in tests.
    """

    def __init__(self, fail_with: Optional[BaseException] = None) -> None:
        self.fail_with = fail_with
        self.calls = 0
        self.batches: List[Tuple[Any, ...]] = []

    def publish_events(self, *events: Any) -> None:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.batches.append(tuple(events))

    @property
    def events(self) -> Sequence[Any]:
        return tuple(e for batch in self.batches for e in batch)

    def clear(self) -> None:
        self.calls = 0
        self.batches.clear()


class AsyncInMemoryEventSink(InMemoryEventSink):
    async def publish_events(self, *events: Any) -> None:  # type: ignore[override]
        super().publish_events(*events)


class CapturingLogger(LoggerPort):
    """
    Test logger that captures log records for assertions.
    """

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []

    def _push(self, level: str, msg: str, **fields: Any) -> None:
        rec = {"level": level, "msg": msg, **fields}
        self.records.append(rec)

    def debug(self, msg: str, **fields: Any) -> None:
        self._push("debug", msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._push("info", msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._push("warning", msg, **fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._push("error", msg, **fields)

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [r["msg"] for r in self.records if level is None or r["level"] == level]


__all__ = [
    "AsyncInMemoryEventSink",
    "AsyncInMemoryStorage",
    "AsyncInMemoryTransaction",
    "CapturingLogger",
    "InMemoryEventSink",
    "InMemoryStorage",
    "InMemoryTransaction",
]
