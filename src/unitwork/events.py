from __future__ import annotations

import enum
from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime
from typing import Any, Dict, Generic, List, Mapping, Sequence, TypeVar

H = TypeVar("H")


def to_serializable(obj: Any) -> Any:
    """
    Best-effort conversion of event payloads to serializable forms.

    - dataclasses -> dict
    - enums -> value
    - datetime -> isoformat()
    - objects with `to_dict()` -> that result
    - mappings/sequences -> transformed recursively
    - otherwise return as-is
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_serializable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(obj, Mapping):
        return {k: to_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_serializable(v) for v in obj]
    return obj


@dataclass(frozen=True)
class DomainEvent:
    """
    Base for facts recorded by business logic during an atomic attempt.

    Subclasses are frozen dataclasses carrying the event payload:

        @dataclass(frozen=True)
        class OrderPlaced(DomainEvent):
            order_id: str
            total: int
    """

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        payload = {f.name: to_serializable(getattr(self, f.name)) for f in fields(self)}
        return {"type": self.event_type, "payload": payload}


class EventRecorder:
    """
    Ordered, draining event buffer for atomic contexts.
    """

    def __init__(self) -> None:
        self._events: List[Any] = []

    def record(self, *events: Any) -> None:
        self._events.extend(events)

    @property
    def pending(self) -> Sequence[Any]:
        return tuple(self._events)

    def collect_events(self) -> List[Any]:
        events, self._events = self._events, []
        return events


class TransactionalContext(EventRecorder, Generic[H]):
    """
    Atomic context bound to a single transaction handle.

    `commit()` delegates to `handle.commit()`; `close()` delegates to
    `handle.close()` when the handle has one. Usable directly as a context
    factory, or subclassed to expose repositories bound to the handle.
    """

    def __init__(self, handle: H) -> None:
        super().__init__()
        self.handle = handle

    def commit(self) -> None:
        self.handle.commit()  # type: ignore[attr-defined]

    def close(self) -> None:
        close = getattr(self.handle, "close", None)
        if callable(close):
            close()


class AsyncTransactionalContext(EventRecorder, Generic[H]):
    """
    Async counterpart of `TransactionalContext`.
    """

    def __init__(self, handle: H) -> None:
        super().__init__()
        self.handle = handle

    async def commit(self) -> None:
        await self.handle.commit()  # type: ignore[attr-defined]

    async def close(self) -> None:
        close = getattr(self.handle, "close", None)
        if callable(close):
            await close()
