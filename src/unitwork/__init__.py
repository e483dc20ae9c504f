from .cancellation import CancelFunc, Context
from .errors import (
    Cancelled,
    Conflict,
    DeadlineExceeded,
    DomainError,
    InfraError,
    Phase,
    StateRollbackError,
    UnitWorkError,
    find_cause,
    is_rollback,
)
from .events import (
    AsyncTransactionalContext,
    DomainEvent,
    EventRecorder,
    TransactionalContext,
)
from .logs import StdlibLogger, get_logger
from .uow import AsyncUnitOfWork, UnitOfWork

__all__ = [
    "AsyncTransactionalContext",
    "AsyncUnitOfWork",
    "CancelFunc",
    "Cancelled",
    "Conflict",
    "Context",
    "DeadlineExceeded",
    "DomainError",
    "DomainEvent",
    "EventRecorder",
    "InfraError",
    "Phase",
    "StateRollbackError",
    "StdlibLogger",
    "TransactionalContext",
    "UnitOfWork",
    "UnitWorkError",
    "find_cause",
    "get_logger",
    "is_rollback",
]
