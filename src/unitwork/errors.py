from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Type, TypeVar

E = TypeVar("E", bound=BaseException)


@dataclass
class UnitWorkError(Exception):
    """
    Base error for unitwork.
    Carries a stable `code`, human-readable `message`,
    and optional serializable `details`.
    """

    code: str
    message: str
    details: Optional[Mapping[str, Any]] = field(default=None)

    def __str__(self) -> str:  # pragma: no cover - trivial
        base = f"{self.code}: {self.message}"
        if self.details:
            return f"{base} details={dict(self.details)}"
        return base


# Domain errors ---------------------------------------------------------------


@dataclass
class DomainError(UnitWorkError):
    """
    Business rule failures raised from inside a unit of work.
    """


@dataclass
class Conflict(DomainError):
    def __init__(
        self, message: str = "Conflict", details: Optional[Mapping[str, Any]] = None
    ) -> None:
        super().__init__(code="conflict", message=message, details=details)


# Infrastructure errors -------------------------------------------------------


@dataclass
class InfraError(UnitWorkError):
    """
    Errors originating from storage, network or io.
    """


@dataclass
class Cancelled(InfraError):
    def __init__(
        self,
        message: str = "context cancelled",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(code="cancelled", message=message, details=details)


@dataclass
class DeadlineExceeded(Cancelled):
    def __init__(
        self,
        message: str = "context deadline exceeded",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        UnitWorkError.__init__(
            self, code="deadline_exceeded", message=message, details=details
        )


# Rollback-class errors -------------------------------------------------------


class Phase(str, enum.Enum):
    """Step of an atomic attempt that aborted it."""

    BEGIN = "begin"
    BUILD_CONTEXT = "build_context"
    BODY = "body"
    COMMIT = "commit"


@dataclass
class StateRollbackError(UnitWorkError):
    """
    Raised when an atomic attempt ended without durable effect.

    The attempt either never opened a transaction (`Phase.BEGIN`), could not
    adapt it (`Phase.BUILD_CONTEXT`), or rolled it back after the body or the
    commit failed. Always raised ``from`` the original error, which is also
    available as `cause`.
    """

    phase: Phase = Phase.BODY
    cause: Optional[BaseException] = None

    def __init__(self, phase: Phase, cause: BaseException) -> None:
        super().__init__(
            code="state_rollback",
            message=f"state rollback: {cause}",
            details={"phase": phase.value},
        )
        self.phase = phase
        self.cause = cause


def find_cause(err: Optional[BaseException], exc_type: Type[E]) -> Optional[E]:
    """
    Return the first exception of `exc_type` in `err` or its `__cause__` chain.
    """
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, exc_type):
            return err
        seen.add(id(err))
        err = err.__cause__
    return None


def is_rollback(err: Optional[BaseException]) -> bool:
    return find_cause(err, StateRollbackError) is not None
