from __future__ import annotations

import pytest

from unitwork.errors import (
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


def test_error_hierarchy_and_str():
    e = Conflict("stale version", {"account": "acc-1"})
    assert isinstance(e, UnitWorkError)
    assert isinstance(e, DomainError)
    assert e.code == "conflict"
    assert "conflict: stale version" in str(e)
    assert "account" in str(e)


def test_infra_error_is_distinct():
    ioe = InfraError(code="io_error", message="disk full")
    assert isinstance(ioe, UnitWorkError)
    assert not isinstance(ioe, DomainError)
    assert ioe.code == "io_error"
    assert "disk full" in str(ioe)


def test_cancellation_errors():
    assert Cancelled().code == "cancelled"
    de = DeadlineExceeded()
    assert isinstance(de, Cancelled)
    assert isinstance(de, InfraError)
    assert de.code == "deadline_exceeded"
    assert de.message == "context deadline exceeded"


def test_state_rollback_carries_phase_and_cause():
    cause = Conflict("stale version")
    err = StateRollbackError(Phase.COMMIT, cause)
    assert err.code == "state_rollback"
    assert err.phase is Phase.COMMIT
    assert err.cause is cause
    assert err.message == "state rollback: conflict: stale version"
    assert err.details == {"phase": "commit"}


def test_find_cause_walks_cause_chain():
    root = Conflict("stale version")
    try:
        try:
            raise root
        except Conflict as exc:
            raise StateRollbackError(Phase.BODY, exc) from exc
    except StateRollbackError as outer:
        assert find_cause(outer, Conflict) is root
        assert find_cause(outer, StateRollbackError) is outer
        assert find_cause(outer, Cancelled) is None
        assert is_rollback(outer)


def test_is_rollback_false_for_plain_errors():
    assert not is_rollback(ConnectionError("bus down"))
    assert not is_rollback(None)


def test_raise_and_catch_unitwork_error():
    with pytest.raises(UnitWorkError):
        raise StateRollbackError(Phase.BEGIN, RuntimeError("db down"))
