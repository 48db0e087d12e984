"""Write-transaction runner tests: commit, rollback, conflict mapping and retries."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from padelbook.core.database import is_transient, run_in_transaction
from padelbook.core.errors import Conflict, Forbidden, InfrastructureError


def _session():
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


def _pg_error(cls, sqlstate):
    orig = Exception("boom")
    orig.sqlstate = sqlstate
    return cls("stmt", {}, orig)


class TestIsTransient:
    def test_operational_error(self):
        assert is_transient(OperationalError("stmt", {}, Exception("connection lost")))

    def test_timeout(self):
        assert is_transient(TimeoutError())

    def test_serialization_failure(self):
        assert is_transient(_pg_error(ProgrammingError, "40001"))

    def test_deadlock(self):
        assert is_transient(_pg_error(ProgrammingError, "40P01"))

    def test_other_sqlstate(self):
        assert not is_transient(_pg_error(ProgrammingError, "42601"))

    def test_domain_error(self):
        assert not is_transient(Forbidden())


@pytest.mark.asyncio
async def test_commits_on_success():
    db = _session()
    result = await run_in_transaction(db, AsyncMock(return_value=7))

    assert result == 7
    db.commit.assert_awaited_once()
    db.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_domain_error_rolls_back_and_propagates():
    db = _session()
    operation = AsyncMock(side_effect=Forbidden("no"))

    with pytest.raises(Forbidden):
        await run_in_transaction(db, operation)
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
    assert operation.await_count == 1


@pytest.mark.asyncio
async def test_unique_violation_is_a_conflict():
    db = _session()
    db.commit.side_effect = IntegrityError("stmt", {}, Exception("duplicate key"))

    with pytest.raises(Conflict):
        await run_in_transaction(db, AsyncMock(return_value=None))
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    db = _session()
    operation = AsyncMock(side_effect=[OperationalError("stmt", {}, Exception("reset")), "ok"])

    assert await run_in_transaction(db, operation, attempts=3) == "ok"
    assert operation.await_count == 2
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_exhausted_retries_become_infrastructure_error():
    db = _session()
    operation = AsyncMock(side_effect=OperationalError("stmt", {}, Exception("down")))

    with pytest.raises(InfrastructureError) as excinfo:
        await run_in_transaction(db, operation, attempts=2)
    assert operation.await_count == 2
    assert excinfo.value.retryable


@pytest.mark.asyncio
async def test_permanent_store_error_is_not_retried():
    db = _session()
    operation = AsyncMock(side_effect=_pg_error(ProgrammingError, "42601"))

    with pytest.raises(ProgrammingError):
        await run_in_transaction(db, operation, attempts=3)
    assert operation.await_count == 1
