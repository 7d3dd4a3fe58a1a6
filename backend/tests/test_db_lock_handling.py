import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from protrack.core.config import settings
from protrack.core.db_errors import is_lock_conflict, raise_on_lock_conflict
from protrack.core.db_retry import is_retriable, with_db_retry


class DriverError(Exception):
    def __init__(self, code: int, message: str, sqlstate: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.args = (code, message)


def _operational(code: int, message: str, sqlstate: str | None = None) -> OperationalError:
    return OperationalError("UPDATE shipping_program ...", {}, DriverError(code, message, sqlstate))


class RecordingSession:
    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


@pytest.fixture
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "DB_RETRY_ATTEMPTS", 3)
    monkeypatch.setattr(settings, "DB_RETRY_BASE_DELAY", 0.0)
    monkeypatch.setattr(settings, "DB_RETRY_JITTER", 0.0)
    monkeypatch.setattr(settings, "DB_NOWAIT_LOCKS", True)


def test_nowait_conflict_becomes_409():
    with pytest.raises(HTTPException) as ctx:
        raise_on_lock_conflict(_operational(3572, "could not obtain lock"))
    assert ctx.value.status_code == 409
    assert "locked" in ctx.value.detail


def test_other_operational_errors_propagate():
    exc = _operational(2013, "lost connection")
    assert not is_lock_conflict(exc)
    with pytest.raises(OperationalError):
        raise_on_lock_conflict(exc)


@pytest.mark.parametrize(
    "code, message, sqlstate, expected",
    [
        (1213, "Deadlock found", None, True),
        (1205, "Lock wait timeout exceeded", None, True),
        (0, "serialization failure", "40001", True),
        (3572, "could not obtain lock", None, False),
        (1062, "Duplicate entry", None, False),
    ],
)
def test_retriable_classification(fast_retries, code, message, sqlstate, expected):
    assert is_retriable(_operational(code, message, sqlstate)) is expected


def test_nowait_is_retried_when_waiting_locks(monkeypatch):
    monkeypatch.setattr(settings, "DB_NOWAIT_LOCKS", False)
    assert is_retriable(_operational(3572, "could not obtain lock"))


@pytest.mark.anyio
async def test_deadlocked_write_is_replayed_from_a_clean_session(fast_retries):
    session = RecordingSession()
    attempts = []

    async def submit():
        attempts.append(session.rollbacks)
        if len(attempts) == 1:
            raise _operational(1213, "Deadlock found when trying to get lock")
        return "log-1"

    assert await with_db_retry(session, submit) == "log-1"
    # The second attempt only starts after the first one was rolled back.
    assert attempts == [0, 1]


@pytest.mark.anyio
async def test_retries_stop_after_configured_attempts(fast_retries):
    session = RecordingSession()
    calls = {"count": 0}

    async def always_deadlocks():
        calls["count"] += 1
        raise _operational(1213, "Deadlock found")

    with pytest.raises(OperationalError):
        await with_db_retry(session, always_deadlocks)
    assert calls["count"] == 3
    assert session.rollbacks == 2


@pytest.mark.anyio
async def test_nowait_conflict_is_not_retried(fast_retries):
    session = RecordingSession()
    calls = {"count": 0}

    async def locked():
        calls["count"] += 1
        raise _operational(3572, "could not obtain lock")

    with pytest.raises(OperationalError):
        await with_db_retry(session, locked)
    assert calls["count"] == 1
    assert session.rollbacks == 0
