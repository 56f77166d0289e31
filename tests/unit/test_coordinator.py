import threading
import time
from contextlib import contextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from reqmgmt.refids import AdvisoryLock, CoordinationTimeout, Coordinator, LocalLock
from reqmgmt.utils.settings import refresh_reference_id_settings_cache

KEY = 2147483645


def _conn(dialect="sqlite"):
    return SimpleNamespace(dialect=SimpleNamespace(name=dialect))


class PollingConnection:
    """Answers pg_try_advisory_xact_lock with scripted results."""

    def __init__(self, *answers):
        self.dialect = SimpleNamespace(name="postgresql")
        self.answers = list(answers)
        self.calls = []
        self.savepoints = []

    @contextmanager
    def begin_nested(self):
        record = {"rolled_back": False}
        self.savepoints.append(record)
        try:
            yield
        except Exception:
            record["rolled_back"] = True
            raise

    def scalar(self, statement, params):
        self.calls.append((str(statement), params))
        answer = self.answers.pop(0) if self.answers else False
        if isinstance(answer, Exception):
            raise answer
        return answer


def test_defaults_come_from_settings(monkeypatch):
    monkeypatch.setenv("REFID_LOCK_TIMEOUT_MS", "250")
    monkeypatch.setenv("REFID_LOCK_POLL_INTERVAL_MS", "5")
    refresh_reference_id_settings_cache()

    coordinator = Coordinator()
    assert coordinator.timeout == pytest.approx(0.25)
    assert coordinator.poll_interval == pytest.approx(0.005)


def test_with_lock_returns_result_and_releases():
    lock = LocalLock()
    coordinator = Coordinator(timeout=0.05, lock=lock)
    conn = _conn()

    def work():
        assert lock.is_held(KEY)
        return 41 + 1

    assert coordinator.with_lock(KEY, conn, work) == 42
    assert not lock.is_held(KEY)


def test_with_lock_releases_on_exception():
    lock = LocalLock()
    coordinator = Coordinator(timeout=0.05, lock=lock)

    def boom():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        coordinator.with_lock(KEY, _conn(), boom)
    assert not lock.is_held(KEY)


def test_reentry_from_same_connection():
    coordinator = Coordinator(timeout=0.05, lock=LocalLock())
    conn = _conn()
    result = coordinator.with_lock(KEY, conn, lambda: coordinator.with_lock(KEY, conn, lambda: "inner"))
    assert result == "inner"


def test_distinct_keys_do_not_contend():
    lock = LocalLock()
    coordinator = Coordinator(timeout=0.02, lock=lock)
    holder = _conn()
    assert lock.acquire(KEY, holder, 0.01)
    try:
        assert coordinator.with_lock(KEY - 1, _conn(), lambda: "other") == "other"
    finally:
        lock.release(KEY, holder)


def test_timeout_does_not_run_fn():
    lock = LocalLock()
    coordinator = Coordinator(timeout=0.02, lock=lock)
    holder = _conn()
    assert lock.acquire(KEY, holder, 0.01)
    called = []
    try:
        with pytest.raises(CoordinationTimeout) as exc_info:
            coordinator.with_lock(KEY, _conn(), lambda: called.append(True))
    finally:
        lock.release(KEY, holder)
    assert called == []
    assert exc_info.value.coord_key == KEY


def test_waiter_proceeds_once_holder_releases():
    lock = LocalLock()
    held = threading.Event()

    def hold_briefly():
        holder = _conn()
        lock.acquire(KEY, holder, 0.01)
        held.set()
        time.sleep(0.02)
        lock.release(KEY, holder)

    worker = threading.Thread(target=hold_briefly)
    worker.start()
    held.wait(1.0)
    try:
        assert Coordinator(timeout=2.0, lock=lock).with_lock(KEY, _conn(), lambda: "after") == "after"
    finally:
        worker.join()
    assert not lock.is_held(KEY)


def test_local_lock_release_by_non_holder():
    lock = LocalLock()
    holder = _conn()
    lock.acquire(KEY, holder, 0.01)
    with pytest.raises(RuntimeError):
        lock.release(KEY, _conn())
    lock.release(KEY, holder)


def test_lock_for_selects_backend_by_dialect():
    coordinator = Coordinator(timeout=0.01, poll_interval=0.002)
    assert isinstance(coordinator.lock_for(_conn("postgresql")), AdvisoryLock)
    assert coordinator.lock_for(_conn("postgresql")).poll_interval == 0.002
    assert isinstance(coordinator.lock_for(_conn("sqlite")), LocalLock)
    assert isinstance(coordinator.lock_for(None), LocalLock)


def test_advisory_lock_polls_until_acquired():
    conn = PollingConnection(False, False, True)
    assert AdvisoryLock(poll_interval=0.001).acquire(KEY, conn, timeout=1.0)
    assert len(conn.calls) == 3
    assert "pg_try_advisory_xact_lock" in conn.calls[0][0]
    assert conn.calls[0][1] == {"key": KEY}


def test_advisory_lock_gives_up_after_timeout():
    conn = PollingConnection()
    assert not AdvisoryLock(poll_interval=0.001).acquire(KEY, conn, timeout=0.01)
    assert conn.calls


def test_advisory_lock_without_connection():
    assert not AdvisoryLock(poll_interval=0.001).acquire(KEY, None, timeout=0.01)


def test_database_error_while_locking_becomes_timeout():
    conn = PollingConnection(OperationalError("SELECT pg_try_advisory_xact_lock", {}, Exception("down")))
    coordinator = Coordinator(timeout=0.01, poll_interval=0.001)
    with pytest.raises(CoordinationTimeout) as exc_info:
        coordinator.with_lock(KEY, conn, lambda: "never")
    assert isinstance(exc_info.value.__cause__, OperationalError)


def test_lock_query_runs_in_savepoint():
    conn = PollingConnection(False, True)
    assert AdvisoryLock(poll_interval=0.001).acquire(KEY, conn, timeout=1.0)
    assert len(conn.savepoints) == 2
    assert not any(sp["rolled_back"] for sp in conn.savepoints)


def test_failed_lock_query_rolls_back_only_its_savepoint():
    conn = PollingConnection(OperationalError("SELECT pg_try_advisory_xact_lock", {}, Exception("down")))
    coordinator = Coordinator(timeout=0.01, poll_interval=0.001)
    with pytest.raises(CoordinationTimeout):
        coordinator.with_lock(KEY, conn, lambda: "never")
    assert conn.savepoints == [{"rolled_back": True}]
