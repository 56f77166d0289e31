"""
Cooperative per-family locking for counter stores that are not atomic.

PostgreSQL uses transaction-scoped advisory locks keyed by the family's
coordination key; the server releases them when the transaction ends. Other
dialects use an in-process lock table, released when ``with_lock`` exits.
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Tuple, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from reqmgmt.utils.settings import get_reference_id_settings

from .errors import CoordinationTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CooperativeLock(ABC):
    @abstractmethod
    def acquire(self, key: int, conn: Optional[Connection], timeout: float) -> bool:
        """Try to take ``key`` for ``conn`` within ``timeout`` seconds."""

    @abstractmethod
    def release(self, key: int, conn: Optional[Connection]) -> None:
        ...


class AdvisoryLock(CooperativeLock):
    """``pg_try_advisory_xact_lock`` polled until the budget runs out."""

    def __init__(self, poll_interval: float) -> None:
        self.poll_interval = poll_interval

    def acquire(self, key: int, conn: Optional[Connection], timeout: float) -> bool:
        if conn is None:
            return False
        deadline = time.monotonic() + timeout
        while True:
            # SAVEPOINT keeps a failed lock query from aborting the caller's transaction;
            # a lock taken inside it is held until the outer transaction ends
            with conn.begin_nested():
                acquired = conn.scalar(text("SELECT pg_try_advisory_xact_lock(:key)"), {"key": key})
            if acquired:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(self.poll_interval, remaining))

    def release(self, key: int, conn: Optional[Connection]) -> None:
        # Transaction-scoped: released by the server on commit or rollback.
        return None


class LocalLock(CooperativeLock):
    """Re-entrant in-process lock table keyed by coordination key.

    The owner is the (connection, thread) pair, so re-entry from the same
    transaction succeeds while other threads wait.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._holders: Dict[int, Tuple[Tuple[int, int], int]] = {}

    @staticmethod
    def _owner(conn: Optional[Connection]) -> Tuple[int, int]:
        return (id(conn), threading.get_ident())

    def acquire(self, key: int, conn: Optional[Connection], timeout: float) -> bool:
        owner = self._owner(conn)
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                holder = self._holders.get(key)
                if holder is None:
                    self._holders[key] = (owner, 1)
                    return True
                if holder[0] == owner:
                    self._holders[key] = (owner, holder[1] + 1)
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)

    def release(self, key: int, conn: Optional[Connection]) -> None:
        owner = self._owner(conn)
        with self._cond:
            holder = self._holders.get(key)
            if holder is None or holder[0] != owner:
                raise RuntimeError(f"Lock {key} is not held by this connection")
            if holder[1] > 1:
                self._holders[key] = (owner, holder[1] - 1)
                return
            del self._holders[key]
            self._cond.notify_all()

    def is_held(self, key: int) -> bool:
        with self._cond:
            return key in self._holders


class Coordinator:
    """Serializes allocations per coordination key."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        lock: Optional[CooperativeLock] = None,
    ) -> None:
        settings = get_reference_id_settings()
        self.timeout = settings.lock_timeout if timeout is None else timeout
        self.poll_interval = settings.lock_poll_interval if poll_interval is None else poll_interval
        self._lock = lock
        self._local = LocalLock()

    def lock_for(self, conn: Optional[Connection]) -> CooperativeLock:
        if self._lock is not None:
            return self._lock
        if conn is not None and conn.dialect.name == "postgresql":
            return AdvisoryLock(self.poll_interval)
        return self._local

    @contextmanager
    def hold(self, coord_key: int, conn: Optional[Connection]) -> Iterator[None]:
        lock = self.lock_for(conn)
        try:
            acquired = lock.acquire(coord_key, conn, self.timeout)
        except SQLAlchemyError as exc:
            logger.warning("Acquiring lock %s failed: %s", coord_key, exc)
            raise CoordinationTimeout(coord_key, self.timeout) from exc
        if not acquired:
            raise CoordinationTimeout(coord_key, self.timeout)
        try:
            yield
        finally:
            lock.release(coord_key, conn)

    def with_lock(self, coord_key: int, conn: Optional[Connection], fn: Callable[[], T]) -> T:
        """Run ``fn`` while holding ``coord_key``; raise CoordinationTimeout without running it otherwise."""
        with self.hold(coord_key, conn):
            return fn()
