"""
Counter stores: "advance and return the next integer for family F".

Three implementations share the ``CounterStore`` interface:

- ``SequenceStore`` uses native database sequences (``nextval``). Atomic and
  lock-free, but not transactional: rolled-back transactions leave gaps.
- ``CountStore`` derives the next number from the family table's row count.
  Not safe with concurrent writers; only selected for SQLite and always run
  under the coordinator.
- ``InMemoryCounter`` keeps per-family integers in process memory for tests.

``probe_dialect`` / ``select_counter_store`` pick the store for a connection.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import Sequence, column, select, table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from .errors import CounterUnavailable
from .families import Family
from .formatting import is_sequential_reference_id

logger = logging.getLogger(__name__)

_COUNT_RESERVATIONS_KEY = "reqmgmt.refids.count_reservations"


@dataclass(frozen=True)
class DialectProbe:
    name: str
    supports_sequences: bool


def probe_dialect(conn: Connection) -> DialectProbe:
    """Describe the dialect behind ``conn``."""
    dialect = conn.dialect
    return DialectProbe(name=dialect.name, supports_sequences=bool(getattr(dialect, "supports_sequences", False)))


class CounterStore(ABC):
    """Advances per-family counters inside the caller's transaction."""

    name: str = "abstract"
    # Whether advance() is safe under concurrent callers without coordination.
    atomic: bool = False

    @abstractmethod
    def advance(self, family: Family, conn: Optional[Connection]) -> int:
        """Return the next unused integer (>= 1) for ``family``.

        Raises CounterUnavailable when the backing store fails.
        """


class SequenceStore(CounterStore):
    name = "sequence"
    atomic = True

    def __init__(self) -> None:
        self._sequences: Dict[str, Sequence] = {}
        self._lock = threading.Lock()

    def _sequence(self, family: Family) -> Sequence:
        with self._lock:
            seq = self._sequences.get(family.counter_name)
            if seq is None:
                seq = Sequence(family.counter_name)
                self._sequences[family.counter_name] = seq
            return seq

    def advance(self, family: Family, conn: Optional[Connection]) -> int:
        if conn is None:
            raise CounterUnavailable(family.prefix, "no connection")
        seq = self._sequence(family)
        try:
            # SAVEPOINT keeps a failed nextval from aborting the caller's transaction
            with conn.begin_nested():
                value = conn.scalar(select(seq.next_value()))
        except SQLAlchemyError as exc:
            logger.warning("nextval(%s) failed for %s: %s", family.counter_name, family.prefix, exc)
            raise CounterUnavailable(family.prefix, str(exc)) from exc
        if value is None:
            raise CounterUnavailable(family.prefix, f"sequence {family.counter_name} returned no value")
        return int(value)


class CountStore(CounterStore):
    """Row-count based counter for dialects without sequences (SQLite).

    Every sequential-form id of the family counts, whatever its origin: a
    manually supplied ``EP-050`` moves the counter by one, unlike a native
    sequence. Manual ids in any other form and fallback ids are not counted.
    Numbers already handed out in a transaction are remembered per
    transaction on the connection so a batch of pending inserts receives
    distinct values, including when several transactions share one DBAPI
    connection (``StaticPool``).
    """

    name = "count"
    atomic = False

    def __init__(self, probe: Optional[DialectProbe] = None) -> None:
        if probe is not None:
            self._refuse_sequences(probe)
        self._lock = threading.Lock()

    @staticmethod
    def _refuse_sequences(probe: DialectProbe) -> None:
        if probe.supports_sequences:
            raise ValueError(
                f"Dialect {probe.name!r} supports sequences; refusing row-count reference id counters"
            )

    def _reservations(self, conn: Connection) -> Dict[str, int]:
        current = conn.get_transaction()
        with self._lock:
            by_transaction = conn.info.setdefault(_COUNT_RESERVATIONS_KEY, {})
            for key, (trans, _) in list(by_transaction.items()):
                if trans is not current and (trans is None or not trans.is_active):
                    del by_transaction[key]
            entry = by_transaction.get(id(current))
            if entry is None or entry[0] is not current:
                entry = (current, {})
                by_transaction[id(current)] = entry
            return entry[1]

    def _issued(self, family: Family, conn: Connection) -> int:
        family_table = table(family.table_name, column("reference_id"))
        refs = conn.execute(
            select(family_table.c.reference_id).where(
                family_table.c.reference_id.like(f"{family.prefix}-%")
            )
        ).scalars()
        return sum(1 for ref in refs if is_sequential_reference_id(ref, family.prefix))

    def advance(self, family: Family, conn: Optional[Connection]) -> int:
        if conn is None:
            raise CounterUnavailable(family.prefix, "no connection")
        self._refuse_sequences(probe_dialect(conn))
        try:
            issued = self._issued(family, conn)
        except SQLAlchemyError as exc:
            logger.warning("Counting %s rows failed for %s: %s", family.table_name, family.prefix, exc)
            raise CounterUnavailable(family.prefix, str(exc)) from exc
        reserved = self._reservations(conn)
        number = max(issued, reserved.get(family.prefix, 0)) + 1
        reserved[family.prefix] = number
        return number


class InMemoryCounter(CounterStore):
    """Thread-safe in-process counters; never touches the database."""

    name = "memory"
    atomic = True

    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()

    def advance(self, family: Family, conn: Optional[Connection] = None) -> int:
        with self._lock:
            value = self._counters.get(family.prefix, 0) + 1
            self._counters[family.prefix] = value
            return value

    def reset(self, prefix: Optional[str] = None) -> None:
        """Reset one family (or every family) back to zero."""
        with self._lock:
            if prefix is None:
                self._counters.clear()
            else:
                self._counters.pop(prefix, None)

    def set_counter(self, prefix: str, value: int) -> None:
        """Set the last-issued value; the next advance returns ``value + 1``."""
        if value < 0:
            raise ValueError("counter value must be >= 0")
        with self._lock:
            self._counters[prefix] = value

    def current(self, prefix: str) -> int:
        with self._lock:
            return self._counters.get(prefix, 0)


def select_counter_store(probe: DialectProbe) -> Optional[CounterStore]:
    """Return the store for ``probe``'s dialect, or None if it has no supported counter."""
    if probe.supports_sequences:
        return SequenceStore()
    if probe.name == "sqlite":
        return CountStore(probe)
    logger.warning("No reference id counter for dialect %r; ids will use the fallback form", probe.name)
    return None

